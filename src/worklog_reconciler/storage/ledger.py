"""Append-only ledger of completed work items."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from .models import LedgerRecord

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    """The three operations the reconciler needs from persistence."""

    def append(self, record: LedgerRecord) -> None:
        ...

    def read_all(self) -> list[LedgerRecord]:
        ...

    def clear(self) -> None:
        ...


class JsonlLedgerStore:
    """Newline-delimited JSON file; each append is one write of one line.

    A crash can at worst leave a truncated final line, which is skipped on
    read.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: LedgerRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(record.to_payload(), ensure_ascii=False) + "\n"
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.flush()

    def read_all(self) -> list[LedgerRecord]:
        if not self._path.exists():
            return []

        records: list[LedgerRecord] = []
        with self._path.open("rb") as handle:
            for line_number, raw_line in enumerate(handle, start=1):
                if not raw_line.strip():
                    continue
                try:
                    # A torn append can split a multibyte character.
                    payload = json.loads(raw_line.decode("utf-8"))
                    if not isinstance(payload, dict):
                        raise ValueError("ledger line is not an object")
                    records.append(LedgerRecord.from_payload(payload))
                except ValueError as exc:
                    logger.warning(
                        "Skipping unreadable ledger line",
                        extra={"path": str(self._path), "line": line_number, "error": str(exc)},
                    )
        return records

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
        logger.info("Cleared ledger", extra={"path": str(self._path)})


__all__ = ["JsonlLedgerStore", "LedgerStore"]
