"""Chroma-based ledger backend."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .models import LedgerRecord

logger = logging.getLogger(__name__)


class LedgerUnavailableError(RuntimeError):
    """Raised when the ledger backend cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the ledger."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the ledger."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...

    def delete_collection(self, name: str) -> None:
        ...


class ChromaLedgerStore:
    """Persist ledger records as documents in a ChromaDB collection."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "enrichment_progress",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None
        self._sequence = 0

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise LedgerUnavailableError(
                "chromadb package is not installed; install worklog-reconciler with persistence extras"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_client(self) -> ClientProtocol:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            self._collection = self._ensure_client().get_or_create_collection(self._collection_name)
        return self._collection

    def append(self, record: LedgerRecord) -> None:
        collection = self._ensure_collection()
        self._sequence += 1
        recorded_at = record.recorded_at or self._clock()
        payload = record.to_payload()
        payload["recorded_at"] = recorded_at.isoformat()

        collection.add(
            documents=[json.dumps(payload, ensure_ascii=False)],
            metadatas=[
                {
                    "work_item_key": str(record.key),
                    "entry_index": record.key.entry_index,
                    "confidence": record.confidence,
                    "recorded_at": recorded_at.isoformat(),
                    "sequence": self._sequence,
                }
            ],
            ids=[f"{record.key}:{uuid.uuid4().hex}"],
        )

    def read_all(self) -> list[LedgerRecord]:
        collection = self._ensure_collection()
        result = collection.get()
        rows = sorted(
            zip(result.get("documents") or [], result.get("metadatas") or []),
            key=lambda row: (str((row[1] or {}).get("recorded_at", "")), (row[1] or {}).get("sequence", 0)),
        )

        records: list[LedgerRecord] = []
        for document, metadata in rows:
            try:
                payload = json.loads(document)
                if not isinstance(payload, dict):
                    raise ValueError("ledger document is not an object")
                records.append(LedgerRecord.from_payload(payload))
            except ValueError as exc:
                logger.warning(
                    "Skipping unreadable ledger document",
                    extra={"work_item_key": (metadata or {}).get("work_item_key"), "error": str(exc)},
                )
        return records

    def clear(self) -> None:
        # Created first so the delete never targets a missing collection.
        self._ensure_collection()
        self._ensure_client().delete_collection(self._collection_name)
        self._collection = None
        logger.info("Cleared ledger collection", extra={"collection": self._collection_name})


__all__ = ["ChromaLedgerStore", "LedgerUnavailableError"]
