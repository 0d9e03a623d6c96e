"""Token usage accounting and pre-run cost estimation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

TOKENS_PER_WORK_ITEM = 800


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Usage reported by generator calls.

    Phases return their own value and callers add them together.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    calls: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            calls=self.calls + other.calls,
        )

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any] | None) -> "TokenUsage":
        """Read usage from provider metadata, whichever layout it uses."""

        if not isinstance(metadata, Mapping):
            return cls(calls=1)

        def _int(value: Any) -> int | None:
            return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None

        usage = metadata.get("usage") if isinstance(metadata.get("usage"), Mapping) else {}
        input_tokens = _int(metadata.get("input_tokens")) or _int(usage.get("prompt_tokens")) or 0
        output_tokens = _int(metadata.get("output_tokens")) or _int(usage.get("completion_tokens")) or 0

        total = (
            _int(metadata.get("total_tokens"))
            or _int(metadata.get("token_count"))
            or _int(usage.get("total_tokens"))
            or input_tokens + output_tokens
        )
        return cls(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total, calls=1)


def load_token_history(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring unreadable token history", extra={"path": str(path), "error": str(exc)})
        return []
    runs = document.get("runs") if isinstance(document, dict) else None
    return [run for run in runs or [] if isinstance(run, dict)]


def estimate_tokens(item_count: int, history: list[dict[str, Any]]) -> int:
    """Estimate tokens for ``item_count`` work items, calibrated by past runs."""

    ratios = [
        run["actual"] / run["estimated"]
        for run in history
        if isinstance(run.get("actual"), (int, float)) and run.get("estimated")
    ]
    coefficient = sum(ratios) / len(ratios) if ratios else 1.0
    return round(item_count * TOKENS_PER_WORK_ITEM * coefficient)


def record_token_run(path: Path, *, estimated: int, actual: int, now: datetime | None = None) -> None:
    runs = load_token_history(path)
    runs.append(
        {
            "date": (now or datetime.now(timezone.utc)).isoformat(),
            "estimated": estimated,
            "actual": actual,
        }
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"runs": runs}, indent=2), encoding="utf-8")


__all__ = [
    "TOKENS_PER_WORK_ITEM",
    "TokenUsage",
    "estimate_tokens",
    "load_token_history",
    "record_token_run",
]
