"""Data models for persisted enrichment progress."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from ..models import WorkItemKey, normalize_confidence

_KEY_FIELDS = ("work_item_key", "workItemKey", "key")
_LEGACY_INDEX_FIELDS = ("entry_index", "rowIndex", "row_index", "index")


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class LedgerRecord:
    """One completed enrichment result. Records are appended, never rewritten."""

    key: WorkItemKey
    enriched_description: str
    confidence: str = "low"
    notes: str = ""
    recorded_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "work_item_key": str(self.key),
            "entry_index": self.key.entry_index,
            "sub_index": self.key.sub_index,
            "enriched_description": self.enriched_description,
            "confidence": self.confidence,
            "notes": self.notes,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LedgerRecord":
        """Decode a stored record.

        Records written before work items had sub-indices carry only the entry
        index; they cover sub-index 0.
        """

        raw_key = next((payload[name] for name in _KEY_FIELDS if payload.get(name) not in (None, "")), None)
        if raw_key is not None:
            key = WorkItemKey.parse(str(raw_key))
        else:
            raw_index = next((payload[name] for name in _LEGACY_INDEX_FIELDS if name in payload), None)
            if isinstance(raw_index, bool) or not isinstance(raw_index, (int, str)):
                raise ValueError("ledger record has no work item key")
            try:
                key = WorkItemKey(int(raw_index), 0)
            except ValueError as exc:
                raise ValueError(f"ledger record has an invalid entry index: {raw_index!r}") from exc

        description = payload.get("enriched_description") or payload.get("enrichedDescription") or ""
        return cls(
            key=key,
            enriched_description=str(description),
            confidence=normalize_confidence(payload.get("confidence") or payload.get("ai_confidence")),
            notes=str(payload.get("notes") or payload.get("ai_notes") or ""),
            recorded_at=_parse_timestamp(payload.get("recorded_at")),
        )


__all__ = ["LedgerRecord"]
