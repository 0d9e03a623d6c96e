"""Assemble finalized rows from work items and recorded enrichment."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Iterable, Mapping, Sequence

from .models import CONFIDENCE_LEVELS, WorkItem, WorkItemKey
from .patterns import apply_patterns
from .schemas import PatternGroupPayload
from .storage import LedgerRecord
from .timeslice import TimeWindow, hours_to_hmm, split_time_window
from .usage import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FinalizedItem:
    """What the output assembler receives for one work item."""

    key: WorkItemKey
    original_description: str
    description: str
    confidence: str
    notes: str
    window: TimeWindow
    duration_hours: float
    ticket_id: str | None = None
    split_group_id: str | None = None
    sub_task_count: int = 1
    enriched: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_item_key": str(self.key),
            "original_description": self.original_description,
            "description": self.description,
            "confidence": self.confidence,
            "notes": self.notes,
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
            "duration": hours_to_hmm(self.duration_hours),
            "duration_hours": self.duration_hours,
            "ticket_id": self.ticket_id,
            "split_group_id": self.split_group_id,
            "sub_task_count": self.sub_task_count,
            "enriched": self.enriched,
        }


@dataclass(slots=True)
class ReconciliationReport:
    items: list[FinalizedItem] = field(default_factory=list)
    usage: TokenUsage = TokenUsage()
    estimated_tokens: int = 0
    semantic_failed: bool = False
    failed_groups: list[str] = field(default_factory=list)
    diff_lines: list[str] = field(default_factory=list)

    @property
    def confidence_counts(self) -> dict[str, int]:
        counts = Counter(item.confidence for item in self.items)
        return {level: counts.get(level, 0) for level in CONFIDENCE_LEVELS}

    @property
    def split_entries(self) -> int:
        return len({item.key.entry_index for item in self.items if item.split_group_id})

    @property
    def diff_text(self) -> str:
        return "\n".join(self.diff_lines)

    def summary(self) -> dict[str, Any]:
        return {
            "items": len(self.items),
            "split_entries": self.split_entries,
            "confidence": self.confidence_counts,
            "estimated_tokens": self.estimated_tokens,
            "actual_tokens": self.usage.total_tokens,
            "generator_calls": self.usage.calls,
            "semantic_failed": self.semantic_failed,
            "failed_groups": list(self.failed_groups),
        }


def latest_records(records: Iterable[LedgerRecord]) -> dict[WorkItemKey, LedgerRecord]:
    """Index records by key; a later record for the same key wins."""

    latest: dict[WorkItemKey, LedgerRecord] = {}
    for record in records:
        latest[record.key] = record
    return latest


def build_notes(item: WorkItem, generator_notes: str = "") -> str:
    """Generator notes followed by deterministic match context."""

    parts: list[str] = []
    if generator_notes.strip():
        parts.append(generator_notes.strip())

    context: list[str] = []
    if item.is_split:
        context.append(f"split {item.sub_index + 1}/{item.sub_task_count}")
    if item.identifiers:
        context.append(f"matched via exact ticket {item.identifiers[0]}")
    commits = [
        f"Commit {unit.short_ref}" + (f" PR#{unit.pull_request.number}" if unit.pull_request else "")
        for unit in item.evidence
        if unit.kind == "commit"
    ]
    if commits:
        context.append("github: " + ", ".join(commits))
    tickets = [unit.ticket_id for unit in item.evidence if unit.kind == "ticket"]
    if tickets:
        context.append("jira: " + ", ".join(tickets))
    if context:
        parts.append("; ".join(context))
    return "; ".join(parts)


def _windows_for(items: Sequence[WorkItem]) -> list[TimeWindow]:
    entry = items[0].entry
    if not items[0].is_split:
        return [TimeWindow(entry.start, entry.end)]
    return split_time_window(entry.start, entry.end, [item.duration_hours for item in items])


def finalize(
    items: Sequence[WorkItem],
    records: Iterable[LedgerRecord],
    *,
    patterns: Mapping[str, PatternGroupPayload] | None = None,
    tz: tzinfo | None = None,
) -> tuple[list[FinalizedItem], list[str]]:
    """Return finalized rows in work-item order plus before/after diff lines.

    Raises ``SplitContractError`` when a split entry's sub-durations do not
    fill its window.
    """

    enrichment = latest_records(records)
    by_entry: dict[int, list[WorkItem]] = {}
    for item in items:
        by_entry.setdefault(item.entry_index, []).append(item)

    finalized: list[FinalizedItem] = []
    diff: list[str] = []
    for entry_items in by_entry.values():
        entry = entry_items[0].entry
        windows = _windows_for(entry_items)
        split = entry_items[0].is_split

        diff.append(f"[{entry.index}] {entry.local_date(tz).isoformat()} | {hours_to_hmm(entry.duration_hours)}")
        diff.append(f"ORIGINAL: {entry.description}")
        if split:
            diff.append("ENRICHED:")

        for item, window in zip(entry_items, windows):
            record = enrichment.get(item.key)
            chosen = (record.enriched_description if record else "") or item.draft_description or entry.description
            description = apply_patterns(chosen, patterns)
            confidence = (record.confidence if record else None) or item.sub_task_confidence or item.confidence
            finalized.append(
                FinalizedItem(
                    key=item.key,
                    original_description=entry.description,
                    description=description,
                    confidence=confidence,
                    notes=build_notes(item, record.notes if record else ""),
                    window=window,
                    duration_hours=item.duration_hours,
                    ticket_id=item.ticket_id,
                    split_group_id=item.split_group_id,
                    sub_task_count=item.sub_task_count,
                    enriched=record is not None,
                )
            )
            if split:
                diff.append(
                    f"  -> [{item.sub_index + 1}/{item.sub_task_count}] {description} - {hours_to_hmm(item.duration_hours)}"
                )
            else:
                diff.append(f"ENRICHED: {description} - {hours_to_hmm(item.duration_hours)}")
        diff.append("---")

    missing = sum(1 for item in finalized if not item.enriched)
    if missing:
        logger.warning("Finalized work items without enrichment", extra={"missing": missing})
    return finalized, diff


__all__ = ["FinalizedItem", "ReconciliationReport", "build_notes", "finalize", "latest_records"]
