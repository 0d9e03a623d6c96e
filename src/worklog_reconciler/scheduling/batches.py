"""Bounded, deterministic batching of pending work items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Iterable, Sequence

from ..models import UNASSIGNED, WorkItem, WorkItemKey
from ..storage import LedgerStore

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10


@dataclass(slots=True)
class Batch:
    key: str
    items: list[WorkItem] = field(default_factory=list)

    @property
    def keys(self) -> list[WorkItemKey]:
        return [item.key for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


def batching_key(item: WorkItem, tz: tzinfo | None = None) -> str:
    """Ticket id when present, else the entry's local date."""

    if item.ticket_id:
        return item.ticket_id
    if item.entry.start is not None:
        return item.entry.local_date(tz).isoformat()
    return UNASSIGNED


def load_processed_keys(ledger: LedgerStore) -> set[WorkItemKey]:
    return {record.key for record in ledger.read_all()}


def pending_items(items: Iterable[WorkItem], processed: set[WorkItemKey]) -> list[WorkItem]:
    return [item for item in items if item.key not in processed]


def chunk(items: Sequence[WorkItem], size: int) -> list[list[WorkItem]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def build_batches(
    items: Iterable[WorkItem],
    processed: set[WorkItemKey] | None = None,
    *,
    max_size: int = MAX_BATCH_SIZE,
    tz: tzinfo | None = None,
) -> list[Batch]:
    """Group pending items by batching key and cut groups into chunks of ``max_size``.

    Keys keep first-seen order and items keep their order within a key, so the
    same inputs always yield the same batches.
    """

    candidates = list(items)
    pending = pending_items(candidates, processed or set())
    grouped: dict[str, list[WorkItem]] = {}
    for item in pending:
        grouped.setdefault(batching_key(item, tz), []).append(item)

    batches = [
        Batch(key=key, items=part)
        for key, members in grouped.items()
        for part in chunk(members, max_size)
    ]
    logger.info(
        "Scheduled batches",
        extra={"pending": len(pending), "skipped": len(candidates) - len(pending), "batches": len(batches)},
    )
    return batches


__all__ = [
    "MAX_BATCH_SIZE",
    "Batch",
    "batching_key",
    "build_batches",
    "chunk",
    "load_processed_keys",
    "pending_items",
]
