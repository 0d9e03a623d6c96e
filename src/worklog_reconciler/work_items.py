"""Flatten match and decomposition results into schedulable work items."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Mapping, Sequence

from .models import MatchResult, SubTask, WorkItem, WorkItemKey, dedupe_evidence

logger = logging.getLogger(__name__)


def _split_group_id() -> str:
    return uuid.uuid4().hex


def _evidence_for(result: MatchResult) -> tuple:
    return tuple(dedupe_evidence(result.effective_evidence))


def build_work_items(
    results: Sequence[MatchResult],
    sub_tasks: Mapping[int, Sequence[SubTask]] | None = None,
    *,
    id_factory: Callable[[], str] | None = None,
) -> list[WorkItem]:
    """Return work items in entry order.

    An entry with sub-tasks yields one item per sub-task (``i:0``..``i:n-1``)
    sharing a split-group id; any other entry yields a single ``i:0`` item
    carrying its original description.
    """

    sub_tasks = sub_tasks or {}
    id_factory = id_factory or _split_group_id
    items: list[WorkItem] = []

    for result in results:
        entry = result.entry
        evidence = _evidence_for(result)
        assigned = list(sub_tasks.get(result.index) or ())

        if not assigned:
            items.append(
                WorkItem(
                    key=WorkItemKey(entry.index, 0),
                    entry=entry,
                    draft_description=entry.description,
                    duration_hours=entry.duration_hours,
                    ticket_id=result.primary_identifier,
                    identifiers=result.identifiers,
                    evidence=evidence,
                    confidence=result.confidence,
                    match_phase=result.phase,
                    is_multi_day=result.is_multi_day,
                    group_total_hours=result.group_total_hours,
                )
            )
            continue

        group_id = id_factory()
        for position, task in enumerate(assigned):
            items.append(
                WorkItem(
                    key=WorkItemKey(entry.index, position),
                    entry=entry,
                    draft_description=task.description or entry.description,
                    duration_hours=task.hours,
                    ticket_id=task.ticket_id or result.primary_identifier,
                    identifiers=result.identifiers,
                    evidence=evidence,
                    confidence=result.confidence,
                    match_phase=result.phase,
                    split_group_id=group_id,
                    sub_task_count=len(assigned),
                    sub_task_confidence=task.confidence,
                    is_multi_day=result.is_multi_day,
                    group_total_hours=result.group_total_hours,
                )
            )

    logger.info(
        "Built work items",
        extra={"entries": len(results), "work_items": len(items), "split_entries": len(sub_tasks)},
    )
    return items


__all__ = ["build_work_items"]
