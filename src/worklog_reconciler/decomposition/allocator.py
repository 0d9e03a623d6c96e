"""Exact-hours reconciliation and allocation of sub-tasks to group members."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Sequence

from ..models import SubTask

RECONCILE_TOLERANCE_HOURS = 1e-3


def reconcile_hours(sub_tasks: Sequence[SubTask], total_hours: float) -> list[SubTask]:
    """Return ``sub_tasks`` with any drift beyond tolerance added to the last item."""

    if not sub_tasks:
        return []
    current = math.fsum(task.hours for task in sub_tasks)
    if abs(current - total_hours) <= RECONCILE_TOLERANCE_HOURS:
        return list(sub_tasks)
    last = sub_tasks[-1]
    return [*sub_tasks[:-1], replace(last, hours=last.hours + (total_hours - current))]


@dataclass(frozen=True, slots=True)
class QueueState:
    """Read position in a sub-task queue.

    ``head_remaining`` is the unconsumed part of the sub-task at ``position``
    (``None`` when it is untouched).
    """

    position: int = 0
    head_remaining: float | None = None


def take_hours(
    queue: Sequence[SubTask],
    state: QueueState,
    need: float,
) -> tuple[list[SubTask], QueueState]:
    """Consume ``need`` hours from ``queue`` starting at ``state``.

    Whole sub-tasks are taken while they fit; the head is split when it does
    not. The queue itself is never modified.
    """

    assigned: list[SubTask] = []
    remaining = need
    position = state.position
    head_remaining = state.head_remaining

    while remaining > 0 and position < len(queue):
        head = queue[position]
        available = head.hours if head_remaining is None else head_remaining
        if available <= remaining:
            assigned.append(replace(head, hours=available))
            remaining = round(remaining - available, 6)
            position += 1
            head_remaining = None
        else:
            assigned.append(replace(head, hours=remaining))
            head_remaining = round(available - remaining, 6)
            remaining = 0.0

    if assigned:
        residual = need - math.fsum(task.hours for task in assigned)
        if residual != 0.0:
            settled = need - math.fsum(task.hours for task in assigned[:-1])
            assigned[-1] = replace(assigned[-1], hours=settled)

    return assigned, QueueState(position=position, head_remaining=head_remaining)


def allocate_to_members(sub_tasks: Sequence[SubTask], durations: Sequence[float]) -> list[list[SubTask]]:
    """Walk members in order, each drawing its own duration from the shared queue."""

    snapshot = tuple(sub_tasks)
    state = QueueState()
    allocations: list[list[SubTask]] = []
    for duration in durations:
        assigned, state = take_hours(snapshot, state, duration)
        allocations.append(assigned)
    return allocations


__all__ = [
    "RECONCILE_TOLERANCE_HOURS",
    "QueueState",
    "allocate_to_members",
    "reconcile_hours",
    "take_hours",
]
