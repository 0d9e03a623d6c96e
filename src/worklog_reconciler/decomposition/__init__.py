"""Sub-task decomposition for aggregated groups."""

from .allocator import QueueState, allocate_to_members, reconcile_hours, take_hours
from .decomposer import DecompositionOutcome, MalformedDecompositionError, TaskDecomposer, parse_sub_tasks
from .weights import compute_weighted_targets, weighting_units

__all__ = [
    "DecompositionOutcome",
    "MalformedDecompositionError",
    "QueueState",
    "TaskDecomposer",
    "allocate_to_members",
    "compute_weighted_targets",
    "parse_sub_tasks",
    "reconcile_hours",
    "take_hours",
    "weighting_units",
]
