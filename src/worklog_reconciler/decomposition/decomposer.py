"""Generator-assisted breakdown of aggregated work into sub-tasks."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Sequence

from pydantic import ValidationError

from ..aggregation import AggregationGroup
from ..generator import GeneratorError, GeneratorRunner, parse_json_response
from ..models import SubTask
from ..prompts import PromptLoader, build_decomposition_prompt
from ..schemas import SubTaskPayload
from ..usage import TokenUsage
from .allocator import allocate_to_members, reconcile_hours
from .weights import compute_weighted_targets, weighting_units

logger = logging.getLogger(__name__)


class MalformedDecompositionError(ValueError):
    """Raised when a decomposition response cannot be turned into sub-tasks."""


@dataclass(slots=True)
class DecompositionOutcome:
    """Sub-tasks per entry index for every group that decomposed cleanly."""

    sub_tasks: dict[int, list[SubTask]] = field(default_factory=dict)
    decomposed_groups: list[str] = field(default_factory=list)
    failed_groups: list[str] = field(default_factory=list)
    usage: TokenUsage = TokenUsage()


def parse_sub_tasks(payload: Any) -> list[SubTask]:
    """Validate a decomposition array; any invalid element rejects the whole response."""

    if not isinstance(payload, list) or not payload:
        raise MalformedDecompositionError("expected a non-empty array of sub-tasks")
    sub_tasks: list[SubTask] = []
    for position, element in enumerate(payload):
        try:
            parsed = SubTaskPayload.model_validate(element)
        except ValidationError as exc:
            raise MalformedDecompositionError(f"sub-task {position} is invalid: {exc.error_count()} error(s)") from exc
        sub_tasks.append(
            SubTask(
                description=parsed.description,
                hours=parsed.hours,
                ticket_id=parsed.ticket_id,
                confidence=parsed.confidence,  # type: ignore[arg-type]
            )
        )
    return sub_tasks


class TaskDecomposer:
    """Request sub-tasks for each group and hand them out to the group's entries."""

    def __init__(self, generator: GeneratorRunner, prompts: PromptLoader) -> None:
        self._generator = generator
        self._prompts = prompts

    def build_prompt(self, group: AggregationGroup) -> str:
        total = group.total_hours
        units = weighting_units(group.evidence)
        targets = compute_weighted_targets(units, group.evidence, total) if len(units) >= 2 else []
        return build_decomposition_prompt(
            self._prompts.get("decomposition"),
            group.members,
            total,
            group.distinct_evidence,
            targets,
        )

    async def decompose_group(self, group: AggregationGroup) -> tuple[dict[int, list[SubTask]], TokenUsage]:
        """Decompose one group.

        Raises ``GeneratorError`` when the call or parsing fails and
        ``MalformedDecompositionError`` when the sub-tasks are unusable.
        """

        total = group.total_hours
        response = await self._generator.generate(self.build_prompt(group))
        usage = response.usage
        sub_tasks = reconcile_hours(parse_sub_tasks(parse_json_response(response.response)), total)
        if any(task.hours < 0 or not math.isfinite(task.hours) for task in sub_tasks):
            raise MalformedDecompositionError("reconciled sub-task hours are negative")

        durations = [member.entry.duration_hours for member in group.members]
        allocations = allocate_to_members(sub_tasks, durations)
        return {member.index: assigned for member, assigned in zip(group.members, allocations)}, usage

    async def decompose(self, groups: Sequence[AggregationGroup]) -> DecompositionOutcome:
        """Decompose every group that needs it, one at a time.

        A failed group keeps its members undecomposed; the other groups are
        unaffected.
        """

        outcome = DecompositionOutcome()
        candidates = [group for group in groups if group.needs_decomposition]
        logger.info("Decomposing groups", extra={"groups": len(candidates)})

        for group in candidates:
            try:
                assigned, usage = await self.decompose_group(group)
            except (GeneratorError, MalformedDecompositionError) as exc:
                logger.warning(
                    "Decomposition of group %s failed; keeping its entries whole: %s",
                    group.key,
                    exc,
                    extra={"group": group.key, "members": len(group.members)},
                )
                outcome.failed_groups.append(group.key)
                continue
            outcome.usage = outcome.usage + usage
            outcome.sub_tasks.update(assigned)
            outcome.decomposed_groups.append(group.key)
            logger.debug(
                "Decomposed group",
                extra={"group": group.key, "sub_tasks": sum(len(tasks) for tasks in assigned.values())},
            )

        logger.info(
            "Decomposition complete",
            extra={"decomposed": len(outcome.decomposed_groups), "failed": len(outcome.failed_groups)},
        )
        return outcome


__all__ = ["DecompositionOutcome", "MalformedDecompositionError", "TaskDecomposer", "parse_sub_tasks"]
