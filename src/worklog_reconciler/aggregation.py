"""Cluster entries that share a primary key across days."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable

from .models import UNASSIGNED, Evidence, MatchResult, dedupe_evidence

logger = logging.getLogger(__name__)


def primary_key(result: MatchResult) -> str:
    """First identifier, else the description, else ``UNASSIGNED``."""

    return result.primary_identifier or result.entry.description or UNASSIGNED


@dataclass(slots=True)
class AggregationGroup:
    key: str
    members: list[MatchResult] = field(default_factory=list)

    @property
    def is_multi_day(self) -> bool:
        return len(self.members) > 1

    @property
    def total_hours(self) -> float:
        return math.fsum(member.entry.duration_hours for member in self.members)

    @property
    def evidence(self) -> list[Evidence]:
        """Union of member evidence; repeats are kept for weighting."""

        return [item for member in self.members for item in member.evidence]

    @property
    def distinct_evidence(self) -> list[Evidence]:
        return dedupe_evidence(self.evidence)

    @property
    def needs_decomposition(self) -> bool:
        if self.is_multi_day:
            return True
        return len(self.members) == 1 and len(self.members[0].identifiers) > 1


def aggregate(results: Iterable[MatchResult]) -> list[AggregationGroup]:
    """Group results by primary key, preserving first-seen order.

    Members of multi-member groups are flagged and given the group's total
    hours and combined evidence.
    """

    groups: dict[str, AggregationGroup] = {}
    for result in results:
        key = primary_key(result)
        result.group_key = key
        groups.setdefault(key, AggregationGroup(key=key)).members.append(result)

    for group in groups.values():
        if not group.is_multi_day:
            continue
        total = group.total_hours
        combined = group.evidence
        for member in group.members:
            member.is_multi_day = True
            member.group_total_hours = total
            member.group_evidence = list(combined)

    multi_day = sum(1 for group in groups.values() if group.is_multi_day)
    logger.info("Aggregated entries", extra={"groups": len(groups), "multi_day_groups": multi_day})
    return list(groups.values())


__all__ = ["AggregationGroup", "aggregate", "primary_key"]
