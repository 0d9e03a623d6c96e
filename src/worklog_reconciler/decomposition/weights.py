"""Deterministic hour targets per evidence unit, offered to the generator as guidance."""

from __future__ import annotations

from typing import Sequence

from ..models import Evidence, dedupe_evidence


def weighting_units(evidence: Sequence[Evidence]) -> list[Evidence]:
    """Distinct commits when any exist, otherwise distinct tickets."""

    unique = dedupe_evidence(list(evidence))
    commits = [item for item in unique if item.kind == "commit"]
    return commits or [item for item in unique if item.kind == "ticket"]


def compute_weighted_targets(
    units: Sequence[Evidence],
    evidence: Sequence[Evidence],
    total_hours: float,
) -> list[tuple[Evidence, float]]:
    """Split ``total_hours`` across ``units`` by score.

    A unit's primary score is the highest story-point weight among the tickets
    it references; lines changed break ties. The primary score is scaled by
    ``max_lines + 1`` so it always dominates. When every score is zero the
    hours are split evenly.
    """

    if not units:
        return []

    ticket_weights: dict[str, float] = {}
    for item in evidence:
        if item.kind == "ticket":
            ticket_weights[item.ticket_id] = max(ticket_weights.get(item.ticket_id, 0.0), item.weight)

    raw: list[tuple[float, int]] = []
    for unit in units:
        points = max((ticket_weights.get(identifier, 0.0) for identifier in unit.identifiers), default=0.0)
        raw.append((points, unit.lines_changed))

    max_lines = max([1, *(lines for _, lines in raw)])
    scores = [points * (max_lines + 1) + lines if points > 0 else float(lines) for points, lines in raw]
    total_score = sum(scores)

    if total_score <= 0:
        share = total_hours / len(units)
        return [(unit, round(share, 6)) for unit in units]
    return [(unit, round(total_hours * score / total_score, 6)) for unit, score in zip(units, scores)]


__all__ = ["compute_weighted_targets", "weighting_units"]
