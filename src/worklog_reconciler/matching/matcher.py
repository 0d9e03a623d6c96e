"""Deterministic matching of time entries to evidence."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Iterable, Sequence

from ..models import Evidence, MatchResult, TimeEntry, local_date
from .identifiers import extract_identifiers

logger = logging.getLogger(__name__)


def within_day_window(
    moment: datetime,
    target: datetime,
    window_days: int,
    tz: tzinfo | None = None,
) -> bool:
    """Return True when both instants fall within ``window_days`` local calendar days."""

    if window_days < 0:
        raise ValueError("window_days must be a non-negative integer")
    delta = local_date(moment, tz) - local_date(target, tz)
    return abs(delta.days) <= window_days


class EvidenceMatcher:
    """Match entries to evidence by shared identifiers and date proximity."""

    def __init__(
        self,
        evidence: Sequence[Evidence],
        *,
        window_days: int = 1,
        tz: tzinfo | None = None,
        allowed_prefixes: Iterable[str] | None = None,
    ) -> None:
        self._evidence = tuple(evidence)
        self._window_days = window_days
        self._tz = tz
        self._allowed_prefixes = tuple(allowed_prefixes or ())

    @property
    def evidence(self) -> tuple[Evidence, ...]:
        return self._evidence

    def _is_near(self, item: Evidence, moment: datetime) -> bool:
        stamp = item.timestamp
        return stamp is not None and within_day_window(moment, stamp, self._window_days, self._tz)

    def match(self, entry: TimeEntry) -> MatchResult:
        """Match one entry.

        With identifiers, evidence sharing one of them is an exact match; exact
        matches dated near the entry come first, the rest keep evidence order.
        Without identifiers, evidence dated near the entry is the only signal.
        """

        identifiers = extract_identifiers(entry.description, self._allowed_prefixes)

        if identifiers:
            wanted = set(identifiers)
            exact = [item for item in self._evidence if wanted.intersection(item.identifiers)]
            near = [item for item in exact if self._is_near(item, entry.start)]
        else:
            exact = []
            near = [item for item in self._evidence if self._is_near(item, entry.start)]

        ordered: list[Evidence] = []
        for item in near + exact:
            if not any(item is existing for existing in ordered):
                ordered.append(item)

        if identifiers and ordered:
            confidence = "high"
        elif ordered:
            confidence = "medium"
        else:
            confidence = "low"

        result = MatchResult(
            entry=entry,
            identifiers=identifiers,
            evidence=ordered,
            phase="none" if confidence == "low" else "exact",
            confidence=confidence,
        )
        logger.debug(
            "Matched entry",
            extra={
                "entry_index": entry.index,
                "identifiers": list(identifiers),
                "evidence_count": len(ordered),
                "confidence": confidence,
            },
        )
        return result

    def match_all(self, entries: Iterable[TimeEntry]) -> list[MatchResult]:
        results = [self.match(entry) for entry in entries]
        unmatched = sum(1 for result in results if result.phase == "none")
        logger.info(
            "Exact matching complete",
            extra={"entries": len(results), "unmatched": unmatched},
        )
        return results


__all__ = ["EvidenceMatcher", "within_day_window"]
