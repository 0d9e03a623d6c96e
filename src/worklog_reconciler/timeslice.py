"""Deterministic slicing of an entry's time window into consecutive segments."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import NamedTuple, Sequence

SPLIT_TOLERANCE_HOURS = 1e-3


class SplitContractError(ValueError):
    """Raised when sub-durations cannot tile the window they were computed for."""


class TimeWindow(NamedTuple):
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


def window_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def split_time_window(
    start: datetime,
    end: datetime,
    durations: Sequence[float],
) -> list[TimeWindow]:
    """Split ``[start, end)`` into back-to-back windows of the given hours.

    The durations are used verbatim. They must sum to the window length within
    ``SPLIT_TOLERANCE_HOURS``; the final window is pinned to ``end`` so float
    drift never leaves a gap or overlap.
    """

    if end < start:
        raise SplitContractError(f"Window end {end.isoformat()} precedes start {start.isoformat()}")
    if not durations:
        raise SplitContractError("durations must be a non-empty sequence")
    for duration in durations:
        if not math.isfinite(duration) or duration < 0:
            raise SplitContractError(f"Invalid sub-duration {duration!r}")

    total = math.fsum(durations)
    length = window_hours(start, end)
    if abs(length - total) > SPLIT_TOLERANCE_HOURS:
        raise SplitContractError(
            f"Total durations ({total}h) must equal window duration ({length}h)"
        )

    windows: list[TimeWindow] = []
    cursor = start
    last = len(durations) - 1
    for position, duration in enumerate(durations):
        segment_end = end if position == last else cursor + timedelta(hours=duration)
        windows.append(TimeWindow(cursor, segment_end))
        cursor = segment_end
    return windows


def parse_hmm(value: str | float | int | None) -> float:
    """Parse a ``H:MM`` duration (or plain hours) into fractional hours."""

    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if ":" not in text:
        return float(text)
    hours_part, _, minutes_part = text.partition(":")
    hours = int(hours_part or 0)
    minutes = int(minutes_part or 0)
    return hours + minutes / 60


def hours_to_hmm(hours: float) -> str:
    total_minutes = int(round(hours * 60))
    return f"{total_minutes // 60}:{total_minutes % 60:02d}"


__all__ = [
    "SPLIT_TOLERANCE_HOURS",
    "SplitContractError",
    "TimeWindow",
    "hours_to_hmm",
    "parse_hmm",
    "split_time_window",
    "window_hours",
]
