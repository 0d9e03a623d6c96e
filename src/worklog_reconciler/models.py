"""Domain records shared by the reconciliation phases."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Literal, NamedTuple, Union

MatchPhase = Literal["exact", "semantic", "none"]
Confidence = Literal["high", "medium", "low"]

CONFIDENCE_LEVELS: tuple[str, ...] = ("high", "medium", "low")
UNASSIGNED = "UNASSIGNED"


def local_date(moment: datetime, tz: tzinfo | None = None) -> date:
    """Return the calendar date of ``moment`` in ``tz`` (host zone when ``None``).

    Naive datetimes are already local wall-clock values and are used as-is.
    """

    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def normalize_confidence(value: object, default: str = "low") -> str:
    if isinstance(value, str) and value.strip().lower() in CONFIDENCE_LEVELS:
        return value.strip().lower()
    return default


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """A source time-tracking row; read-only for the whole run."""

    index: int
    description: str
    start: datetime
    end: datetime
    duration_hours: float

    def local_date(self, tz: tzinfo | None = None) -> date:
        return local_date(self.start, tz)


@dataclass(frozen=True, slots=True)
class PullRequestContext:
    number: int
    title: str = ""
    summary: str = ""


@dataclass(frozen=True, slots=True)
class CommitEvidence:
    """Code-change evidence (a commit, optionally tied to a pull request)."""

    sha: str
    committed_at: datetime | None = None
    message: str = ""
    ticket_ids: tuple[str, ...] = ()
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    modules: tuple[str, ...] = ()
    summary: str = ""
    pull_request: PullRequestContext | None = None
    kind: Literal["commit"] = "commit"

    @property
    def identifier(self) -> str:
        return self.sha

    @property
    def timestamp(self) -> datetime | None:
        return self.committed_at

    @property
    def identifiers(self) -> tuple[str, ...]:
        return self.ticket_ids

    @property
    def weight(self) -> float:
        return 0.0

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_removed

    @property
    def short_ref(self) -> str:
        return self.sha[:8]

    @property
    def text(self) -> str:
        return " ".join(part for part in (self.message, self.summary) if part)


@dataclass(frozen=True, slots=True)
class TicketEvidence:
    """Ticket evidence; story points are its complexity signal."""

    ticket_id: str
    title: str = ""
    story_points: float = 0.0
    back_to_development_count: int = 0
    summary: str = ""
    updated_at: datetime | None = None
    kind: Literal["ticket"] = "ticket"

    @property
    def identifier(self) -> str:
        return self.ticket_id

    @property
    def timestamp(self) -> datetime | None:
        return self.updated_at

    @property
    def identifiers(self) -> tuple[str, ...]:
        return (self.ticket_id,)

    @property
    def weight(self) -> float:
        return self.story_points

    @property
    def lines_changed(self) -> int:
        return 0

    @property
    def short_ref(self) -> str:
        return self.ticket_id

    @property
    def text(self) -> str:
        return " ".join(part for part in (self.title, self.summary) if part)


Evidence = Union[CommitEvidence, TicketEvidence]


def dedupe_evidence(items: list[Evidence] | tuple[Evidence, ...]) -> list[Evidence]:
    """Drop repeated evidence (same kind and identifier), keeping first occurrences."""

    seen: set[tuple[str, str]] = set()
    unique: list[Evidence] = []
    for item in items:
        marker = (item.kind, item.identifier)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(item)
    return unique


class WorkItemKey(NamedTuple):
    entry_index: int
    sub_index: int = 0

    def __str__(self) -> str:
        return f"{self.entry_index}:{self.sub_index}"

    @classmethod
    def parse(cls, value: str) -> "WorkItemKey":
        entry_part, _, sub_part = str(value).strip().partition(":")
        try:
            return cls(int(entry_part), int(sub_part) if sub_part else 0)
        except ValueError as exc:
            raise ValueError(f"Invalid work item key '{value}'") from exc


@dataclass(slots=True)
class MatchResult:
    """Matching outcome for one entry.

    Created by the evidence matcher; only the semantic resolver and the group
    aggregator update it afterwards.
    """

    entry: TimeEntry
    identifiers: tuple[str, ...]
    evidence: list[Evidence]
    phase: MatchPhase
    confidence: Confidence
    group_key: str | None = None
    is_multi_day: bool = False
    group_total_hours: float = 0.0
    group_evidence: list[Evidence] = field(default_factory=list)

    @property
    def index(self) -> int:
        return self.entry.index

    @property
    def primary_identifier(self) -> str | None:
        return self.identifiers[0] if self.identifiers else None

    @property
    def effective_evidence(self) -> list[Evidence]:
        return self.group_evidence if self.is_multi_day else self.evidence

    @property
    def commits(self) -> list[CommitEvidence]:
        return [item for item in self.evidence if item.kind == "commit"]

    @property
    def tickets(self) -> list[TicketEvidence]:
        return [item for item in self.evidence if item.kind == "ticket"]


@dataclass(frozen=True, slots=True)
class SubTask:
    description: str
    hours: float
    ticket_id: str | None = None
    confidence: Confidence = "low"


@dataclass(frozen=True, slots=True)
class WorkItem:
    """Canonical schedulable unit; one row of eventual output."""

    key: WorkItemKey
    entry: TimeEntry
    draft_description: str
    duration_hours: float
    ticket_id: str | None
    identifiers: tuple[str, ...]
    evidence: tuple[Evidence, ...]
    confidence: Confidence
    match_phase: MatchPhase
    split_group_id: str | None = None
    sub_task_count: int = 1
    sub_task_confidence: Confidence | None = None
    is_multi_day: bool = False
    group_total_hours: float = 0.0

    @property
    def entry_index(self) -> int:
        return self.key.entry_index

    @property
    def sub_index(self) -> int:
        return self.key.sub_index

    @property
    def is_split(self) -> bool:
        return self.split_group_id is not None


__all__ = [
    "CONFIDENCE_LEVELS",
    "UNASSIGNED",
    "CommitEvidence",
    "Confidence",
    "Evidence",
    "MatchPhase",
    "MatchResult",
    "PullRequestContext",
    "SubTask",
    "TicketEvidence",
    "TimeEntry",
    "WorkItem",
    "WorkItemKey",
    "dedupe_evidence",
    "local_date",
    "normalize_confidence",
]
