"""Load time-entry and evidence snapshots from JSON files."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .matching import extract_identifiers
from .models import CommitEvidence, Evidence, PullRequestContext, TicketEvidence, TimeEntry
from .timeslice import parse_hmm, window_hours

logger = logging.getLogger(__name__)


class SourceLoadError(RuntimeError):
    """Raised when a snapshot file cannot be read or validated."""


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (list, tuple)):
        return len(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class TimeEntryRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    description: str = Field(default="", validation_alias=AliasChoices("description", "Description"))
    start: datetime = Field(validation_alias=AliasChoices("start", "start_time", "Start"))
    end: datetime = Field(validation_alias=AliasChoices("end", "end_time", "End"))
    duration_hours: float | None = Field(
        default=None, validation_alias=AliasChoices("duration_hours", "duration", "Duration (h)")
    )

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("duration_hours", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float | None:
        if value is None or value == "":
            return None
        hours = parse_hmm(value)
        if not math.isfinite(hours) or hours < 0:
            raise ValueError("duration must be a non-negative number of hours")
        return hours

    @model_validator(mode="after")
    def _check_window(self) -> "TimeEntryRecord":
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise ValueError("start and end must both carry an offset or neither")
        if self.end < self.start:
            raise ValueError("end must not precede start")
        return self

    def to_entry(self, index: int) -> TimeEntry:
        duration = self.duration_hours if self.duration_hours is not None else window_hours(self.start, self.end)
        return TimeEntry(
            index=index,
            description=self.description,
            start=self.start,
            end=self.end,
            duration_hours=duration,
        )


class PullRequestRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    number: int = Field(validation_alias=AliasChoices("pr_number", "number"))
    title: str = Field(default="", validation_alias=AliasChoices("pr_title", "title"))
    summary: str = Field(default="", validation_alias=AliasChoices("pr_ai_description", "summary"))


class CommitRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    sha: str
    committed_at: datetime | None = Field(default=None, validation_alias=AliasChoices("committed_at", "date"))
    message: str = ""
    ticket_ids: list[str] = Field(default_factory=list)
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    modules_touched: list[str] = Field(default_factory=list)
    ai_description: str = ""
    pr_context: PullRequestRecord | None = None

    @field_validator("sha")
    @classmethod
    def _require_sha(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("sha must not be empty")
        return value.strip()

    @field_validator("lines_added", "lines_removed", "files_changed", mode="before")
    @classmethod
    def _coerce_counts(cls, value: Any) -> int:
        return _as_int(value)

    @field_validator("message", "ai_description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("ticket_ids", "modules_touched", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if item]

    def to_evidence(self, allowed_prefixes: Iterable[str] | None = None) -> CommitEvidence:
        identifiers = dict.fromkeys(identifier.strip().upper() for identifier in self.ticket_ids if identifier.strip())
        if not identifiers:
            identifiers = dict.fromkeys(extract_identifiers(self.message, allowed_prefixes))
        pull_request = None
        if self.pr_context is not None:
            pull_request = PullRequestContext(
                number=self.pr_context.number, title=self.pr_context.title, summary=self.pr_context.summary
            )
        return CommitEvidence(
            sha=self.sha,
            committed_at=self.committed_at,
            message=self.message,
            ticket_ids=tuple(identifiers),
            lines_added=self.lines_added,
            lines_removed=self.lines_removed,
            files_changed=self.files_changed,
            modules=tuple(self.modules_touched),
            summary=self.ai_description,
            pull_request=pull_request,
        )


class TicketRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    ticket_id: str
    title: str = ""
    story_points: float = Field(
        default=0.0, validation_alias=AliasChoices("story_points", "storyPoint", "story_points_count")
    )
    back_to_development_count: int = Field(
        default=0, validation_alias=AliasChoices("back_to_development_count", "back_to_dev_count")
    )
    description_summary: str = ""
    updated_at: datetime | None = Field(default=None, validation_alias=AliasChoices("updated_at", "updated", "date"))

    @field_validator("ticket_id")
    @classmethod
    def _normalize_ticket(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("ticket_id must not be empty")
        return value.strip().upper()

    @field_validator("story_points", mode="before")
    @classmethod
    def _coerce_points(cls, value: Any) -> float:
        if isinstance(value, bool) or value is None:
            return 0.0
        try:
            points = float(value)
        except (TypeError, ValueError):
            return 0.0
        return points if math.isfinite(points) and points > 0 else 0.0

    @field_validator("back_to_development_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return _as_int(value)

    @field_validator("title", "description_summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    def to_evidence(self) -> TicketEvidence:
        return TicketEvidence(
            ticket_id=self.ticket_id,
            title=self.title,
            story_points=self.story_points,
            back_to_development_count=self.back_to_development_count,
            summary=self.description_summary,
            updated_at=self.updated_at,
        )


def _read_json(path: Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SourceLoadError(f"Snapshot file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SourceLoadError(f"Snapshot file {path} is not valid JSON: {exc}") from exc


def _records(document: Any, key: str, path: Path) -> list[Any]:
    if isinstance(document, dict):
        document = document.get(key, [])
    if not isinstance(document, list):
        raise SourceLoadError(f"Snapshot file {path} must contain a list of {key}")
    return document


def parse_entries(raw_entries: list[Any]) -> list[TimeEntry]:
    """Validate raw entry objects; indexes follow list position."""

    entries: list[TimeEntry] = []
    errors: list[str] = []
    for index, raw in enumerate(raw_entries):
        try:
            entries.append(TimeEntryRecord.model_validate(raw).to_entry(index))
        except ValidationError as exc:
            errors.append(f"entry {index}: {exc.error_count()} validation error(s)")
    if errors:
        raise SourceLoadError("Invalid time entries: " + "; ".join(errors))
    return entries


def parse_evidence(
    raw_commits: list[Any],
    raw_tickets: list[Any],
    *,
    allowed_prefixes: Iterable[str] | None = None,
) -> list[Evidence]:
    """Validate raw evidence; commits come first, each list keeps its order."""

    evidence: list[Evidence] = []
    errors: list[str] = []
    for position, raw in enumerate(raw_commits):
        try:
            evidence.append(CommitRecord.model_validate(raw).to_evidence(allowed_prefixes))
        except ValidationError as exc:
            errors.append(f"commit {position}: {exc.error_count()} validation error(s)")
    for position, raw in enumerate(raw_tickets):
        try:
            evidence.append(TicketRecord.model_validate(raw).to_evidence())
        except ValidationError as exc:
            errors.append(f"ticket {position}: {exc.error_count()} validation error(s)")
    if errors:
        raise SourceLoadError("Invalid evidence: " + "; ".join(errors))
    return evidence


def load_entries(path: Path) -> list[TimeEntry]:
    entries = parse_entries(_records(_read_json(path), "entries", path))
    logger.info("Loaded time entries", extra={"path": str(path), "entries": len(entries)})
    return entries


def load_evidence(path: Path, *, allowed_prefixes: Iterable[str] | None = None) -> list[Evidence]:
    """Load ``{"commits": [...], "tickets": [...]}`` from ``path``."""

    document = _read_json(path)
    if not isinstance(document, dict):
        raise SourceLoadError(f"Evidence snapshot {path} must be an object with commits and tickets")
    evidence = parse_evidence(
        _records(document, "commits", path),
        _records(document, "tickets", path),
        allowed_prefixes=allowed_prefixes,
    )
    logger.info("Loaded evidence", extra={"path": str(path), "records": len(evidence)})
    return evidence


__all__ = [
    "CommitRecord",
    "SourceLoadError",
    "TicketRecord",
    "TimeEntryRecord",
    "load_entries",
    "load_evidence",
    "parse_entries",
    "parse_evidence",
]
