"""Render generator requests from prompt profiles and phase context."""

from __future__ import annotations

from datetime import tzinfo
from typing import Iterable, Sequence

from ..models import CommitEvidence, Evidence, MatchResult, TicketEvidence, WorkItem, local_date
from ..timeslice import hours_to_hmm
from .models import PromptProfile


def _one_line(text: str | None) -> str:
    return " ".join((text or "").split())


def _render(profile: PromptProfile, *sections: str) -> str:
    parts = [profile.instructions.strip()]
    if profile.rules:
        parts.append("Rules:\n" + "\n".join(f"- {rule}" for rule in profile.rules))
    parts.extend(section for section in sections if section)
    if profile.response_format:
        parts.append(profile.response_format.strip())
    return "\n\n".join(parts)


def _date_label(evidence: Evidence) -> str:
    return evidence.timestamp.date().isoformat() if evidence.timestamp else "?"


def render_commit_compact(commit: CommitEvidence) -> str:
    line = f"COMMIT@{_date_label(commit)} sha={commit.short_ref}: {_one_line(commit.message)}"
    if commit.pull_request is not None:
        line += f" | PR#{commit.pull_request.number}: {_one_line(commit.pull_request.title)}"
    if commit.summary:
        line += f" | {_one_line(commit.summary)}"
    return line


def render_commit_detail(commit: CommitEvidence) -> str:
    line = (
        f"Commit {commit.short_ref}: {_one_line(commit.message)}\n"
        f"Date: {_date_label(commit)} | Files: {commit.files_changed} | "
        f"Modules: {', '.join(commit.modules)} | Lines: +{commit.lines_added}/-{commit.lines_removed}"
    )
    if commit.summary:
        line += f"\nSummary: {_one_line(commit.summary)}"
    if commit.pull_request is not None:
        line += (
            f"\nPR context: Part of PR #{commit.pull_request.number} "
            f'"{_one_line(commit.pull_request.title)}": {_one_line(commit.pull_request.summary)}'
        )
    return line


def render_ticket_detail(ticket: TicketEvidence) -> str:
    return (
        f'{ticket.ticket_id}: title="{_one_line(ticket.title)}", story_points={ticket.story_points:g}, '
        f"back_to_development_count={ticket.back_to_development_count}, "
        f'summary="{_one_line(ticket.summary)}"'
    )


def build_patterns_prompt(profile: PromptProfile, descriptions: Iterable[str]) -> str:
    return _render(profile, "Descriptions:\n" + "\n".join(descriptions))


def build_semantic_prompt(
    profile: PromptProfile,
    unmatched: Sequence[MatchResult],
    evidence: Sequence[Evidence],
    *,
    tz: tzinfo | None = None,
) -> str:
    entries = "\n".join(
        f"{result.index}) {result.entry.local_date(tz).isoformat()} | {_one_line(result.entry.description)}"
        for result in unmatched
    )
    commits = "\n".join(render_commit_compact(item) for item in evidence if item.kind == "commit")
    tickets = "\n".join(
        f"{item.ticket_id} | {_one_line(item.title)}" for item in evidence if item.kind == "ticket"
    )
    return _render(
        profile,
        "Entries:\n" + (entries or "None"),
        "Commits:\n" + (commits or "None"),
        "Tickets:\n" + (tickets or "None"),
    )


def build_decomposition_prompt(
    profile: PromptProfile,
    members: Sequence[MatchResult],
    total_hours: float,
    evidence: Sequence[Evidence],
    targets: Sequence[tuple[Evidence, float]] = (),
) -> str:
    entry_lines = "\n".join(
        f'- Entry index {member.index}: "{_one_line(member.entry.description)}" ({hours_to_hmm(member.entry.duration_hours)})'
        for member in members
    )
    details = [render_commit_detail(item) for item in evidence if item.kind == "commit"]
    details += [f"Ticket {render_ticket_detail(item)}" for item in evidence if item.kind == "ticket"]

    sections = [
        f"Total hours to distribute: {total_hours:g}h.",
        f"Time entries ({len(members)}):\n{entry_lines}",
        "Evidence context:\n" + ("\n".join(details) if details else "None"),
    ]
    if targets:
        sections.append(
            "Pre-computed weighted hour targets per evidence unit (story points primary, lines "
            "changed tiebreaker). Allocate subtasks to match these targets as closely as possible:\n"
            + "\n".join(f"  - {unit.kind.title()} {unit.short_ref}: {hours:.2f}h" for unit, hours in targets)
        )
    return _render(profile, *sections)


def build_enrichment_prompt(
    profile: PromptProfile,
    items: Sequence[WorkItem],
    *,
    tz: tzinfo | None = None,
) -> str:
    blocks: list[str] = []
    for item in items:
        commits = "\n---\n".join(
            render_commit_detail(unit) for unit in item.evidence if unit.kind == "commit"
        )
        tickets = " || ".join(
            render_ticket_detail(unit) for unit in item.evidence if unit.kind == "ticket"
        )
        lines = [
            f"WORK_ITEM_KEY: {item.key}",
            f"Date: {local_date(item.entry.start, tz).isoformat()}",
            f"Duration: {hours_to_hmm(item.duration_hours)}",
            f'Original description: "{_one_line(item.entry.description)}"',
        ]
        if item.is_split:
            lines.append(
                f'Decomposed task ({item.sub_index + 1}/{item.sub_task_count}): "{_one_line(item.draft_description)}"'
            )
        lines.append(f"Matched commits: {commits or 'None'}")
        lines.append(f"Matched tickets: {tickets or 'None'}")
        lines.append("---")
        blocks.append("\n".join(lines))
    return _render(profile, "\n".join(blocks))


__all__ = [
    "build_decomposition_prompt",
    "build_enrichment_prompt",
    "build_patterns_prompt",
    "build_semantic_prompt",
    "render_commit_compact",
    "render_commit_detail",
    "render_ticket_detail",
]
