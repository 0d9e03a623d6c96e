from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from worklog_reconciler.finalize import ReconciliationReport, build_notes, finalize, latest_records
from worklog_reconciler.models import (
    CommitEvidence,
    PullRequestContext,
    TicketEvidence,
    TimeEntry,
    WorkItem,
    WorkItemKey,
)
from worklog_reconciler.schemas import PatternGroupPayload
from worklog_reconciler.storage import LedgerRecord
from worklog_reconciler.timeslice import SplitContractError, TimeWindow

UTC = timezone.utc
START = datetime(2024, 3, 15, 9, 0, tzinfo=UTC)

COMMIT = CommitEvidence(
    sha="abcdef1234567890",
    committed_at=START,
    message="SD-1 api",
    ticket_ids=("SD-1",),
    pull_request=PullRequestContext(number=42),
)
TICKET = TicketEvidence(ticket_id="SD-1", title="Build API", story_points=3)


def split_items(durations: list[float], total: float = 3.0) -> list[WorkItem]:
    entry = TimeEntry(0, "SD-1 api work", START, START + timedelta(hours=total), total)
    return [
        WorkItem(
            key=WorkItemKey(0, position),
            entry=entry,
            draft_description=f"Draft {position}",
            duration_hours=hours,
            ticket_id="SD-1",
            identifiers=("SD-1",),
            evidence=(COMMIT, TICKET),
            confidence="high",
            match_phase="exact",
            split_group_id="group-1",
            sub_task_count=len(durations),
            sub_task_confidence="medium",
        )
        for position, hours in enumerate(durations)
    ]


def single_item(index: int, description: str) -> WorkItem:
    entry = TimeEntry(index, description, START, START + timedelta(hours=1), 1.0)
    return WorkItem(
        key=WorkItemKey(index, 0),
        entry=entry,
        draft_description=description,
        duration_hours=1.0,
        ticket_id=None,
        identifiers=(),
        evidence=(),
        confidence="low",
        match_phase="none",
    )


def test_split_entries_get_consecutive_windows_and_notes() -> None:
    items = split_items([1.0, 2.0])
    records = [LedgerRecord(key=WorkItemKey(0, 1), enriched_description="Wired endpoints", confidence="high", notes="solid")]

    finalized, diff = finalize(items, records, tz=UTC)

    assert [item.window for item in finalized] == [
        TimeWindow(START, START + timedelta(hours=1)),
        TimeWindow(START + timedelta(hours=1), START + timedelta(hours=3)),
    ]
    first, second = finalized
    assert first.description == "Draft 0"
    assert first.confidence == "medium"
    assert not first.enriched
    assert first.notes == "split 1/2; matched via exact ticket SD-1; github: Commit abcdef12 PR#42; jira: SD-1"
    assert second.description == "Wired endpoints"
    assert second.confidence == "high"
    assert second.notes.startswith("solid; split 2/2; ")
    assert diff == [
        "[0] 2024-03-15 | 3:00",
        "ORIGINAL: SD-1 api work",
        "ENRICHED:",
        "  -> [1/2] Draft 0 - 1:00",
        "  -> [2/2] Wired endpoints - 2:00",
        "---",
    ]


def test_mismatched_split_durations_raise() -> None:
    with pytest.raises(SplitContractError):
        finalize(split_items([1.0, 1.0]), [], tz=UTC)


def test_unsplit_items_keep_entry_window_and_apply_patterns() -> None:
    patterns = {"standup": PatternGroupPayload(variants=["standup"], suggested_standard="Daily standup", count=2)}
    records = [
        LedgerRecord(key=WorkItemKey(1, 0), enriched_description="old standup text"),
        LedgerRecord(key=WorkItemKey(1, 0), enriched_description="Team STANDUP", confidence="medium"),
    ]

    finalized, diff = finalize([single_item(1, "standup"), single_item(2, "Misc")], records, patterns=patterns, tz=UTC)

    assert finalized[0].description == "Daily standup"
    assert finalized[0].confidence == "medium"
    assert finalized[0].window == TimeWindow(START, START + timedelta(hours=1))
    assert finalized[0].notes == ""
    assert finalized[1].description == "Misc"
    assert finalized[1].confidence == "low"
    assert "ENRICHED: Daily standup - 1:00" in diff


def test_latest_records_keeps_last_per_key() -> None:
    records = [
        LedgerRecord(key=WorkItemKey(0, 0), enriched_description="first"),
        LedgerRecord(key=WorkItemKey(0, 0), enriched_description="second"),
    ]

    assert latest_records(records)[WorkItemKey(0, 0)].enriched_description == "second"


def test_build_notes_without_context() -> None:
    assert build_notes(single_item(0, "Misc"), "  ") == ""
    assert build_notes(single_item(0, "Misc"), "generator note") == "generator note"


def test_report_summary_counts() -> None:
    finalized, diff = finalize(split_items([1.5, 1.5]), [], tz=UTC)
    report = ReconciliationReport(items=finalized, diff_lines=diff)

    summary = report.summary()

    assert summary["items"] == 2
    assert summary["split_entries"] == 1
    assert summary["confidence"] == {"high": 0, "medium": 2, "low": 0}
    assert report.diff_text.startswith("[0] 2024-03-15 | 3:00\n")
