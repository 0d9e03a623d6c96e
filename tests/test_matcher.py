from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from worklog_reconciler.generator import FakeGeneratorRunner
from worklog_reconciler.matching import EvidenceMatcher, SemanticMatchResolver, extract_identifiers, within_day_window
from worklog_reconciler.models import CommitEvidence, TicketEvidence, TimeEntry
from worklog_reconciler.prompts import PromptLoader

UTC = timezone.utc


def make_entry(index: int, description: str, day: int, hours: float = 1.0, hour: int = 9) -> TimeEntry:
    start = datetime(2024, 3, day, hour, 0, tzinfo=UTC)
    return TimeEntry(
        index=index,
        description=description,
        start=start,
        end=start + timedelta(hours=hours),
        duration_hours=hours,
    )


def make_commit(sha: str, day: int, ticket_ids: tuple[str, ...] = (), hour: int = 12) -> CommitEvidence:
    return CommitEvidence(
        sha=sha,
        committed_at=datetime(2024, 3, day, hour, 0, tzinfo=UTC),
        message=f"commit {sha}",
        ticket_ids=ticket_ids,
    )


def test_extract_identifiers_normalizes_and_dedupes() -> None:
    assert extract_identifiers("fix sd-12 and SD-12, then ABC-7") == ("SD-12", "ABC-7")


def test_extract_identifiers_rejects_out_of_range_prefixes() -> None:
    assert extract_identifiers("A-1 and ABCDEFGHIJK-1") == ()
    assert extract_identifiers("") == ()
    assert extract_identifiers(None) == ()


def test_extract_identifiers_filters_allowed_prefixes() -> None:
    assert extract_identifiers("SD-1 OPS-2 sd-3", ["sd"]) == ("SD-1", "SD-3")


def test_within_day_window_uses_calendar_days() -> None:
    late = datetime(2024, 3, 15, 23, 30, tzinfo=UTC)
    assert within_day_window(late, datetime(2024, 3, 16, 23, 59, tzinfo=UTC), 1, UTC)
    assert not within_day_window(late, datetime(2024, 3, 17, 0, 10, tzinfo=UTC), 1, UTC)


def test_within_day_window_rejects_negative_window() -> None:
    with pytest.raises(ValueError):
        within_day_window(datetime(2024, 3, 15), datetime(2024, 3, 15), -1)


def test_near_matches_rank_before_other_exact_matches() -> None:
    far = make_commit("far00001", 20, ("SD-1",))
    near = make_commit("near0001", 15, ("SD-1",))
    matcher = EvidenceMatcher([far, near], tz=UTC)

    result = matcher.match(make_entry(0, "SD-1 work", 15))

    assert result.evidence == [near, far]
    assert result.confidence == "high"
    assert result.phase == "exact"


def test_matched_evidence_is_never_duplicated() -> None:
    commit = make_commit("both0001", 15, ("SD-1", "SD-2"))
    matcher = EvidenceMatcher([commit], tz=UTC)

    result = matcher.match(make_entry(0, "SD-1 and SD-2", 15))

    assert result.evidence == [commit]
    assert result.identifiers == ("SD-1", "SD-2")


def test_tickets_count_as_exact_matches() -> None:
    ticket = TicketEvidence(ticket_id="SD-4", title="Billing export")
    matcher = EvidenceMatcher([ticket], tz=UTC)

    result = matcher.match(make_entry(0, "sd-4 export", 15))

    assert result.evidence == [ticket]
    assert result.confidence == "high"


def test_end_to_end_exact_match_skips_semantic_phase() -> None:
    same_day = make_commit("aaaa1111", 15, ("SD-1",))
    unrelated = make_commit("bbbb2222", 20)
    entry = make_entry(0, "A (SD-1)", 15, hours=6.0)
    matcher = EvidenceMatcher([same_day, unrelated], tz=UTC)

    results = matcher.match_all([entry])
    fake = FakeGeneratorRunner()
    resolution = asyncio.run(
        SemanticMatchResolver(fake, PromptLoader(), tz=UTC).resolve(results, matcher.evidence)
    )

    assert results[0].phase == "exact"
    assert results[0].confidence == "high"
    assert results[0].evidence == [same_day]
    assert resolution.requested == 0
    assert fake.prompts == []


def test_entries_without_identifiers_fall_back_to_date_proximity() -> None:
    next_day = make_commit("cccc3333", 16)
    too_late = make_commit("dddd4444", 18)
    undated = TicketEvidence(ticket_id="SD-9", title="No timestamp")
    matcher = EvidenceMatcher([next_day, too_late, undated], tz=UTC)

    result = matcher.match(make_entry(0, "standup", 15))

    assert result.evidence == [next_day]
    assert result.identifiers == ()
    assert result.confidence == "medium"
    assert result.phase == "exact"


def test_unmatched_identifiers_do_not_use_date_fallback() -> None:
    matcher = EvidenceMatcher([make_commit("eeee5555", 15)], tz=UTC)

    result = matcher.match(make_entry(0, "SD-9 investigation", 15))

    assert result.evidence == []
    assert result.confidence == "low"
    assert result.phase == "none"


def test_match_window_is_configurable() -> None:
    commit = make_commit("ffff6666", 17)
    entry = make_entry(0, "standup", 15)

    assert EvidenceMatcher([commit], tz=UTC).match(entry).confidence == "low"
    assert EvidenceMatcher([commit], window_days=2, tz=UTC).match(entry).evidence == [commit]
