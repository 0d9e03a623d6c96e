from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from worklog_reconciler.generator import FakeGeneratorRunner, GeneratorExecutionError
from worklog_reconciler.models import CommitEvidence, TicketEvidence, TimeEntry
from worklog_reconciler.pipeline import ReconciliationPipeline
from worklog_reconciler.prompts import PromptLoader
from worklog_reconciler.scheduling import EnrichmentAbortedError
from worklog_reconciler.storage import JsonlLedgerStore
from worklog_reconciler.usage import load_token_history

UTC = timezone.utc


def make_entry(index: int, description: str, day: int, hours: float) -> TimeEntry:
    start = datetime(2024, 3, day, 9, 0, tzinfo=UTC)
    return TimeEntry(index, description, start, start + timedelta(hours=hours), hours)


def commit(sha: str, ticket: str, day: int) -> CommitEvidence:
    return CommitEvidence(
        sha=sha,
        committed_at=datetime(2024, 3, day, 12, 0, tzinfo=UTC),
        message=f"{ticket} change",
        ticket_ids=(ticket,),
        lines_added=10,
    )


def enrichment(*rows: tuple[str, str]) -> str:
    return json.dumps(
        [
            {"workItemKey": key, "enriched_description": description, "confidence": "high", "notes": "n"}
            for key, description in rows
        ]
    )


def make_pipeline(tmp_path: Path, fake: FakeGeneratorRunner, **kwargs) -> ReconciliationPipeline:
    return ReconciliationPipeline(
        fake,
        PromptLoader(),
        JsonlLedgerStore(tmp_path / "progress.ndjson"),
        tz=UTC,
        id_factory=lambda: "split-1",
        clock=lambda: datetime(2025, 1, 1, tzinfo=UTC),
        **kwargs,
    )


def test_exact_match_needs_only_enrichment(tmp_path: Path) -> None:
    fake = FakeGeneratorRunner([enrichment(("0:0", "Implemented the API"))])
    pipeline = make_pipeline(tmp_path, fake)

    report = asyncio.run(pipeline.run([make_entry(0, "SD-1 api", 15, 2.0)], [commit("abcdef1234567890", "SD-1", 15)]))

    assert len(fake.prompts) == 1
    assert "WORK_ITEM_KEY: 0:0" in fake.prompts[0]
    (item,) = report.items
    assert item.description == "Implemented the API"
    assert item.confidence == "high"
    assert item.notes == "n; matched via exact ticket SD-1; github: Commit abcdef12"
    assert item.enriched
    assert report.diff_lines[:2] == ["[0] 2024-03-15 | 2:00", "ORIGINAL: SD-1 api"]


def test_multi_day_group_is_decomposed_then_enriched(tmp_path: Path) -> None:
    entries = [
        make_entry(0, "SD-1 api", 15, 2.0),
        make_entry(1, "SD-1 api", 16, 1.0),
        make_entry(2, "lunch thoughts", 20, 1.0),
    ]
    evidence = [commit("1234567890abcdef", "SD-1", 15), TicketEvidence(ticket_id="SD-1", title="Build API", story_points=3)]
    decomposition = json.dumps(
        [
            {"description": "Built models", "hours": 1.5, "ticket_id": "SD-1", "confidence": "high"},
            {"description": "Wired endpoints", "hours": 1.5, "confidence": "medium"},
        ]
    )
    fake = FakeGeneratorRunner(
        [
            "[]",
            decomposition,
            enrichment(("0:0", "Built data models"), ("0:1", "Started endpoints"), ("1:0", "Finished endpoints")),
            enrichment(("2:0", "Planned refactor")),
        ]
    )

    report = asyncio.run(make_pipeline(tmp_path, fake).run(entries, evidence))

    assert len(fake.prompts) == 4
    assert "lunch thoughts" in fake.prompts[0]
    assert "Total hours to distribute: 3h." in fake.prompts[1]
    assert "WORK_ITEM_KEY: 1:0" in fake.prompts[2]
    assert "WORK_ITEM_KEY: 2:0" in fake.prompts[3]

    by_key = {str(item.key): item for item in report.items}
    assert list(by_key) == ["0:0", "0:1", "1:0", "2:0"]
    assert [by_key["0:0"].duration_hours, by_key["0:1"].duration_hours, by_key["1:0"].duration_hours] == [1.5, 0.5, 1.0]
    assert by_key["0:1"].window.end == entries[0].end
    assert by_key["0:0"].split_group_id == "split-1"
    assert by_key["1:0"].description == "Finished endpoints"
    assert by_key["2:0"].confidence == "high"
    assert report.split_entries == 2
    assert not report.semantic_failed
    assert report.failed_groups == []


def test_aborted_run_resumes_where_it_stopped(tmp_path: Path) -> None:
    entries = [make_entry(0, "SD-1 api", 15, 1.0), make_entry(1, "SD-2 docs", 15, 1.0)]
    evidence = [commit("aaaaaaaa11111111", "SD-1", 15), commit("bbbbbbbb22222222", "SD-2", 15)]

    first = FakeGeneratorRunner([enrichment(("0:0", "API work")), GeneratorExecutionError("provider down")])
    with pytest.raises(EnrichmentAbortedError) as excinfo:
        asyncio.run(make_pipeline(tmp_path, first).run(entries, evidence))
    assert excinfo.value.batch_key == "SD-2"
    assert excinfo.value.persisted == 1

    second = FakeGeneratorRunner([enrichment(("1:0", "Docs work"))])
    report = asyncio.run(make_pipeline(tmp_path, second).run(entries, evidence))

    assert len(second.prompts) == 1
    assert "WORK_ITEM_KEY: 0:0" not in second.prompts[0]
    assert [item.description for item in report.items] == ["API work", "Docs work"]
    assert all(item.enriched for item in report.items)


def test_force_refresh_discards_recorded_progress(tmp_path: Path) -> None:
    entries = [make_entry(0, "SD-1 api", 15, 1.0)]
    evidence = [commit("aaaaaaaa11111111", "SD-1", 15)]
    asyncio.run(make_pipeline(tmp_path, FakeGeneratorRunner([enrichment(("0:0", "First pass"))])).run(entries, evidence))

    idle = FakeGeneratorRunner()
    unchanged = asyncio.run(make_pipeline(tmp_path, idle).run(entries, evidence))
    assert idle.prompts == []
    assert unchanged.items[0].description == "First pass"

    fresh = FakeGeneratorRunner([enrichment(("0:0", "Second pass"))])
    report = asyncio.run(make_pipeline(tmp_path, fresh).run(entries, evidence, force_refresh=True))

    assert len(fresh.prompts) == 1
    assert report.items[0].description == "Second pass"
    assert len(JsonlLedgerStore(tmp_path / "progress.ndjson").read_all()) == 1


def test_token_history_is_recorded(tmp_path: Path) -> None:
    history_path = tmp_path / "token-history.json"
    fake = FakeGeneratorRunner([enrichment(("0:0", "API work"))])

    report = asyncio.run(
        make_pipeline(tmp_path, fake, token_history_path=history_path).run(
            [make_entry(0, "SD-1 api", 15, 1.0)], [commit("aaaaaaaa11111111", "SD-1", 15)]
        )
    )

    assert report.estimated_tokens == 800
    runs = load_token_history(history_path)
    assert [(run["estimated"], run["actual"]) for run in runs] == [(800, 800)]
