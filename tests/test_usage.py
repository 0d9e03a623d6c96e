from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from worklog_reconciler.usage import TokenUsage, estimate_tokens, load_token_history, record_token_run


def test_usage_from_metadata_variants() -> None:
    assert TokenUsage.from_metadata({"total_tokens": 42}).total_tokens == 42
    assert TokenUsage.from_metadata({"token_count": 7}).total_tokens == 7
    nested = TokenUsage.from_metadata({"usage": {"prompt_tokens": 10, "completion_tokens": 5}})
    assert (nested.input_tokens, nested.output_tokens, nested.total_tokens) == (10, 5, 15)
    assert TokenUsage.from_metadata(None) == TokenUsage(calls=1)
    assert TokenUsage.from_metadata({"total_tokens": True}).total_tokens == 0


def test_usage_addition() -> None:
    total = TokenUsage(1, 2, 3, 1) + TokenUsage(10, 20, 30, 2)

    assert total == TokenUsage(11, 22, 33, 3)


def test_estimate_uses_history_coefficient() -> None:
    assert estimate_tokens(10, []) == 8000
    history = [{"estimated": 1000, "actual": 1500}, {"estimated": 1000, "actual": 500}, {"estimated": 0, "actual": 9}]
    assert estimate_tokens(10, history) == 8000
    assert estimate_tokens(5, [{"estimated": 100, "actual": 200}]) == 8000


def test_record_token_run_appends(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "token-history.json"
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    record_token_run(path, estimated=800, actual=900, now=now)
    record_token_run(path, estimated=1600, actual=1200, now=now)

    runs = load_token_history(path)
    assert [(run["estimated"], run["actual"]) for run in runs] == [(800, 900), (1600, 1200)]
    assert runs[0]["date"] == now.isoformat()
    assert json.loads(path.read_text(encoding="utf-8")).keys() == {"runs"}


def test_unreadable_history_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "token-history.json"
    path.write_text("not json", encoding="utf-8")

    assert load_token_history(path) == []
