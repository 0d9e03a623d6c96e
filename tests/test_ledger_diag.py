import importlib.util
import json
from pathlib import Path

import pytest

from worklog_reconciler.models import WorkItemKey
from worklog_reconciler.storage import JsonlLedgerStore, LedgerRecord

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "ledger_diag.py"


def load_script():
    spec = importlib.util.spec_from_file_location("ledger_diag", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


@pytest.fixture()
def diag(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RECONCILER_LEDGER_BACKEND", raising=False)
    store = JsonlLedgerStore(tmp_path / "progress.ndjson")
    store.append(LedgerRecord(key=WorkItemKey(0, 0), enriched_description="First", confidence="high"))
    store.append(LedgerRecord(key=WorkItemKey(0, 1), enriched_description="Second", confidence="medium"))
    store.append(LedgerRecord(key=WorkItemKey(0, 0), enriched_description="First again", confidence="medium"))
    store.append(LedgerRecord(key=WorkItemKey(3, 0), enriched_description="Other entry"))

    module = load_script()
    monkeypatch.setattr(module, "load_store", lambda settings: store)
    return module, store


def test_stats_reports_latest_records(diag, capsys) -> None:
    module, _ = diag

    module.main(["stats"])

    stats = json.loads(capsys.readouterr().out)
    assert stats["backend"] == "jsonl"
    assert stats["records_total"] == 4
    assert stats["work_items_total"] == 3
    assert stats["entries_total"] == 2
    assert stats["confidence_counts"] == {"medium": 2, "low": 1}


def test_records_filters_by_entry(diag, capsys) -> None:
    module, _ = diag

    module.main(["records", "--entry", "0", "--limit", "2", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert [row["work_item_key"] for row in payload] == ["0:1", "0:0"]
    assert payload[1]["enriched_description"] == "First again"


def test_clear_requires_confirmation(diag, capsys) -> None:
    module, store = diag

    with pytest.raises(SystemExit):
        module.main(["clear"])
    assert len(store.read_all()) == 4

    module.main(["clear", "--yes"])
    assert store.read_all() == []
    assert "Ledger cleared" in capsys.readouterr().out
