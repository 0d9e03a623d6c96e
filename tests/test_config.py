import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from worklog_reconciler.config import ReconcilerSettings, get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("RECONCILER_") or name.startswith("GENERATOR_") or name == "CHROMA_PERSIST_PATH":
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = ReconcilerSettings()

    assert settings.ledger_backend == "jsonl"
    assert settings.max_batch_size == 10
    assert settings.match_window_days == 1
    assert settings.allowed_prefixes == ()
    assert settings.prompt_paths == (Path("prompts"),)
    assert settings.tzinfo is None


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RECONCILER_ALLOWED_PREFIXES", "sd, ops,")
    monkeypatch.setenv("RECONCILER_PROMPT_PATHS", os.pathsep.join(["base", "override"]))
    monkeypatch.setenv("RECONCILER_LOG_LEVEL", " debug ")
    monkeypatch.setenv("RECONCILER_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("RECONCILER_LEDGER_BACKEND", "chroma")

    settings = ReconcilerSettings()

    assert settings.allowed_prefixes == ("SD", "OPS")
    assert settings.prompt_paths == (Path("base"), Path("override"))
    assert settings.log_level == "DEBUG"
    assert str(settings.tzinfo) == "Europe/Berlin"
    assert settings.ledger_backend == "chroma"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RECONCILER_MAX_BATCH_SIZE", "0"),
        ("RECONCILER_MATCH_WINDOW_DAYS", "-1"),
        ("RECONCILER_TIMEZONE", "Mars/Olympus"),
        ("RECONCILER_LOG_LEVEL", "LOUD"),
        ("RECONCILER_LEDGER_BACKEND", "sqlite"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        ReconcilerSettings()


def test_get_settings_resolves_paths(tmp_path: Path) -> None:
    settings = get_settings()

    assert settings.ledger_path == (tmp_path / "cache" / "enrichment-progress.ndjson").resolve()
    assert settings.prompt_paths == ((tmp_path / "prompts").resolve(),)
    assert get_settings() is settings
