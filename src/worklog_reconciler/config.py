"""Configuration management for the worklog reconciler."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class ReconcilerSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    generator_path: str | None = Field(default=None, validation_alias="GENERATOR_PATH")
    generator_default_model: str | None = Field(
        default=None, validation_alias="GENERATOR_DEFAULT_MODEL"
    )
    ledger_backend: Literal["jsonl", "chroma"] = Field(
        default="jsonl", validation_alias="RECONCILER_LEDGER_BACKEND"
    )
    ledger_path: Path = Field(
        default=Path("./cache/enrichment-progress.ndjson"),
        validation_alias="RECONCILER_LEDGER_PATH",
    )
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    patterns_path: Path = Field(
        default=Path("./cache/patterns.json"), validation_alias="RECONCILER_PATTERNS_PATH"
    )
    token_history_path: Path = Field(
        default=Path("./cache/token-history.json"),
        validation_alias="RECONCILER_TOKEN_HISTORY_PATH",
    )
    prompt_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("prompts"),), validation_alias="RECONCILER_PROMPT_PATHS"
    )
    log_level: str = Field(default="INFO", validation_alias="RECONCILER_LOG_LEVEL")
    max_batch_size: int = Field(default=10, validation_alias="RECONCILER_MAX_BATCH_SIZE")
    match_window_days: int = Field(default=1, validation_alias="RECONCILER_MATCH_WINDOW_DAYS")
    timezone: str | None = Field(default=None, validation_alias="RECONCILER_TIMEZONE")
    allowed_prefixes: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(), validation_alias="RECONCILER_ALLOWED_PREFIXES"
    )
    detect_patterns: bool = Field(default=True, validation_alias="RECONCILER_DETECT_PATTERNS")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "RECONCILER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("prompt_paths", mode="before")
    @classmethod
    def _parse_prompt_paths(cls, value):
        if value is None or value == "":
            return (Path("prompts"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("prompts"),)
        raise ValueError("RECONCILER_PROMPT_PATHS must be a list of paths or a path-separated string")

    @field_validator("allowed_prefixes", mode="before")
    @classmethod
    def _parse_allowed_prefixes(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return tuple(str(item).strip().upper() for item in value if str(item).strip())
        raise ValueError("RECONCILER_ALLOWED_PREFIXES must be a list or a comma-separated string")

    @field_validator("max_batch_size")
    @classmethod
    def _validate_max_batch_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("RECONCILER_MAX_BATCH_SIZE must be >= 1")
        return value

    @field_validator("match_window_days")
    @classmethod
    def _validate_match_window_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("RECONCILER_MATCH_WINDOW_DAYS must be >= 0")
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            ZoneInfo(value.strip())
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"RECONCILER_TIMEZONE '{value}' is not a known IANA zone") from exc
        return value.strip()

    @property
    def tzinfo(self) -> ZoneInfo | None:
        """Return the configured zone, or ``None`` to use the host's local zone."""

        return ZoneInfo(self.timezone) if self.timezone else None


@lru_cache(maxsize=1)
def get_settings() -> ReconcilerSettings:
    """Return cached settings instance."""

    settings = ReconcilerSettings()
    settings.ledger_path = settings.ledger_path.expanduser().resolve()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    settings.patterns_path = settings.patterns_path.expanduser().resolve()
    settings.token_history_path = settings.token_history_path.expanduser().resolve()
    settings.prompt_paths = tuple(path.expanduser().resolve() for path in settings.prompt_paths)
    return settings


__all__ = ["ReconcilerSettings", "get_settings"]
