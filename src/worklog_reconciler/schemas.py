"""Validation models for structured generator responses.

Every field is optional or defaulted: malformed optional fields fall back to a
default instead of failing the whole response.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import normalize_confidence


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key).strip().lower(): item for key, item in value.items()}
    return value


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped or stripped.lower() in {"null", "none"}:
        return None
    return stripped


class _ResponseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        return _lower_keys(value)

    @field_validator("confidence", mode="before", check_fields=False)
    @classmethod
    def _normalize_confidence(cls, value: Any) -> str:
        return normalize_confidence(value)


class SemanticMatchPayload(_ResponseModel):
    """One element of a semantic-match array."""

    entry_index: int | None = Field(
        default=None, validation_alias=AliasChoices("rowindex", "row_index", "entry_index", "index")
    )
    evidence_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("github_match", "evidence_match", "commit_match", "evidence_ref"),
    )
    ticket_ref: str | None = Field(
        default=None, validation_alias=AliasChoices("jira_match", "ticket_match", "ticket_ref")
    )
    confidence: str = "low"
    confidence_provided: bool = False

    @model_validator(mode="before")
    @classmethod
    def _flag_confidence(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = _lower_keys(value)
            value["confidence_provided"] = bool(_optional_text(value.get("confidence")))
        return value

    @field_validator("entry_index", mode="before")
    @classmethod
    def _coerce_index(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    @field_validator("evidence_ref", "ticket_ref", mode="before")
    @classmethod
    def _coerce_ref(cls, value: Any) -> str | None:
        return _optional_text(value)


class SubTaskPayload(_ResponseModel):
    """One element of a decomposition array."""

    description: str = ""
    hours: float
    ticket_id: str | None = Field(default=None, validation_alias=AliasChoices("ticket_id", "ticketid", "ticket"))
    confidence: str = "low"

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return _optional_text(value) or ""

    @field_validator("hours", mode="before")
    @classmethod
    def _coerce_hours(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError("hours must be numeric")
        hours = float(value)
        if not math.isfinite(hours):
            raise ValueError("hours must be finite")
        return hours

    @field_validator("ticket_id", mode="before")
    @classmethod
    def _coerce_ticket(cls, value: Any) -> str | None:
        text = _optional_text(value)
        return text.upper() if text else None


class EnrichmentPayload(_ResponseModel):
    """One element of an enrichment array."""

    work_item_key: str | None = Field(
        default=None, validation_alias=AliasChoices("workitemkey", "work_item_key", "key")
    )
    enriched_description: str | None = None
    description: str | None = None
    confidence: str = "low"
    notes: str = ""

    @field_validator("work_item_key", "enriched_description", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value: Any) -> str:
        return _optional_text(value) or ""


class PatternGroupPayload(BaseModel):
    """One value of the pattern-group map."""

    model_config = ConfigDict(extra="ignore")

    variants: list[str] = Field(default_factory=list)
    suggested_standard: str | None = None
    count: int = 0

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        return _lower_keys(value)

    @field_validator("variants", mode="before")
    @classmethod
    def _coerce_variants(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]

    @field_validator("suggested_standard", mode="before")
    @classmethod
    def _coerce_standard(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return int(value) if math.isfinite(value) else 0


__all__ = [
    "EnrichmentPayload",
    "PatternGroupPayload",
    "SemanticMatchPayload",
    "SubTaskPayload",
]
