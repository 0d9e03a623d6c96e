"""Prompt profile models for generator requests."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

PROMPT_KINDS: tuple[str, ...] = ("patterns", "semantic_match", "decomposition", "enrichment")


class PromptProfile(BaseModel):
    """Instructions for one kind of generator request."""

    id: str = Field(..., description="Request kind this profile renders (see PROMPT_KINDS).")
    instructions: str = Field(..., description="Opening instruction presented to the generator.")
    rules: list[str] = Field(
        default_factory=list,
        description="Ordered rules the generator must follow.",
    )
    response_format: str = Field(
        default="",
        description="Description of the JSON document the generator must return.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata kept alongside the profile.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Prompt profile id must not be empty")
        if normalized not in PROMPT_KINDS:
            raise ValueError(f"Prompt profile id must be one of {', '.join(PROMPT_KINDS)}")
        return normalized

    @field_validator("rules", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        raise ValueError("Rules must be a sequence of strings")


__all__ = ["PROMPT_KINDS", "PromptProfile"]
