"""Prompt profiles and request builders for generator calls."""

from .builders import (
    build_decomposition_prompt,
    build_enrichment_prompt,
    build_patterns_prompt,
    build_semantic_prompt,
)
from .loader import PromptLoadError, PromptLoader
from .models import PROMPT_KINDS, PromptProfile

__all__ = [
    "PROMPT_KINDS",
    "PromptLoadError",
    "PromptLoader",
    "PromptProfile",
    "build_decomposition_prompt",
    "build_enrichment_prompt",
    "build_patterns_prompt",
    "build_semantic_prompt",
]
