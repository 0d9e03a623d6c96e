"""Detection and application of recurring description patterns."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from .generator import GeneratorError, GeneratorRunner, parse_json_response
from .prompts import PromptLoader, build_patterns_prompt
from .schemas import PatternGroupPayload
from .usage import TokenUsage

logger = logging.getLogger(__name__)

PatternMap = dict[str, PatternGroupPayload]


def parse_patterns(payload: Any) -> PatternMap:
    """Validate a ``{group_id: {variants, suggested_standard, count}}`` map.

    Groups that fail validation are dropped; a non-object payload is an error.
    """

    if not isinstance(payload, Mapping):
        raise ValueError(f"expected an object of pattern groups, got {type(payload).__name__}")
    patterns: PatternMap = {}
    for group_id, group in payload.items():
        try:
            patterns[str(group_id)] = PatternGroupPayload.model_validate(group)
        except ValidationError:
            logger.debug("Dropping invalid pattern group", extra={"group": str(group_id)})
    return patterns


def apply_patterns(description: str, patterns: Mapping[str, PatternGroupPayload] | None) -> str:
    """Replace ``description`` with the standard of the first group whose variant it contains."""

    if not patterns:
        return description
    text = (description or "").lower()
    for group in patterns.values():
        for variant in group.variants:
            if variant.lower() in text:
                return group.suggested_standard or description
    return description


def load_patterns(path: Path) -> PatternMap | None:
    if not path.exists():
        return None
    try:
        return parse_patterns(json.loads(path.read_text(encoding="utf-8")))
    except ValueError as exc:
        logger.warning("Ignoring unreadable pattern cache", extra={"path": str(path), "error": str(exc)})
        return None


def save_patterns(path: Path, patterns: Mapping[str, PatternGroupPayload]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {group_id: group.model_dump() for group_id, group in patterns.items()}
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")


@dataclass(slots=True)
class PatternDetection:
    patterns: PatternMap = field(default_factory=dict)
    cached: bool = False
    failed: bool = False
    usage: TokenUsage = TokenUsage()


class PatternDetector:
    """Load cached pattern groups, or ask the generator for them once."""

    def __init__(self, generator: GeneratorRunner, prompts: PromptLoader, cache_path: Path) -> None:
        self._generator = generator
        self._prompts = prompts
        self._cache_path = Path(cache_path)

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    def clear(self) -> None:
        self._cache_path.unlink(missing_ok=True)

    async def load_or_detect(self, descriptions: Iterable[str]) -> PatternDetection:
        cached = load_patterns(self._cache_path)
        if cached is not None:
            logger.info("Using cached patterns", extra={"path": str(self._cache_path), "groups": len(cached)})
            return PatternDetection(patterns=cached, cached=True)

        unique = list(dict.fromkeys(text for text in descriptions if text))
        if not unique:
            return PatternDetection()

        outcome = PatternDetection()
        logger.info("Detecting description patterns", extra={"descriptions": len(unique)})
        try:
            response = await self._generator.generate(build_patterns_prompt(self._prompts.get("patterns"), unique))
            outcome.usage = response.usage
            patterns = parse_patterns(parse_json_response(response.response))
        except (GeneratorError, ValueError) as exc:
            logger.warning("Pattern detection failed; continuing without patterns: %s", exc)
            outcome.failed = True
            return outcome

        save_patterns(self._cache_path, patterns)
        for group_id, group in patterns.items():
            logger.info(
                "Detected pattern group",
                extra={"group": group_id, "variants": len(group.variants), "occurrences": group.count},
            )
        outcome.patterns = patterns
        return outcome


__all__ = [
    "PatternDetection",
    "PatternDetector",
    "PatternMap",
    "apply_patterns",
    "load_patterns",
    "parse_patterns",
    "save_patterns",
]
