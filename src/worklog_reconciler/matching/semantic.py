"""Generator-assisted matching for entries the exact matcher left unmatched."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Sequence

from pydantic import ValidationError

from ..generator import GeneratorError, GeneratorRunner, parse_json_response
from ..models import CommitEvidence, Evidence, MatchResult, TicketEvidence
from ..prompts import PromptLoader, build_semantic_prompt
from ..schemas import SemanticMatchPayload
from ..usage import TokenUsage

logger = logging.getLogger(__name__)

COMMIT_REF_PREFIX = "COMMIT@sha="


@dataclass(slots=True)
class SemanticResolution:
    """Outcome of one semantic pass."""

    requested: int = 0
    applied: int = 0
    failed: bool = False
    usage: TokenUsage = TokenUsage()


def _normalize_ref(reference: str, prefix: str = "") -> str:
    text = reference.strip()
    if prefix and text.upper().startswith(prefix.upper()):
        text = text[len(prefix) :]
    return text.strip().lower()


def find_commit(reference: str, evidence: Sequence[Evidence]) -> CommitEvidence | None:
    """Resolve ``COMMIT@sha=<prefix>`` (or a bare sha) to a commit, exact id first."""

    needle = _normalize_ref(reference, COMMIT_REF_PREFIX)
    if not needle:
        return None
    commits = [item for item in evidence if item.kind == "commit"]
    for commit in commits:
        if commit.sha.lower() == needle:
            return commit
    for commit in commits:
        if commit.sha.lower().startswith(needle):
            return commit
    return None


def find_ticket(reference: str, evidence: Sequence[Evidence]) -> TicketEvidence | None:
    needle = _normalize_ref(reference)
    if not needle:
        return None
    tickets = [item for item in evidence if item.kind == "ticket"]
    for ticket in tickets:
        if ticket.ticket_id.lower() == needle:
            return ticket
    for ticket in tickets:
        if ticket.ticket_id.lower().startswith(needle):
            return ticket
    return None


class SemanticMatchResolver:
    """Ask the generator to pair unmatched entries with evidence in one request."""

    def __init__(
        self,
        generator: GeneratorRunner,
        prompts: PromptLoader,
        *,
        tz: tzinfo | None = None,
    ) -> None:
        self._generator = generator
        self._prompts = prompts
        self._tz = tz

    async def resolve(
        self,
        results: Sequence[MatchResult],
        evidence: Sequence[Evidence],
    ) -> SemanticResolution:
        """Update low-confidence results in place from one generator call.

        A failed or unparseable call leaves every result untouched.
        """

        unmatched = [result for result in results if result.phase == "none"]
        outcome = SemanticResolution(requested=len(unmatched))
        if not unmatched:
            return outcome

        prompt = build_semantic_prompt(self._prompts.get("semantic_match"), unmatched, evidence, tz=self._tz)
        logger.info("Running semantic matching", extra={"unmatched": len(unmatched)})
        try:
            response = await self._generator.generate(prompt)
            outcome.usage = response.usage
            payload = parse_json_response(response.response)
        except GeneratorError as exc:
            logger.warning("Semantic matching failed; keeping exact matches only: %s", exc)
            outcome.failed = True
            return outcome

        if not isinstance(payload, list):
            logger.warning(
                "Semantic matching returned a non-array payload; keeping exact matches only",
                extra={"payload_type": type(payload).__name__},
            )
            outcome.failed = True
            return outcome

        by_index = {result.index: result for result in unmatched}
        for element in payload:
            try:
                suggestion = SemanticMatchPayload.model_validate(element)
            except ValidationError:
                continue
            target = by_index.get(suggestion.entry_index) if suggestion.entry_index is not None else None
            if target is None:
                continue
            self._apply(target, suggestion, evidence)
            outcome.applied += 1

        logger.info(
            "Semantic matching complete",
            extra={"requested": outcome.requested, "applied": outcome.applied},
        )
        return outcome

    @staticmethod
    def _apply(target: MatchResult, suggestion: SemanticMatchPayload, evidence: Sequence[Evidence]) -> None:
        target.phase = "semantic"
        if suggestion.confidence_provided:
            target.confidence = suggestion.confidence  # type: ignore[assignment]

        found: list[Evidence] = []
        if suggestion.evidence_ref:
            commit = find_commit(suggestion.evidence_ref, evidence)
            if commit is not None:
                found.append(commit)
        if suggestion.ticket_ref:
            ticket = find_ticket(suggestion.ticket_ref, evidence)
            if ticket is not None:
                found.append(ticket)
        for item in found:
            if not any(item is existing for existing in target.evidence):
                target.evidence.append(item)


__all__ = ["COMMIT_REF_PREFIX", "SemanticMatchResolver", "SemanticResolution", "find_commit", "find_ticket"]
