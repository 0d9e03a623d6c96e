"""Batch enrichment with crash-safe progress recording."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Callable, Sequence

from pydantic import ValidationError

from ..generator import GeneratorError, GeneratorRunner, parse_json_response
from ..models import WorkItemKey
from ..prompts import PromptLoader, build_enrichment_prompt
from ..schemas import EnrichmentPayload
from ..storage import LedgerRecord, LedgerStore
from ..usage import TokenUsage
from .batches import Batch

logger = logging.getLogger(__name__)


class EnrichmentAbortedError(RuntimeError):
    """Raised when a batch fails; the run stops and can be resumed later."""

    def __init__(self, batch_key: str, persisted: int, reason: str) -> None:
        self.batch_key = batch_key
        self.persisted = persisted
        self.reason = reason
        super().__init__(
            f"Enrichment aborted at batch '{batch_key}': {reason}. "
            f"{persisted} record(s) were saved this run; re-run to resume from the failed batch."
        )


@dataclass(slots=True)
class EnrichmentOutcome:
    batches: int = 0
    appended: int = 0
    usage: TokenUsage = TokenUsage()


class BatchEnricher:
    """Send each batch to the generator and record every returned result."""

    def __init__(
        self,
        generator: GeneratorRunner,
        prompts: PromptLoader,
        *,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._generator = generator
        self._prompts = prompts
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _records_for(self, batch: Batch, payload: list) -> list[LedgerRecord]:
        wanted = set(batch.keys)
        seen: set[WorkItemKey] = set()
        records: list[LedgerRecord] = []
        for element in payload:
            try:
                result = EnrichmentPayload.model_validate(element)
            except ValidationError:
                continue
            if result.work_item_key is None:
                continue
            try:
                key = WorkItemKey.parse(result.work_item_key)
            except ValueError:
                continue
            if key not in wanted or key in seen:
                continue
            seen.add(key)
            records.append(
                LedgerRecord(
                    key=key,
                    enriched_description=result.enriched_description or result.description or "",
                    confidence=result.confidence,
                    notes=result.notes,
                    recorded_at=self._clock(),
                )
            )
        return records

    async def run(self, batches: Sequence[Batch], ledger: LedgerStore) -> EnrichmentOutcome:
        """Process ``batches`` in order, appending to ``ledger`` after each one.

        Any failure raises ``EnrichmentAbortedError``; records appended for
        earlier batches stay in the ledger.
        """

        outcome = EnrichmentOutcome()
        profile = self._prompts.get("enrichment")

        for position, batch in enumerate(batches, start=1):
            logger.info(
                "Enriching batch",
                extra={"batch": position, "of": len(batches), "key": batch.key, "items": len(batch)},
            )
            try:
                response = await self._generator.generate(build_enrichment_prompt(profile, batch.items, tz=self._tz))
                payload = parse_json_response(response.response)
            except GeneratorError as exc:
                logger.error("Batch %s enrichment failed: %s", batch.key, exc, extra={"key": batch.key})
                raise EnrichmentAbortedError(batch.key, outcome.appended, str(exc)) from exc

            outcome.usage = outcome.usage + response.usage
            if not isinstance(payload, list):
                reason = f"expected an array of results, got {type(payload).__name__}"
                logger.error("Batch %s enrichment failed: %s", batch.key, reason, extra={"key": batch.key})
                raise EnrichmentAbortedError(batch.key, outcome.appended, reason)

            records = self._records_for(batch, payload)
            for record in records:
                ledger.append(record)
            outcome.appended += len(records)
            outcome.batches += 1

            missing = len(batch) - len(records)
            if missing:
                logger.warning(
                    "Batch response omitted work items; they stay pending",
                    extra={"key": batch.key, "missing": missing},
                )

        logger.info("Enrichment complete", extra={"batches": outcome.batches, "appended": outcome.appended})
        return outcome


__all__ = ["BatchEnricher", "EnrichmentAbortedError", "EnrichmentOutcome"]
