"""End-to-end reconciliation run."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .aggregation import aggregate
from .decomposition import TaskDecomposer
from .finalize import ReconciliationReport, finalize
from .generator import GeneratorRunner
from .matching import EvidenceMatcher, SemanticMatchResolver
from .models import Evidence, TimeEntry
from .patterns import PatternDetector
from .prompts import PromptLoader
from .scheduling import MAX_BATCH_SIZE, BatchEnricher, build_batches, load_processed_keys
from .storage import LedgerStore
from .usage import TokenUsage, estimate_tokens, load_token_history, record_token_run
from .work_items import build_work_items

logger = logging.getLogger(__name__)


class ReconciliationPipeline:
    """Run matching, decomposition, batched enrichment and finalization in order.

    Each phase returns its own token usage; the run sums them into the report.
    """

    def __init__(
        self,
        generator: GeneratorRunner,
        prompts: PromptLoader,
        ledger: LedgerStore,
        *,
        patterns: PatternDetector | None = None,
        tz: tzinfo | None = None,
        window_days: int = 1,
        allowed_prefixes: Iterable[str] | None = None,
        max_batch_size: int = MAX_BATCH_SIZE,
        token_history_path: Path | None = None,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._generator = generator
        self._prompts = prompts
        self._ledger = ledger
        self._patterns = patterns
        self._tz = tz
        self._window_days = window_days
        self._allowed_prefixes = tuple(allowed_prefixes or ())
        self._max_batch_size = max_batch_size
        self._token_history_path = Path(token_history_path) if token_history_path else None
        self._id_factory = id_factory
        self._clock = clock

    @property
    def ledger(self) -> LedgerStore:
        return self._ledger

    async def run(
        self,
        entries: Sequence[TimeEntry],
        evidence: Sequence[Evidence],
        *,
        force_refresh: bool = False,
    ) -> ReconciliationReport:
        """Reconcile ``entries`` against ``evidence``.

        ``EnrichmentAbortedError`` propagates when a batch fails; everything
        recorded before the failure is kept for the next run.
        """

        if force_refresh:
            logger.info("Force refresh: clearing ledger and cached patterns")
            self._ledger.clear()
            if self._patterns is not None:
                self._patterns.clear()

        report = ReconciliationReport()
        usage = TokenUsage()

        pattern_map = None
        if self._patterns is not None:
            detection = await self._patterns.load_or_detect(entry.description for entry in entries)
            usage = usage + detection.usage
            pattern_map = detection.patterns

        matcher = EvidenceMatcher(
            evidence, window_days=self._window_days, tz=self._tz, allowed_prefixes=self._allowed_prefixes
        )
        results = matcher.match_all(entries)

        semantic = await SemanticMatchResolver(self._generator, self._prompts, tz=self._tz).resolve(results, evidence)
        usage = usage + semantic.usage
        report.semantic_failed = semantic.failed

        groups = aggregate(results)
        decomposition = await TaskDecomposer(self._generator, self._prompts).decompose(groups)
        usage = usage + decomposition.usage
        report.failed_groups = list(decomposition.failed_groups)

        items = build_work_items(results, decomposition.sub_tasks, id_factory=self._id_factory)

        processed = load_processed_keys(self._ledger)
        batches = build_batches(items, processed, max_size=self._max_batch_size, tz=self._tz)

        pending = sum(len(batch) for batch in batches)
        history = load_token_history(self._token_history_path) if self._token_history_path else []
        report.estimated_tokens = estimate_tokens(pending, history)
        logger.info(
            "Estimated enrichment cost",
            extra={"pending_items": pending, "estimated_tokens": report.estimated_tokens},
        )

        enricher = BatchEnricher(self._generator, self._prompts, tz=self._tz, clock=self._clock)
        enrichment = await enricher.run(batches, self._ledger)
        usage = usage + enrichment.usage

        report.items, report.diff_lines = finalize(items, self._ledger.read_all(), patterns=pattern_map, tz=self._tz)
        report.usage = usage

        if self._token_history_path is not None:
            actual = usage.total_tokens or report.estimated_tokens
            record_token_run(self._token_history_path, estimated=report.estimated_tokens, actual=actual)

        logger.info("Reconciliation complete", extra=report.summary())
        return report


__all__ = ["ReconciliationPipeline"]
