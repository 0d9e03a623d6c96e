"""Batch scheduling and resumable enrichment."""

from .batches import (
    MAX_BATCH_SIZE,
    Batch,
    batching_key,
    build_batches,
    chunk,
    load_processed_keys,
    pending_items,
)
from .enricher import BatchEnricher, EnrichmentAbortedError, EnrichmentOutcome

__all__ = [
    "MAX_BATCH_SIZE",
    "Batch",
    "BatchEnricher",
    "EnrichmentAbortedError",
    "EnrichmentOutcome",
    "batching_key",
    "build_batches",
    "chunk",
    "load_processed_keys",
    "pending_items",
]
