"""Storage abstractions for enrichment progress."""

from __future__ import annotations

from pathlib import Path

from .chroma import ChromaLedgerStore, LedgerUnavailableError
from .ledger import JsonlLedgerStore, LedgerStore
from .models import LedgerRecord


def create_ledger_store(backend: str, *, ledger_path: Path, chroma_path: Path) -> LedgerStore:
    if backend == "jsonl":
        return JsonlLedgerStore(ledger_path)
    if backend == "chroma":
        return ChromaLedgerStore(chroma_path)
    raise LedgerUnavailableError(f"Unknown ledger backend '{backend}'")


__all__ = [
    "ChromaLedgerStore",
    "JsonlLedgerStore",
    "LedgerRecord",
    "LedgerStore",
    "LedgerUnavailableError",
    "create_ledger_store",
]
