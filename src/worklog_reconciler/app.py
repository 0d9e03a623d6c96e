"""Command-line bootstrap for reconciliation runs."""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ReconcilerSettings, get_settings
from .generator import GeneratorNotFoundError, GeneratorRunner
from .patterns import PatternDetector
from .pipeline import ReconciliationPipeline
from .prompts import PromptLoadError, PromptLoader
from .scheduling import EnrichmentAbortedError
from .sources import SourceLoadError, load_entries, load_evidence
from .storage import LedgerUnavailableError, create_ledger_store
from .timeslice import SplitContractError

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for reconciliation runs."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_pipeline(
    settings: Optional[ReconcilerSettings] = None,
    generator: GeneratorRunner | None = None,
    *,
    detect_patterns: bool | None = None,
) -> ReconciliationPipeline:
    """Wire a pipeline from settings; ``generator`` overrides the configured provider."""

    settings = settings or get_settings()

    if generator is None:
        flags = ["--model", settings.generator_default_model] if settings.generator_default_model else None
        generator = GeneratorRunner(
            Path(settings.generator_path) if settings.generator_path else None,
            default_flags=flags,
        )

    prompts = PromptLoader(settings.prompt_paths)
    ledger = create_ledger_store(
        settings.ledger_backend,
        ledger_path=settings.ledger_path,
        chroma_path=settings.chroma_persist_path,
    )

    use_patterns = settings.detect_patterns if detect_patterns is None else detect_patterns
    patterns = PatternDetector(generator, prompts, settings.patterns_path) if use_patterns else None

    return ReconciliationPipeline(
        generator,
        prompts,
        ledger,
        patterns=patterns,
        tz=settings.tzinfo,
        window_days=settings.match_window_days,
        allowed_prefixes=settings.allowed_prefixes,
        max_batch_size=settings.max_batch_size,
        token_history_path=settings.token_history_path,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile time entries against commit and ticket evidence."
    )
    parser.add_argument("--entries", type=Path, required=True, help="JSON snapshot of time entries")
    parser.add_argument("--evidence", type=Path, required=True, help="JSON snapshot of commits and tickets")
    parser.add_argument("--output", type=Path, required=True, help="Where to write the finalized items as JSON")
    parser.add_argument("--diff", type=Path, default=None, help="Optional path for the before/after listing")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Clear recorded enrichment progress and cached patterns before running",
    )
    parser.add_argument("--no-patterns", action="store_true", help="Skip description pattern detection")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run(args: argparse.Namespace, settings: ReconcilerSettings, generator: GeneratorRunner | None = None) -> int:
    try:
        pipeline = create_pipeline(settings, generator, detect_patterns=False if args.no_patterns else None)
        entries = load_entries(args.entries)
        evidence = load_evidence(args.evidence, allowed_prefixes=settings.allowed_prefixes)
    except (GeneratorNotFoundError, LedgerUnavailableError, SourceLoadError) as exc:
        logger.error("Cannot start reconciliation: %s", exc)
        return 2

    try:
        report = asyncio.run(pipeline.run(entries, evidence, force_refresh=args.force_refresh))
    except EnrichmentAbortedError as exc:
        logger.error(str(exc), extra={"batch_key": exc.batch_key, "persisted": exc.persisted})
        return 1
    except (LedgerUnavailableError, PromptLoadError, SplitContractError) as exc:
        logger.error("Reconciliation failed: %s", exc)
        return 2

    args.output.parent.mkdir(parents=True, exist_ok=True)
    document = {"summary": report.summary(), "items": [item.to_dict() for item in report.items]}
    args.output.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    if args.diff is not None:
        args.diff.parent.mkdir(parents=True, exist_ok=True)
        args.diff.write_text(report.diff_text, encoding="utf-8")

    logger.info("Wrote finalized items", extra={"path": str(args.output), "items": len(report.items)})
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for ``worklog-reconciler``."""

    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    exit_code = run(args, settings)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
