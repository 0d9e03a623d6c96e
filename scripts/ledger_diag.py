"""Enrichment ledger diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from worklog_reconciler.config import ReconcilerSettings
from worklog_reconciler.finalize import latest_records
from worklog_reconciler.storage import LedgerStore, LedgerUnavailableError, create_ledger_store


def load_store(settings: ReconcilerSettings) -> LedgerStore:
    try:
        return create_ledger_store(
            settings.ledger_backend,
            ledger_path=settings.ledger_path,
            chroma_path=settings.chroma_persist_path,
        )
    except LedgerUnavailableError as exc:
        print(f"Ledger unavailable: {exc}")
        raise SystemExit(1)


def cmd_records(args: argparse.Namespace) -> None:
    settings = ReconcilerSettings()
    store = load_store(settings)
    try:
        records = store.read_all()
    except LedgerUnavailableError as exc:
        print(f"Ledger unavailable: {exc}")
        raise SystemExit(1)

    if args.entry is not None:
        records = [record for record in records if record.key.entry_index == args.entry]
    if args.limit is not None and args.limit > 0:
        records = records[-args.limit :]

    if args.json:
        print(json.dumps([record.to_payload() for record in records], indent=2))
    else:
        for record in records:
            print(f"{record.key} [{record.confidence}] {record.enriched_description}")


def cmd_stats(args: argparse.Namespace) -> None:
    settings = ReconcilerSettings()
    store = load_store(settings)
    try:
        records = store.read_all()
    except LedgerUnavailableError as exc:
        print(f"Ledger unavailable: {exc}")
        raise SystemExit(1)

    latest = latest_records(records)
    confidence_counts: dict[str, int] = {}
    for record in latest.values():
        confidence_counts[record.confidence] = confidence_counts.get(record.confidence, 0) + 1

    stats = {
        "backend": settings.ledger_backend,
        "records_total": len(records),
        "work_items_total": len(latest),
        "entries_total": len({key.entry_index for key in latest}),
        "confidence_counts": confidence_counts,
    }
    print(json.dumps(stats, indent=2))


def cmd_clear(args: argparse.Namespace) -> None:
    if not args.yes:
        print("Refusing to clear the ledger without --yes")
        raise SystemExit(1)
    settings = ReconcilerSettings()
    store = load_store(settings)
    try:
        store.clear()
    except LedgerUnavailableError as exc:
        print(f"Ledger unavailable: {exc}")
        raise SystemExit(1)
    print("Ledger cleared")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enrichment ledger diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_records = sub.add_parser("records", help="List recorded enrichment results")
    p_records.add_argument("--entry", type=int, default=None, help="Only show records for this entry index")
    p_records.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N records",
    )
    p_records.add_argument("--json", action="store_true", help="Output JSON")
    p_records.set_defaults(func=cmd_records)

    p_stats = sub.add_parser("stats", help="Show record, work item and confidence counts")
    p_stats.set_defaults(func=cmd_stats)

    p_clear = sub.add_parser("clear", help="Delete all recorded progress")
    p_clear.add_argument("--yes", action="store_true", help="Confirm deletion")
    p_clear.set_defaults(func=cmd_clear)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
