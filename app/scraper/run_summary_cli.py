from __future__ import annotations

"""CLI helper for printing partition status summaries."""

import argparse
from typing import Sequence

from .errors import PersistenceFailure
from .job_store import JobStore


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the partition summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show extraction status for a partition.",
    )
    parser.add_argument(
        "--partition",
        help="Partition key (year) to summarise.",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Summarise every persisted partition.",
    )
    return parser


def _print_summary(summary: dict) -> None:
    print(f"Partition {summary['partition']}")
    for status in ("pending", "done", "failed"):
        print(f"  {status}: {summary[status]}")
    print(f"  total: {summary['total']}")
    if summary["failure_reasons"]:
        print("\nFail reasons:")
        for code, count in sorted(summary["failure_reasons"].items()):
            print(f"  {code}: {count}")
    print(f"\nComplete: {'yes' if summary['complete'] else 'no'}")


def main(argv: Sequence[str] | None = None, *, store: JobStore | None = None) -> int:
    """Entry point for the partition summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    store = store or JobStore()

    if args.all:
        keys = store.partitions()
    elif args.partition:
        keys = [args.partition]
    else:
        parser.error("You must provide --partition or --all")

    for index, key in enumerate(keys):
        if not store.exists(key):
            parser.error(f"Partition {key} has not been harvested yet")
        try:
            summary = store.summary(key)
        except PersistenceFailure as exc:
            parser.error(str(exc))
        if index:
            print()
        _print_summary(summary)

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
