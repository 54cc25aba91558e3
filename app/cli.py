"""
Command line entry point.

Usage:
    python -m app.cli analyze [--group GROUP ...]
    python -m app.cli import-users users.csv

Settings are read from the environment / .env file (see app.config).
"""

import argparse
import asyncio
import csv
import logging
import sys
from typing import Iterator, List, Optional, Tuple

from app.config import Settings, get_settings
from app.integrations.store import create_stores
from app.models.api_responses import SyncStatus
from app.services.pipeline import build_pipeline

logger = logging.getLogger("app.cli")


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def analyze(settings: Settings, group_ids: Optional[List[str]] = None) -> int:
    """Run the analysis pipeline once. Returns the process exit code."""
    logger.info("Starting message analysis...")
    pipeline = build_pipeline(settings)
    results = asyncio.run(pipeline.sync_all(group_ids))

    failed = [result for result in results if result.status == SyncStatus.ERROR]
    for result in results:
        logger.info(
            f"{result.group_id}: {result.status.value}, {result.batches_processed} batches, "
            f"cursor {result.cursor}"
        )
    for result in failed:
        logger.error(
            f"{result.group_id}: {result.error_type}: {result.error} "
            f"(replay from {result.cursor}, failed batch "
            f"{result.failed_period_start} .. {result.failed_period_end})"
        )

    if failed:
        return 1
    logger.info("Analysis completed successfully!")
    return 0


def read_users_csv(path: str) -> Iterator[Tuple[str, Optional[str]]]:
    """(phone_number, name) rows of a CSV with phone_number and optional name columns."""
    with open(path, newline="", encoding="utf-8") as handle:
        for row in csv.DictReader(handle):
            phone_number = (row.get("phone_number") or "").strip()
            if phone_number:
                yield phone_number, (row.get("name") or "").strip() or None


def import_users(settings: Settings, path: str) -> int:
    """Import users in batches, ignoring phone numbers already stored."""
    logger.info(f"Importing users from {path}")
    users = create_stores(settings.database_url).users
    batch: List[Tuple[str, Optional[str]]] = []
    inserted = 0

    for row in read_users_csv(path):
        batch.append(row)
        if len(batch) == settings.user_import_batch_size:
            inserted += users.upsert_many(batch)
            batch = []
    if batch:
        inserted += users.upsert_many(batch)

    logger.info(f"Import completed: {inserted} new users")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="business-circle",
        description="Analyze group chat messages into business recommendations",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Analyze new messages")
    analyze_parser.add_argument(
        "--group",
        dest="groups",
        action="append",
        help="Group id to analyze (repeatable; default: all groups)",
    )

    import_parser = subparsers.add_parser("import-users", help="Import users from a CSV file")
    import_parser.add_argument("csv_path", help="CSV with phone_number and name columns")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(settings)

    try:
        if args.command == "analyze":
            return analyze(settings, args.groups)
        return import_users(settings, args.csv_path)
    except Exception as e:
        logger.error(f"Error running {args.command}: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
