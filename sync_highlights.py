#!/usr/bin/env python3
"""Kobo to Notion highlight sync - one Notion page per book."""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional
from tabulate import tabulate
from kobo_notion.async_client import AsyncNotionClient
from kobo_notion.config import Config, ConfigError
from kobo_notion.database import HighlightDatabase, SourceReadError
from kobo_notion.engine import SyncEngine
from kobo_notion.models import BookResult
from kobo_notion.rate_limit import RateLimiter
import logging

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def apply_overrides(args, config: Config) -> Config:
    """Let command line flags win over environment settings."""
    if args.db:
        config.KOBO_DB_PATH = args.db
    if args.delay_ms is not None:
        config.RATE_LIMIT_DELAY_MS = args.delay_ms
    if args.max_retries is not None:
        config.NOTION_MAX_RETRIES = args.max_retries
    if args.strict:
        config.STRICT_COMPLETION = True
    if args.verbose:
        config.LOG_LEVEL = "DEBUG"
    return config


async def run_sync(config: Config) -> List[BookResult]:
    """Wire the database, Notion client and engine together and run once."""
    with HighlightDatabase(config.KOBO_DB_PATH) as db:
        async with AsyncNotionClient(
            token=config.NOTION_TOKEN,
            database_id=config.NOTION_DATABASE_ID,
            notion_version=config.NOTION_VERSION,
            timeout=config.NOTION_TIMEOUT,
            max_retries=config.NOTION_MAX_RETRIES
        ) as client:
            engine = SyncEngine(
                source=db,
                store=client,
                limiter=RateLimiter(config.RATE_LIMIT_DELAY_MS),
                chunk_size=config.CHUNK_SIZE,
                strict_completion=config.STRICT_COMPLETION
            )
            return await engine.run()


def display_results(results: List[BookResult]):
    """Print a per-book summary table."""
    if not results:
        print("No books with highlights found.")
        return

    headers = ["Title", "Outcome", "Highlights", "Failed chunks", "Complete"]
    rows = [
        [
            r.title[:50] + "..." if len(r.title) > 50 else r.title,
            r.outcome.value,
            r.items_exported,
            r.chunks_failed,
            "yes" if r.completed else "no"
        ]
        for r in results
    ]
    print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    failed = sum(1 for r in results if r.had_errors)
    if failed:
        print(f"\n{failed} book(s) had errors; see the log above.")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync Kobo highlights into a Notion database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Required environment (or .env):
  NOTION_TOKEN         Notion integration token
  NOTION_DATABASE_ID   Database with Title, Author and Highlights properties

Examples:
  %(prog)s
  %(prog)s --db ~/KoboReader.sqlite --strict
        """
    )
    parser.add_argument("--db", help="Kobo SQLite file (default: $KOBO_DB_PATH or highlights.sqlite)")
    parser.add_argument("--delay-ms", type=int, help="Pause after each Notion write (default: 350)")
    parser.add_argument("--max-retries", type=int, help="Retries for transient Notion failures (default: 0)")
    parser.add_argument("--strict", action="store_true", help="Only mark a book complete if every append succeeded")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)
    if args.delay_ms is not None and args.delay_ms < 0:
        parser.error("--delay-ms must not be negative")
    if args.max_retries is not None and args.max_retries < 0:
        parser.error("--max-retries must not be negative")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    try:
        config = apply_overrides(args, Config())
    except ConfigError as e:
        setup_logging("INFO")
        logger.error(f"❌ Configuration error: {e}")
        return 2

    setup_logging(config.LOG_LEVEL)

    missing = config.missing()
    if missing:
        logger.error(f"❌ Missing required settings: {', '.join(missing)}")
        return 2

    db_path = Path(config.KOBO_DB_PATH).expanduser()
    if not db_path.is_file():
        logger.error(f"❌ Highlights database not found: {db_path}")
        return 2
    config.KOBO_DB_PATH = str(db_path)

    try:
        results = asyncio.run(run_sync(config))
    except SourceReadError as e:
        logger.error(f"❌ {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        return 130

    display_results(results)
    # Per-book failures are logged, not reflected in the exit status
    return 0


if __name__ == "__main__":
    sys.exit(main())
