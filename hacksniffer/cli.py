"""Command-line entry point for the hackathon ingestion pipeline.

Usage:
    # Run every adapter once and print a per-source summary
    hacksniffer once

    # Same, but print the report as JSON
    hacksniffer once --json

    # Run on the INGEST_CRON schedule until SIGINT / SIGTERM
    hacksniffer watch
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

import structlog

from hacksniffer.config import settings
from hacksniffer.core.exceptions import StoreError
from hacksniffer.db.session import create_engine, create_session_factory, create_tables
from hacksniffer.scrapers.ingestion_service import IngestionReport
from hacksniffer.scrapers.register_adapters import register_all_adapters
from hacksniffer.scrapers.scheduler import IngestionScheduler
from hacksniffer.scrapers.utils.fetcher import Fetcher, FetcherConfig


def configure_logging(level: str = None) -> None:
    """Console logging with timestamps, filtered at the configured level."""
    level_name = (level or settings.LOG_LEVEL).upper()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


log = structlog.get_logger("hacksniffer")


def print_report(report: IngestionReport) -> None:
    """Print a human-readable per-source summary."""
    print(f"\n{'=' * 60}")
    print(f"  Ingestion run started {report.started_at.isoformat()}")
    print(f"{'=' * 60}")
    for result in report.results:
        print(
            f"  {result.source_id:<12} {result.status:<22} "
            f"found={result.events_found} created={result.events_created} "
            f"updated={result.events_updated} errors={len(result.errors)} "
            f"({result.duration_ms} ms)"
        )
        for error in result.errors:
            print(f"      - {error}")
    print(f"{'-' * 60}")
    print(
        f"  total        found={report.events_found} created={report.events_created} "
        f"updated={report.events_updated} errors={report.error_count} "
        f"({report.duration_ms} ms)"
    )
    print(f"{'=' * 60}\n")


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))


async def _build_scheduler() -> IngestionScheduler:
    engine = create_engine()
    await create_tables(engine)

    fetcher = Fetcher(FetcherConfig.from_settings())
    adapters = register_all_adapters().create_all(fetcher)
    return IngestionScheduler(create_session_factory(engine), fetcher, adapters)


async def run_once(as_json: bool = False) -> int:
    """Run a single ingestion and print the report.

    Returns:
        Process exit code
    """
    scheduler = await _build_scheduler()
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    run_task = asyncio.create_task(scheduler.run_ingestion())
    stop_task = asyncio.create_task(stop_event.wait())
    await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    if stop_event.is_set():
        log.info("shutdown_requested")
        scheduler.fetcher.begin_shutdown()
    stop_task.cancel()

    try:
        report = await run_task
    except StoreError as e:
        log.error("ingestion_aborted", error=str(e))
        return 1
    finally:
        await scheduler.stop()

    if as_json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_report(report)
    return 0


async def watch() -> int:
    """Run on the cron schedule until a termination signal arrives."""
    scheduler = await _build_scheduler()
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        scheduler.start()
    except ValueError as e:
        log.error("invalid_cron_expression", cron=scheduler.cron, error=str(e))
        await scheduler.stop()
        return 2

    log.info("watching", status=scheduler.get_status())
    await stop_event.wait()
    log.info("shutdown_requested")
    await scheduler.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hacksniffer",
        description="Collect upcoming hackathons from Devpost, MLH and Eventbrite.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Log level (default: {settings.LOG_LEVEL})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    once_parser = subparsers.add_parser("once", help="Run one ingestion and exit")
    once_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    subparsers.add_parser("watch", help=f"Run on the schedule '{settings.INGEST_CRON}' (UTC)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "once":
        return asyncio.run(run_once(as_json=args.json))
    return asyncio.run(watch())


if __name__ == "__main__":
    sys.exit(main())
