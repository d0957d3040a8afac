"""
Command-line interface: scrape the UT1 planning and export it to file.
"""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

from . import __version__
from .config import Settings, get_settings
from .errors import ContainerUnavailable
from .export import FORMATS, export
from .orchestrator import ScrapeOrchestrator
from .planning_fetch import planning_page_factory

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ut1-timetable",
        description=(
            "Export the UT1 Capitole planning to ICS / CSV / JSON.\n"
            "Credentials come from UT1_USERNAME / UT1_PASSWORD (environment or .env)."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-o",
        "--output",
        help="Output path (without extension). Default: UT1_OUTPUT or 'ut1'",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=FORMATS,
        default="ics",
        help="Export format. Default: ics",
    )
    parser.add_argument(
        "-w",
        "--weeks",
        type=int,
        help="Number of weeks to scrape, starting with the current one. Default: NB_WEEKS_TO_SCRAPE or 5",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        help="Maximum number of browser sessions running at once. Default: UT1_MAX_WORKERS or 4",
    )
    parser.add_argument(
        "--day-count",
        type=int,
        choices=[6, 7],
        help="Number of day columns of the planning grid. Default: UT1_DAY_COUNT or 7",
    )
    parser.add_argument(
        "--join-timeout",
        type=float,
        metavar="SECONDS",
        help="Give up on weeks still running after SECONDS and report them as failed. Default: UT1_JOIN_TIMEOUT or no limit",
    )
    parser.add_argument("--headful", action="store_true", help="Show the browser windows")
    parser.add_argument(
        "--every",
        type=float,
        metavar="HOURS",
        help="Keep running, scraping and exporting again every HOURS hours (e.g. 6).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "output": args.output,
        "weeks": args.weeks,
        "max_workers": args.max_workers,
        "day_count": args.day_count,
        "join_timeout": args.join_timeout,
    }
    settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    if args.headful:
        settings = dataclasses.replace(settings, headless=False)
    return settings


def _output_path(output: str, fmt: str) -> Path:
    ext = f".{fmt}"
    return Path(output) if Path(output).suffix else Path(output + ext)


def run_once(settings: Settings, fmt: str) -> int:
    """Scrape ``settings.weeks`` weeks and export them; return an exit code."""
    orchestrator = ScrapeOrchestrator(
        planning_page_factory(settings),
        max_workers=settings.max_workers,
        join_timeout=settings.join_timeout,
    )
    started = time.monotonic()
    try:
        report = orchestrator.run_report(settings.weeks)
    except ContainerUnavailable as e:
        print(f"Error reading planning: {e}", file=sys.stderr)
        return 1
    logger.info("Scraping took %.1f s", time.monotonic() - started)

    events = report.events
    out_path = _output_path(settings.output, fmt)
    export(events, out_path, fmt)
    print(f"Exported {len(events)} event(s) to {out_path}")
    for outcome in report.failed_weeks:
        print(f"  week {outcome.target.iso_week} skipped: {outcome.error}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.weeks is not None and args.weeks <= 0:
        parser.error("--weeks must be positive")
    if args.max_workers is not None and args.max_workers <= 0:
        parser.error("--max-workers must be positive")
    if args.join_timeout is not None and args.join_timeout <= 0:
        parser.error("--join-timeout must be positive")
    if args.every is not None and args.every <= 0:
        parser.error("--every must be positive")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(threadName)s %(message)s",
    )
    settings = _apply_overrides(get_settings(), args)
    if settings.weeks <= 0:
        parser.error("NB_WEEKS_TO_SCRAPE must be positive")
    if settings.max_workers <= 0:
        parser.error("UT1_MAX_WORKERS must be positive")
    if settings.join_timeout is not None and settings.join_timeout <= 0:
        parser.error("UT1_JOIN_TIMEOUT must be positive")

    if args.every is None:
        return run_once(settings, args.format)

    while True:
        if run_once(settings, args.format) != 0:
            logger.warning("Run failed, trying again at the next cycle")
        next_run = datetime.now() + timedelta(hours=args.every)
        print(f"Done. Next run at: {next_run:%Y-%m-%d %H:%M}")
        time.sleep(args.every * 3600)


if __name__ == "__main__":
    sys.exit(main())
