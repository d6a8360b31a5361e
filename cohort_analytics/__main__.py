"""Entry point for the cohort analytics engine.

Usage:
    python -m cohort_analytics report retention
    python -m cohort_analytics report ltv --scope dev_42
    python -m cohort_analytics report all --period weekly
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from rich.console import Console

from .config import Config, load_config
from .data_cache import JsonDataSource
from .display import print_report
from .engine import CohortEngine
from .errors import CohortAnalyticsError
from .filters import MONTHLY, PERIOD_LENGTHS
from .report import ANALYSIS_TYPES, CohortReport
from .request import AnalysisRequest
from .storage import SqliteDataSource, save_report

logger = logging.getLogger("cohort_analytics")


def setup_logging(log_file: str, log_level: str) -> None:
    """Configure logging to a file at DEBUG and stderr at WARNING+.

    ``log_level`` can raise the stderr threshold (e.g. ERROR) but never
    lowers it below WARNING, so log lines don't interleave with the tables.
    """
    os.makedirs(os.path.dirname(log_file) if os.path.dirname(log_file) else ".", exist_ok=True)

    root_logger = logging.getLogger("cohort_analytics")
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d [%(levelname)-5s] %(name)-30s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler: always DEBUG, skipped-row and cache lines included
    file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    configured = logging.getLevelName(log_level)
    if not isinstance(configured, int):
        configured = logging.WARNING
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(max(logging.WARNING, configured))
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)


def build_requests(analysis_type: str, period: str, scope_id: str | None) -> list[AnalysisRequest]:
    types = ANALYSIS_TYPES if analysis_type == "all" else (analysis_type,)
    return [AnalysisRequest(analysis_type=t, period=period, scope_id=scope_id) for t in types]


async def run_reports(config: Config, requests: list[AnalysisRequest]) -> list:
    if config.source == "sqlite":
        with SqliteDataSource(config.sqlite_path) as source:
            return await CohortEngine(source, config).generate_many(requests)
    source = JsonDataSource(config.data_dir)
    return await CohortEngine(source, config).generate_many(requests)


def run_report(args: argparse.Namespace) -> int:
    console = Console()
    config = load_config()
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.output_dir:
        config.output_dir = Path(args.output_dir)

    config.output_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(str(config.log_file), config.log_level)

    try:
        requests = build_requests(args.type, args.period, args.scope)
    except CohortAnalyticsError as e:
        console.print(f"[bold red]Invalid request:[/bold red] {e}")
        return 1

    console.print()
    console.rule("[bold cyan]Cohort Analysis")
    console.print()
    console.print(f"  Data source:     [bold]{config.source}[/bold] ({config.data_dir})")
    console.print(f"  Analysis type:   [bold]{args.type}[/bold]")
    console.print(f"  Period:          {args.period}")
    console.print(f"  Scope:           {args.scope or '[dim]all[/dim]'}")
    console.print()

    logger.info("Running %d report(s) from %s", len(requests), config.data_dir)
    results = asyncio.run(run_reports(config, requests))

    errors: list[str] = []
    for request, result in zip(requests, results):
        if isinstance(result, CohortReport):
            print_report(console, result)
            path = save_report(result, config.output_dir)
            console.print(f"  [green]OK[/green] {request.analysis_type} saved to {path}")
        else:
            errors.append(f"{request.analysis_type}: {result}")
            console.print(f"  [red]FAIL[/red] {request.analysis_type}: {result}")

    console.print()
    console.print(f"[dim]Full log: {config.log_file}[/dim]")
    console.print()
    return 0 if not errors else 1


def main() -> None:
    """Synchronous entry point."""
    parser = argparse.ArgumentParser(
        description="Cohort and lifetime-value analytics for the app marketplace",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    report_parser = subparsers.add_parser("report", help="Generate a cohort report")
    report_parser.add_argument(
        "type",
        choices=[*ANALYSIS_TYPES, "all"],
        help="Analysis to run; 'all' runs every analysis concurrently",
    )
    report_parser.add_argument("--period", choices=PERIOD_LENGTHS, default=MONTHLY)
    report_parser.add_argument("--scope", help="Restrict to one developer's apps")
    report_parser.add_argument("--data-dir", help="Directory holding the data snapshot (default: COHORT_DATA_DIR)")
    report_parser.add_argument("--output-dir", help="Where reports and logs go (default: COHORT_OUTPUT_DIR)")

    args = parser.parse_args()
    if args.command != "report":
        parser.print_help()
        sys.exit(2)

    try:
        exit_code = run_report(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
