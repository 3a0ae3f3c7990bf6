"""
Command-line interface for the traffic insights pipeline.

This module provides the CLI entry point with commands for:
- query: Fetch traffic insights for a URL or domain
- normalize: Show the canonical domain for an input, or why it is rejected
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import SystemConfig, load_config_from_env
from .domain_validator import DomainNormalizer
from .enums import InsightMode
from .exceptions import InsightsError, ValidationError
from .formatting import (
    format_compact_number,
    format_date_label,
    format_duration,
    format_percent,
)
from .models import InsightsResponse
from .orchestrator import InsightsOrchestrator, error_to_response


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID = 2


def render_text(response: InsightsResponse) -> str:
    """Render a response as a plain-text report."""
    result = response.result
    summary = result.summary
    lines = [
        f"Domain: {response.domain} ({response.mode.value})",
        f"  Visits:          {format_compact_number(summary.latest_visits)}",
        f"  Bounce rate:     {format_percent(summary.latest_bounce_rate)}",
        f"  Pages per visit: {format_compact_number(summary.latest_pages_per_visit)}",
        f"  Avg. duration:   {format_duration(summary.latest_avg_duration_seconds)}",
    ]

    if result.timeseries.visits:
        lines.append("  Visits over time:")
        for point in sorted(result.timeseries.visits, key=lambda p: p.date):
            lines.append(
                f"    {format_date_label(point.date):>8}  {format_compact_number(point.value)}"
            )

    if result.channels:
        lines.append("  Channels:")
        for channel in result.channels:
            lines.append(f"    {channel.channel:<16} {format_percent(channel.share)}")

    if result.meta.partial:
        lines.append("  Partial data:")
        if result.meta.notes:
            for note in result.meta.notes:
                lines.append(f"    - {note}")
        else:
            lines.append("    - No data available for this domain.")

    lines.append(f"  Fetched at {response.fetched_at} from {response.provider}")
    return "\n".join(lines)


async def run_query(
    url: str,
    mode: str,
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Fetch and print insights for url.

    Returns:
        Exit code (0 on success, 2 on invalid input, 1 on other errors)
    """
    logger = AuditLogger.from_config(config.logging) if verbose else None

    async with InsightsOrchestrator(config=config, logger=logger) as orchestrator:
        try:
            response = await orchestrator.query(url, mode)
        except InsightsError as e:
            error = error_to_response(e)
            if as_json:
                print(json.dumps(error.body))
            else:
                print(f"Error: {error.body['error']}", file=sys.stderr)
            return EXIT_INVALID if isinstance(e, ValidationError) else EXIT_ERROR

    if as_json:
        print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_text(response))
    return EXIT_OK


def cmd_query(args: argparse.Namespace) -> int:
    """Handle the 'query' command."""
    config = load_config_from_env()
    return asyncio.run(run_query(
        url=args.url,
        mode=args.mode,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_normalize(args: argparse.Namespace) -> int:
    """Handle the 'normalize' command."""
    result = DomainNormalizer().validate(args.input)
    if not result.valid:
        print(f"Rejected ({result.error.code.value}): {result.error.message}", file=sys.stderr)
        return EXIT_INVALID

    print(result.canonical_domain)
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="traffic-insights",
        description="Traffic and engagement insights for a website",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'query' command
    query_parser = subparsers.add_parser(
        "query",
        help="Fetch insights for a URL or domain",
    )
    query_parser.add_argument(
        "url",
        help="URL or domain (e.g., https://www.example.com)",
    )
    query_parser.add_argument(
        "--mode", "-m",
        choices=[mode.value for mode in InsightMode],
        default=InsightMode.MONTHLY.value,
        help="Reporting window (default: monthly)",
    )
    query_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the response as JSON",
    )
    query_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Write pipeline logs to stderr",
    )
    query_parser.set_defaults(func=cmd_query)

    # 'normalize' command
    normalize_parser = subparsers.add_parser(
        "normalize",
        help="Show the canonical domain for an input",
    )
    normalize_parser.add_argument(
        "input",
        help="URL or domain to normalize",
    )
    normalize_parser.set_defaults(func=cmd_normalize)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
