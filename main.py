# main.py

"""Entry point for the pricewatch competitor pricing monitor."""

import argparse
import asyncio
import logging
import sys

from pricewatch.config.logging_config import setup_logging
from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Track one competitor's pricing page and explain changes.",
    )
    parser.add_argument(
        "-u",
        "--user",
        default=Settings.DEFAULT_USER_ID,
        dest="user_id",
        help=f"User the competitor belongs to (default: {Settings.DEFAULT_USER_ID}).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser("track", help="Set the competitor to monitor.")
    track.add_argument("name", help="Competitor display name.")
    track.add_argument("url", help="Competitor homepage or pricing URL.")

    scan = sub.add_parser("scan", help="Scan the tracked competitor now.")
    report = sub.add_parser("report", help="Show stored scan reports.")
    for cmd in (scan, report):
        cmd.add_argument(
            "-f",
            "--format",
            choices=["json", "table"],
            default="json",
            dest="output_format",
            help="Output format (default: json).",
        )
    report.add_argument(
        "-n",
        "--limit",
        type=int,
        default=20,
        help="Number of reports to show (default: 20).",
    )

    health = sub.add_parser(
        "health", help="Probe each fetch strategy for connectivity.",
    )
    health.add_argument(
        "--url",
        default=None,
        help="URL to probe (default: the tracked competitor).",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    from pricewatch.cli import runner

    if args.command == "track":
        return runner.run_track(args.user_id, args.name, args.url)
    if args.command == "scan":
        return asyncio.run(runner.cli_scan(args.user_id, args.output_format))
    if args.command == "report":
        return runner.run_report(args.user_id, args.output_format, args.limit)
    return asyncio.run(runner.run_health_check(args.user_id, args.url))


def main() -> None:
    """Parse arguments and run the requested command."""
    log_file = setup_logging()
    logger.info("pricewatch starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error running %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("pricewatch shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
