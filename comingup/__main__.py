"""Command-line entry for comingup.

Reads a local calendar feed and prints the next meeting, or a full
inspection report of what the parser makes of the feed.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import NoReturn

from dateutil import parser as date_parser

from . import run_cli


def _parse_now(value: str) -> datetime:
    """Argparse type for --now: an ISO 8601 date-time."""
    try:
        return date_parser.isoparse(value)
    except (ValueError, OverflowError) as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 date-time: {value!r}") from exc


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the comingup CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="comingup",
        description="comingup - find the next meeting in a calendar feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  comingup calendar.ics                              # Next meeting from now
  comingup calendar.ics --now 2025-11-04T12:00:00Z   # Next meeting at a fixed time
  comingup calendar.ics --inspect                    # Raw blocks, entries and expansion log
  curl -s "$FEED_URL" | comingup -                   # Read the feed from stdin
        """,
    )

    parser.add_argument("file", metavar="FILE", help="Path to an .ics file, or '-' for stdin")
    parser.add_argument(
        "--now",
        type=_parse_now,
        metavar="ISO8601",
        help="Reference time (default: current time, or COMINGUP_TEST_TIME)",
    )
    parser.add_argument(
        "--include-free",
        action="store_true",
        help="Consider free and placeholder ('Following', 'Free') meetings",
    )
    parser.add_argument(
        "--inspect",
        action="store_true",
        help="Print raw VEVENT blocks, parsed entries and the expansion log",
    )
    parser.add_argument(
        "--timezone",
        metavar="TZ",
        help="Local zone for displayed times (default: COMINGUP_DEFAULT_TIMEZONE or host zone)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Console log level (default: INFO, or COMINGUP_LOG_LEVEL env var)",
    )

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the comingup CLI and exit with its status code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        code = run_cli(args)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
