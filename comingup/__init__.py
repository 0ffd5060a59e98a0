"""comingup - calendar feed engine that finds the next meeting.

Parses RFC 5545-style feed text into concrete occurrences (expanding weekly
series and applying RECURRENCE-ID overrides) and selects the next one
relative to a reference time.
"""

__version__ = "0.1.0"

from typing import Any, Optional

from .calendar.diagnostics import inspect_feed
from .calendar.models import FeedInspectionResult, MasterRecord, Occurrence
from .calendar.parser import FeedParser, parse_feed
from .core.config_manager import EngineSettings
from .domain.selector import format_summary_line, select_following, select_next

__all__ = [
    "EngineSettings",
    "FeedInspectionResult",
    "FeedParser",
    "MasterRecord",
    "Occurrence",
    "format_summary_line",
    "inspect_feed",
    "parse_feed",
    "run_cli",
    "select_following",
    "select_next",
]


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the COMINGUP_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity so per-record parser
    decisions become visible without changing code.
    """
    import logging
    import sys

    from .core.logging_config import debug_env_enabled

    if debug_env_enabled():
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        try:
            from colorlog import ColoredFormatter

            # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
            fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
            log_colors = {
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            }
            formatter = ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors)
        except ImportError:
            fmt = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
            formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")

        handler.setFormatter(formatter)
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def _print_occurrence(label: str, occurrence: Occurrence) -> None:
    from .calendar.models import format_utc_sortable

    print(f"{label}: {occurrence.title}")
    print(f"  Start: {format_utc_sortable(occurrence.start)}")
    print(f"  End:   {format_utc_sortable(occurrence.end)}")
    print(f"  Url:   {occurrence.meeting_url or ''}")
    print(f"  Free/Following: {occurrence.is_free_or_placeholder}")


def run_cli(args: Any) -> int:
    """Run the diagnostic CLI for a parsed argument namespace.

    Reads the feed from ``args.file`` ("-" for stdin), then prints either the
    inspection report (``args.inspect``) or the next-meeting summary.

    Returns:
        Process exit code: 0 on success, 1 when the file does not exist
    """
    import logging
    import os
    import sys
    from pathlib import Path

    from .core.logging_config import configure_logging, get_logging_status
    from .core.timezone_utils import now_local

    level_name = getattr(args, "log_level", None) or os.environ.get("COMINGUP_LOG_LEVEL")
    _init_logging(level_name)
    configure_logging(debug_mode=(level_name or "").upper() == "DEBUG", level_name=level_name)
    logger = logging.getLogger(__name__)
    logger.debug("Logging status: %s", get_logging_status())

    settings = EngineSettings.from_env()
    if getattr(args, "timezone", None):
        settings.default_timezone = args.timezone

    path = args.file
    if path == "-":
        text = sys.stdin.read()
    else:
        feed_path = Path(path)
        if not feed_path.is_file():
            print(f"File not found: {path}", file=sys.stderr)
            return 1
        text = feed_path.read_text(encoding="utf-8", errors="replace")

    local_tz = settings.local_timezone()
    now = getattr(args, "now", None) or now_local(local_tz)
    logger.debug("Reference time %s, local zone %s", now.isoformat(), local_tz)

    if getattr(args, "inspect", False):
        report = inspect_feed(text, now, settings=settings)
        print(f"Raw VEVENTs: {len(report.raw_events)}")
        for index, block in enumerate(report.raw_events, start=1):
            print(f"--- VEVENT #{index} ---")
            print(block)
            print()
        print(f"Parsed entries: {len(report.entries)}")
        for entry in report.entries:
            print(entry)
        print("Expansion log:")
        for line in report.expansion_log:
            print(line)
        if report.strict_parse_ok:
            print("Strict parse: ok")
        else:
            print(f"Strict parse: failed ({report.strict_parse_error})")
        return 0

    ignore_free = settings.ignore_free_or_placeholder and not getattr(args, "include_free", False)
    occurrences = parse_feed(text, now, settings=settings)
    print(f"Parsed entries: {len(occurrences)}")

    upcoming = select_next(occurrences, now, ignore_free, settings.grace_seconds)
    print(format_summary_line(upcoming, now))
    if upcoming is None:
        return 0

    _print_occurrence("Next meeting", upcoming)
    following = select_following(occurrences, now, ignore_free, settings.grace_seconds)
    if following is not None:
        _print_occurrence("Following meeting", following)
    return 0
