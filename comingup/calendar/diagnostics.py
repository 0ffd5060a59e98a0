"""Feed inspection for troubleshooting: raw blocks, parsed entries and an expansion log."""

import logging
import re
from datetime import datetime
from typing import Optional

from icalendar import Calendar

from ..core.config_manager import EngineSettings
from ..core.timezone_utils import now_local
from .field_parser import unescape_text
from .models import FeedInspectionResult
from .parser import FeedParser, iter_fields

logger = logging.getLogger(__name__)

_RAW_EVENT = re.compile(r"BEGIN:VEVENT.*?END:VEVENT", re.DOTALL)


def validate_ics_content(text: str) -> Optional[str]:
    """Run the feed through the strict icalendar parser.

    Returns:
        None when the strict parser accepts the feed, otherwise the reason
    """
    if not text or not text.strip():
        return "Empty feed"
    if "BEGIN:VCALENDAR" not in text.upper():
        return "Missing BEGIN:VCALENDAR marker"

    try:
        Calendar.from_ical(text)
    except Exception as e:
        logger.debug("Strict ICS validation failed: %s", e)
        return str(e) or e.__class__.__name__
    return None


def _describe_raw_event(block: str) -> Optional[str]:
    """Expansion log line for a raw VEVENT block that carries an RRULE, else None."""
    summary = None
    dtstart = None
    rrule = None
    for parsed in iter_fields(block):
        if parsed.name == "SUMMARY":
            summary = unescape_text(parsed.value)
        elif parsed.name == "DTSTART":
            dtstart = parsed.value
        elif parsed.name == "RRULE":
            rrule = parsed.value

    if not rrule or not dtstart:
        return None
    return f"VEVENT: {summary} DTSTART={dtstart} RRULE={rrule}"


def inspect_feed(
    text: str,
    now: Optional[datetime] = None,
    *,
    settings: Optional[EngineSettings] = None,
) -> FeedInspectionResult:
    """Inspect a feed and report what the engine makes of it.

    Args:
        text: Feed text
        now: Reference time (default: current local time)
        settings: Engine settings (default: built-in defaults)

    Returns:
        FeedInspectionResult with raw VEVENT blocks, one entry per parsed
        occurrence, an expansion log for recurring blocks and the outcome of
        a strict RFC 5545 parse
    """
    result = FeedInspectionResult()
    if not text or not text.strip():
        return result

    parser = FeedParser(settings)
    if now is None:
        now = now_local(parser.local_tz)

    for match in _RAW_EVENT.finditer(text):
        result.add_raw_event(match.group(0))

    records = parser.parse_records(text)
    result.event_count = len(records)
    result.recurring_event_count = sum(1 for record in records if record.recurrence_rule)

    occurrences = parser.parse(text, now)
    result.occurrence_count = len(occurrences)
    for occurrence in occurrences:
        result.add_entry(occurrence)

    for block in result.raw_events:
        line = _describe_raw_event(block)
        if line is not None:
            result.add_log(line)
    result.add_log(f"Total parsed entries: {len(result.entries)}")

    result.strict_parse_error = validate_ics_content(text)
    result.strict_parse_ok = result.strict_parse_error is None

    logger.debug(
        "Inspected feed: %d raw events, %d entries, strict_ok=%s",
        len(result.raw_events),
        len(result.entries),
        result.strict_parse_ok,
    )
    return result
