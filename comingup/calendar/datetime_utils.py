"""Date/time value resolution and display formatting for calendar feeds.

Feed values come in three shapes:

- ``YYYYMMDD``: a date, read as local midnight
- ``YYYYMMDDTHHMMSSZ``: a UTC instant, converted to the local zone
- ``YYYYMMDDTHHMMSS``: a floating wall-clock time, read in the local zone

A ``TZID`` parameter makes the date or floating form a wall-clock time in
the named zone instead; it is converted to the local zone afterwards.
"""

import logging
import re
from datetime import UTC, date, datetime, time, tzinfo
from typing import Optional

from ..core.timezone_utils import get_zone
from ..exceptions import InvalidDateError

logger = logging.getLogger(__name__)

_DATE_VALUE = re.compile(r"(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?")


def _split_value(raw: str) -> tuple[datetime, bool]:
    """Parse the digits of a value into a naive datetime and a UTC flag."""
    match = _DATE_VALUE.fullmatch(raw)
    if match is None:
        raise InvalidDateError(f"Unsupported date value: {raw!r}")

    year, month, day, hour, minute, second, utc_flag = match.groups()
    try:
        parsed_date = date(int(year), int(month), int(day))
        if hour is None:
            return datetime.combine(parsed_date, time()), False
        parsed_time = time(int(hour), int(minute), int(second))
    except ValueError as e:
        raise InvalidDateError(f"Invalid date value {raw!r}: {e}") from e

    return datetime.combine(parsed_date, parsed_time), utc_flag is not None


def parse_ics_datetime(raw: str, tzid: Optional[str], local_tz: tzinfo) -> datetime:
    """Strictly parse a feed date/time value into an aware datetime in ``local_tz``.

    Args:
        raw: Value text, e.g. "20251104T090500" or "20251104"
        tzid: Optional TZID parameter of the field
        local_tz: Zone the result is expressed in

    Returns:
        Aware datetime in ``local_tz``

    Raises:
        InvalidDateError: If the value matches no supported form
    """
    value = (raw or "").strip()
    naive, is_utc = _split_value(value)

    if is_utc:
        return naive.replace(tzinfo=UTC).astimezone(local_tz)

    if tzid:
        zone = get_zone(tzid)
        if zone is not None:
            return naive.replace(tzinfo=zone).astimezone(local_tz)
        logger.debug("Unknown TZID %r for %r, reading as floating time", tzid, value)

    return naive.replace(tzinfo=local_tz)


class DateTimeResolver:
    """Resolves feed date/time values, returning None instead of raising."""

    def __init__(self, local_tz: tzinfo):
        self.local_tz = local_tz

    def resolve(self, raw: Optional[str], tzid: Optional[str] = None) -> Optional[datetime]:
        """Resolve ``raw`` to an aware local datetime, or None when it cannot be parsed."""
        if not raw:
            return None
        try:
            return parse_ics_datetime(raw, tzid, self.local_tz)
        except InvalidDateError as e:
            logger.debug("Ignoring date value: %s", e)
            return None


def ensure_local(dt: datetime, local_tz: tzinfo) -> datetime:
    """Express ``dt`` in ``local_tz``; naive values are read as local wall clock."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=local_tz)
    return dt.astimezone(local_tz)


def format_clock_time(dt: datetime) -> str:
    """Format as en-US ``h:mm tt``, e.g. "9:05 AM"."""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_day_clock_time(dt: datetime) -> str:
    """Format as en-US ``ddd h:mm tt``, e.g. "Tue 9:05 AM"."""
    day_names = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
    return f"{day_names[dt.weekday()]} {format_clock_time(dt)}"
