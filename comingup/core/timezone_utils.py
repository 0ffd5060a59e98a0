"""Time zone lookup, host local zone detection and clock utilities for comingup."""

from __future__ import annotations

import datetime
import logging
import os
from typing import ClassVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz as dateutil_tz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE_ENV = "COMINGUP_DEFAULT_TIMEZONE"
TEST_TIME_ENV = "COMINGUP_TEST_TIME"


class TimezoneDetector:
    """Resolves the zone names found in calendar feeds to IANA zones."""

    # Windows zone names as emitted by Outlook/Exchange TZID parameters
    # https://docs.microsoft.com/en-us/windows-hardware/manufacture/desktop/default-time-zones
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        # North America
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "US Mountain Standard Time": "America/Phoenix",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Atlantic Standard Time": "America/Halifax",
        "Newfoundland Standard Time": "America/St_Johns",
        "Canada Central Standard Time": "America/Regina",
        "Mexico Standard Time": "America/Mexico_City",
        # Europe
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Atlantic/Reykjavik",
        "W. Europe Standard Time": "Europe/Berlin",
        "Romance Standard Time": "Europe/Paris",
        "Central Europe Standard Time": "Europe/Budapest",
        "Central European Standard Time": "Europe/Warsaw",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",
        "GTB Standard Time": "Europe/Bucharest",
        "Russian Standard Time": "Europe/Moscow",
        "Turkey Standard Time": "Europe/Istanbul",
        # Asia
        "India Standard Time": "Asia/Kolkata",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "Singapore Standard Time": "Asia/Singapore",
        "Taipei Standard Time": "Asia/Taipei",
        "SE Asia Standard Time": "Asia/Bangkok",
        "Arabian Standard Time": "Asia/Dubai",
        "Israel Standard Time": "Asia/Jerusalem",
        "Pakistan Standard Time": "Asia/Karachi",
        # Oceania
        "AUS Eastern Standard Time": "Australia/Sydney",
        "E. Australia Standard Time": "Australia/Brisbane",
        "W. Australia Standard Time": "Australia/Perth",
        "New Zealand Standard Time": "Pacific/Auckland",
        # South America and Africa
        "E. South America Standard Time": "America/Sao_Paulo",
        "Argentina Standard Time": "America/Argentina/Buenos_Aires",
        "SA Pacific Standard Time": "America/Bogota",
        "South Africa Standard Time": "Africa/Johannesburg",
        "Egypt Standard Time": "Africa/Cairo",
        "W. Central Africa Standard Time": "Africa/Lagos",
        # Fixed offsets
        "UTC": "UTC",
        "Coordinated Universal Time": "UTC",
    }

    # Obsolete or informal names seen in older feeds
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "Z": "UTC",
        "Asia/Calcutta": "Asia/Kolkata",
        "Asia/Rangoon": "Asia/Yangon",
        "America/Godthab": "America/Nuuk",
    }

    def windows_to_iana(self, name: str) -> str | None:
        """Map a Windows zone name to its IANA identifier, or None."""
        return self.WINDOWS_TZ_MAP.get(name)

    def resolve_alias(self, name: str) -> str:
        """Map a legacy alias to its canonical name, leaving other names unchanged."""
        return self.TZ_ALIAS_MAP.get(name, name)


class TimeProvider:
    """Provides the current time with a test-time override."""

    def now(self, tzinfo: datetime.tzinfo) -> datetime.datetime:
        """Return the current time as an aware datetime in ``tzinfo``.

        Can be overridden for testing via the COMINGUP_TEST_TIME environment
        variable (ISO 8601, e.g. "2025-11-04T12:00:00Z"). A naive override
        is read as wall-clock time in ``tzinfo``.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is None:
                    return dt.replace(tzinfo=tzinfo)
                return dt.astimezone(tzinfo)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(tzinfo)


_detector = TimezoneDetector()
_time_provider = TimeProvider()


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return _detector.windows_to_iana(windows_tz)


def resolve_timezone_alias(tz_name: str) -> str:
    """Resolve timezone alias to canonical IANA timezone identifier.

    Examples:
        >>> resolve_timezone_alias("US/Pacific")
        'America/Los_Angeles'
        >>> resolve_timezone_alias("Europe/Oslo")
        'Europe/Oslo'
    """
    return _detector.resolve_alias(tz_name)


def normalize_timezone_name(tz_str: str | None) -> str | None:
    """Normalize a feed zone name to a canonical IANA identifier.

    Resolution order:
    1. Windows zone names
    2. Legacy aliases
    3. Validation against the host zone database

    Surrounding whitespace and double quotes are ignored.

    Returns:
        Canonical IANA timezone identifier or None if the name is unknown

    Examples:
        >>> normalize_timezone_name("Pacific Standard Time")
        'America/Los_Angeles'
        >>> normalize_timezone_name("Invalid/Timezone") is None
        True
    """
    if not tz_str:
        return None

    name = tz_str.strip().strip('"')
    if not name:
        return None

    candidate = windows_tz_to_iana(name) or resolve_timezone_alias(name)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone name %r", tz_str)
        return None
    return candidate


def get_zone(tz_str: str | None) -> datetime.tzinfo | None:
    """Return a tzinfo for a feed zone name, or None when it cannot be resolved."""
    name = normalize_timezone_name(tz_str)
    if name is None:
        return None
    return ZoneInfo(name)


def get_local_timezone(tz_name: str | None = None) -> datetime.tzinfo:
    """Return the zone used as "local" for every resolved instant.

    The explicit ``tz_name`` wins, then the COMINGUP_DEFAULT_TIMEZONE
    environment variable, then the host's own zone rules
    (``dateutil.tz.tzlocal``). Invalid names are logged and skipped.
    """
    for source, candidate in (("argument", tz_name), ("environment", os.environ.get(DEFAULT_TIMEZONE_ENV))):
        if not candidate:
            continue
        zone = get_zone(candidate)
        if zone is not None:
            return zone
        logger.warning("Invalid timezone %r from %s, using host local zone", candidate, source)

    return dateutil_tz.tzlocal()


def now_local(tzinfo: datetime.tzinfo | None = None) -> datetime.datetime:
    """Get the current time in ``tzinfo`` (default: the local zone).

    Honors the COMINGUP_TEST_TIME override.
    """
    return _time_provider.now(tzinfo or get_local_timezone())
