"""Shared fixtures for comingup tests."""

from collections.abc import Generator
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from comingup.core.config_manager import EngineSettings

_ENV_VARS = (
    "COMINGUP_TEST_TIME",
    "COMINGUP_DEFAULT_TIMEZONE",
    "COMINGUP_HORIZON_MONTHS",
    "COMINGUP_MAX_GENERATED_WEEKS",
    "COMINGUP_GRACE_SECONDS",
    "COMINGUP_IGNORE_FREE",
    "COMINGUP_LOG_LEVEL",
    "COMINGUP_DEBUG",
)


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: End-to-end feed parsing tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear COMINGUP_* variables so host configuration cannot leak into tests.

    The local zone and the clock both read the environment; every test
    starts from the built-in defaults.
    """
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def utc() -> ZoneInfo:
    """UTC zone used as the local zone in most tests."""
    return ZoneInfo("UTC")


@pytest.fixture
def pacific() -> ZoneInfo:
    """A zone with DST, for wall-clock behaviour."""
    return ZoneInfo("America/Los_Angeles")


@pytest.fixture
def utc_settings() -> EngineSettings:
    """Engine settings with UTC as the local zone.

    Using a fixed zone avoids host-local timezone differences which would
    make datetime-sensitive tests flaky.
    """
    return EngineSettings(default_timezone="UTC")


@pytest.fixture
def pacific_settings() -> EngineSettings:
    """Engine settings with America/Los_Angeles as the local zone."""
    return EngineSettings(default_timezone="America/Los_Angeles")


@pytest.fixture
def reference_now(utc: ZoneInfo) -> datetime:
    """A fixed reference time: Tuesday 2025-11-04 08:00 UTC."""
    return datetime(2025, 11, 4, 8, 0, tzinfo=utc)


@pytest.fixture
def sample_ics_single() -> str:
    """A one-event calendar with a join link in the description."""
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//comingup//tests//EN\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:standup-1\r\n"
        "SUMMARY:Standup\r\n"
        "DTSTART:20251104T090500Z\r\n"
        "DTEND:20251104T093000Z\r\n"
        "DESCRIPTION:Join at https://meet.example.com/standup\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )


@pytest.fixture
def sample_ics_recurring() -> str:
    """A weekly Friday series with one cancelled instance and an unrelated meeting."""
    return (
        "BEGIN:VCALENDAR\n"
        "VERSION:2.0\n"
        "PRODID:-//comingup//tests//EN\n"
        "BEGIN:VEVENT\n"
        "UID:exercise-pinny\n"
        "SUMMARY:Exercise @ Pinny\n"
        "DTSTART:20251219T180000Z\n"
        "DTEND:20251219T190000Z\n"
        "RRULE:FREQ=WEEKLY;BYDAY=FR;UNTIL=20260131T235900Z\n"
        "STATUS:CONFIRMED\n"
        "END:VEVENT\n"
        "BEGIN:VEVENT\n"
        "UID:exercise-pinny\n"
        "SUMMARY:Exercise @ Pinny\n"
        "RECURRENCE-ID:20251226T180000Z\n"
        "DTSTART:20251226T180000Z\n"
        "DTEND:20251226T190000Z\n"
        "STATUS:CANCELLED\n"
        "END:VEVENT\n"
        "BEGIN:VEVENT\n"
        "UID:team-sync\n"
        "SUMMARY:Team Sync\n"
        "DTSTART:20251226T190000Z\n"
        "DTEND:20251226T193000Z\n"
        "STATUS:CONFIRMED\n"
        "END:VEVENT\n"
        "END:VCALENDAR\n"
    )
