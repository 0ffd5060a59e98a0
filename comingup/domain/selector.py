"""Next-meeting selection and the one-line summary shown to users."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from ..calendar.datetime_utils import ensure_local, format_clock_time, format_day_clock_time
from ..calendar.models import Occurrence
from ..core.config_manager import DEFAULT_GRACE_SECONDS
from ..exceptions import FeedContractError

logger = logging.getLogger(__name__)

NO_UPCOMING_TEXT = "No upcoming meetings"


def _check_now(now: datetime) -> None:
    if not isinstance(now, datetime):
        raise FeedContractError(f"now must be a datetime, got {type(now).__name__}")


def upcoming_candidates(
    occurrences: Iterable[Occurrence],
    now: datetime,
    ignore_free_or_placeholder: bool = True,
    grace_seconds: int = DEFAULT_GRACE_SECONDS,
) -> list[Occurrence]:
    """Occurrences starting no earlier than ``now`` minus the grace window, input order kept.

    Free and placeholder entries are dropped when ``ignore_free_or_placeholder``
    is set.
    """
    _check_now(now)
    cutoff = now - timedelta(seconds=grace_seconds)

    candidates = []
    for occurrence in occurrences:
        if occurrence.start.tzinfo is not None and cutoff.tzinfo is None:
            threshold = ensure_local(cutoff, occurrence.start.tzinfo)
        else:
            threshold = cutoff
        if occurrence.start < threshold:
            continue
        if ignore_free_or_placeholder and occurrence.is_free_or_placeholder:
            continue
        candidates.append(occurrence)
    return candidates


def select_next(
    occurrences: Iterable[Occurrence],
    now: datetime,
    ignore_free_or_placeholder: bool = True,
    grace_seconds: int = DEFAULT_GRACE_SECONDS,
) -> Optional[Occurrence]:
    """Pick the earliest upcoming occurrence; ties go to the one listed first.

    Returns:
        The selected occurrence, or None when nothing qualifies
    """
    candidates = upcoming_candidates(occurrences, now, ignore_free_or_placeholder, grace_seconds)
    if not candidates:
        return None
    # min() returns the first of equal keys, which keeps input order on ties
    return min(candidates, key=lambda occurrence: occurrence.start)


def select_following(
    occurrences: Iterable[Occurrence],
    now: datetime,
    ignore_free_or_placeholder: bool = True,
    grace_seconds: int = DEFAULT_GRACE_SECONDS,
) -> Optional[Occurrence]:
    """Pick the occurrence that comes after the one ``select_next`` returns.

    Returns:
        The second upcoming occurrence, or None when fewer than two qualify
    """
    candidates = upcoming_candidates(occurrences, now, ignore_free_or_placeholder, grace_seconds)
    if len(candidates) < 2:
        return None
    ordered = sorted(candidates, key=lambda occurrence: occurrence.start)
    return ordered[1]


def format_summary_line(occurrence: Optional[Occurrence], now: datetime) -> str:
    """Render the one-line summary, e.g. "Next: Standup (9:05 AM)".

    The time is shown as "h:mm AM" when the occurrence starts on the same
    local date as ``now``, otherwise as "Tue 9:05 AM".
    """
    if occurrence is None:
        return NO_UPCOMING_TEXT

    _check_now(now)
    start = occurrence.start
    local_now = ensure_local(now, start.tzinfo)

    if start.date() == local_now.date():
        when = format_clock_time(start)
    else:
        when = format_day_clock_time(start)
    return f"Next: {occurrence.title} ({when})"
