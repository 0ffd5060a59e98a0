"""Weekly RRULE expansion for parsed master records."""

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from ..core.config_manager import (
    DEFAULT_HORIZON_MONTHS,
    DEFAULT_MAX_GENERATED_WEEKS,
    DEFAULT_UNTIL_SLACK_DAYS,
)
from ..exceptions import RRuleParseError
from .datetime_utils import DateTimeResolver
from .models import MasterRecord, Occurrence

logger = logging.getLogger(__name__)

# Two-letter BYDAY tokens, Monday = 0 as in datetime.weekday()
WEEKDAY_CODES: dict[str, int] = {
    "MO": 0,
    "TU": 1,
    "WE": 2,
    "TH": 3,
    "FR": 4,
    "SA": 5,
    "SU": 6,
}


@dataclass
class RRuleExpanderConfig:
    """Limits for weekly expansion.

    Consolidates the expansion settings with explicit defaults.
    """

    horizon_months: int = DEFAULT_HORIZON_MONTHS
    max_generated_weeks: int = DEFAULT_MAX_GENERATED_WEEKS
    until_slack_days: int = DEFAULT_UNTIL_SLACK_DAYS

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract expansion configuration from a settings object."""
        return cls(
            horizon_months=getattr(settings, "horizon_months", DEFAULT_HORIZON_MONTHS),
            max_generated_weeks=getattr(settings, "max_generated_weeks", DEFAULT_MAX_GENERATED_WEEKS),
            until_slack_days=getattr(settings, "until_slack_days", DEFAULT_UNTIL_SLACK_DAYS),
        )


@dataclass
class RecurrenceRule:
    """The parts of an RRULE the expander understands."""

    freq: str
    interval: int = 1
    by_day: list[int] = field(default_factory=list)
    until: Optional[datetime] = None
    parts: dict[str, str] = field(default_factory=dict)


def parse_rrule_string(rrule_string: str, resolver: Optional[DateTimeResolver] = None) -> RecurrenceRule:
    """Parse an RRULE value such as ``FREQ=WEEKLY;INTERVAL=2;BYDAY=TU,TH``.

    Args:
        rrule_string: Raw RRULE value
        resolver: Resolves UNTIL; UNTIL is left unset without one

    Returns:
        RecurrenceRule with FREQ upper-cased, INTERVAL coerced to a positive
        integer and BYDAY mapped to weekday numbers (unknown tokens skipped)

    Raises:
        RRuleParseError: If the rule is empty or has no FREQ
    """
    if not rrule_string or not rrule_string.strip():
        raise RRuleParseError("Empty RRULE")

    parts: dict[str, str] = {}
    for segment in rrule_string.split(";"):
        if "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        key = key.strip().upper()
        if key:
            parts[key] = value.strip()

    freq = parts.get("FREQ", "").upper()
    if not freq:
        raise RRuleParseError(f"RRULE missing FREQ: {rrule_string!r}")

    interval = 1
    raw_interval = parts.get("INTERVAL")
    if raw_interval:
        try:
            interval = int(raw_interval)
        except ValueError:
            logger.debug("Non-numeric INTERVAL %r, using 1", raw_interval)
        if interval <= 0:
            interval = 1

    by_day = []
    for token in parts.get("BYDAY", "").split(","):
        weekday = WEEKDAY_CODES.get(token.strip().upper())
        if weekday is not None and weekday not in by_day:
            by_day.append(weekday)

    until = None
    if resolver is not None and parts.get("UNTIL"):
        until = resolver.resolve(parts["UNTIL"])

    return RecurrenceRule(freq=freq, interval=interval, by_day=by_day, until=until, parts=parts)


class WeeklyRecurrenceExpander:
    """Expands ``FREQ=WEEKLY`` masters into concrete future occurrences.

    Other frequencies produce nothing. Arithmetic runs on the wall clock of
    the master's zone so a 9:05 meeting stays at 9:05 across DST changes.
    """

    def __init__(self, local_tz: tzinfo, config: Optional[RRuleExpanderConfig] = None):
        self.local_tz = local_tz
        self.config = config or RRuleExpanderConfig()
        self.resolver = DateTimeResolver(local_tz)

    def default_horizon(self, now: datetime) -> datetime:
        """The UNTIL used for open-ended series: ``now`` plus the horizon in calendar months."""
        return now + relativedelta(months=self.config.horizon_months)

    def expand(
        self,
        master: MasterRecord,
        now: datetime,
        horizon: Optional[datetime] = None,
    ) -> Iterator[Occurrence]:
        """Yield the generated instances of ``master`` (its own start excluded).

        Args:
            master: Record carrying the RRULE
            now: Reference time; instances before it are skipped
            horizon: Bound for series without UNTIL (default now + horizon months)
        """
        if not master.recurrence_rule:
            return

        try:
            rule = parse_rrule_string(master.recurrence_rule, self.resolver)
        except RRuleParseError as e:
            logger.debug("Skipping expansion for %r: %s", master.title, e)
            return

        if rule.freq != "WEEKLY":
            logger.debug("Unsupported FREQ=%s for %r, not expanding", rule.freq, master.title)
            return

        yield from self._expand_weekly(master, rule, now, horizon)

    def _expand_weekly(
        self,
        master: MasterRecord,
        rule: RecurrenceRule,
        now: datetime,
        horizon: Optional[datetime],
    ) -> Iterator[Occurrence]:
        zone = master.start.tzinfo
        start = master.start.replace(tzinfo=None)
        now_wall = now.astimezone(zone).replace(tzinfo=None)

        until = rule.until if rule.until is not None else horizon
        if until is None:
            until = self.default_horizon(now)
        until_wall = until.astimezone(zone).replace(tzinfo=None)

        by_day = rule.by_day or [start.weekday()]
        period = timedelta(days=7 * rule.interval)
        time_of_day = start.time()

        anchor = start
        if anchor < now_wall:
            days_between = (now_wall.date() - start.date()).days
            periods_elapsed = math.floor(days_between / (7 * rule.interval))
            anchor = start + max(0, periods_elapsed - 1) * period

        limit = until_wall + timedelta(days=self.config.until_slack_days)
        generated = 0
        emitted = 0
        while anchor <= limit and generated < self.config.max_generated_weeks:
            week_date = anchor.date()
            for weekday in by_day:
                diff = weekday - week_date.weekday()
                if diff < 0:
                    diff += 7
                candidate = datetime.combine(week_date + timedelta(days=diff), time_of_day)
                if candidate <= start or candidate > until_wall or candidate < now_wall:
                    continue
                candidate_start = candidate.replace(tzinfo=zone)
                if master.is_excluded(candidate_start):
                    continue
                emitted += 1
                yield master.occurrence_at(candidate_start)

            anchor += period
            generated += 1

        logger.debug(
            "Expanded %r: %d occurrences over %d weeks (interval=%d, until=%s)",
            master.title,
            emitted,
            generated,
            rule.interval,
            until_wall.isoformat(),
        )
