"""Feed parsing entry point: text in, sorted occurrences out."""

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Optional

from ..core.config_manager import EngineSettings
from ..exceptions import FeedContractError
from .datetime_utils import DateTimeResolver, ensure_local
from .event_builder import EventRecordBuilder
from .event_merger import OverrideReconciler
from .field_parser import ParsedField, parse_field
from .models import MasterRecord, Occurrence
from .rrule_expander import RRuleExpanderConfig, WeeklyRecurrenceExpander
from .unfolder import unfold_lines

logger = logging.getLogger(__name__)


def iter_fields(text: str) -> Iterator[ParsedField]:
    """Yield every parseable content line of ``text``; other lines are discarded."""
    for line in unfold_lines(text):
        if not line:
            continue
        parsed = parse_field(line)
        if parsed is not None:
            yield parsed


class FeedParser:
    """Composes unfolding, field parsing, record building, expansion and reconciliation.

    Each ``parse`` call builds its own builder and expander state, so one
    parser may be shared between callers.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self.local_tz = self.settings.local_timezone()

    def normalize_now(self, now: datetime) -> datetime:
        if not isinstance(now, datetime):
            raise FeedContractError(f"now must be a datetime, got {type(now).__name__}")
        return ensure_local(now, self.local_tz)

    def parse_records(self, text: str) -> list[MasterRecord]:
        """Build the MasterRecords of ``text`` without expanding them."""
        if not isinstance(text, str):
            raise FeedContractError(f"text must be a str, got {type(text).__name__}")

        builder = EventRecordBuilder(DateTimeResolver(self.local_tz))
        records = list(builder.build_records(iter_fields(text)))
        if builder.dropped_count:
            logger.debug("Dropped %d VEVENT blocks without DTSTART", builder.dropped_count)
        return records

    def parse(self, text: str, now: datetime) -> list[Occurrence]:
        """Parse ``text`` into occurrences relative to ``now``.

        Args:
            text: Decoded feed text (may be empty)
            now: Reference time; naive values are read as local wall clock

        Returns:
            Occurrences sorted by start, unique by (start, title)

        Raises:
            FeedContractError: If ``text`` is not a str or ``now`` not a datetime
        """
        now = self.normalize_now(now)
        if not isinstance(text, str):
            raise FeedContractError(f"text must be a str, got {type(text).__name__}")
        if not text.strip():
            return []

        records = self.parse_records(text)
        expander = WeeklyRecurrenceExpander(
            self.local_tz, RRuleExpanderConfig.from_settings(self.settings)
        )
        occurrences = OverrideReconciler(expander).reconcile(records, now)

        logger.debug(
            "Parsed %d records into %d occurrences", len(records), len(occurrences)
        )
        return occurrences


def parse_feed(
    text: str,
    now: datetime,
    *,
    settings: Optional[EngineSettings] = None,
) -> list[Occurrence]:
    """Parse a calendar feed into a sorted, de-duplicated list of occurrences.

    Example:
        >>> occurrences = parse_feed(ics_text, datetime.now())
    """
    return FeedParser(settings).parse(text, now)
