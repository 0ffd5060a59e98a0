"""Data models for feed parsing, expansion and inspection."""

from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple, Optional

from pydantic import AnyUrl, AwareDatetime, BaseModel, ConfigDict, Field, model_validator

DEFAULT_TITLE = "(No Title)"
DEFAULT_DURATION = timedelta(hours=1)


def format_utc_sortable(dt: datetime) -> str:
    """Format an instant as ``YYYY-MM-DD HH:MM:SSZ`` in UTC."""
    return dt.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%SZ")


class ExcludedInstant(NamedTuple):
    """An EXDATE entry: the excluded instant and the zone name it was written in."""

    instant: datetime
    tzid: Optional[str] = None


class _EventFields(BaseModel):
    """Fields shared by occurrences and the master records they come from."""

    model_config = ConfigDict(frozen=True)

    uid: Optional[str] = Field(default=None, description="Series identity (UID)")
    recurrence_key: Optional[AwareDatetime] = Field(
        default=None, description="Start of the instance this record overrides (RECURRENCE-ID)"
    )
    is_cancelled: bool = Field(default=False, description="STATUS:CANCELLED was present")
    title: str = Field(default=DEFAULT_TITLE, description="Event title")
    start: AwareDatetime = Field(..., description="Start instant in the local zone")
    end: AwareDatetime = Field(..., description="End instant, always after start")
    meeting_url: Optional[AnyUrl] = Field(default=None, description="Join link")
    is_free_or_placeholder: bool = Field(
        default=False, description="Marked free/transparent or a placeholder title"
    )

    @model_validator(mode="before")
    @classmethod
    def _default_end(cls, data: Any) -> Any:
        """Default ``end`` to one hour after ``start`` when absent or not after start."""
        if isinstance(data, dict):
            start = data.get("start")
            end = data.get("end")
            if isinstance(start, datetime) and (end is None or end <= start):
                data = {**data, "end": start + DEFAULT_DURATION}
        return data

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def recurrence_key_utc(self) -> Optional[datetime]:
        """The override key normalized to UTC, or None for non-overrides."""
        if self.recurrence_key is None:
            return None
        return self.recurrence_key.astimezone(UTC)


class Occurrence(_EventFields):
    """A concrete, displayable event instance."""

    def __str__(self) -> str:
        return f"{self.title} @ {format_utc_sortable(self.start)}"


class MasterRecord(_EventFields):
    """One parsed VEVENT block before expansion.

    Carries the raw recurrence rule and the EXDATE instants in addition to
    the occurrence fields. Records with a ``recurrence_key`` are overrides of
    a single instance of the series sharing their ``uid``.
    """

    recurrence_rule: Optional[str] = Field(default=None, description="Raw RRULE value")
    excluded_instants: tuple[ExcludedInstant, ...] = Field(
        default=(), description="EXDATE instants with their zone names"
    )

    @property
    def is_override(self) -> bool:
        return self.recurrence_key is not None

    def is_excluded(self, instant: datetime) -> bool:
        """True when ``instant`` equals one of the EXDATE instants exactly."""
        return any(excluded.instant == instant for excluded in self.excluded_instants)

    def to_occurrence(self) -> Occurrence:
        """The record's own instance, as written in the feed."""
        return Occurrence(
            uid=self.uid,
            recurrence_key=self.recurrence_key,
            is_cancelled=self.is_cancelled,
            title=self.title,
            start=self.start,
            end=self.end,
            meeting_url=self.meeting_url,
            is_free_or_placeholder=self.is_free_or_placeholder,
        )

    def occurrence_at(self, start: datetime) -> Occurrence:
        """A generated instance of this series starting at ``start``, same duration."""
        return Occurrence(
            uid=self.uid,
            is_cancelled=self.is_cancelled,
            title=self.title,
            start=start,
            end=start + self.duration,
            meeting_url=self.meeting_url,
            is_free_or_placeholder=self.is_free_or_placeholder,
        )


class FeedInspectionResult(BaseModel):
    """Diagnostic view of a feed: raw blocks, parsed entries and an expansion log."""

    raw_events: list[str] = Field(default_factory=list, description="Raw VEVENT blocks")
    entries: list[str] = Field(default_factory=list, description="'<start> - <end> : <title>' lines")
    expansion_log: list[str] = Field(default_factory=list, description="Per-event parse notes")
    event_count: int = Field(default=0, description="Number of VEVENT records built")
    recurring_event_count: int = Field(default=0, description="Records carrying an RRULE")
    occurrence_count: int = Field(default=0, description="Occurrences after expansion")
    strict_parse_ok: bool = Field(default=False, description="A strict RFC 5545 parser accepted the feed")
    strict_parse_error: Optional[str] = Field(default=None, description="Why the strict parser failed")

    def add_raw_event(self, block: str) -> None:
        self.raw_events.append(block)

    def add_entry(self, occurrence: Occurrence) -> None:
        self.entries.append(
            f"{format_utc_sortable(occurrence.start)} - "
            f"{format_utc_sortable(occurrence.end)} : {occurrence.title}"
        )

    def add_log(self, message: str) -> None:
        self.expansion_log.append(message)
