"""VEVENT record building from parsed content lines."""

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from pydantic import AnyUrl, TypeAdapter, ValidationError

from .datetime_utils import DateTimeResolver
from .field_parser import ParsedField, unescape_text
from .models import DEFAULT_TITLE, ExcludedInstant, MasterRecord

logger = logging.getLogger(__name__)

_URL_ADAPTER = TypeAdapter(AnyUrl)

_HREF_DOUBLE = re.compile(r'href="([^"]*)"', re.IGNORECASE)
_HREF_SINGLE = re.compile(r"href='([^']*)'", re.IGNORECASE)
_BARE_HTTP = re.compile(r"http\S*", re.IGNORECASE)

# (field name, value) pairs that mark an event as free time
_FREE_MARKERS: list[tuple[str, str]] = [
    ("TRANSP", "TRANSPARENT"),
    ("STATUS", "FREE"),
    ("BUSYSTATUS", "FREE"),
    ("X-MICROSOFT-CDO-BUSYSTATUS", "FREE"),
]


def parse_absolute_url(candidate: Optional[str]) -> Optional[AnyUrl]:
    """Parse ``candidate`` as an absolute URI, returning None when it is not one.

    Bare hosts are normalized with a trailing slash
    (``https://example.com`` becomes ``https://example.com/``).
    """
    if not candidate:
        return None
    candidate = candidate.strip()
    if not candidate:
        return None
    try:
        return _URL_ADAPTER.validate_python(candidate)
    except ValidationError:
        return None


def find_description_url(description: str) -> Optional[AnyUrl]:
    """Extract a join link from a plain or HTML description.

    Candidates are tried in order: ``href="..."``, ``href='...'``, then the
    first substring starting with ``http`` up to whitespace.
    """
    candidates = []
    for pattern in (_HREF_DOUBLE, _HREF_SINGLE, _BARE_HTTP):
        match = pattern.search(description)
        if match is not None:
            candidates.append(match.group(1) if match.groups() else match.group(0))

    for candidate in candidates:
        url = parse_absolute_url(candidate)
        if url is not None:
            return url
    return None


def is_placeholder_title(summary: str) -> bool:
    """True for titles like "Free" or "Following: ..." that only hold a slot."""
    text = summary.strip().lower()
    return text == "free" or "following" in text


class BuilderState(Enum):
    """Position of the builder relative to VEVENT blocks."""

    OUTSIDE = "outside"
    IN_EVENT = "in_event"


@dataclass
class _RecordDraft:
    """Mutable accumulator for one VEVENT block."""

    title: str = DEFAULT_TITLE
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    uid: Optional[str] = None
    recurrence_key: Optional[datetime] = None
    is_cancelled: bool = False
    is_free_or_placeholder: bool = False
    meeting_url: Optional[AnyUrl] = None
    recurrence_rule: Optional[str] = None
    excluded_instants: list[ExcludedInstant] = field(default_factory=list)

    def freeze(self) -> Optional[MasterRecord]:
        """Turn the draft into an immutable record, or None when it has no start."""
        if self.start is None:
            return None
        return MasterRecord(
            uid=self.uid,
            recurrence_key=self.recurrence_key,
            is_cancelled=self.is_cancelled,
            title=self.title,
            start=self.start,
            end=self.end,
            meeting_url=self.meeting_url,
            is_free_or_placeholder=self.is_free_or_placeholder,
            recurrence_rule=self.recurrence_rule,
            excluded_instants=tuple(self.excluded_instants),
        )


class EventRecordBuilder:
    """Two-state machine turning content lines into MasterRecords.

    ``BEGIN:VEVENT`` opens a fresh draft, ``END:VEVENT`` freezes it. A second
    ``BEGIN:VEVENT`` before the matching ``END`` discards the unfinished
    draft. Components nested inside an event (VALARM) are skipped.
    """

    def __init__(self, resolver: DateTimeResolver):
        self.resolver = resolver
        self.state = BuilderState.OUTSIDE
        self.dropped_count = 0
        self._draft: Optional[_RecordDraft] = None
        self._nested_depth = 0
        self._handlers: dict[str, Callable[[_RecordDraft, ParsedField], None]] = {
            "SUMMARY": self._handle_summary,
            "DTSTART": self._handle_dtstart,
            "DTEND": self._handle_dtend,
            "EXDATE": self._handle_exdate,
            "RRULE": self._handle_rrule,
            "URL": self._handle_url,
            "ATTACH": self._handle_url,
            "DESCRIPTION": self._handle_description,
            "X-ALT-DESC": self._handle_description,
            "UID": self._handle_uid,
            "RECURRENCE-ID": self._handle_recurrence_id,
        }

    def reset(self) -> None:
        self.state = BuilderState.OUTSIDE
        self.dropped_count = 0
        self._draft = None
        self._nested_depth = 0

    def build_records(self, fields: Iterable[ParsedField]) -> Iterator[MasterRecord]:
        """Yield a MasterRecord for every complete VEVENT block in ``fields``."""
        self.reset()
        for parsed in fields:
            record = self.feed(parsed)
            if record is not None:
                yield record

    def feed(self, parsed: ParsedField) -> Optional[MasterRecord]:
        """Advance the state machine by one field; returns a record at END:VEVENT."""
        component = parsed.value.strip().upper()

        if parsed.name == "BEGIN" and component == "VEVENT":
            if self.state is BuilderState.IN_EVENT:
                logger.debug("BEGIN:VEVENT inside an open event, discarding unfinished record")
            self._draft = _RecordDraft()
            self._nested_depth = 0
            self.state = BuilderState.IN_EVENT
            return None

        if self.state is BuilderState.OUTSIDE or self._draft is None:
            return None

        if parsed.name == "END" and component == "VEVENT":
            return self._finish()

        if parsed.name == "BEGIN":
            self._nested_depth += 1
            return None
        if parsed.name == "END":
            self._nested_depth = max(0, self._nested_depth - 1)
            return None
        if self._nested_depth:
            return None

        self._apply(self._draft, parsed)
        return None

    def _finish(self) -> Optional[MasterRecord]:
        draft = self._draft
        self._draft = None
        self._nested_depth = 0
        self.state = BuilderState.OUTSIDE

        record = draft.freeze() if draft is not None else None
        if record is None:
            self.dropped_count += 1
            logger.debug("Dropping VEVENT without a usable DTSTART (title=%r)", draft and draft.title)
        return record

    def _apply(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        value_upper = parsed.value.upper()
        for name, marker in _FREE_MARKERS:
            if parsed.name == name and value_upper == marker:
                draft.is_free_or_placeholder = True

        if parsed.name == "STATUS" and value_upper == "CANCELLED":
            draft.is_cancelled = True

        handler = self._handlers.get(parsed.name)
        if handler is not None:
            handler(draft, parsed)

    def _handle_summary(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        draft.title = unescape_text(parsed.value)
        if is_placeholder_title(parsed.value):
            draft.is_free_or_placeholder = True

    def _handle_dtstart(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        resolved = self.resolver.resolve(parsed.value, parsed.tzid)
        if resolved is not None:
            draft.start = resolved

    def _handle_dtend(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        resolved = self.resolver.resolve(parsed.value, parsed.tzid)
        if resolved is not None:
            draft.end = resolved

    def _handle_exdate(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        tzid = parsed.tzid
        for token in parsed.value.split(","):
            token = token.strip()
            if not token:
                continue
            resolved = self.resolver.resolve(token, tzid)
            if resolved is not None:
                draft.excluded_instants.append(ExcludedInstant(resolved, tzid))

    def _handle_rrule(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        draft.recurrence_rule = parsed.value

    def _handle_url(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        if draft.meeting_url is None:
            draft.meeting_url = parse_absolute_url(parsed.value)

    def _handle_description(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        if draft.meeting_url is None:
            draft.meeting_url = find_description_url(unescape_text(parsed.value))

    def _handle_uid(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        draft.uid = parsed.value or None

    def _handle_recurrence_id(self, draft: _RecordDraft, parsed: ParsedField) -> None:
        resolved = self.resolver.resolve(parsed.value, parsed.tzid)
        if resolved is not None:
            draft.recurrence_key = resolved
