"""Unit tests for comingup.calendar.event_builder."""

from datetime import UTC, datetime, timedelta

import pytest

from comingup.calendar.datetime_utils import DateTimeResolver
from comingup.calendar.event_builder import (
    BuilderState,
    EventRecordBuilder,
    find_description_url,
    is_placeholder_title,
    parse_absolute_url,
)
from comingup.calendar.field_parser import parse_field
from comingup.calendar.parser import iter_fields

pytestmark = pytest.mark.unit


def _event(*lines: str) -> str:
    return "\n".join(["BEGIN:VEVENT", *lines, "END:VEVENT"])


class TestEventRecordBuilder:
    """Tests for the VEVENT state machine."""

    def setup_method(self):
        """Set up a builder with UTC as the local zone."""
        self.builder = EventRecordBuilder(DateTimeResolver(UTC))

    def build(self, text: str):
        return list(self.builder.build_records(iter_fields(text)))

    def test_minimal_event_defaults(self):
        """Test default title and one hour default duration."""
        records = self.build(_event("DTSTART:20250101T090000Z"))

        assert len(records) == 1
        record = records[0]
        assert record.title == "(No Title)"
        assert record.start == datetime(2025, 1, 1, 9, 0, tzinfo=UTC)
        assert record.end - record.start == timedelta(hours=1)
        assert record.uid is None
        assert not record.is_free_or_placeholder

    def test_end_not_after_start_is_defaulted(self):
        """Test an end before the start is replaced by start + 1 hour."""
        records = self.build(_event("DTSTART:20250101T090000Z", "DTEND:20250101T080000Z"))

        assert records[0].end == datetime(2025, 1, 1, 10, 0, tzinfo=UTC)

    def test_record_without_start_is_dropped(self):
        """Test records lacking a usable DTSTART are skipped and counted."""
        records = self.build(_event("SUMMARY:No Start Provided", "DTSTART:garbage"))

        assert records == []
        assert self.builder.dropped_count == 1

    def test_second_begin_discards_unfinished_record(self):
        """Test BEGIN:VEVENT inside an open event restarts the draft."""
        text = "\n".join(
            [
                "BEGIN:VEVENT",
                "SUMMARY:Lost",
                "DTSTART:20250101T090000Z",
                "BEGIN:VEVENT",
                "SUMMARY:Kept",
                "DTSTART:20250102T090000Z",
                "END:VEVENT",
            ]
        )

        records = self.build(text)

        assert [record.title for record in records] == ["Kept"]

    def test_fields_outside_events_are_ignored(self):
        """Test properties at calendar level do not create records."""
        text = "SUMMARY:Calendar\nDTSTART:20250101T090000Z\n" + _event(
            "SUMMARY:Inside", "DTSTART:20250102T090000Z"
        )

        assert [record.title for record in self.build(text)] == ["Inside"]

    def test_nested_alarm_fields_do_not_leak(self):
        """Test VALARM properties are not applied to the event."""
        records = self.build(
            _event(
                "SUMMARY:Review",
                "DTSTART:20250101T090000Z",
                "BEGIN:VALARM",
                "SUMMARY:Reminder",
                "DESCRIPTION:https://alarm.example.com/",
                "END:VALARM",
                "UID:review-1",
            )
        )

        assert records[0].title == "Review"
        assert records[0].meeting_url is None
        assert records[0].uid == "review-1"

    def test_state_returns_to_outside(self):
        """Test the builder is outside an event after END:VEVENT."""
        self.build(_event("DTSTART:20250101T090000Z"))

        assert self.builder.state is BuilderState.OUTSIDE

    def test_title_is_unescaped(self):
        """Test SUMMARY text escapes are decoded."""
        records = self.build(_event("SUMMARY:Team\\, Sync\\; weekly", "DTSTART:20250101T090000Z"))

        assert records[0].title == "Team, Sync; weekly"

    @pytest.mark.parametrize(
        "line",
        [
            "TRANSP:TRANSPARENT",
            "STATUS:FREE",
            "BUSYSTATUS:FREE",
            "X-MICROSOFT-CDO-BUSYSTATUS:FREE",
            "x-microsoft-cdo-busystatus:free",
        ],
    )
    def test_free_markers(self, line):
        """Test explicit free-time signals mark the record."""
        records = self.build(_event("DTSTART:20250101T090000Z", line))

        assert records[0].is_free_or_placeholder

    @pytest.mark.parametrize(
        ("summary", "expected"),
        [
            ("Free", True),
            (" free ", True),
            ("Following: Design Review", True),
            ("Design review (following up)", True),
            ("Freedom planning", False),
            ("Standup", False),
        ],
    )
    def test_placeholder_titles(self, summary, expected):
        """Test title heuristics for placeholder meetings."""
        records = self.build(_event(f"SUMMARY:{summary}", "DTSTART:20250101T090000Z"))

        assert records[0].is_free_or_placeholder is expected

    def test_opaque_busy_event_is_not_free(self):
        """Test TRANSP:OPAQUE and BUSYSTATUS:BUSY leave the flag unset."""
        records = self.build(
            _event("DTSTART:20250101T090000Z", "TRANSP:OPAQUE", "X-MICROSOFT-CDO-BUSYSTATUS:BUSY")
        )

        assert not records[0].is_free_or_placeholder

    def test_cancelled_status(self):
        """Test STATUS:CANCELLED sets the cancelled flag."""
        records = self.build(_event("DTSTART:20250101T090000Z", "STATUS:CANCELLED"))

        assert records[0].is_cancelled

    def test_exdate_list_with_tzid(self):
        """Test comma-separated EXDATE values are resolved with their TZID."""
        records = self.build(
            _event(
                "DTSTART:20250101T090000Z",
                "EXDATE;TZID=Pacific Standard Time:20250729T090500,,20250923T090500",
                "EXDATE:bogus",
            )
        )

        excluded = records[0].excluded_instants
        assert [item.instant for item in excluded] == [
            datetime(2025, 7, 29, 16, 5, tzinfo=UTC),
            datetime(2025, 9, 23, 16, 5, tzinfo=UTC),
        ]
        assert all(item.tzid == "Pacific Standard Time" for item in excluded)

    def test_rrule_uid_and_recurrence_id(self):
        """Test series identity fields are captured."""
        records = self.build(
            _event(
                "UID:series-uid",
                "DTSTART:20251225T160000Z",
                "RECURRENCE-ID:20251226T180000Z",
                "RRULE:FREQ=WEEKLY;BYDAY=FR",
            )
        )

        record = records[0]
        assert record.uid == "series-uid"
        assert record.recurrence_key == datetime(2025, 12, 26, 18, 0, tzinfo=UTC)
        assert record.recurrence_rule == "FREQ=WEEKLY;BYDAY=FR"
        assert record.is_override

    def test_url_bare_host_gets_trailing_slash(self):
        """Test URL values are normalized absolute URIs."""
        records = self.build(_event("DTSTART:20250101T090000Z", "URL:https://example.com"))

        assert str(records[0].meeting_url) == "https://example.com/"

    def test_first_valid_url_wins(self):
        """Test an invalid ATTACH is skipped and the first valid link kept."""
        records = self.build(
            _event(
                "DTSTART:20250101T090000Z",
                "ATTACH:not a url",
                "URL:https://first.example.com/join",
                "URL:https://second.example.com/join",
            )
        )

        assert str(records[0].meeting_url) == "https://first.example.com/join"

    def test_description_link_found(self):
        """Test a link inside DESCRIPTION text is extracted."""
        records = self.build(
            _event("DTSTART:20250101T090000Z", "DESCRIPTION: Join at https://example.com/meet ")
        )

        assert str(records[0].meeting_url) == "https://example.com/meet"

    def test_folded_description_link_found(self):
        """Test a link split across folded lines is reassembled."""
        text = (
            "BEGIN:VEVENT\nSUMMARY:Folded Meeting\nDTSTART:20250101T100000Z\n"
            "DESCRIPTION: First part of description\n continuation with https://example.com/folded \n"
            "END:VEVENT"
        )

        records = self.build(text)

        assert records[0].title == "Folded Meeting"
        assert str(records[0].meeting_url) == "https://example.com/folded"

    def test_html_description_href(self):
        """Test X-ALT-DESC anchors are preferred sources of links."""
        records = self.build(
            _event(
                "DTSTART:20250101T090000Z",
                'X-ALT-DESC;FMTTYPE=text/html:<p><a href="https://teams.example.com/join">Join</a></p>',
            )
        )

        assert str(records[0].meeting_url) == "https://teams.example.com/join"

    def test_url_field_takes_precedence_over_later_description(self):
        """Test descriptions only fill an empty meeting link."""
        records = self.build(
            _event(
                "DTSTART:20250101T090000Z",
                "URL:https://explicit.example.com/",
                "DESCRIPTION:https://description.example.com/",
            )
        )

        assert str(records[0].meeting_url) == "https://explicit.example.com/"

    def test_builder_can_be_reused(self):
        """Test build_records resets state between runs."""
        first = self.build(_event("SUMMARY:No start"))
        second = self.build(_event("DTSTART:20250101T090000Z"))

        assert first == []
        assert len(second) == 1
        assert self.builder.dropped_count == 0


class TestUrlHelpers:
    """Tests for link extraction helpers."""

    def test_parse_absolute_url_rejects_relative(self):
        """Test relative references are not meeting links."""
        assert parse_absolute_url("example.com/meet") is None
        assert parse_absolute_url("") is None
        assert parse_absolute_url(None) is None

    def test_single_quoted_href(self):
        """Test single-quoted href attributes are recognized."""
        url = find_description_url("<a href='https://example.com/sq'>join</a>")

        assert str(url) == "https://example.com/sq"

    def test_bare_link_scheme_is_case_insensitive(self):
        """Test upper-case schemes in plain text are still found."""
        url = find_description_url("Join at HTTPS://Example.com/meet today")

        assert url is not None
        assert str(url) == "https://example.com/meet"

    def test_no_link(self):
        """Test descriptions without links give None."""
        assert find_description_url("Agenda:\nitem one") is None

    def test_is_placeholder_title(self):
        """Test the placeholder heuristic directly."""
        assert is_placeholder_title("FREE")
        assert not is_placeholder_title("Busy")

    def test_parse_field_then_feed(self):
        """Test feeding fields one by one returns the record at END:VEVENT."""
        builder = EventRecordBuilder(DateTimeResolver(UTC))
        results = [
            builder.feed(parse_field(line))
            for line in ["BEGIN:VEVENT", "DTSTART:20250101T090000Z", "END:VEVENT"]
        ]

        assert results[:2] == [None, None]
        assert results[2] is not None
        assert results[2].start == datetime(2025, 1, 1, 9, tzinfo=UTC)
