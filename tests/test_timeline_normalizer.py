"""
Tests for timeline canonicalization: event types, date parsing, dedup and
ordering, and LBA status detection.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from schemas import ExtractionSource, TimelineEvent, TimelineEventType
from settings import ClaimReconSettings
from timeline_normalizer import (
    deduplicate_events,
    detect_lba_status,
    is_lba_expired,
    merge_timelines,
    normalize_event,
    normalize_event_type,
    normalize_timeline,
    parse_date,
    timeline_summary,
    validate_timeline_completeness,
)

AS_OF = date(2024, 3, 1)


def _event(day: str, event_type: TimelineEventType, description: str = "") -> TimelineEvent:
    return TimelineEvent(date=day, type=event_type, description=description)


class TestEventTypeCanonicalization:
    """Free-text event types map onto the closed set."""

    @pytest.mark.parametrize("raw,expected", [
        ("reminder", TimelineEventType.CHASER),
        ("Follow-up", TimelineEventType.CHASER),
        ("Final Demand", TimelineEventType.LBA_SENT),
        ("7-day notice", TimelineEventType.LBA_SENT),
        ("statutory_demand", TimelineEventType.LBA_SENT),
        ("LBA!", TimelineEventType.LBA_SENT),
        ("invoiced", TimelineEventType.INVOICE),
        ("Due Date", TimelineEventType.PAYMENT_DUE),
        ("acknowledgement", TimelineEventType.ACKNOWLEDGMENT),
        ("work completed", TimelineEventType.SERVICE_DELIVERED),
    ])
    def test_synonyms(self, raw, expected):
        assert normalize_event_type(raw) == expected

    def test_unknown_type_is_communication(self):
        """Unrecognized types are never rejected."""
        assert normalize_event_type("site visit") == TimelineEventType.COMMUNICATION

    def test_missing_type_is_communication(self):
        assert normalize_event_type(None) == TimelineEventType.COMMUNICATION
        assert normalize_event_type("") == TimelineEventType.COMMUNICATION


class TestParseDate:
    """Dates in ISO, UK numeric and written forms all become ISO calendar dates."""

    def test_round_trip_formats(self):
        """The three supported families agree on the same day."""
        assert parse_date("15/11/2024") == "2024-11-15"
        assert parse_date("2024-11-15") == "2024-11-15"
        assert parse_date("15th November 2024") == "2024-11-15"

    def test_iso_datetime(self):
        assert parse_date("2024-11-15T10:30:00Z") == "2024-11-15"

    def test_uk_separators_and_short_year(self):
        assert parse_date("1.2.2025") == "2025-02-01"
        assert parse_date("15-11-24") == "2024-11-15"

    def test_day_first_is_never_month_first(self):
        """03/04/2024 is 3 April."""
        assert parse_date("03/04/2024") == "2024-04-03"

    def test_written_month_first(self):
        assert parse_date("November 15th, 2024") == "2024-11-15"
        assert parse_date("1st January 2025") == "2025-01-01"

    def test_impossible_date_is_unparsable(self):
        assert parse_date("31/02/2024") is None

    def test_three_digit_year_rejected(self):
        assert parse_date("15/11/124") is None

    def test_garbage_and_empty(self):
        assert parse_date("sometime last spring") is None
        assert parse_date("") is None
        assert parse_date(None) is None
        assert parse_date(20241115) is None

    def test_date_objects(self):
        assert parse_date(date(2024, 11, 15)) == "2024-11-15"


class TestNormalizeEvent:
    """Single raw records with varying key names."""

    def test_alternate_keys(self):
        event = normalize_event(
            {"when": "15/11/2024", "what": "  Invoice INV-7 sent ", "event_type": "invoiced"},
            ExtractionSource.DOCUMENT, 85, "invoice.pdf",
        )
        assert event.date == "2024-11-15"
        assert event.type == TimelineEventType.INVOICE
        assert event.description == "Invoice INV-7 sent"
        assert event.provenance.confidence == 85
        assert event.provenance.raw_value == "invoiced"
        assert event.provenance.source_reference == "invoice.pdf"

    def test_camel_case_type_key(self):
        event = normalize_event({"date": "2024-01-10", "event": "Chased by phone", "eventType": "chase"})
        assert event.type == TimelineEventType.CHASER
        assert event.description == "Chased by phone"

    def test_canonical_type_has_no_raw_value(self):
        event = normalize_event({"date": "2024-01-10", "type": "chaser"}, confidence=80)
        assert event.provenance.raw_value is None

    def test_unparsable_date_drops_event(self):
        assert normalize_event({"date": "next week", "type": "chaser"}) is None

    def test_confidence_is_clamped(self):
        event = normalize_event({"date": "2024-01-10"}, confidence=140)
        assert event.provenance.confidence == 100


class TestNormalizeTimeline:
    """Whole batches: bad events are dropped, not the batch."""

    def test_bad_event_dropped_rest_kept(self):
        events = normalize_timeline([
            {"date": "2024-02-01", "type": "chaser"},
            {"date": "31/02/2024", "type": "chaser"},
            {"date": "2024-01-10", "type": "invoice"},
        ], confidence=80)
        assert [e.date for e in events] == ["2024-01-10", "2024-02-01"]

    def test_non_list_input(self):
        assert normalize_timeline("not a list") == []
        assert normalize_timeline(None) == []

    def test_within_batch_duplicates_collapse(self):
        events = normalize_timeline([
            {"date": "2024-01-10", "type": "reminder", "description": "Email"},
            {"date": "10/01/2024", "type": "chaser", "description": "Email reminder with invoice attached"},
        ], confidence=80)
        assert len(events) == 1
        assert events[0].description == "Email reminder with invoice attached"


class TestDeduplication:
    """No two surviving events share (date, type)."""

    def test_longer_description_survives(self):
        events = deduplicate_events([
            _event("2024-01-10", TimelineEventType.CHASER, "long description here"),
            _event("2024-01-10", TimelineEventType.CHASER, "short"),
        ])
        assert len(events) == 1
        assert events[0].description == "long description here"

    def test_first_seen_wins_on_equal_length(self):
        events = deduplicate_events([
            _event("2024-01-10", TimelineEventType.CHASER, "aaaa"),
            _event("2024-01-10", TimelineEventType.CHASER, "bbbb"),
        ])
        assert events[0].description == "aaaa"

    def test_same_date_different_type_both_kept(self):
        events = deduplicate_events([
            _event("2024-01-10", TimelineEventType.CHASER),
            _event("2024-01-10", TimelineEventType.INVOICE),
        ])
        assert len(events) == 2

    def test_invariant_holds_after_merge(self):
        existing = [_event("2024-01-10", TimelineEventType.INVOICE, "Invoice"),
                    _event("2024-01-20", TimelineEventType.CHASER, "First chaser")]
        incoming = [_event("2024-01-20", TimelineEventType.CHASER, "First chaser by email"),
                    _event("2024-01-05", TimelineEventType.CONTRACT, "Signed")]
        merged = merge_timelines(existing, incoming)
        keys = [e.key for e in merged]
        assert len(keys) == len(set(keys))
        assert [e.date for e in merged] == ["2024-01-05", "2024-01-10", "2024-01-20"]
        assert merged[-1].description == "First chaser by email"

    def test_merge_is_idempotent(self):
        existing = [_event("2024-01-10", TimelineEventType.INVOICE, "Invoice")]
        incoming = [_event("2024-01-20", TimelineEventType.CHASER, "Chaser")]
        once = merge_timelines(existing, incoming)
        assert merge_timelines(once, incoming) == once


class TestLbaStatus:
    """LBA detection against an explicit reference date."""

    def test_no_lba(self):
        status = detect_lba_status([_event("2024-01-10", TimelineEventType.INVOICE)], AS_OF)
        assert status.lba_sent is False
        assert status.lba_date is None
        assert status.days_since_lba is None

    def test_days_since_lba(self):
        status = detect_lba_status([_event("2024-02-10", TimelineEventType.LBA_SENT)], AS_OF)
        assert status.lba_sent is True
        assert status.lba_date == "2024-02-10"
        assert status.days_since_lba == 20

    def test_earliest_lba_is_used(self):
        status = detect_lba_status([
            _event("2024-02-20", TimelineEventType.LBA_SENT),
            _event("2024-02-01", TimelineEventType.LBA_SENT),
        ], AS_OF)
        assert status.lba_date == "2024-02-01"

    def test_expiry_boundary(self):
        config = ClaimReconSettings(LBA_RESPONSE_DAYS=14)
        assert is_lba_expired([_event("2024-02-16", TimelineEventType.LBA_SENT)], AS_OF, config)
        assert not is_lba_expired([_event("2024-02-17", TimelineEventType.LBA_SENT)], AS_OF, config)
        assert not is_lba_expired([], AS_OF, config)


class TestSummaries:
    """Timeline summary and completeness checks."""

    def test_summary(self):
        summary = timeline_summary([
            _event("2024-02-01", TimelineEventType.CHASER),
            _event("2024-01-10", TimelineEventType.INVOICE),
        ])
        assert summary.total_events == 2
        assert summary.has_invoice is True
        assert summary.has_lba is False
        assert summary.last_event_date == "2024-02-01"
        assert summary.last_event_type == TimelineEventType.CHASER

    def test_empty_summary(self):
        summary = timeline_summary([])
        assert summary.total_events == 0
        assert summary.last_event_date is None

    def test_missing_invoice_is_blocking(self):
        check = validate_timeline_completeness([])
        assert check.is_complete is False
        assert check.missing_events == ["Invoice date"]
        assert len(check.warnings) == 3

    def test_invoice_present_is_complete(self):
        check = validate_timeline_completeness([_event("2024-01-10", TimelineEventType.INVOICE)])
        assert check.is_complete is True
