"""
Tests for confidence-based reconciliation of claim records.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from field_normalizer import make_provenance, tracked
from reconciler import field_conflicts, merge_field, merge_records
from schemas import (
    ExtractionSource, TimelineEvent, TimelineEventType, TrackedClaimRecord, TrackedInvoice, TrackedParty,
)

DOC = ExtractionSource.DOCUMENT
CHAT = ExtractionSource.CHAT


def _f(value, confidence, source=DOC):
    return tracked(value, make_provenance(source, confidence))


def _record(city=None, city_conf=60, amount=None, amount_conf=80, timeline=()):
    defendant = TrackedParty(name=_f("Acme Ltd", 80), city=_f(city, city_conf)) if city else None
    invoice = TrackedInvoice(total_amount=_f(amount, amount_conf)) if amount is not None else None
    return TrackedClaimRecord(defendant=defendant, invoice=invoice, timeline=list(timeline))


class TestMergeField:
    """Presence first, then strictly higher confidence."""

    def test_absent_sides(self):
        field = _f("Leeds", 60)
        assert merge_field(None, field) is field
        assert merge_field(field, None) is field
        assert merge_field(None, None) is None

    def test_higher_confidence_wins(self):
        old, new = _f("Leeds", 60), _f("Bradford", 61)
        assert merge_field(old, new) is new
        assert merge_field(new, old) is new

    def test_tie_keeps_existing(self):
        old, new = _f("Leeds", 60), _f("Bradford", 60, CHAT)
        assert merge_field(old, new) is old


class TestMergeRecords:
    """Whole-record merges."""

    def test_equal_confidence_keeps_existing_value(self):
        merged = merge_records(_record(city="Leeds"), _record(city="Bradford"))
        assert merged.defendant.city.value == "Leeds"

    def test_more_confident_delta_overrides(self):
        merged = merge_records(_record(amount=1000, amount_conf=70), _record(amount=1200, amount_conf=90))
        assert merged.invoice.total_amount.value == 1200
        assert merged.invoice.total_amount.confidence == 90

    def test_none_existing_is_empty(self):
        incoming = _record(city="Leeds")
        merged = merge_records(None, incoming)
        assert merged.defendant == incoming.defendant
        assert merge_records(None, None).is_empty()

    def test_fields_from_both_sides_kept(self):
        existing = _record(city="Leeds")
        incoming = _record(amount=500)
        merged = merge_records(existing, incoming)
        assert merged.defendant.city.value == "Leeds"
        assert merged.invoice.total_amount.value == 500

    def test_idempotent(self):
        existing = _record(city="Leeds", amount=1000)
        delta = _record(city="Bradford", city_conf=90, amount=900, amount_conf=50)
        once = merge_records(existing, delta)
        assert merge_records(once, delta) == once

    def test_confidence_never_decreases(self):
        existing = _record(city="Leeds", city_conf=90, amount=1000, amount_conf=90)
        merged = merge_records(existing, _record(city="Bradford", city_conf=40, amount=1, amount_conf=10))
        assert merged.defendant.city.confidence >= 90
        assert merged.invoice.total_amount.confidence >= 90

    def test_inputs_not_mutated(self):
        existing = _record(city="Leeds", city_conf=50)
        merge_records(existing, _record(city="Bradford", city_conf=90))
        assert existing.defendant.city.value == "Leeds"

    def test_timelines_collapse_across_batches(self):
        first = _record(timeline=[TimelineEvent(date="2024-01-20", type=TimelineEventType.CHASER,
                                                description="Chaser")])
        second = _record(timeline=[
            TimelineEvent(date="2024-01-20", type=TimelineEventType.CHASER, description="Chaser sent by email"),
            TimelineEvent(date="2024-01-02", type=TimelineEventType.INVOICE, description="Invoice"),
        ])
        merged = merge_records(first, second)
        assert [(e.date, e.type) for e in merged.timeline] == [
            ("2024-01-02", TimelineEventType.INVOICE),
            ("2024-01-20", TimelineEventType.CHASER),
        ]
        assert merged.timeline[1].description == "Chaser sent by email"


class TestFieldConflicts:
    """Differences reported for presentation."""

    def test_conflicts_and_winners(self):
        conflicts = field_conflicts(_record(city="Leeds", amount=1000, amount_conf=70),
                                    _record(city="Bradford", amount=1200, amount_conf=90))
        by_path = {c.path: c for c in conflicts}
        assert by_path["defendant.city"].winner == "existing"
        assert by_path["invoice.total_amount"].winner == "incoming"
        assert by_path["invoice.total_amount"].existing_value == 1000

    def test_equal_values_are_not_conflicts(self):
        assert field_conflicts(_record(city="Leeds"), _record(city="Leeds", city_conf=90)) == []

    def test_missing_side(self):
        assert field_conflicts(None, _record(city="Leeds")) == []
