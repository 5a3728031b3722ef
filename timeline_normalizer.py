"""
Timeline event normalizer.

Raw AI output describes events with inconsistent keys, free-text types and
ambiguous date formats. Everything here turns that into canonical
TimelineEvent objects: one event per (date, type), sorted by date.

MAIN ENTRY POINTS
=================

normalize_timeline(raw_events, source, confidence, source_reference)
    -> List[TimelineEvent]

merge_timelines(existing, incoming)
    -> List[TimelineEvent]

detect_lba_status(events, as_of)
    -> LbaStatus
"""

import re
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional

from schemas import ExtractionSource, Provenance, TimelineEvent, TimelineEventType
from settings import settings
from telemetry import get_logger

log = get_logger("timeline")

# ========================================
# EVENT TYPE CANONICALIZATION
# ========================================

_T = TimelineEventType

TYPE_SYNONYMS = MappingProxyType({
    # Contract
    "contract": _T.CONTRACT, "agreement": _T.CONTRACT, "signed": _T.CONTRACT,
    "contract_signed": _T.CONTRACT, "agreement_signed": _T.CONTRACT, "terms_agreed": _T.CONTRACT,

    # Service delivery
    "service_delivered": _T.SERVICE_DELIVERED, "services_delivered": _T.SERVICE_DELIVERED,
    "delivered": _T.SERVICE_DELIVERED, "delivery": _T.SERVICE_DELIVERED,
    "goods_delivered": _T.SERVICE_DELIVERED, "work_completed": _T.SERVICE_DELIVERED,
    "completed": _T.SERVICE_DELIVERED, "fulfillment": _T.SERVICE_DELIVERED,
    "service_complete": _T.SERVICE_DELIVERED,

    # Invoice
    "invoice": _T.INVOICE, "invoiced": _T.INVOICE, "invoice_sent": _T.INVOICE,
    "invoice_issued": _T.INVOICE, "billed": _T.INVOICE, "billing": _T.INVOICE,

    # Payment due
    "payment_due": _T.PAYMENT_DUE, "due_date": _T.PAYMENT_DUE, "due": _T.PAYMENT_DUE,
    "deadline": _T.PAYMENT_DUE, "payment_deadline": _T.PAYMENT_DUE,

    # Part payment
    "part_payment": _T.PART_PAYMENT, "partial_payment": _T.PART_PAYMENT,
    "payment_received": _T.PART_PAYMENT, "part_paid": _T.PART_PAYMENT, "partial": _T.PART_PAYMENT,

    # Chasers / reminders
    "chaser": _T.CHASER, "reminder": _T.CHASER, "follow_up": _T.CHASER, "followup": _T.CHASER,
    "chase": _T.CHASER, "chased": _T.CHASER, "reminder_sent": _T.CHASER,
    "payment_reminder": _T.CHASER, "first_reminder": _T.CHASER,
    "second_reminder": _T.CHASER, "third_reminder": _T.CHASER,

    # Letter before action and other formal demands
    "lba_sent": _T.LBA_SENT, "lba": _T.LBA_SENT, "letter_before_action": _T.LBA_SENT,
    "final_demand": _T.LBA_SENT, "final_notice": _T.LBA_SENT, "demand_letter": _T.LBA_SENT,
    "pre_action_letter": _T.LBA_SENT, "legal_notice": _T.LBA_SENT, "formal_demand": _T.LBA_SENT,
    "7_day_notice": _T.LBA_SENT, "14_day_notice": _T.LBA_SENT, "statutory_demand": _T.LBA_SENT,

    # Acknowledgment
    "acknowledgment": _T.ACKNOWLEDGMENT, "acknowledgement": _T.ACKNOWLEDGMENT,
    "acknowledged": _T.ACKNOWLEDGMENT, "response": _T.ACKNOWLEDGMENT,
    "response_received": _T.ACKNOWLEDGMENT, "defendant_response": _T.ACKNOWLEDGMENT,

    # Communication
    "communication": _T.COMMUNICATION, "email": _T.COMMUNICATION, "phone": _T.COMMUNICATION,
    "call": _T.COMMUNICATION, "phone_call": _T.COMMUNICATION, "meeting": _T.COMMUNICATION,
    "letter": _T.COMMUNICATION, "contact": _T.COMMUNICATION,
    "correspondence": _T.COMMUNICATION, "message": _T.COMMUNICATION,
})


def normalize_event_type(raw_type: Optional[str]) -> TimelineEventType:
    """Map a free-text event type onto the closed set; unknown types become communication."""
    if not raw_type or not isinstance(raw_type, str):
        return TimelineEventType.COMMUNICATION
    key = re.sub(r"[-\s]+", "_", raw_type.lower().strip())
    key = re.sub(r"[^a-z0-9_]", "", key)
    return TYPE_SYNONYMS.get(key, TimelineEventType.COMMUNICATION)


# ========================================
# DATE PARSING
# ========================================

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ].*)?$")
UK_DATE_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2}|\d{4})$")
ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
TEXT_DATE_FORMATS = (
    "%d %B %Y", "%d %b %Y",
    "%B %d %Y", "%b %d %Y",
    "%A %d %B %Y", "%a %d %b %Y",
)


def _parse_iso(text: str) -> Optional[date]:
    if not ISO_DATE_RE.match(text):
        return None
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _parse_uk(text: str) -> Optional[date]:
    m = UK_DATE_RE.match(text)
    if not m:
        return None
    day, month, year = m.groups()
    full_year = int(f"20{year}") if len(year) == 2 else int(year)
    try:
        return date(full_year, int(month), int(day))
    except ValueError:
        return None


def _parse_text(text: str) -> Optional[date]:
    cleaned = ORDINAL_RE.sub(r"\1", text).replace(",", " ")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    for fmt in TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> Optional[str]:
    """
    Parse a loosely formatted date into an ISO calendar date string.

    Tried in order: ISO date/datetime, UK day-first numeric dates
    (15/11/2024, 15-11-24, 15.11.2024), then written dates with optional
    ordinals ("15th November 2024", "November 15th, 2024").

    US month-first numeric dates are never attempted, so 03/04/2024 is
    always 3 April.

    Returns:
        "YYYY-MM-DD", or None when the value is not a real calendar date
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    for parser in (_parse_iso, _parse_uk, _parse_text):
        parsed = parser(text)
        if parsed is not None:
            return parsed.isoformat()
    return None


# ========================================
# EVENT NORMALIZATION
# ========================================

def _first_present(raw: Any, *names: str) -> Any:
    for name in names:
        value = raw.get(name) if isinstance(raw, Mapping) else getattr(raw, name, None)
        if value not in (None, ""):
            return value
    return None


def normalize_event(
    raw: Any,
    source: ExtractionSource = ExtractionSource.CHAT,
    confidence: Optional[int] = None,
    source_reference: Optional[str] = None,
) -> Optional[TimelineEvent]:
    """
    Build one canonical event from a raw event record.

    Accepts a validated RawTimelineEvent or a plain mapping using any of the
    key variants date/when, description/what/event, type/event_type/eventType.
    Returns None when the date cannot be parsed.
    """
    raw_date = _first_present(raw, "date", "when")
    event_date = parse_date(raw_date)
    if event_date is None:
        log.debug(f"Dropping timeline event with unparsable date: {raw_date!r}")
        return None

    description = _first_present(raw, "description", "what", "event") or ""
    raw_type = _first_present(raw, "type", "event_type", "eventType")
    event_type = normalize_event_type(raw_type)

    if confidence is None:
        confidence = settings.default_confidence_for(ExtractionSource(source).value)

    return TimelineEvent(
        date=event_date,
        description=str(description).strip(),
        type=event_type,
        provenance=Provenance(
            source=source,
            confidence=max(0, min(100, int(confidence))),
            raw_value=raw_type if raw_type and raw_type != event_type.value else None,
            source_reference=source_reference,
        ),
    )


def deduplicate_events(events: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    """Collapse events sharing (date, type), keeping the longest description (first seen on ties)."""
    seen: dict = {}
    for event in events:
        existing = seen.get(event.key)
        if existing is None or len(event.description) > len(existing.description):
            seen[event.key] = event
    return list(seen.values())


def sort_events_by_date(events: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    return sorted(events, key=lambda e: e.date)


def normalize_timeline(
    raw_events: Any,
    source: ExtractionSource = ExtractionSource.CHAT,
    confidence: Optional[int] = None,
    source_reference: Optional[str] = None,
) -> List[TimelineEvent]:
    """Normalize, deduplicate and sort a raw event list. Non-list input yields an empty timeline."""
    if not isinstance(raw_events, (list, tuple)):
        return []
    normalized = []
    for raw in raw_events:
        event = normalize_event(raw, source, confidence, source_reference)
        if event is not None:
            normalized.append(event)
    result = sort_events_by_date(deduplicate_events(normalized))
    dropped = len(raw_events) - len(normalized)
    if dropped:
        log.debug(f"Timeline normalization dropped {dropped} of {len(raw_events)} events")
    return result


def merge_timelines(existing: Iterable[TimelineEvent], incoming: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    """Union of two timelines, collapsed and ordered exactly like a single batch."""
    return sort_events_by_date(deduplicate_events([*existing, *incoming]))


# ========================================
# LBA STATUS AND SUMMARIES
# ========================================

class LbaStatus(NamedTuple):
    lba_sent: bool
    lba_date: Optional[str]
    days_since_lba: Optional[int]


class TimelineSummary(NamedTuple):
    total_events: int
    has_contract: bool
    has_invoice: bool
    has_lba: bool
    last_event_date: Optional[str]
    last_event_type: Optional[TimelineEventType]


class TimelineCompleteness(NamedTuple):
    is_complete: bool
    missing_events: List[str]
    warnings: List[str]


def days_between(start_iso: str, as_of: date) -> int:
    """Whole calendar days from an ISO date to as_of (negative if in the future)."""
    return (as_of - date.fromisoformat(start_iso)).days


def detect_lba_status(events: Iterable[TimelineEvent], as_of: Optional[date] = None) -> LbaStatus:
    """Find the earliest letter-before-action event and how long ago it was sent."""
    lba_dates = sorted(e.date for e in events if e.type == TimelineEventType.LBA_SENT)
    if not lba_dates:
        return LbaStatus(False, None, None)
    as_of = as_of or date.today()
    return LbaStatus(True, lba_dates[0], days_between(lba_dates[0], as_of))


def is_lba_expired(events: Iterable[TimelineEvent], as_of: Optional[date] = None, config=None) -> bool:
    config = config or settings
    status = detect_lba_status(events, as_of)
    return status.lba_sent and status.days_since_lba >= config.LBA_RESPONSE_DAYS


def has_event(events: Iterable[TimelineEvent], event_type: TimelineEventType) -> bool:
    return any(e.type == event_type for e in events)


def timeline_summary(events: List[TimelineEvent]) -> TimelineSummary:
    ordered = sort_events_by_date(events)
    last = ordered[-1] if ordered else None
    return TimelineSummary(
        total_events=len(events),
        has_contract=has_event(events, TimelineEventType.CONTRACT),
        has_invoice=has_event(events, TimelineEventType.INVOICE),
        has_lba=has_event(events, TimelineEventType.LBA_SENT),
        last_event_date=last.date if last else None,
        last_event_type=last.type if last else None,
    )


def validate_timeline_completeness(events: List[TimelineEvent]) -> TimelineCompleteness:
    """
    Check a timeline for the events a debt claim normally rests on.

    A missing invoice makes the timeline incomplete; the other gaps are advisory.
    """
    missing: List[str] = []
    advisories: List[str] = []

    if not has_event(events, TimelineEventType.INVOICE):
        missing.append("Invoice date")
    if not has_event(events, TimelineEventType.PAYMENT_DUE):
        advisories.append("No explicit payment due date found - will infer from invoice terms")
    if not has_event(events, TimelineEventType.CONTRACT):
        advisories.append("Contract date not specified - may weaken claim if disputed")
    if not has_event(events, TimelineEventType.SERVICE_DELIVERED):
        advisories.append("Service delivery date not specified - recommended for stronger claim")

    return TimelineCompleteness(not missing, missing, advisories)
