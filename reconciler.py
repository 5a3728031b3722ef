"""
Reconciliation merger.

Combines a normalized extraction delta with the claim record accumulated so
far. Conflicts are settled field by field on confidence alone, so extractions
can be merged in whatever order they finish:

    - existing absent            -> incoming
    - incoming absent            -> existing
    - both present               -> strictly higher confidence wins
    - equal confidence           -> existing is kept

Timelines are unioned and re-collapsed with the same dedup and ordering rules
as a single batch. Every merge returns a new record; inputs are never mutated.
"""

from typing import Any, List, NamedTuple, Optional, Sequence, Type, TypeVar

from schemas import (
    INVOICE_FIELDS, PARTY_FIELDS, TrackedClaimRecord, TrackedField, TrackedInvoice, TrackedParty,
)
from telemetry import get_logger
from timeline_normalizer import merge_timelines

log = get_logger("reconciler")

M = TypeVar("M", TrackedParty, TrackedInvoice)


class FieldConflict(NamedTuple):
    path: str
    existing_value: Any
    incoming_value: Any
    winner: str          # "existing" or "incoming"


def merge_field(existing: Optional[TrackedField], incoming: Optional[TrackedField]) -> Optional[TrackedField]:
    if existing is None:
        return incoming
    if incoming is None:
        return existing
    if incoming.confidence > existing.confidence:
        return incoming
    return existing


def _merge_model(
    existing: Optional[M],
    incoming: Optional[M],
    model: Type[M],
    field_names: Sequence[str],
    prefix: str,
) -> Optional[M]:
    if existing is None:
        return incoming
    if incoming is None:
        return existing

    merged = {}
    for name in field_names:
        old, new = getattr(existing, name), getattr(incoming, name)
        winner = merge_field(old, new)
        if old is not None and new is not None and old.value != new.value:
            if winner is new:
                log.debug(f"{prefix}.{name}: replaced {old.value!r}@{old.confidence} "
                          f"with {new.value!r}@{new.confidence}")
            else:
                log.debug(f"{prefix}.{name}: kept {old.value!r}@{old.confidence} "
                          f"over {new.value!r}@{new.confidence}")
        if winner is not None:
            merged[name] = winner
    return model(**merged)


def merge_party(existing: Optional[TrackedParty], incoming: Optional[TrackedParty],
                prefix: str = "party") -> Optional[TrackedParty]:
    return _merge_model(existing, incoming, TrackedParty, PARTY_FIELDS, prefix)


def merge_invoice(existing: Optional[TrackedInvoice], incoming: Optional[TrackedInvoice]) -> Optional[TrackedInvoice]:
    return _merge_model(existing, incoming, TrackedInvoice, INVOICE_FIELDS, "invoice")


def merge_records(existing: Optional[TrackedClaimRecord], incoming: Optional[TrackedClaimRecord]) -> TrackedClaimRecord:
    """
    Merge an incoming delta into the existing claim record.

    Idempotent: merging the same delta twice gives the same record as merging once.
    Per-field confidence never decreases.

    Args:
        existing: record held so far (None for a new claim)
        incoming: normalized delta from one extraction

    Returns:
        A new TrackedClaimRecord
    """
    existing = existing or TrackedClaimRecord()
    incoming = incoming or TrackedClaimRecord()

    merged = TrackedClaimRecord(
        claimant=merge_party(existing.claimant, incoming.claimant, "claimant"),
        defendant=merge_party(existing.defendant, incoming.defendant, "defendant"),
        invoice=merge_invoice(existing.invoice, incoming.invoice),
        timeline=merge_timelines(existing.timeline, incoming.timeline),
    )
    log.debug(f"Merged record: {len(existing.timeline)}+{len(incoming.timeline)} "
              f"timeline events -> {len(merged.timeline)}")
    return merged


def field_conflicts(existing: Optional[TrackedClaimRecord], incoming: Optional[TrackedClaimRecord]) -> List[FieldConflict]:
    """
    Field paths where both sides hold a value and the values differ.

    Used by presentation collaborators to show the user what a merge overrode
    (or refused to override).
    """
    conflicts: List[FieldConflict] = []
    if existing is None or incoming is None:
        return conflicts

    pairs = (
        ("claimant", existing.claimant, incoming.claimant, PARTY_FIELDS),
        ("defendant", existing.defendant, incoming.defendant, PARTY_FIELDS),
        ("invoice", existing.invoice, incoming.invoice, INVOICE_FIELDS),
    )
    for prefix, old_model, new_model, names in pairs:
        if old_model is None or new_model is None:
            continue
        for name in names:
            old, new = getattr(old_model, name), getattr(new_model, name)
            if old is None or new is None or old.value == new.value:
                continue
            winner = "incoming" if merge_field(old, new) is new else "existing"
            conflicts.append(FieldConflict(f"{prefix}.{name}", old.value, new.value, winner))
    return conflicts
