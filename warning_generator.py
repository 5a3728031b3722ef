# warning_generator.py
from datetime import date
from typing import List, Optional

from schemas import ExtractionWarning, TimelineEventType, TrackedClaimRecord, TrackedParty
from settings import settings
from timeline_normalizer import detect_lba_status


def years_before(as_of: date, years: int) -> date:
    try:
        return as_of.replace(year=as_of.year - years)
    except ValueError:  # 29 February
        return as_of.replace(year=as_of.year - years, day=28)


def _county_warning(party: Optional[TrackedParty], role: str) -> Optional[ExtractionWarning]:
    if party is None or party.postcode is None or party.county is not None:
        return None
    return ExtractionWarning(
        type="county_missing",
        message=f"{role.capitalize()} county could not be determined from postcode. Please verify.",
        field=f"{role}.county",
        severity="warning",
    )


def generate_warnings(record: TrackedClaimRecord, as_of: Optional[date] = None, config=None) -> List[ExtractionWarning]:
    """
    Advisory conditions derived from a merged record.

    Each rule is evaluated independently; none of them blocks merging or the
    stage recommendation.

    Args:
        record: merged claim record
        as_of: reference date for age checks, today when omitted
        config: settings override

    Returns:
        List of ExtractionWarning in rule order
    """
    config = config or settings
    as_of = as_of or date.today()
    warnings: List[ExtractionWarning] = []

    for party, role in ((record.defendant, "defendant"), (record.claimant, "claimant")):
        missing = _county_warning(party, role)
        if missing:
            warnings.append(missing)

    invoice = record.invoice
    if invoice and invoice.currency and invoice.currency.value != config.DOMESTIC_CURRENCY:
        warnings.append(ExtractionWarning(
            type="currency",
            message=f"Claim amount is in {invoice.currency.value}. UK courts prefer "
                    f"{config.DOMESTIC_CURRENCY} amounts.",
            field="invoice.currency",
            severity="warning",
        ))

    if invoice and invoice.total_amount and invoice.total_amount.value > config.SMALL_CLAIMS_LIMIT:
        warnings.append(ExtractionWarning(
            type="small_claims",
            message=f"Claim exceeds small claims limit (£{config.SMALL_CLAIMS_LIMIT:,.0f}). "
                    "Legal representation recommended.",
            field="invoice.total_amount",
            severity="info",
        ))

    invoice_dates = [e.date for e in record.timeline if e.type == TimelineEventType.INVOICE]
    cutoff = years_before(as_of, config.LIMITATION_YEARS).isoformat()
    if invoice_dates and min(invoice_dates) < cutoff:
        warnings.append(ExtractionWarning(
            type="limitation",
            message=f"This debt may be statute-barred (over {config.LIMITATION_YEARS} years old). "
                    "Seek legal advice.",
            field="timeline",
            severity="error",
        ))

    lba = detect_lba_status(record.timeline, as_of)
    if not lba.lba_sent:
        warnings.append(ExtractionWarning(
            type="lba_status",
            message="No Letter Before Action found. This is required before court proceedings.",
            field="timeline",
            severity="warning",
        ))
    elif lba.days_since_lba < config.LBA_RESPONSE_DAYS:
        warnings.append(ExtractionWarning(
            type="lba_status",
            message=f"LBA sent {lba.days_since_lba} days ago. Wait {config.LBA_RESPONSE_DAYS} "
                    "days before court filing.",
            field="timeline",
            severity="info",
        ))

    return warnings
