"""
Field normalizer: one raw party or invoice value in, one provenance-tagged
TrackedField (or nothing) out.

Invalid values never raise. A postcode that is not a UK postcode, a phone number
that is not a UK number, or a money string that does not parse simply yields
no field, with a debug log line recording what was dropped.
"""

import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Optional

from party_rules import infer_party_type, parse_party_type
from postcode_lookup import clean_postcode, county_from_postcode, is_valid_uk_postcode
from schemas import (
    ExtractionSource, PartyType, Provenance, TrackedField, TrackedInvoice, TrackedParty,
)
from settings import settings
from telemetry import get_logger
from timeline_normalizer import parse_date

log = get_logger("normalizer")

UK_PHONE_REGEX = re.compile(r"^(\+44|0)[1-9]\d{8,10}$")
EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_CODE_REGEX = re.compile(r"^[A-Z]{3}$")
CURRENCY_SYMBOLS = {"£": "GBP", "$": "USD", "€": "EUR"}
_MONEY_CODE_AFFIX = re.compile(r"^(GBP|USD|EUR)|(GBP|USD|EUR)$", re.IGNORECASE)
_MONEY_NOISE = re.compile(r"[£$€,\s]")
_PENNY = Decimal("0.01")


# ---------- provenance helpers ----------
def clamp_confidence(value: Any, default: int = 80) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return max(0, min(100, int(round(number))))


def make_provenance(
    source: ExtractionSource,
    confidence: Any,
    raw_value: Optional[str] = None,
    source_reference: Optional[str] = None,
    inferred: bool = False,
) -> Provenance:
    return Provenance(
        source=source,
        confidence=clamp_confidence(confidence),
        raw_value=raw_value,
        source_reference=source_reference,
        inferred=inferred,
    )


def tracked(value: Any, provenance: Provenance) -> TrackedField:
    """Wrap a value in the TrackedField parametrization matching its type."""
    if isinstance(value, PartyType):
        return TrackedField[PartyType](value=value, provenance=provenance)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return TrackedField[float](value=float(value), provenance=provenance)
    return TrackedField[str](value=value, provenance=provenance)


def _get(raw: Any, *names: str) -> Any:
    for name in names:
        value = raw.get(name) if isinstance(raw, Mapping) else getattr(raw, name, None)
        if value is not None:
            return value
    return None


# ---------- unit-level cleanup ----------
def normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned or None


def normalize_postcode(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = clean_postcode(value)
    return cleaned if is_valid_uk_postcode(cleaned) else None


def normalize_phone(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = re.sub(r"[\s\-()]", "", value)
    return cleaned if UK_PHONE_REGEX.match(cleaned) else None


def normalize_email(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    return cleaned if EMAIL_REGEX.match(cleaned) else None


def normalize_company_number(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return re.sub(r"\s", "", value).upper() or None


def normalize_currency(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    code = CURRENCY_SYMBOLS.get(cleaned, cleaned.upper())
    return code if CURRENCY_CODE_REGEX.match(code) else None


def parse_money(value: Any) -> Optional[float]:
    """
    Coerce a number or currency-formatted string ("£12,500.00", "GBP 300") to a
    non-negative amount rounded to pence.

    Returns:
        float, or None for negative, non-finite or unparsable input
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = _MONEY_CODE_AFFIX.sub("", value.strip())
        text = _MONEY_NOISE.sub("", text)
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    try:
        return float(amount.quantize(_PENNY, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # too many digits to hold at pence resolution
        log.debug(f"Dropping amount {value!r}: out of range")
        return None


# ---------- field builders ----------
def _field(
    cleaned: Any,
    raw: Any,
    source: ExtractionSource,
    confidence: int,
    source_reference: Optional[str],
    label: str,
) -> Optional[TrackedField]:
    if cleaned is None:
        if raw not in (None, ""):
            log.debug(f"Dropping {label}: {raw!r} did not normalize")
        return None
    raw_value = raw if isinstance(raw, str) and raw != cleaned else None
    return tracked(cleaned, make_provenance(source, confidence, raw_value, source_reference))


def normalize_party(
    raw: Any,
    source: ExtractionSource,
    confidence: int,
    source_reference: Optional[str] = None,
    *,
    infer_county: bool = True,
    infer_type: bool = True,
    label: str = "party",
    config=None,
) -> Optional[TrackedParty]:
    """
    Build a TrackedParty from a raw party (validated RawParty or a mapping).

    A party without a usable name is not produced at all. County is inferred from
    a valid postcode when absent, and type from the name when absent; inferred
    fields carry fixed confidences and inferred=True.
    """
    config = config or settings
    if raw is None:
        return None
    name = normalize_text(_get(raw, "name"))
    if name is None:
        log.debug(f"Skipping {label}: no name")
        return None

    confidence = clamp_confidence(confidence, config.DEFAULT_CONFIDENCE)
    fields: Dict[str, TrackedField] = {}

    def add(field_name: str, cleaned: Any, raw_value: Any) -> None:
        built = _field(cleaned, raw_value, source, confidence, source_reference, f"{label}.{field_name}")
        if built is not None:
            fields[field_name] = built

    add("name", name, _get(raw, "name"))
    for field_name in ("address", "city", "county"):
        raw_value = _get(raw, field_name)
        add(field_name, normalize_text(raw_value), raw_value)

    raw_postcode = _get(raw, "postcode")
    add("postcode", normalize_postcode(raw_postcode), raw_postcode)
    raw_phone = _get(raw, "phone")
    add("phone", normalize_phone(raw_phone), raw_phone)
    raw_email = _get(raw, "email")
    add("email", normalize_email(raw_email), raw_email)
    raw_company = _get(raw, "company_number", "companyNumber")
    company_number = normalize_company_number(raw_company)
    add("company_number", company_number, raw_company)

    explicit_type = parse_party_type(_get(raw, "type"))
    if explicit_type is not None:
        add("type", explicit_type, None)
    elif infer_type:
        fields["type"] = tracked(
            infer_party_type(name, company_number),
            make_provenance(source, config.INFERRED_TYPE_CONFIDENCE,
                            source_reference=source_reference, inferred=True),
        )

    if infer_county and "county" not in fields and "postcode" in fields:
        county = county_from_postcode(fields["postcode"].value)
        if county:
            fields["county"] = tracked(
                county,
                make_provenance(source, config.INFERRED_COUNTY_CONFIDENCE,
                                source_reference=source_reference, inferred=True),
            )
        else:
            log.debug(f"No county known for {label} postcode {fields['postcode'].value}")

    return TrackedParty(**fields)


def normalize_invoice(
    raw: Any,
    source: ExtractionSource,
    confidence: int,
    source_reference: Optional[str] = None,
    config=None,
) -> Optional[TrackedInvoice]:
    """Build a TrackedInvoice; returns None when no invoice field survives cleanup."""
    config = config or settings
    if raw is None:
        return None
    confidence = clamp_confidence(confidence, config.DEFAULT_CONFIDENCE)
    fields: Dict[str, TrackedField] = {}

    cleaners = {
        "invoice_number": (("invoice_number", "invoiceNumber"), normalize_text),
        "date_issued": (("date_issued", "dateIssued"), parse_date),
        "due_date": (("due_date", "dueDate"), parse_date),
        "total_amount": (("total_amount", "totalAmount"), parse_money),
        "currency": (("currency",), normalize_currency),
        "description": (("description",), normalize_text),
    }
    for field_name, (keys, cleaner) in cleaners.items():
        raw_value = _get(raw, *keys)
        built = _field(cleaner(raw_value), raw_value, source, confidence,
                       source_reference, f"invoice.{field_name}")
        if built is not None:
            fields[field_name] = built

    return TrackedInvoice(**fields) if fields else None
