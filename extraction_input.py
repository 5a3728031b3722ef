"""
Validation boundary for raw AI extraction payloads.

The payload is loosely typed: any key may be missing, extra keys are kept, and
present values are checked field by field. A bad field is discarded (None)
instead of failing the payload; only a payload that is not an object at all is
rejected with ExtractionValidationError.

Conversions worth telling the user about (UK dates rewritten to ISO, amounts
given as text) are recorded as notes through the validation context.
"""

import math
from typing import Any, List, Mapping, NamedTuple, Optional

from pydantic import (
    AliasChoices, BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator,
)

from errors import ExtractionValidationError
from extraction_provider import parse_extraction_json
from field_normalizer import parse_money
from party_rules import parse_party_type
from schemas import ExtractionWarning, PartyType
from telemetry import get_logger
from timeline_normalizer import parse_date

log = get_logger("validation")


def _note(info: ValidationInfo, message: str, kind: str = "validation") -> None:
    if info.context is not None and "notes" in info.context:
        info.context["notes"].append(ExtractionWarning(type=kind, message=message, severity="info"))


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    return None


class _RawModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class RawParty(_RawModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    type: Optional[PartyType] = None
    company_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("company_number", "companyNumber"))

    @field_validator("name", "address", "city", "county", "postcode", "phone", "email",
                     "company_number", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("type", mode="before")
    @classmethod
    def _party_type(cls, v: Any, info: ValidationInfo) -> Optional[PartyType]:
        parsed = parse_party_type(v)
        if parsed is None and v not in (None, ""):
            log.debug(f"Discarding unrecognized party type {v!r}")
            _note(info, f"Unrecognized party type '{v}' ignored")
        return parsed


class RawInvoice(_RawModel):
    invoice_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("invoice_number", "invoiceNumber"))
    date_issued: Optional[str] = Field(
        None, validation_alias=AliasChoices("date_issued", "dateIssued"))
    due_date: Optional[str] = Field(
        None, validation_alias=AliasChoices("due_date", "dueDate"))
    total_amount: Optional[float] = Field(
        None, validation_alias=AliasChoices("total_amount", "totalAmount"))
    currency: Optional[str] = None
    description: Optional[str] = None

    @field_validator("invoice_number", "currency", "description", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("date_issued", "due_date", mode="before")
    @classmethod
    def _date_like(cls, v: Any, info: ValidationInfo) -> Optional[str]:
        if v in (None, ""):
            return None
        parsed = parse_date(v)
        if parsed is None:
            _note(info, f"Invalid date for invoice.{info.field_name}: '{v}' was discarded", "date_error")
            return None
        if isinstance(v, str) and v.strip() != parsed:
            _note(info, f"Converted invoice.{info.field_name} from '{v}' to {parsed}", "date_error")
        return parsed

    @field_validator("total_amount", mode="before")
    @classmethod
    def _money(cls, v: Any, info: ValidationInfo) -> Optional[float]:
        if v is None or v == "":
            return None
        amount = parse_money(v)
        if amount is None:
            _note(info, f"Invalid amount '{v}' was discarded")
        elif isinstance(v, str):
            _note(info, f"Converted amount '{v}' to {amount:.2f}")
        return amount


class RawTimelineEvent(_RawModel):
    date: Optional[str] = Field(None, validation_alias=AliasChoices("date", "when"))
    description: Optional[str] = Field(
        None, validation_alias=AliasChoices("description", "what", "event"))
    type: Optional[str] = Field(
        None, validation_alias=AliasChoices("type", "event_type", "eventType"))

    @field_validator("date", mode="before")
    @classmethod
    def _date_text(cls, v: Any) -> Optional[str]:
        if hasattr(v, "isoformat"):
            return parse_date(v)
        return v if isinstance(v, str) else None

    @field_validator("description", "type", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)


class RawLbaStatus(_RawModel):
    sent: Optional[bool] = None
    date_sent: Optional[str] = Field(
        None, validation_alias=AliasChoices("date_sent", "dateSent"))

    @field_validator("sent", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @field_validator("date_sent", mode="before")
    @classmethod
    def _date(cls, v: Any) -> Optional[str]:
        return parse_date(v)


class RawExtractionInput(_RawModel):
    """Typed-but-partial view of one AI extraction. Unknown keys stay in model_extra."""

    defendant: Optional[RawParty] = None
    claimant: Optional[RawParty] = None
    invoice: Optional[RawInvoice] = None
    timeline: List[RawTimelineEvent] = Field(default_factory=list)
    lba_status: Optional[RawLbaStatus] = Field(
        None, validation_alias=AliasChoices("lba_status", "lbaStatus"))
    recommended_document: Optional[str] = Field(
        None, validation_alias=AliasChoices("recommended_document", "recommendedDocument"))
    document_reason: Optional[str] = Field(
        None, validation_alias=AliasChoices("document_reason", "documentReason"))
    confidence: Optional[int] = None

    @field_validator("defendant", "claimant", "invoice", "lba_status", mode="before")
    @classmethod
    def _object_or_none(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or isinstance(v, BaseModel):
            return v
        if isinstance(v, Mapping):
            return dict(v)
        _note(info, f"Ignored {info.field_name}: expected an object, got {type(v).__name__}")
        return None

    @field_validator("timeline", mode="before")
    @classmethod
    def _event_list(cls, v: Any, info: ValidationInfo) -> list:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            _note(info, f"Ignored timeline: expected a list, got {type(v).__name__}")
            return []
        return [dict(e) if isinstance(e, Mapping) else e
                for e in v if isinstance(e, (Mapping, RawTimelineEvent))]

    @field_validator("recommended_document", "document_reason", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) and v.strip() else None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any, info: ValidationInfo) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        try:
            number = float(v)
        except (TypeError, ValueError, OverflowError):
            _note(info, f"Ignored non-numeric confidence '{v}'")
            return None
        if not math.isfinite(number):
            _note(info, f"Ignored non-finite confidence '{v}'")
            return None
        return max(0, min(100, int(round(number))))


class ValidatedExtraction(NamedTuple):
    data: RawExtractionInput
    notes: List[ExtractionWarning]


def validate_extraction(payload: Any) -> ValidatedExtraction:
    """
    Check a raw extraction payload against the permissive schema.

    Args:
        payload: mapping, already-validated RawExtractionInput, or JSON text

    Returns:
        ValidatedExtraction(data, notes)

    Raises:
        ExtractionValidationError: payload is not an object (or JSON text that parses to one)
    """
    if isinstance(payload, RawExtractionInput):
        return ValidatedExtraction(payload, [])
    if isinstance(payload, (str, bytes)):
        payload = parse_extraction_json(payload)
    if not isinstance(payload, Mapping):
        raise ExtractionValidationError(
            f"Extraction payload must be an object, got {type(payload).__name__}",
            payload_type=type(payload).__name__,
        )

    notes: List[ExtractionWarning] = []
    try:
        data = RawExtractionInput.model_validate(dict(payload), context={"notes": notes})
    except ValidationError as e:
        raise ExtractionValidationError(f"Extraction payload failed validation: {e}",
                                        payload_type="object") from e
    return ValidatedExtraction(data, notes)
