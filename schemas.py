# schemas.py
from __future__ import annotations

from datetime import date as date_type, datetime, timezone
from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


# ---------- Enumerations ----------
class ExtractionSource(str, Enum):
    DOCUMENT = "document_extraction"   # uploaded PDFs / images
    CHAT = "chat_extraction"           # free-text conversation
    INTAKE = "intake_form"             # structured intake flow


class PartyType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"
    SOLE_TRADER = "sole_trader"        # treated as a business for legal-rate logic


class TimelineEventType(str, Enum):
    CONTRACT = "contract"
    SERVICE_DELIVERED = "service_delivered"
    INVOICE = "invoice"
    PAYMENT_DUE = "payment_due"
    PART_PAYMENT = "part_payment"
    CHASER = "chaser"
    LBA_SENT = "lba_sent"
    ACKNOWLEDGMENT = "acknowledgment"
    COMMUNICATION = "communication"


class DocumentType(str, Enum):
    POLITE_CHASER = "Polite Payment Reminder"
    LBA = "Letter Before Action"
    FORM_N1 = "Form N1 (Claim Form)"
    DEFAULT_JUDGMENT = "Form N225 (Default Judgment)"
    ADMISSION = "Form N225A (Judgment - Admission)"
    DEFENCE_RESPONSE = "Response to Defence"
    DIRECTIONS_QUESTIONNAIRE = "Form N180 (Directions Questionnaire)"
    PART_36_OFFER = "Part 36 Settlement Offer"
    INSTALLMENT_AGREEMENT = "Installment Payment Agreement"
    TRIAL_BUNDLE = "Trial Bundle"
    SKELETON_ARGUMENT = "Skeleton Argument"


class ClaimStage(str, Enum):
    INITIAL = "initial"                # no action taken yet
    PRE_LBA = "pre_lba"                # reminders sent, no LBA
    LBA_SENT = "lba_sent"              # LBA sent, response period running
    LBA_EXPIRED = "lba_expired"        # response period elapsed
    COURT_FILED = "court_filed"
    DEFENSE_FILED = "defense_filed"
    JUDGMENT_ENTERED = "judgment_entered"
    ENFORCEMENT = "enforcement"


Severity = Literal["info", "warning", "error"]
WarningType = Literal[
    "currency", "county_missing", "limitation", "small_claims", "date_error",
    "lba_status", "claim_strength", "enforcement", "validation",
]
ClaimStrength = Literal["high", "medium", "low"]
RelationshipContext = Literal["preserve", "neutral", "terminated"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------- Provenance-tracked values ----------
class Provenance(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: ExtractionSource
    confidence: int = Field(ge=0, le=100)
    extracted_at: str = Field(default_factory=utc_now_iso)
    raw_value: Optional[str] = None          # original value before normalization
    source_reference: Optional[str] = None   # e.g. "invoice.pdf", "chat message 3"
    inferred: bool = False                   # auto-populated (county from postcode, type from name)


class TrackedField(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True)

    value: T
    provenance: Provenance

    @property
    def confidence(self) -> int:
        return self.provenance.confidence


PARTY_FIELDS = (
    "name", "address", "city", "county", "postcode",
    "phone", "email", "type", "company_number",
)
INVOICE_FIELDS = (
    "invoice_number", "date_issued", "due_date",
    "total_amount", "currency", "description",
)


class TrackedParty(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[TrackedField[str]] = None
    address: Optional[TrackedField[str]] = None
    city: Optional[TrackedField[str]] = None
    county: Optional[TrackedField[str]] = None
    postcode: Optional[TrackedField[str]] = None
    phone: Optional[TrackedField[str]] = None
    email: Optional[TrackedField[str]] = None
    type: Optional[TrackedField[PartyType]] = None
    company_number: Optional[TrackedField[str]] = None

    def present_fields(self) -> List[str]:
        return [f for f in PARTY_FIELDS if getattr(self, f) is not None]


class TrackedInvoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    invoice_number: Optional[TrackedField[str]] = None
    date_issued: Optional[TrackedField[str]] = None
    due_date: Optional[TrackedField[str]] = None
    total_amount: Optional[TrackedField[float]] = None
    currency: Optional[TrackedField[str]] = None
    description: Optional[TrackedField[str]] = None

    def present_fields(self) -> List[str]:
        return [f for f in INVOICE_FIELDS if getattr(self, f) is not None]


class TimelineEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str                                # ISO calendar date YYYY-MM-DD
    description: str = ""
    type: TimelineEventType
    provenance: Optional[Provenance] = None

    @field_validator("date")
    @classmethod
    def _iso_calendar_date(cls, v: str) -> str:
        return date_type.fromisoformat(v).isoformat()

    @property
    def key(self) -> tuple:
        return (self.date, self.type)


class TrackedClaimRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    claimant: Optional[TrackedParty] = None
    defendant: Optional[TrackedParty] = None
    invoice: Optional[TrackedInvoice] = None
    timeline: List[TimelineEvent] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return (self.claimant is None and self.defendant is None
                and self.invoice is None and not self.timeline)


# ---------- Caller-supplied procedural signals ----------
class ClaimContext(BaseModel):
    """Signals the record itself cannot carry (court status, strength assessment, preferences)."""
    model_config = ConfigDict(frozen=True)

    court_filed: bool = False
    defendant_responded: bool = False
    judgment_obtained: bool = False
    claim_strength: Optional[ClaimStrength] = None
    relationship: Optional[RelationshipContext] = None


# ---------- Derived outputs ----------
class ExtractionWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: WarningType
    message: str
    severity: Severity
    field: Optional[str] = None


class DocumentAlternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    document: DocumentType
    reason: str


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: ClaimStage
    urgency: int = Field(ge=1, le=5)
    primary_document: DocumentType
    reason: str
    alternatives: List[DocumentAlternative] = Field(default_factory=list)
    warnings: List[ExtractionWarning] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Output bundle handed to presentation and document-generation collaborators."""
    model_config = ConfigDict(frozen=True)

    record: TrackedClaimRecord
    overall_confidence: int = 0
    extracted_fields: List[str] = Field(default_factory=list)
    needs_verification: List[str] = Field(default_factory=list)
    inferred_fields: List[str] = Field(default_factory=list)
    warnings: List[ExtractionWarning] = Field(default_factory=list)
    recommendation: Recommendation
    recommended_document: DocumentType
    document_reason: str = ""
    validation_errors: List[str] = Field(default_factory=list)
