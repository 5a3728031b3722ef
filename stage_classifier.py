"""
Stage classifier and document recommender.

A deterministic state machine over the merged claim record plus the procedural
signals the caller supplies (ClaimContext). Signals are read in fixed priority:

    1. judgment obtained            -> enforcement
    2. court filed                  -> defense_filed / court_filed
    3. letter before action sent    -> lba_expired / lba_sent
    4. any chaser sent              -> pre_lba
    5. otherwise                    -> initial

Nothing here raises: missing signals fall through to the earlier stage.
Once a chaser has been sent the reminder is never recommended again.
"""

from datetime import date
from types import MappingProxyType
from typing import List, Optional

from schemas import (
    ClaimContext, ClaimStage, DocumentAlternative, DocumentType, ExtractionWarning,
    Recommendation, TimelineEventType, TrackedClaimRecord,
)
from settings import settings
from telemetry import get_logger
from timeline_normalizer import days_between, detect_lba_status, has_event

log = get_logger("classifier")

# ========================================
# DOCUMENT NAME MAPPING
# ========================================

DOCUMENT_SYNONYMS = MappingProxyType({
    # Polite reminder
    "polite payment reminder": DocumentType.POLITE_CHASER,
    "polite reminder": DocumentType.POLITE_CHASER,
    "payment reminder": DocumentType.POLITE_CHASER,
    "friendly reminder": DocumentType.POLITE_CHASER,
    "reminder": DocumentType.POLITE_CHASER,
    "chaser": DocumentType.POLITE_CHASER,

    # Letter before action
    "letter before action": DocumentType.LBA,
    "letter before claim": DocumentType.LBA,
    "pre-action letter": DocumentType.LBA,
    "final demand": DocumentType.LBA,
    "formal demand": DocumentType.LBA,
    "lba": DocumentType.LBA,

    # Claim form
    "form n1 (claim form)": DocumentType.FORM_N1,
    "form n1": DocumentType.FORM_N1,
    "claim form": DocumentType.FORM_N1,
    "court claim": DocumentType.FORM_N1,
    "money claim": DocumentType.FORM_N1,
    "n1": DocumentType.FORM_N1,

    # Default judgment
    "form n225 (default judgment)": DocumentType.DEFAULT_JUDGMENT,
    "form n225": DocumentType.DEFAULT_JUDGMENT,
    "default judgment": DocumentType.DEFAULT_JUDGMENT,
    "n225": DocumentType.DEFAULT_JUDGMENT,

    # Judgment on admission
    "form n225a": DocumentType.ADMISSION,
    "judgment admission": DocumentType.ADMISSION,
    "n225a": DocumentType.ADMISSION,

    # Directions questionnaire
    "form n180": DocumentType.DIRECTIONS_QUESTIONNAIRE,
    "directions questionnaire": DocumentType.DIRECTIONS_QUESTIONNAIRE,
    "n180": DocumentType.DIRECTIONS_QUESTIONNAIRE,

    # Settlement
    "part 36 settlement offer": DocumentType.PART_36_OFFER,
    "part 36 offer": DocumentType.PART_36_OFFER,
    "settlement offer": DocumentType.PART_36_OFFER,
    "part 36": DocumentType.PART_36_OFFER,

    # Instalments
    "installment payment agreement": DocumentType.INSTALLMENT_AGREEMENT,
    "installment agreement": DocumentType.INSTALLMENT_AGREEMENT,
    "instalment agreement": DocumentType.INSTALLMENT_AGREEMENT,
    "payment plan": DocumentType.INSTALLMENT_AGREEMENT,
    "payment arrangement": DocumentType.INSTALLMENT_AGREEMENT,

    # Trial preparation
    "response to defence": DocumentType.DEFENCE_RESPONSE,
    "reply to defence": DocumentType.DEFENCE_RESPONSE,
    "trial bundle": DocumentType.TRIAL_BUNDLE,
    "skeleton argument": DocumentType.SKELETON_ARGUMENT,
})

# longest synonym first so "n180" is never read as "n1"
_SYNONYMS_BY_LENGTH = tuple(sorted(DOCUMENT_SYNONYMS.items(), key=lambda kv: (-len(kv[0]), kv[0])))

SHORT_NAMES = MappingProxyType({
    DocumentType.POLITE_CHASER: "Reminder",
    DocumentType.LBA: "LBA",
    DocumentType.FORM_N1: "N1 Form",
    DocumentType.DEFAULT_JUDGMENT: "N225",
    DocumentType.ADMISSION: "N225A",
    DocumentType.DEFENCE_RESPONSE: "Defence Reply",
    DocumentType.DIRECTIONS_QUESTIONNAIRE: "N180",
    DocumentType.PART_36_OFFER: "Part 36",
    DocumentType.INSTALLMENT_AGREEMENT: "Installments",
    DocumentType.TRIAL_BUNDLE: "Trial Bundle",
    DocumentType.SKELETON_ARGUMENT: "Skeleton",
})


def map_to_document_type(text: Optional[str]) -> DocumentType:
    """Map a loosely worded document suggestion onto a DocumentType, defaulting to the LBA."""
    if not text or not isinstance(text, str):
        return DocumentType.LBA
    normalized = text.lower().strip()
    for synonym, document in _SYNONYMS_BY_LENGTH:
        if synonym in normalized:
            return document
    log.debug(f"No document synonym matched {text!r}; defaulting to LBA")
    return DocumentType.LBA


def document_short_name(document: DocumentType) -> str:
    return SHORT_NAMES.get(document, "Document")


def is_small_claims(amount: Optional[float], config=None) -> bool:
    config = config or settings
    if not amount:
        return True
    return amount <= config.SMALL_CLAIMS_LIMIT


# ========================================
# STAGE AND URGENCY
# ========================================

def classify_stage(
    record: TrackedClaimRecord,
    context: Optional[ClaimContext] = None,
    as_of: Optional[date] = None,
    config=None,
) -> ClaimStage:
    config = config or settings
    context = context or ClaimContext()

    if context.judgment_obtained:
        return ClaimStage.ENFORCEMENT
    if context.court_filed:
        return ClaimStage.DEFENSE_FILED if context.defendant_responded else ClaimStage.COURT_FILED

    lba = detect_lba_status(record.timeline, as_of)
    if lba.lba_sent:
        if lba.days_since_lba >= config.LBA_RESPONSE_DAYS:
            return ClaimStage.LBA_EXPIRED
        return ClaimStage.LBA_SENT

    if has_event(record.timeline, TimelineEventType.CHASER):
        return ClaimStage.PRE_LBA
    return ClaimStage.INITIAL


def days_since_due(record: TrackedClaimRecord, as_of: Optional[date] = None) -> Optional[int]:
    """Days since the invoice due date, falling back to the earliest payment_due event."""
    as_of = as_of or date.today()
    if record.invoice and record.invoice.due_date:
        try:
            return days_between(record.invoice.due_date.value, as_of)
        except ValueError:
            log.debug(f"Ignoring malformed due date {record.invoice.due_date.value!r}")
    due_events = sorted(e.date for e in record.timeline if e.type == TimelineEventType.PAYMENT_DUE)
    if due_events:
        return days_between(due_events[0], as_of)
    return None


def stage_urgency(stage: ClaimStage, overdue_days: Optional[int] = None, config=None) -> int:
    config = config or settings
    if stage == ClaimStage.LBA_EXPIRED:
        return 4
    if stage == ClaimStage.COURT_FILED:
        return 5
    if stage == ClaimStage.LBA_SENT:
        return 3
    if stage == ClaimStage.PRE_LBA:
        return 2
    if stage == ClaimStage.INITIAL:
        return 2 if overdue_days is not None and overdue_days > config.INITIAL_OVERDUE_DAYS else 1
    return 3


# ========================================
# RECOMMENDATION
# ========================================

def recommend_document(
    record: TrackedClaimRecord,
    context: Optional[ClaimContext] = None,
    as_of: Optional[date] = None,
    config=None,
) -> Recommendation:
    """
    Recommend the next document for a merged claim record.

    Args:
        record: merged claim record
        context: court status, claim strength and relationship preference
        as_of: reference date for elapsed-day checks, today when omitted
        config: settings override

    Returns:
        Recommendation with stage, urgency, primary document and alternatives
    """
    config = config or settings
    context = context or ClaimContext()
    as_of = as_of or date.today()

    stage = classify_stage(record, context, as_of, config)
    urgency = stage_urgency(stage, days_since_due(record, as_of), config)
    alternatives: List[DocumentAlternative] = []
    warnings: List[ExtractionWarning] = []
    amount = record.invoice.total_amount.value if record.invoice and record.invoice.total_amount else None

    if stage == ClaimStage.INITIAL:
        primary = DocumentType.POLITE_CHASER
        if context.relationship == "preserve":
            reason = ("A polite reminder is appropriate as a first step when preserving "
                      "the business relationship.")
            alternatives.append(DocumentAlternative(
                document=DocumentType.LBA,
                reason="If you need to escalate, a Letter Before Action gives formal notice.",
            ))
        else:
            reason = ("Start with a polite reminder to give the debtor an opportunity to pay "
                      "before escalating.")
            alternatives.append(DocumentAlternative(
                document=DocumentType.LBA,
                reason="Skip straight to a formal Letter Before Action if the debt is already "
                       "significantly overdue.",
            ))

    elif stage == ClaimStage.PRE_LBA:
        primary = DocumentType.LBA
        reason = ("Previous reminders have not resulted in payment. A formal Letter Before Action "
                  "is the required pre-court step.")
        if has_event(record.timeline, TimelineEventType.PART_PAYMENT):
            alternatives.append(DocumentAlternative(
                document=DocumentType.INSTALLMENT_AGREEMENT,
                reason="Partial payments show willingness to pay. Consider a formal installment agreement.",
            ))

    elif stage == ClaimStage.LBA_SENT:
        primary = DocumentType.LBA
        reason = (f"The Letter Before Action has been sent. Wait at least {config.LBA_RESPONSE_DAYS} "
                  "days for a response before proceeding to court.")
        warnings.append(ExtractionWarning(
            type="lba_status",
            message=f"The {config.LBA_RESPONSE_DAYS}-day response period has not yet elapsed. Filing at "
                    "court before this period expires may result in cost penalties.",
            field="timeline",
            severity="warning",
        ))

    elif stage == ClaimStage.LBA_EXPIRED:
        primary = DocumentType.FORM_N1
        reason = ("The Letter Before Action response period has expired. You can now file a claim "
                  "at court using Form N1.")
        if context.claim_strength == "low":
            warnings.append(ExtractionWarning(
                type="claim_strength",
                message="Your claim strength has been assessed as low. Consider seeking legal advice "
                        "before proceeding to court.",
                severity="warning",
            ))
            alternatives.append(DocumentAlternative(
                document=DocumentType.PART_36_OFFER,
                reason="A Part 36 settlement offer may be advantageous given the claim strength assessment.",
            ))
        if not is_small_claims(amount, config):
            warnings.append(ExtractionWarning(
                type="small_claims",
                message=f"Your claim amount (£{amount:,.2f}) exceeds the small claims limit. "
                        "Legal representation is recommended.",
                field="invoice.total_amount",
                severity="warning",
            ))

    elif stage in (ClaimStage.COURT_FILED, ClaimStage.DEFENSE_FILED):
        primary = DocumentType.DIRECTIONS_QUESTIONNAIRE
        if stage == ClaimStage.COURT_FILED:
            reason = ("Your claim has been filed. You may need to complete a Directions Questionnaire "
                      "(N180) for case management.")
        else:
            reason = ("The defendant has filed a response. Complete the Directions Questionnaire to "
                      "proceed with the case.")
        alternatives.append(DocumentAlternative(
            document=DocumentType.DEFAULT_JUDGMENT,
            reason="If the defendant fails to respond within the deadline, you can apply for default judgment.",
        ))
        alternatives.append(DocumentAlternative(
            document=DocumentType.PART_36_OFFER,
            reason="A Part 36 offer can protect against costs and may resolve the claim without trial.",
        ))

    else:
        # judgment_entered / enforcement: enforcement forms are not modelled
        primary = DocumentType.FORM_N1
        reason = ("Judgment has been obtained. Consider enforcement options such as a warrant of "
                  "control or an attachment of earnings order.")
        warnings.append(ExtractionWarning(
            type="enforcement",
            message="Enforcement may require additional court applications and fees.",
            severity="warning",
        ))

    log.debug(f"Classified stage {stage.value} (urgency {urgency}) -> {primary.value}")
    return Recommendation(
        stage=stage,
        urgency=urgency,
        primary_document=primary,
        reason=reason,
        alternatives=alternatives,
        warnings=warnings,
    )
