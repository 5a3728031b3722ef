"""
ClaimRecon extraction processor - single entry point for AI extraction output.

PIPELINE
========

    1. VALIDATE   raw payload -> RawExtractionInput (extraction_input.py)
    2. NORMALIZE  parties, invoice, timeline -> normalized delta
                  (field_normalizer.py, timeline_normalizer.py)
    3. MERGE      delta + prior record -> merged record (reconciler.py)
    4. ASSESS     merged record -> warnings + recommendation
                  (warning_generator.py, stage_classifier.py)
    5. BUNDLE     ExtractionResult for presentation and document generation

MAIN ENTRY POINTS
=================

process_extraction(raw, source=..., existing=..., context=..., as_of=...)
    -> ExtractionResult

process_evidence_extraction / process_chat_extraction / process_intake_extraction
    Source-specific shortcuts with the default confidence for that source.

extract_and_process(provider, text_or_documents=..., prompt=...)
    Calls an ExtractionProvider and processes what it returns.

Only a structurally invalid payload is reported as a validation error, and even
then the caller gets a full result built from the prior record.
"""

import math
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import ExtractionValidationError
from extraction_input import RawExtractionInput, validate_extraction
from extraction_provider import ExtractionProvider
from field_normalizer import normalize_invoice, normalize_party
from reconciler import merge_records
from schemas import (
    INVOICE_FIELDS, PARTY_FIELDS, ClaimContext, ClaimStage, DocumentType, ExtractionResult,
    ExtractionSource, ExtractionWarning, Provenance, Recommendation, TimelineEvent,
    TimelineEventType, TrackedClaimRecord,
)
from settings import settings
from stage_classifier import map_to_document_type, recommend_document
from telemetry import get_logger
from timeline_normalizer import has_event, merge_timelines, normalize_timeline
from warning_generator import generate_warnings

log = get_logger("processor")


# ========================================
# FIELD PATH HELPERS
# ========================================

def _tracked_fields(record: TrackedClaimRecord):
    """Yield (path, TrackedField) for every present party and invoice field."""
    for prefix, model in (
        ("claimant", record.claimant),
        ("defendant", record.defendant),
        ("invoice", record.invoice),
    ):
        if model is None:
            continue
        for name in model.present_fields():
            yield f"{prefix}.{name}", getattr(model, name)


def extracted_field_paths(record: TrackedClaimRecord) -> List[str]:
    paths = [path for path, _ in _tracked_fields(record)]
    if record.timeline:
        paths.append("timeline")
    return paths


def low_confidence_fields(record: TrackedClaimRecord, threshold: Optional[int] = None) -> List[str]:
    threshold = settings.VERIFICATION_THRESHOLD if threshold is None else threshold
    return [path for path, field in _tracked_fields(record) if field.confidence < threshold]


def inferred_field_paths(record: TrackedClaimRecord) -> List[str]:
    return [path for path, field in _tracked_fields(record) if field.provenance.inferred]


def overall_confidence(record: TrackedClaimRecord) -> int:
    """Mean confidence of present party and invoice fields, rounded half up; 0 when none."""
    confidences = [field.confidence for _, field in _tracked_fields(record)]
    if not confidences:
        return 0
    return int(math.floor(sum(confidences) / len(confidences) + 0.5))


# ========================================
# NORMALIZATION
# ========================================

def _lba_event_from_status(data: RawExtractionInput, timeline: List[TimelineEvent],
                           source: ExtractionSource, confidence: int,
                           source_reference: Optional[str]) -> Optional[TimelineEvent]:
    status = data.lba_status
    if status is None or not status.sent or not status.date_sent:
        return None
    if has_event(timeline, TimelineEventType.LBA_SENT):
        return None
    return TimelineEvent(
        date=status.date_sent,
        description="Letter Before Action sent",
        type=TimelineEventType.LBA_SENT,
        provenance=Provenance(source=source, confidence=confidence, source_reference=source_reference),
    )


def build_delta(
    data: RawExtractionInput,
    source: ExtractionSource,
    confidence: int,
    source_reference: Optional[str] = None,
    *,
    infer_county: bool = True,
    infer_type: bool = True,
    config=None,
) -> TrackedClaimRecord:
    """Normalize one validated extraction into a TrackedClaimRecord delta."""
    config = config or settings
    party_options = dict(infer_county=infer_county, infer_type=infer_type, config=config)

    timeline = normalize_timeline(data.timeline, source, confidence, source_reference)
    lba_event = _lba_event_from_status(data, timeline, source, confidence, source_reference)
    if lba_event is not None:
        timeline = merge_timelines(timeline, [lba_event])

    return TrackedClaimRecord(
        claimant=normalize_party(data.claimant, source, confidence, source_reference,
                                 label="claimant", **party_options),
        defendant=normalize_party(data.defendant, source, confidence, source_reference,
                                  label="defendant", **party_options),
        invoice=normalize_invoice(data.invoice, source, confidence, source_reference, config=config),
        timeline=timeline,
    )


# ========================================
# RESULT ASSEMBLY
# ========================================

def _suggested_document(data: Optional[RawExtractionInput], recommendation: Recommendation):
    """
    The AI's own document suggestion, mapped to a DocumentType.

    A reminder suggestion is only honoured at the initial stage; later stages
    fall back to the classifier's primary document.
    """
    if data is None or not data.recommended_document:
        return recommendation.primary_document, recommendation.reason

    suggested = map_to_document_type(data.recommended_document)
    if suggested == DocumentType.POLITE_CHASER and recommendation.stage != ClaimStage.INITIAL:
        log.info(f"Ignoring suggested '{data.recommended_document}' at stage "
                 f"{recommendation.stage.value}; recommending {recommendation.primary_document.value}")
        return recommendation.primary_document, recommendation.reason
    return suggested, data.document_reason or recommendation.reason


def _assemble(
    record: TrackedClaimRecord,
    data: Optional[RawExtractionInput],
    extra_warnings: List[ExtractionWarning],
    validation_errors: List[str],
    context: Optional[ClaimContext],
    as_of: date,
    config,
) -> ExtractionResult:
    recommendation = recommend_document(record, context, as_of, config)
    document, reason = _suggested_document(data, recommendation)
    return ExtractionResult(
        record=record,
        overall_confidence=overall_confidence(record),
        extracted_fields=extracted_field_paths(record),
        needs_verification=low_confidence_fields(record, config.VERIFICATION_THRESHOLD),
        inferred_fields=inferred_field_paths(record),
        warnings=[*extra_warnings, *generate_warnings(record, as_of, config)],
        recommendation=recommendation,
        recommended_document=document,
        document_reason=reason,
        validation_errors=validation_errors,
    )


def process_extraction(
    raw: Any,
    *,
    source: ExtractionSource = ExtractionSource.DOCUMENT,
    existing: Optional[TrackedClaimRecord] = None,
    context: Optional[ClaimContext] = None,
    source_reference: Optional[str] = None,
    default_confidence: Optional[int] = None,
    infer_county: bool = True,
    infer_type: bool = True,
    as_of: Optional[date] = None,
    config=None,
) -> ExtractionResult:
    """
    Process one raw AI extraction against the claim record held so far.

    Args:
        raw: extraction payload (mapping or JSON text)
        source: where the extraction came from
        existing: previously merged record, None for a new claim
        context: procedural signals for the stage classifier
        source_reference: pointer to the origin, e.g. "invoice.pdf"
        default_confidence: used when the payload carries no confidence;
            falls back to the default for the source
        as_of: reference date for elapsed-day rules, today when omitted
        config: settings override

    Returns:
        ExtractionResult. A structurally invalid payload leaves the record
        unchanged and is reported in validation_errors.
    """
    config = config or settings
    as_of = as_of or date.today()
    source = ExtractionSource(source)
    existing = existing or TrackedClaimRecord()

    try:
        data, notes = validate_extraction(raw)
    except ExtractionValidationError as e:
        log.warning(f"Rejected {source.value} extraction: {e}")
        validation_warning = ExtractionWarning(type="validation", message=str(e), severity="error")
        return _assemble(existing, None, [validation_warning], [str(e)], context, as_of, config)

    if data.model_extra:
        log.debug(f"Preserving unrecognized extraction keys: {sorted(data.model_extra)}")

    if data.confidence is not None:
        confidence = data.confidence
    elif default_confidence is not None:
        confidence = default_confidence
    else:
        confidence = config.default_confidence_for(source.value)

    delta = build_delta(data, source, confidence, source_reference,
                        infer_county=infer_county, infer_type=infer_type, config=config)
    merged = merge_records(existing, delta)
    result = _assemble(merged, data, notes, [], context, as_of, config)

    log.info(f"Processed {source.value} extraction: {len(result.extracted_fields)} fields, "
             f"confidence {result.overall_confidence}, stage {result.recommendation.stage.value}")
    return result


def process_evidence_extraction(raw: Any, file_name: str, **kwargs) -> ExtractionResult:
    config = kwargs.get("config") or settings
    kwargs.setdefault("default_confidence", config.DOCUMENT_CONFIDENCE)
    return process_extraction(raw, source=ExtractionSource.DOCUMENT, source_reference=file_name, **kwargs)


def process_chat_extraction(raw: Any, message_index: Optional[int] = None, **kwargs) -> ExtractionResult:
    config = kwargs.get("config") or settings
    kwargs.setdefault("default_confidence", config.CHAT_CONFIDENCE)
    reference = f"chat message {message_index}" if message_index is not None else None
    return process_extraction(raw, source=ExtractionSource.CHAT, source_reference=reference, **kwargs)


def process_intake_extraction(raw: Any, **kwargs) -> ExtractionResult:
    config = kwargs.get("config") or settings
    kwargs.setdefault("default_confidence", config.INTAKE_CONFIDENCE)
    return process_extraction(raw, source=ExtractionSource.INTAKE, **kwargs)


def extract_and_process(
    provider: ExtractionProvider,
    *,
    text_or_documents,
    prompt: str,
    **kwargs,
) -> ExtractionResult:
    """Run the external extraction call and process its output."""
    raw = provider.extract(text_or_documents=text_or_documents, prompt=prompt)
    return process_extraction(raw, **kwargs)


# ========================================
# PLAIN PROJECTIONS
# ========================================

def _plain_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def to_plain_record(record: TrackedClaimRecord) -> Dict[str, Any]:
    """Strip provenance down to bare values for document generation and persistence."""
    plain: Dict[str, Any] = {}
    for prefix, model, names in (
        ("claimant", record.claimant, PARTY_FIELDS),
        ("defendant", record.defendant, PARTY_FIELDS),
        ("invoice", record.invoice, INVOICE_FIELDS),
    ):
        if model is None:
            plain[prefix] = None
            continue
        plain[prefix] = {
            name: _plain_value(getattr(model, name).value)
            for name in names if getattr(model, name) is not None
        }
    plain["timeline"] = [
        {"date": e.date, "description": e.description, "type": e.type.value}
        for e in record.timeline
    ]
    return plain


def to_claim_state_update(result: ExtractionResult) -> Dict[str, Any]:
    update = to_plain_record(result.record)
    update["selected_doc_type"] = result.recommended_document.value
    return update
