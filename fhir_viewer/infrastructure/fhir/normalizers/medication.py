"""Normalize MedicationRequest resources for the medication history view."""

from typing import Any

from fhir_viewer.infrastructure.fhir.normalizers._common import (
    joined_notes,
    medication_display,
    normalize_safely,
    reference_info,
    text_or_display,
)
from fhir_viewer.infrastructure.fhir.normalizers._dosage import dose_quantity, timing
from fhir_viewer.infrastructure.fhir.value_sets import (
    MEDICATION_REQUEST_INTENTS,
    MEDICATION_REQUEST_STATUSES,
    coerce,
)
from fhir_viewer.schemas.medication import NormalizedMedication

NO_DOSAGE = "No dosage information available"
NO_SPECIFIC_DOSAGE = "No specific dosage instructions"


def _dosage_summary(dosage: Any) -> str:
    """One-line dosage summary: the text, else timing, dose and route joined."""
    if not isinstance(dosage, dict):
        return NO_SPECIFIC_DOSAGE
    if dosage.get("text"):
        return dosage["text"]

    parts = [timing(dosage.get("timing")), dose_quantity(dosage)]
    route = text_or_display(dosage.get("route"))
    if route:
        parts.append(f"Route: {route}")
    return ", ".join(part for part in parts if part) or NO_SPECIFIC_DOSAGE


def _dosage_instructions(medication: dict[str, Any]) -> list[str]:
    instructions = medication.get("dosageInstruction")
    if not isinstance(instructions, list) or not instructions:
        return [NO_DOSAGE]
    return [_dosage_summary(dosage) for dosage in instructions]


def _build(medication: dict[str, Any]) -> NormalizedMedication:
    # Missing intent means a plain order
    intent = medication.get("intent")
    return NormalizedMedication(
        id=medication.get("id") or "unknown",
        status=coerce(medication.get("status"), MEDICATION_REQUEST_STATUSES),
        intent=coerce(intent, MEDICATION_REQUEST_INTENTS) if intent else "order",
        medication_display=medication_display(medication),
        dosage_instructions=_dosage_instructions(medication),
        date_written=medication.get("authoredOn") or "",
        prescriber=reference_info(
            medication.get("requester"),
            missing="Unknown prescriber",
            unnamed="Unnamed prescriber",
        ),
        note=joined_notes(medication.get("note")),
        raw_resource=medication,
    )


def normalize_medication(medication: Any) -> NormalizedMedication:
    """Map a raw MedicationRequest to a ``NormalizedMedication`` (never raises)."""
    return normalize_safely(medication, _build, NormalizedMedication, "medication")
