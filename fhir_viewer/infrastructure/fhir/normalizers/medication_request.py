"""Normalize MedicationRequest resources for the active prescriptions view."""

from typing import Any

from fhir_viewer.infrastructure.fhir.normalizers._common import (
    joined_notes,
    medication_display,
    normalize_safely,
    reference_info,
    text_or_display,
)
from fhir_viewer.infrastructure.fhir.normalizers._dosage import as_needed, dose_quantity, timing
from fhir_viewer.infrastructure.fhir.value_sets import (
    MEDICATION_REQUEST_INTENTS,
    MEDICATION_REQUEST_PRIORITIES,
    MEDICATION_REQUEST_STATUSES,
    coerce,
)
from fhir_viewer.schemas.medication_request import (
    DosageInstruction,
    NormalizedMedicationRequest,
)


def format_dosage_instruction(instruction: DosageInstruction) -> str:
    """Display string: ``text`` if present, else "<dose> via <route> <timing> <as needed> (<instruction>)"."""
    if instruction.text:
        return instruction.text

    parts = []
    if instruction.dose_quantity:
        parts.append(instruction.dose_quantity)
    if instruction.route:
        parts.append(f"via {instruction.route}")
    if instruction.timing:
        parts.append(instruction.timing)
    if instruction.as_needed:
        parts.append(instruction.as_needed)
    if instruction.patient_instruction:
        parts.append(f"({instruction.patient_instruction})")
    return " ".join(parts)


def _dosage_instruction(dosage: dict[str, Any]) -> DosageInstruction:
    instruction = DosageInstruction(
        text=dosage.get("text") or "",
        timing=timing(dosage.get("timing")),
        route=text_or_display(dosage.get("route")),
        dose_quantity=dose_quantity(dosage),
        as_needed=as_needed(dosage),
        patient_instruction=dosage.get("patientInstruction") or "",
    )
    return instruction.model_copy(update={"display": format_dosage_instruction(instruction)})


def _build(request: dict[str, Any]) -> NormalizedMedicationRequest:
    priority = request.get("priority")
    return NormalizedMedicationRequest(
        id=request.get("id") or "unknown",
        status=coerce(request.get("status"), MEDICATION_REQUEST_STATUSES),
        intent=coerce(request.get("intent"), MEDICATION_REQUEST_INTENTS),
        priority=coerce(priority, MEDICATION_REQUEST_PRIORITIES) if priority else "routine",
        medication_display=medication_display(request),
        authored_on=request.get("authoredOn") or "",
        dosage_instructions=[
            _dosage_instruction(dosage)
            for dosage in request.get("dosageInstruction") or []
            if isinstance(dosage, dict)
        ],
        requester=reference_info(
            request.get("requester"),
            missing="Unknown prescriber",
            unnamed="Unnamed prescriber",
        ),
        note=joined_notes(request.get("note")),
        raw_resource=request,
    )


def normalize_medication_request(request: Any) -> NormalizedMedicationRequest:
    """Map a raw MedicationRequest to a ``NormalizedMedicationRequest``.

    The medication name is resolved from ``medicationCodeableConcept`` or from
    ``medicationReference`` (its display, or the code of an inline-resolved
    Medication), falling back to "Unknown Medication". Never raises.
    """
    return normalize_safely(
        request, _build, NormalizedMedicationRequest, "medication request"
    )
