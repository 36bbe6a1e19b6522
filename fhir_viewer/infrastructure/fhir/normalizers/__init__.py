"""Normalizers mapping raw FHIR resources to display-ready records."""

from fhir_viewer.infrastructure.fhir.normalizers.allergy import (
    normalize_allergies,
    normalize_allergy,
)
from fhir_viewer.infrastructure.fhir.normalizers.immunization import normalize_immunization
from fhir_viewer.infrastructure.fhir.normalizers.medication import normalize_medication
from fhir_viewer.infrastructure.fhir.normalizers.medication_request import (
    format_dosage_instruction,
    normalize_medication_request,
)

__all__ = [
    "format_dosage_instruction",
    "normalize_allergies",
    "normalize_allergy",
    "normalize_immunization",
    "normalize_medication",
    "normalize_medication_request",
]
