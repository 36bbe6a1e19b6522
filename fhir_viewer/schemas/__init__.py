"""Schémas Pydantic du viewer FHIR."""

from fhir_viewer.schemas.allergy import NormalizedAllergy, Reaction
from fhir_viewer.schemas.common import (
    CodeInfo,
    CodingInfo,
    NormalizedResource,
    Note,
    ReferenceInfo,
)
from fhir_viewer.schemas.immunization import NormalizedImmunization
from fhir_viewer.schemas.medication import NormalizedMedication
from fhir_viewer.schemas.medication_request import (
    DosageInstruction,
    NormalizedMedicationRequest,
)
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import EmptyDataInfo, ResourceCollection
from fhir_viewer.schemas.validation import ValidationResult

__all__ = [
    "CodeInfo",
    "CodingInfo",
    "DosageInstruction",
    "EmptyDataInfo",
    "FetchOptions",
    "NormalizedAllergy",
    "NormalizedImmunization",
    "NormalizedMedication",
    "NormalizedMedicationRequest",
    "NormalizedResource",
    "Note",
    "Reaction",
    "ReferenceInfo",
    "ResourceCollection",
    "ValidationResult",
]
