"""Schémas Pydantic pour l'historique des médicaments (MedicationRequest)."""

from pydantic import Field

from fhir_viewer.infrastructure.fhir.value_sets import (
    MedicationRequestIntent,
    MedicationRequestStatus,
)
from fhir_viewer.schemas.common import NormalizedResource, ReferenceInfo


class NormalizedMedication(NormalizedResource):
    """Médicament de l'historique du patient, résumé pour l'affichage."""

    resource_type: str = "MedicationRequest"
    status: MedicationRequestStatus = "unknown"
    intent: MedicationRequestIntent = "order"
    medication_display: str = "Unknown Medication"
    dosage_instructions: list[str] = Field(default_factory=list)
    date_written: str = ""
    prescriber: ReferenceInfo = Field(
        default_factory=lambda: ReferenceInfo(display="Unknown prescriber")
    )
    note: str = ""
