"""Schémas Pydantic pour MedicationRequest (prescriptions actives)."""

from pydantic import BaseModel, ConfigDict, Field

from fhir_viewer.infrastructure.fhir.value_sets import (
    MedicationRequestIntent,
    MedicationRequestPriority,
    MedicationRequestStatus,
)
from fhir_viewer.schemas.common import NormalizedResource, ReferenceInfo


class DosageInstruction(BaseModel):
    """
    Posologie normalisée.

    ``display`` reprend ``text`` s'il existe, sinon assemble dose, voie,
    rythme, "si besoin" et instruction patient.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    timing: str = ""
    route: str = ""
    dose_quantity: str = ""
    as_needed: str = ""
    patient_instruction: str = ""
    display: str = ""


class NormalizedMedicationRequest(NormalizedResource):
    """Prescription normalisée prête à l'affichage."""

    resource_type: str = "MedicationRequest"
    status: MedicationRequestStatus = "unknown"
    intent: MedicationRequestIntent = "unknown"
    priority: MedicationRequestPriority = "routine"
    medication_display: str = "Unknown Medication"
    authored_on: str = ""
    dosage_instructions: list[DosageInstruction] = Field(default_factory=list)
    requester: ReferenceInfo = Field(
        default_factory=lambda: ReferenceInfo(display="Unknown prescriber")
    )
    note: str = ""
