"""Schémas Pydantic pour AllergyIntolerance normalisée."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from fhir_viewer.infrastructure.fhir.value_sets import (
    AllergyCategory,
    AllergyType,
    ClinicalStatus,
    Criticality,
    ReactionSeverity,
    VerificationStatus,
)
from fhir_viewer.schemas.common import CodeInfo, NormalizedResource, Note, ReferenceInfo


class Reaction(BaseModel):
    """Réaction allergique (AllergyIntolerance.reaction)."""

    model_config = ConfigDict(frozen=True)

    id: str
    substance: CodeInfo | None = None
    manifestations: list[CodeInfo] = Field(default_factory=list)
    severity: ReactionSeverity = "unknown"
    description: str | None = None
    onset: str | None = None
    notes: list[Note] = Field(default_factory=list)


class NormalizedAllergy(NormalizedResource):
    """
    Allergie normalisée prête à l'affichage.

    Les champs énumérés sont toujours une valeur du value set FHIR R4 ou
    "unknown". ``display`` vaut "Unknown Substance" si aucun code n'est exploitable.
    """

    resource_type: str = "AllergyIntolerance"
    display: str = Field("Unknown Substance", description="Nom de la substance")
    code: CodeInfo | None = None
    patient: ReferenceInfo | None = None
    clinical_status: ClinicalStatus = "unknown"
    verification_status: VerificationStatus = "unknown"
    type: AllergyType = "unknown"
    criticality: Criticality = "unknown"
    categories: list[AllergyCategory] = Field(default_factory=list)
    reactions: list[Reaction] = Field(default_factory=list)
    recorded_date: str | None = None
    recorder: ReferenceInfo | None = None
    asserter: ReferenceInfo | None = None
    notes: list[Note] = Field(default_factory=list)
    fhir_version: str = "R4"
    normalized_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
