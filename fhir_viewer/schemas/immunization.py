"""Schémas Pydantic pour Immunization."""

from pydantic import Field

from fhir_viewer.infrastructure.fhir.value_sets import ImmunizationStatus
from fhir_viewer.schemas.common import NormalizedResource, ReferenceInfo


class NormalizedImmunization(NormalizedResource):
    """Vaccination normalisée prête à l'affichage."""

    resource_type: str = "Immunization"
    status: ImmunizationStatus = "unknown"
    vaccine_display: str = "Unknown Vaccine"
    occurrence_date: str = ""
    performer: ReferenceInfo = Field(
        default_factory=lambda: ReferenceInfo(display="Unknown performer")
    )
    lot_number: str = ""
    site: str = ""
    route: str = ""
    manufacturer: str = ""
    note: str = ""
