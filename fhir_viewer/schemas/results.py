"""Résultats de récupération: collection de ressources et état "aucune donnée".

Une collection vide est un succès, distinct de toute ``ClassifiedError``.
"""

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from fhir_viewer.schemas.common import NormalizedResource

_EMPTY_MESSAGES: dict[str, str] = {
    "allergies": "No known allergies found for this patient.",
    "medications": "No medications found for this patient.",
    "medication-requests": "No active medication requests found for this patient.",
    "immunizations": "No immunization records found for this patient.",
}

_EMPTY_ACTIONS: dict[str, str] = {
    "allergies": "Check if allergies have been recorded in the EHR system.",
    "medications": "Verify medication history in the primary EHR system.",
    "medication-requests": "Verify active prescriptions in the primary EHR system.",
    "immunizations": "Verify immunization history in the primary EHR system.",
}


class EmptyDataInfo(BaseModel):
    """État informatif (non erreur) affiché quand aucune ressource n'existe."""

    model_config = ConfigDict(frozen=True)

    resource_type: str
    message: str
    help_text: str
    level: str = "info"

    @classmethod
    def for_resource(
        cls,
        resource_type: str,
        message: str | None = None,
        suggested_action: str | None = None,
    ) -> "EmptyDataInfo":
        """
        Construit le message "aucune donnée" pour un type de ressource.

        Args:
            resource_type: Sélecteur (allergies, medications, ...)
            message: Message personnalisé
            suggested_action: Action suggérée personnalisée

        Returns:
            EmptyDataInfo avec message et aide par défaut du type
        """
        return cls(
            resource_type=resource_type,
            message=message
            or _EMPTY_MESSAGES.get(resource_type, f"No {resource_type} data found for this patient."),
            help_text=suggested_action
            or _EMPTY_ACTIONS.get(
                resource_type, f"Verify {resource_type} data in the primary EHR system."
            ),
        )


class ResourceCollection(BaseModel):
    """
    Valeur de succès de toute récupération.

    Attributes:
        resource_type: Sélecteur de ressource (allergies, medications, ...)
        fhir_resource_type: Type FHIR interrogé (AllergyIntolerance, ...)
        patient_id: Patient concerné
        resources: Ressources normalisées (éventuellement vide)
        dropped: Nombre de ressources écartées par la validation
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str
    fhir_resource_type: str
    patient_id: str
    resources: list[SerializeAsAny[NormalizedResource]] = Field(default_factory=list)
    dropped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.resources

    @property
    def empty_state(self) -> EmptyDataInfo | None:
        """Message informatif si la collection est vide, sinon None."""
        if not self.is_empty:
            return None
        return EmptyDataInfo.for_resource(self.resource_type)

    def __len__(self) -> int:
        return len(self.resources)
