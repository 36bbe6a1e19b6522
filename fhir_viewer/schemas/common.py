"""Schémas Pydantic partagés par les ressources normalisées.

Les enregistrements normalisés sont immuables (``frozen=True``): ils sont créés à
chaque récupération et remplacés, jamais modifiés.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CodingInfo(BaseModel):
    """Élément ``coding`` d'un CodeableConcept FHIR."""

    model_config = ConfigDict(frozen=True)

    system: str | None = None
    code: str | None = None
    display: str | None = None


class CodeInfo(BaseModel):
    """CodeableConcept normalisé avec son libellé résolu."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    coding: list[CodingInfo] = Field(default_factory=list)
    display: str = Field(..., description="Libellé résolu: text > coding.display > coding.code")


class ReferenceInfo(BaseModel):
    """Référence FHIR normalisée (acteur, patient, prescripteur)."""

    model_config = ConfigDict(frozen=True)

    reference: str | None = None
    display: str | None = None
    type: str | None = None


class Note(BaseModel):
    """Annotation FHIR."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    author: ReferenceInfo | None = None
    time: str | None = None


class NormalizedResource(BaseModel):
    """
    Champs communs à toute ressource normalisée.

    ``id`` et ``resource_type`` sont toujours renseignés, même pour un
    enregistrement de substitution (``error`` non nul) produit quand la
    ressource source est malformée.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifiant de la ressource")
    resource_type: str = Field(..., description="Type de ressource FHIR")
    status: str = Field(default="unknown", description="Statut normalisé")
    error: str | None = Field(None, description="Erreur de normalisation, le cas échéant")
    raw_resource: dict[str, Any] | None = Field(
        None, description="Ressource FHIR d'origine (audit/debug)", repr=False
    )

    @property
    def is_placeholder(self) -> bool:
        return self.error is not None
