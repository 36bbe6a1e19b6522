"""Résultat de validation d'une ressource AllergyIntolerance."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class ValidationResult(BaseModel):
    """
    Résultat de validation FHIR R4 (allergies uniquement).

    ``errors`` rend la ressource inéligible à l'affichage; ``warnings`` est
    purement informatif.
    """

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    resource: Any = Field(None, repr=False)
    fhir_version: str = "R4"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
