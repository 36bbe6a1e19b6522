"""Normalize FHIR R4 AllergyIntolerance resources for display."""

from typing import Any

from fhir_viewer.infrastructure.fhir.normalizers._common import (
    code_info,
    display_text,
    normalize_safely,
    notes,
    reference_info,
)
from fhir_viewer.infrastructure.fhir.value_sets import (
    ALLERGY_CATEGORIES,
    ALLERGY_TYPES,
    CLINICAL_STATUSES,
    CRITICALITIES,
    REACTION_SEVERITIES,
    VERIFICATION_STATUSES,
    coded_value,
    coerce,
)
from fhir_viewer.schemas.allergy import NormalizedAllergy, Reaction

UNKNOWN_SUBSTANCE = "Unknown Substance"


def _substance_display(allergy: dict[str, Any]) -> str:
    """Allergen label from ``code``, else from the first reaction substance."""
    if isinstance(allergy.get("code"), dict):
        label = display_text(allergy["code"], fallback="")
        if label:
            return label
    for reaction in allergy.get("reaction") or []:
        if isinstance(reaction, dict) and isinstance(reaction.get("substance"), dict):
            label = display_text(reaction["substance"], fallback="")
            if label:
                return label
    return UNKNOWN_SUBSTANCE


def _categories(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [coerce(category, ALLERGY_CATEGORIES) for category in raw]


def _reactions(raw: Any) -> list[Reaction]:
    if not isinstance(raw, list):
        return []
    reactions = []
    for index, reaction in enumerate(raw):
        if not isinstance(reaction, dict):
            continue
        manifestations = [
            info
            for info in (code_info(m) for m in reaction.get("manifestation") or [])
            if info is not None
        ]
        reactions.append(
            Reaction(
                id=reaction.get("id") or f"reaction-{index}",
                substance=code_info(reaction.get("substance"), UNKNOWN_SUBSTANCE),
                manifestations=manifestations,
                severity=coerce(reaction.get("severity"), REACTION_SEVERITIES),
                description=reaction.get("description"),
                onset=reaction.get("onset"),
                notes=notes(reaction.get("note")),
            )
        )
    return reactions


def _build(allergy: dict[str, Any], index: int | None) -> NormalizedAllergy:
    clinical_status = coerce(coded_value(allergy.get("clinicalStatus")), CLINICAL_STATUSES)
    default_id = f"allergy-{index}" if index is not None else "unknown"
    return NormalizedAllergy(
        id=allergy.get("id") or default_id,
        status=clinical_status,
        display=_substance_display(allergy),
        code=code_info(allergy.get("code"), UNKNOWN_SUBSTANCE),
        patient=reference_info(allergy.get("patient")),
        clinical_status=clinical_status,
        verification_status=coerce(
            coded_value(allergy.get("verificationStatus")), VERIFICATION_STATUSES
        ),
        type=coerce(allergy.get("type"), ALLERGY_TYPES),
        criticality=coerce(allergy.get("criticality"), CRITICALITIES),
        categories=_categories(allergy.get("category")),
        reactions=_reactions(allergy.get("reaction")),
        recorded_date=allergy.get("recordedDate"),
        recorder=reference_info(allergy.get("recorder")),
        asserter=reference_info(allergy.get("asserter")),
        notes=notes(allergy.get("note")),
        raw_resource=allergy,
    )


def normalize_allergy(allergy: Any, index: int | None = None) -> NormalizedAllergy:
    """Map a raw AllergyIntolerance to a ``NormalizedAllergy``.

    Enumerated fields outside their FHIR R4 value set become "unknown". The
    substance name falls back to "Unknown Substance". Never raises: a malformed
    resource yields a placeholder with ``error`` set.

    Args:
        allergy: Raw AllergyIntolerance resource
        index: Position in the collection, used for an id when the resource has none

    Returns:
        The normalized allergy (or placeholder)
    """
    return normalize_safely(
        allergy, lambda raw: _build(raw, index), NormalizedAllergy, "allergy"
    )


def normalize_allergies(allergies: list[Any]) -> list[NormalizedAllergy]:
    return [normalize_allergy(allergy, index) for index, allergy in enumerate(allergies)]
