"""
Mise en forme des résultats pour l'affichage.

Les collections normalisées sont converties en cartes repliables (titre + champs
libellés), la première carte étant dépliée. Une collection vide produit l'état
"aucune donnée", distinct de l'affichage d'une ClassifiedError.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fhir_viewer.core.exceptions import ClassifiedError
from fhir_viewer.schemas.allergy import NormalizedAllergy
from fhir_viewer.schemas.common import NormalizedResource, ReferenceInfo
from fhir_viewer.schemas.immunization import NormalizedImmunization
from fhir_viewer.schemas.medication import NormalizedMedication
from fhir_viewer.schemas.medication_request import NormalizedMedicationRequest
from fhir_viewer.schemas.results import EmptyDataInfo, ResourceCollection
from fhir_viewer.services.patient_context import PatientDisplay

# Titre par défaut d'une carte selon le sélecteur de ressource
CARD_TITLE_FALLBACKS: dict[str, str] = {
    "allergies": "Unknown Allergy",
    "medications": "Unknown Medication",
    "medication-requests": "Unknown Medication Request",
    "immunizations": "Unknown Vaccine",
}


class CardField(BaseModel):
    """Ligne libellée d'une carte."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: str


class ResourceCard(BaseModel):
    """Carte repliable représentant une ressource normalisée."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    title: str
    fields: list[CardField] = Field(default_factory=list)
    expanded: bool = False
    error: str | None = None


def _field(label: str, value: Any) -> CardField | None:
    if value is None or value == "" or value == []:
        return None
    return CardField(label=label, value=str(value))


def _reference_display(reference: ReferenceInfo | None) -> str | None:
    if reference is None:
        return None
    return reference.display or reference.reference


def _allergy_fields(allergy: NormalizedAllergy) -> list[CardField | None]:
    manifestations = [
        manifestation.display
        for reaction in allergy.reactions
        for manifestation in reaction.manifestations
    ]
    return [
        _field("Status", f"{allergy.clinical_status} ({allergy.verification_status})"),
        _field("Category", ", ".join(allergy.categories) or "unknown"),
        _field("Criticality", allergy.criticality),
        _field("Type", allergy.type),
        _field("Reactions", ", ".join(manifestations)),
        _field("Recorded", allergy.recorded_date),
        _field("Asserter", _reference_display(allergy.asserter)),
        _field("Note", "; ".join(note.text for note in allergy.notes if note.text)),
    ]


def _medication_fields(medication: NormalizedMedication) -> list[CardField | None]:
    return [
        _field("Status", medication.status),
        _field("Intent", medication.intent),
        _field("Dosage", "; ".join(medication.dosage_instructions)),
        _field("Date Written", medication.date_written),
        _field("Prescriber", _reference_display(medication.prescriber)),
        _field("Note", medication.note),
    ]


def _medication_request_fields(
    request: NormalizedMedicationRequest,
) -> list[CardField | None]:
    return [
        _field("Status", request.status),
        _field("Intent", request.intent),
        _field("Priority", request.priority),
        _field(
            "Dosage",
            "; ".join(d.display for d in request.dosage_instructions if d.display),
        ),
        _field("Authored On", request.authored_on),
        _field("Requester", _reference_display(request.requester)),
        _field("Note", request.note),
    ]


def _immunization_fields(immunization: NormalizedImmunization) -> list[CardField | None]:
    return [
        _field("Status", immunization.status),
        _field("Date", immunization.occurrence_date or "Unknown"),
        _field("Performer", _reference_display(immunization.performer)),
        _field("Manufacturer", immunization.manufacturer),
        _field("Lot Number", immunization.lot_number),
        _field("Site", immunization.site),
        _field("Route", immunization.route),
        _field("Note", immunization.note),
    ]


def card_title(resource: NormalizedResource, resource_type: str) -> str:
    """Titre d'une carte: libellé principal de la ressource, sinon un défaut par type."""
    fallback = CARD_TITLE_FALLBACKS.get(resource_type, "Unknown Resource")
    if isinstance(resource, NormalizedAllergy):
        title = resource.display
    elif isinstance(resource, NormalizedMedication | NormalizedMedicationRequest):
        title = resource.medication_display
    elif isinstance(resource, NormalizedImmunization):
        title = resource.vaccine_display
    else:
        title = None
    return title or fallback


def build_card(
    resource: NormalizedResource, resource_type: str, expanded: bool = False
) -> ResourceCard:
    """Construit la carte d'une ressource normalisée."""
    if resource.is_placeholder:
        return ResourceCard(
            resource_id=resource.id,
            title=CARD_TITLE_FALLBACKS.get(resource_type, "Unknown Resource"),
            fields=[CardField(label="Status", value=resource.status)],
            expanded=expanded,
            error=resource.error,
        )

    if isinstance(resource, NormalizedAllergy):
        fields = _allergy_fields(resource)
    elif isinstance(resource, NormalizedMedicationRequest):
        fields = _medication_request_fields(resource)
    elif isinstance(resource, NormalizedMedication):
        fields = _medication_fields(resource)
    elif isinstance(resource, NormalizedImmunization):
        fields = _immunization_fields(resource)
    else:
        fields = [_field("Status", resource.status)]

    return ResourceCard(
        resource_id=resource.id,
        title=card_title(resource, resource_type),
        fields=[field for field in fields if field is not None],
        expanded=expanded,
    )


def build_cards(collection: ResourceCollection) -> list[ResourceCard]:
    """
    Convertit une collection en cartes, la première dépliée.

    Args:
        collection: Résultat d'une récupération

    Returns:
        Liste de cartes (vide si la collection est vide)
    """
    return [
        build_card(resource, collection.resource_type, expanded=index == 0)
        for index, resource in enumerate(collection.resources)
    ]


def render_card(card: ResourceCard) -> str:
    """Rendu texte d'une carte (titre, puis champs si dépliée)."""
    marker = "v" if card.expanded else ">"
    lines = [f"{marker} {card.title}"]
    if card.expanded:
        lines.extend(f"    {field.label}: {field.value}" for field in card.fields)
        if card.error:
            lines.append(f"    Error: {card.error}")
    return "\n".join(lines)


def render_empty_state(info: EmptyDataInfo) -> str:
    return f"{info.message}\n{info.help_text}"


def render_error(error: ClassifiedError) -> str:
    """Rendu texte d'une erreur: message, aide et type."""
    lines = [f"Error: {error.message}"]
    if error.details.help_text:
        lines.append(error.details.help_text)
    lines.append(f"Error type: {error.kind.value}")
    return "\n".join(lines)


def render_patient_banner(patient: PatientDisplay) -> str:
    """Bandeau patient: nom puis identifiants disponibles."""
    parts = [f"ID: {patient.id}"] if patient.id else []
    if patient.gender:
        parts.append(f"Gender: {patient.gender}")
    if patient.birth_date:
        parts.append(f"Birth Date: {patient.birth_date}")
    if patient.mrn:
        parts.append(f"MRN: {patient.mrn}")
    return "\n".join([patient.name, " | ".join(parts)]) if parts else patient.name


def render_collection(collection: ResourceCollection) -> str:
    """Rendu texte d'une collection: cartes, ou état "aucune donnée" si vide."""
    if collection.empty_state is not None:
        return render_empty_state(collection.empty_state)
    return "\n".join(render_card(card) for card in build_cards(collection))


def render_json(data: Any) -> str:
    """
    Sérialise un résultat pour l'affichage JSON brut.

    Les modèles Pydantic sont sérialisés sans ``raw_resource``; une
    ClassifiedError l'est via ``to_dict``.
    """
    if isinstance(data, ClassifiedError):
        payload = data.to_dict()
    elif isinstance(data, ResourceCollection):
        payload = data.model_dump(
            mode="json", exclude={"resources": {"__all__": {"raw_resource"}}}
        )
    elif isinstance(data, BaseModel):
        payload = data.model_dump(mode="json", exclude={"raw_resource"})
    else:
        payload = data
    return json.dumps(payload, indent=2, default=str)
