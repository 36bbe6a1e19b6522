"""Normalize Immunization resources for display."""

from typing import Any

from fhir_viewer.infrastructure.fhir.normalizers._common import (
    display_text,
    first,
    joined_notes,
    normalize_safely,
    reference_info,
    text_or_display,
)
from fhir_viewer.infrastructure.fhir.value_sets import IMMUNIZATION_STATUSES, coerce
from fhir_viewer.schemas.immunization import NormalizedImmunization

UNKNOWN_VACCINE = "Unknown Vaccine"


def _performer(immunization: dict[str, Any]):
    performer = first(immunization.get("performer"))
    actor = performer.get("actor") if isinstance(performer, dict) else None
    return reference_info(actor, missing="Unknown performer", unnamed="Unnamed performer")


def _manufacturer(immunization: dict[str, Any]) -> str:
    info = reference_info(immunization.get("manufacturer"))
    return (info.display or "") if info else ""


def _build(immunization: dict[str, Any]) -> NormalizedImmunization:
    return NormalizedImmunization(
        id=immunization.get("id") or "unknown",
        status=coerce(immunization.get("status"), IMMUNIZATION_STATUSES),
        vaccine_display=display_text(immunization.get("vaccineCode"), UNKNOWN_VACCINE),
        occurrence_date=immunization.get("occurrenceDateTime")
        or immunization.get("occurrenceString")
        or "",
        performer=_performer(immunization),
        lot_number=immunization.get("lotNumber") or "",
        site=text_or_display(immunization.get("site")),
        route=text_or_display(immunization.get("route")),
        manufacturer=_manufacturer(immunization),
        note=joined_notes(immunization.get("note")),
        raw_resource=immunization,
    )


def normalize_immunization(immunization: Any) -> NormalizedImmunization:
    """Map a raw Immunization to a ``NormalizedImmunization`` (never raises)."""
    return normalize_safely(immunization, _build, NormalizedImmunization, "immunization")
