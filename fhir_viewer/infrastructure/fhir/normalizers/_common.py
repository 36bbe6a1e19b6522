"""Field extraction helpers shared by the resource normalizers."""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fhir_viewer.schemas.common import CodeInfo, CodingInfo, NormalizedResource, Note, ReferenceInfo

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=NormalizedResource)


def first(items: Any) -> Any:
    """First element of a list, or None."""
    if isinstance(items, list) and items:
        return items[0]
    return None


def display_text(concept: Any, fallback: str = "Unknown") -> str:
    """Resolve a CodeableConcept label: text, then coding[0].display, then coding[0].code."""
    if not isinstance(concept, dict):
        return fallback
    coding = first(concept.get("coding"))
    if not isinstance(coding, dict):
        coding = {}
    return concept.get("text") or coding.get("display") or coding.get("code") or fallback


def text_or_display(concept: Any) -> str:
    """Label of a CodeableConcept without falling back to the raw code."""
    if not isinstance(concept, dict):
        return ""
    coding = first(concept.get("coding"))
    display = coding.get("display") if isinstance(coding, dict) else None
    return concept.get("text") or display or ""


def normalize_coding(codings: Any) -> list[CodingInfo]:
    if not isinstance(codings, list):
        return []
    return [
        CodingInfo(system=c.get("system"), code=c.get("code"), display=c.get("display"))
        for c in codings
        if isinstance(c, dict) and (c.get("system") or c.get("code") or c.get("display"))
    ]


def code_info(concept: Any, fallback: str = "Unknown") -> CodeInfo | None:
    if not isinstance(concept, dict):
        return None
    return CodeInfo(
        text=concept.get("text"),
        coding=normalize_coding(concept.get("coding")),
        display=display_text(concept, fallback),
    )


def human_name(names: Any) -> str | None:
    """Format the first HumanName: its text, or prefix/given/family joined."""
    name = first(names)
    if not isinstance(name, dict):
        return None
    if name.get("text"):
        return name["text"]
    parts = [*(name.get("prefix") or []), *(name.get("given") or [])]
    if name.get("family"):
        parts.append(name["family"])
    return " ".join(str(part) for part in parts if part) or None


def resource_display(resource: dict[str, Any]) -> str | None:
    """Human label of an inline-resolved resource (Practitioner, Organization, Medication...)."""
    name = resource.get("name")
    if isinstance(name, list):
        return human_name(name)
    if isinstance(name, str) and name:
        return name
    if isinstance(resource.get("code"), dict):
        return display_text(resource["code"], fallback="") or None
    return None


def reference_info(
    value: Any,
    missing: str | None = None,
    unnamed: str | None = None,
) -> ReferenceInfo | None:
    """Normalize a Reference, a reference string, or a resolved resource.

    Args:
        value: Raw ``Reference`` dict, ``"Type/id"`` string, or resource resolved inline
        missing: Display used when the reference is absent (None returns None)
        unnamed: Display used when the reference carries no display
    """
    if not value:
        return ReferenceInfo(display=missing) if missing else None
    if isinstance(value, str):
        return ReferenceInfo(reference=value, display=unnamed)
    if not isinstance(value, dict):
        return ReferenceInfo(display=missing) if missing else None

    if value.get("resourceType"):
        resource_type = value["resourceType"]
        resource_id = value.get("id")
        return ReferenceInfo(
            reference=f"{resource_type}/{resource_id}" if resource_id else None,
            display=resource_display(value) or unnamed,
            type=resource_type,
        )
    return ReferenceInfo(
        reference=value.get("reference"),
        display=value.get("display") or unnamed,
        type=value.get("type"),
    )


def notes(raw_notes: Any) -> list[Note]:
    if isinstance(raw_notes, str):
        return [Note(text=raw_notes)]
    if not isinstance(raw_notes, list):
        return []
    return [
        Note(
            text=note.get("text"),
            author=reference_info(note.get("authorReference") or note.get("authorString")),
            time=note.get("time"),
        )
        for note in raw_notes
        if isinstance(note, dict)
    ]


def joined_notes(raw_notes: Any) -> str:
    """Note texts joined with "; "."""
    return "; ".join(note.text for note in notes(raw_notes) if note.text)


def medication_display(resource: dict[str, Any]) -> str:
    """Medication label from ``medicationCodeableConcept`` or ``medicationReference``."""
    concept = resource.get("medicationCodeableConcept")
    if isinstance(concept, dict):
        return display_text(concept, "Unknown Medication")

    reference = resource.get("medicationReference")
    if isinstance(reference, dict):
        if reference.get("resourceType") == "Medication":
            return display_text(reference.get("code"), "Unknown Medication")
        if reference.get("display"):
            return reference["display"]
    return "Unknown Medication"


def normalize_safely(
    raw: Any,
    build: Callable[[dict[str, Any]], M],
    model: type[M],
    label: str,
) -> M:
    """Run ``build`` on ``raw``; on any failure return a placeholder ``model``.

    The placeholder keeps ``id`` (or "unknown"), the resource type, ``status``
    "unknown" and an ``error`` message, so one malformed resource never aborts
    the rest of the collection.
    """
    try:
        if not isinstance(raw, dict):
            raise TypeError(f"Expected a {label} resource, got {type(raw).__name__}")
        return build(raw)
    except Exception as e:
        logger.error(f"Error normalizing {label} data: {e}")
        resource_id = raw.get("id") if isinstance(raw, dict) else None
        return model(
            id=str(resource_id) if resource_id else "unknown",
            status="unknown",
            error=f"Error processing {label} data: {e}",
            raw_resource=raw if isinstance(raw, dict) else None,
        )
