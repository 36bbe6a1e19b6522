"""FHIR R4 value sets used to constrain normalized enumerated fields.

Any value outside its value set is replaced by ``UNKNOWN`` during normalization.
"""

from typing import Any, Literal

UNKNOWN = "unknown"

# AllergyIntolerance
ClinicalStatus = Literal["active", "inactive", "resolved", "unknown"]
VerificationStatus = Literal["unconfirmed", "confirmed", "refuted", "entered-in-error", "unknown"]
Criticality = Literal["low", "high", "unable-to-assess", "unknown"]
AllergyType = Literal["allergy", "intolerance", "unknown"]
AllergyCategory = Literal["food", "medication", "environment", "biologic", "unknown"]
ReactionSeverity = Literal["mild", "moderate", "severe", "unknown"]

CLINICAL_STATUSES = frozenset({"active", "inactive", "resolved"})
VERIFICATION_STATUSES = frozenset({"unconfirmed", "confirmed", "refuted", "entered-in-error"})
CRITICALITIES = frozenset({"low", "high", "unable-to-assess"})
ALLERGY_TYPES = frozenset({"allergy", "intolerance"})
ALLERGY_CATEGORIES = frozenset({"food", "medication", "environment", "biologic"})
REACTION_SEVERITIES = frozenset({"mild", "moderate", "severe"})

# MedicationRequest
MedicationRequestStatus = Literal[
    "active",
    "on-hold",
    "cancelled",
    "completed",
    "entered-in-error",
    "stopped",
    "draft",
    "unknown",
]
MedicationRequestIntent = Literal[
    "proposal",
    "plan",
    "order",
    "original-order",
    "reflex-order",
    "filler-order",
    "instance-order",
    "option",
    "unknown",
]
MedicationRequestPriority = Literal["routine", "urgent", "asap", "stat", "unknown"]

MEDICATION_REQUEST_STATUSES = frozenset(
    {"active", "on-hold", "cancelled", "completed", "entered-in-error", "stopped", "draft"}
)
MEDICATION_REQUEST_INTENTS = frozenset(
    {
        "proposal",
        "plan",
        "order",
        "original-order",
        "reflex-order",
        "filler-order",
        "instance-order",
        "option",
    }
)
MEDICATION_REQUEST_PRIORITIES = frozenset({"routine", "urgent", "asap", "stat"})

# Immunization
ImmunizationStatus = Literal["completed", "entered-in-error", "not-done", "unknown"]

IMMUNIZATION_STATUSES = frozenset({"completed", "entered-in-error", "not-done"})


def coerce(value: Any, allowed: frozenset[str], default: str = UNKNOWN) -> str:
    """Return ``value`` lower-cased if it belongs to ``allowed``, else ``default``.

    Example:
        ```python
        coerce("HIGH", CRITICALITIES)        # "high"
        coerce("bogus-value", CLINICAL_STATUSES)  # "unknown"
        ```
    """
    if not isinstance(value, str):
        return default
    normalized = value.strip().lower()
    return normalized if normalized in allowed else default


def coded_value(concept: Any) -> str | None:
    """First ``coding.code`` of a CodeableConcept, falling back to its ``text``."""
    if not isinstance(concept, dict):
        return None
    codings = concept.get("coding")
    if isinstance(codings, list) and codings and isinstance(codings[0], dict):
        code = codings[0].get("code")
        if code:
            return code
    return concept.get("text") or None
