"""Structural checks for AllergyIntolerance resources (FHIR R4).

This is not a profile validator: it checks the handful of fields the viewer relies
on. Errors make a resource ineligible for display; warnings are informational.
"""

import logging
from typing import Any

from fhir_viewer.infrastructure.fhir.value_sets import (
    ALLERGY_TYPES,
    CLINICAL_STATUSES,
    CRITICALITIES,
    VERIFICATION_STATUSES,
    coded_value,
)
from fhir_viewer.schemas.validation import ValidationResult

logger = logging.getLogger(__name__)


def _check_value(
    label: str, value: Any, allowed: frozenset[str], warnings: list[str]
) -> None:
    if value and (not isinstance(value, str) or value.lower() not in allowed):
        warnings.append(
            f"Invalid {label}: {value}. Expected values: {', '.join(sorted(allowed))}"
        )


def validate_allergy(allergy: Any) -> ValidationResult:
    """Validate an AllergyIntolerance resource.

    Errors: not a dict, wrong ``resourceType``, missing ``patient``.
    Warnings: missing id, patient without reference, non-conforming
    clinicalStatus/verificationStatus/criticality/type, missing or empty ``code``.

    Args:
        allergy: Raw resource

    Returns:
        ValidationResult (``valid`` iff there are no errors)
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(allergy, dict):
        errors.append("Allergy resource is null or not an object")
        return ValidationResult(valid=False, errors=errors, resource=allergy)

    if allergy.get("resourceType") != "AllergyIntolerance":
        errors.append(
            f"Invalid resource type: {allergy.get('resourceType')}. Expected: AllergyIntolerance"
        )

    if not allergy.get("id"):
        warnings.append("AllergyIntolerance resource missing recommended id field")

    patient = allergy.get("patient")
    if not patient:
        errors.append("AllergyIntolerance.patient is required")
    elif not isinstance(patient, dict) or not (patient.get("reference") or patient.get("id")):
        warnings.append("AllergyIntolerance.patient should have a valid reference")

    _check_value(
        "clinicalStatus", coded_value(allergy.get("clinicalStatus")), CLINICAL_STATUSES, warnings
    )
    _check_value(
        "verificationStatus",
        coded_value(allergy.get("verificationStatus")),
        VERIFICATION_STATUSES,
        warnings,
    )
    _check_value("criticality", allergy.get("criticality"), CRITICALITIES, warnings)

    code = allergy.get("code")
    if not code:
        warnings.append("AllergyIntolerance.code is recommended for meaningful allergy data")
    elif isinstance(code, dict):
        codings = code.get("coding")
        has_coding = isinstance(codings, list) and len(codings) > 0
        if not has_coding and not code.get("text"):
            warnings.append("AllergyIntolerance.code should contain either coding or text")
        for index, coding in enumerate(codings if has_coding else []):
            if not isinstance(coding, dict) or not (
                coding.get("system") or coding.get("code") or coding.get("display")
            ):
                warnings.append(
                    f"AllergyIntolerance.code.coding[{index}] should have system, code, or display"
                )

    allergy_type = allergy.get("type")
    if not allergy_type:
        warnings.append("AllergyIntolerance.type is recommended (allergy or intolerance)")
    else:
        _check_value("type", allergy_type, ALLERGY_TYPES, warnings)

    return ValidationResult(
        valid=not errors, errors=errors, warnings=warnings, resource=allergy
    )


def filter_valid_allergies(allergies: list[Any]) -> tuple[list[dict[str, Any]], int]:
    """Keep the allergies that pass validation.

    Invalid resources are logged and dropped, never merged into the displayed set.

    Returns:
        (valid resources, number of dropped resources)
    """
    valid: list[dict[str, Any]] = []
    dropped = 0
    for index, allergy in enumerate(allergies):
        result = validate_allergy(allergy)
        if result.valid:
            valid.append(allergy)
            if result.warnings:
                logger.debug(f"Allergy {allergy.get('id')} warnings: {result.warnings}")
        else:
            dropped += 1
            logger.warning(f"Dropping invalid allergy resource at index {index}: {result.errors}")
    if allergies:
        logger.info(f"Validated {len(valid)} out of {len(allergies)} allergy resources")
    return valid, dropped
