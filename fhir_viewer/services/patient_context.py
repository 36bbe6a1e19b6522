"""Contexte patient d'un lancement SMART.

Le patient en contexte est lu une fois apres le lancement puis passe
explicitement aux recuperations (pas d'etat global).
"""

import logging
from datetime import date
from typing import Any

from fhir.resources.R4B.patient import Patient as FHIRPatient
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, ValidationError

from fhir_viewer.core.error_classifier import classify, create_error
from fhir_viewer.core.exceptions import AuthErrorKind, DataErrorKind

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)


class PatientContext(BaseModel):
    """Patient en contexte: identifiant et ressource Patient brute."""

    model_config = ConfigDict(frozen=True)

    id: str
    resource: dict[str, Any]


class PatientDisplay(BaseModel):
    """Informations du bandeau patient."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = "Unknown Patient"
    gender: str | None = None
    birth_date: date | str | None = None
    mrn: str | None = None


async def get_patient_context(client: Any, patient_id: str | None = None) -> PatientContext:
    """
    Lit le Patient en contexte.

    Args:
        client: Client FHIR (``read`` et ``patient_id`` du lancement)
        patient_id: Identifiant explicite (sinon celui de la session SMART)

    Returns:
        PatientContext

    Raises:
        ClassifiedError: INVALID_FHIR_CLIENT, MISSING_PATIENT_CONTEXT ou erreur de transport
    """
    if client is None or not callable(getattr(client, "read", None)):
        raise create_error(AuthErrorKind.INVALID_CLIENT, resource_type="Patient")

    pid = patient_id or getattr(client, "patient_id", None)
    if not pid:
        raise create_error(
            DataErrorKind.MISSING_PATIENT_CONTEXT,
            "Patient ID not found in client context",
            resource_type="Patient",
        )

    with tracer.start_as_current_span("get_patient_context") as span:
        span.set_attribute("fhir.patient_id", pid)
        try:
            resource = await client.read("Patient", pid)
        except Exception as e:
            span.record_exception(e)
            raise classify(e, resource_type="Patient", patient_id=pid) from e

        if not resource:
            raise create_error(
                DataErrorKind.MISSING_PATIENT_CONTEXT,
                f"Patient {pid} not found",
                resource_type="Patient",
                patient_id=pid,
            )

        logger.info(f"Patient context retrieved: {pid}")
        return PatientContext(id=pid, resource=resource)


def validate_patient_context(context: Any) -> bool:
    """Vrai si le contexte porte un identifiant et une ressource Patient."""
    return (
        isinstance(context, PatientContext)
        and bool(context.id)
        and isinstance(context.resource, dict)
        and bool(context.resource)
    )


def _is_mrn(identifier: Any) -> bool:
    if identifier.system and "MRN" in identifier.system:
        return True
    codings = identifier.type.coding if identifier.type and identifier.type.coding else []
    return any(coding.code == "MR" for coding in codings)


def format_patient_display(resource: dict[str, Any] | None) -> PatientDisplay | None:
    """
    Formate le bandeau patient (nom, sexe, date de naissance, MRN).

    Le nom est ``name[0].text``, sinon prenoms et nom de famille.

    Raises:
        ClassifiedError: INVALID_FORMAT si la ressource n'est pas un Patient R4 valide
    """
    if not resource:
        return None
    try:
        patient = FHIRPatient.model_validate(resource)
    except ValidationError as e:
        raise create_error(
            DataErrorKind.INVALID_FORMAT,
            cause=e,
            resource_type="Patient",
            patient_id=resource.get("id"),
        ) from e

    display_name = "Unknown Patient"
    if patient.name:
        name = patient.name[0]
        given = " ".join(name.given or [])
        display_name = name.text or f"{given} {name.family or ''}".strip() or display_name

    mrn = next(
        (identifier.value for identifier in patient.identifier or [] if _is_mrn(identifier)),
        None,
    )
    return PatientDisplay(
        id=patient.id,
        name=display_name,
        gender=patient.gender,
        birth_date=patient.birthDate,
        mrn=mrn,
    )
