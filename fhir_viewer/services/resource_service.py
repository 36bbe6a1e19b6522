"""Point d'entree unique de recuperation par type de ressource.

Le selecteur de l'interface (allergies, medications, ...) est resolu vers le
service correspondant. Toute erreur sortante est une ClassifiedError.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from opentelemetry import trace

from fhir_viewer.core.error_classifier import create_error
from fhir_viewer.core.exceptions import ClassifiedError, DataErrorKind, TransportErrorKind
from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.allergy_service import get_allergy_data_with_retry
from fhir_viewer.services.immunization_service import get_immunization_data_with_retry
from fhir_viewer.services.medication_request_service import (
    get_medication_request_data_with_retry,
)
from fhir_viewer.services.medication_service import get_medication_data_with_retry
from fhir_viewer.services.resource_fetcher import FHIRTransport

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)


class ResourceType(str, Enum):
    """Types de ressources selectionnables dans le viewer."""

    ALLERGIES = "allergies"
    MEDICATIONS = "medications"
    MEDICATION_REQUESTS = "medication-requests"
    IMMUNIZATIONS = "immunizations"


ResourceHandler = Callable[..., Awaitable[ResourceCollection]]

RESOURCE_HANDLERS: dict[ResourceType, ResourceHandler] = {
    ResourceType.ALLERGIES: get_allergy_data_with_retry,
    ResourceType.MEDICATIONS: get_medication_data_with_retry,
    ResourceType.MEDICATION_REQUESTS: get_medication_request_data_with_retry,
    ResourceType.IMMUNIZATIONS: get_immunization_data_with_retry,
}


def parse_resource_type(value: "ResourceType | str") -> ResourceType:
    """
    Resout un selecteur en ResourceType.

    Raises:
        ClassifiedError: UNSUPPORTED_RESOURCE_TYPE si le selecteur est inconnu
    """
    try:
        return ResourceType(value)
    except ValueError:
        raise create_error(
            DataErrorKind.UNSUPPORTED_RESOURCE_TYPE,
            resource_type=str(value),
        ) from None


async def fetch_resource_data(
    transport: FHIRTransport,
    patient_id: str,
    resource_type: ResourceType | str,
    options: FetchOptions | None = None,
    *,
    policy: RetryPolicy | None = None,
    events: RetryEventChannel | None = None,
    paginate: bool = False,
) -> ResourceCollection:
    """
    Recupere les ressources d'un type pour un patient.

    Args:
        transport: Client FHIR authentifie
        patient_id: Identifiant du patient
        resource_type: Selecteur (allergies, medications, medication-requests, immunizations)
        options: Options de requete
        policy: Politique de retry
        events: Canal de progression des retries
        paginate: Suivre les liens ``next``

    Returns:
        ResourceCollection (eventuellement vide)

    Raises:
        ClassifiedError: Type non supporte ou echec de recuperation
    """
    selected = parse_resource_type(resource_type)
    handler = RESOURCE_HANDLERS[selected]

    with tracer.start_as_current_span("fetch_resource_data") as span:
        span.set_attribute("viewer.resource_type", selected.value)
        span.set_attribute("fhir.patient_id", patient_id or "")
        try:
            collection = await handler(
                transport, patient_id, options, policy=policy, events=events, paginate=paginate
            )
        except ClassifiedError as e:
            logger.error(
                f"Failed to fetch {selected.value} for patient {patient_id}: "
                f"{e.kind.value} - {e.message}"
            )
            raise
        except Exception as e:
            logger.exception(f"Unexpected error fetching {selected.value}")
            raise create_error(
                TransportErrorKind.DATA_RETRIEVAL_FAILED,
                cause=e,
                resource_type=selected.value,
                patient_id=patient_id,
            ) from e

        span.set_attribute("viewer.result_count", len(collection))
        return collection
