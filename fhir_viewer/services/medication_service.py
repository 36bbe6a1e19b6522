"""Service de recuperation de l'historique des medicaments (MedicationRequest)."""

from typing import Any

from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.infrastructure.fhir.normalizers import normalize_medication
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.resource_fetcher import FHIRTransport, ResourceFetcher, ResourceQuery

MEDICATION_QUERY = ResourceQuery(
    resource_type="MedicationRequest",
    selector="medications",
    label="medication",
    default_references=("patient", "requester"),
)

medication_fetcher = ResourceFetcher(MEDICATION_QUERY)


async def get_medication_data(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await medication_fetcher.fetch(transport, patient_id, options)


async def get_medication_data_paginated(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await medication_fetcher.fetch_paginated(transport, patient_id, options)


async def get_medication_data_with_retry(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
    *,
    policy: RetryPolicy | None = None,
    events: RetryEventChannel | None = None,
    paginate: bool = False,
) -> ResourceCollection:
    """
    Recupere et normalise l'historique des medicaments avec retry.

    Raises:
        ClassifiedError: Echec de la recuperation
    """
    medications = await medication_fetcher.fetch_with_retry(
        transport, patient_id, options, policy=policy, events=events, paginate=paginate
    )
    return ResourceCollection(
        resource_type=MEDICATION_QUERY.selector,
        fhir_resource_type=MEDICATION_QUERY.resource_type,
        patient_id=patient_id,
        resources=[normalize_medication(medication) for medication in medications],
    )
