"""Service de recuperation des prescriptions (MedicationRequest filtrees par statut).

Par defaut seules les prescriptions actives (``status=active``) sont demandees.
"""

from typing import Any

from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.infrastructure.fhir.normalizers import normalize_medication_request
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.resource_fetcher import FHIRTransport, ResourceFetcher, ResourceQuery

MEDICATION_REQUEST_QUERY = ResourceQuery(
    resource_type="MedicationRequest",
    selector="medication-requests",
    label="medication request",
    default_references=("medicationReference", "requester"),
    default_status="active",
)

medication_request_fetcher = ResourceFetcher(MEDICATION_REQUEST_QUERY)


async def get_medication_request_data(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await medication_request_fetcher.fetch(transport, patient_id, options)


async def get_medication_request_data_paginated(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await medication_request_fetcher.fetch_paginated(transport, patient_id, options)


async def get_medication_request_data_with_retry(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
    *,
    policy: RetryPolicy | None = None,
    events: RetryEventChannel | None = None,
    paginate: bool = False,
) -> ResourceCollection:
    """
    Recupere et normalise les prescriptions du patient avec retry.

    Raises:
        ClassifiedError: Echec de la recuperation
    """
    requests = await medication_request_fetcher.fetch_with_retry(
        transport, patient_id, options, policy=policy, events=events, paginate=paginate
    )
    return ResourceCollection(
        resource_type=MEDICATION_REQUEST_QUERY.selector,
        fhir_resource_type=MEDICATION_REQUEST_QUERY.resource_type,
        patient_id=patient_id,
        resources=[normalize_medication_request(request) for request in requests],
    )
