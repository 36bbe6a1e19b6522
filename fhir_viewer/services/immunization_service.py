"""Service de recuperation des vaccinations (Immunization)."""

from typing import Any

from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.infrastructure.fhir.normalizers import normalize_immunization
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.resource_fetcher import FHIRTransport, ResourceFetcher, ResourceQuery

IMMUNIZATION_QUERY = ResourceQuery(
    resource_type="Immunization",
    selector="immunizations",
    label="immunization",
    default_references=("patient", "performer.actor"),
)

immunization_fetcher = ResourceFetcher(IMMUNIZATION_QUERY)


async def get_immunization_data(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await immunization_fetcher.fetch(transport, patient_id, options)


async def get_immunization_data_paginated(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    return await immunization_fetcher.fetch_paginated(transport, patient_id, options)


async def get_immunization_data_with_retry(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
    *,
    policy: RetryPolicy | None = None,
    events: RetryEventChannel | None = None,
    paginate: bool = False,
) -> ResourceCollection:
    """
    Recupere et normalise les vaccinations du patient avec retry.

    Raises:
        ClassifiedError: Echec de la recuperation
    """
    immunizations = await immunization_fetcher.fetch_with_retry(
        transport, patient_id, options, policy=policy, events=events, paginate=paginate
    )
    return ResourceCollection(
        resource_type=IMMUNIZATION_QUERY.selector,
        fhir_resource_type=IMMUNIZATION_QUERY.resource_type,
        patient_id=patient_id,
        resources=[normalize_immunization(immunization) for immunization in immunizations],
    )
