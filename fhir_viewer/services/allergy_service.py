"""Service de recuperation des allergies (AllergyIntolerance).

Pipeline: recherche FHIR avec retry -> validation (les ressources invalides
sont ecartees) -> normalisation -> ResourceCollection.
"""

import logging
from typing import Any

from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.infrastructure.fhir.normalizers import normalize_allergies
from fhir_viewer.infrastructure.fhir.validators import filter_valid_allergies
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.resource_fetcher import FHIRTransport, ResourceFetcher, ResourceQuery

logger = logging.getLogger(__name__)

ALLERGY_QUERY = ResourceQuery(
    resource_type="AllergyIntolerance",
    selector="allergies",
    label="allergy",
    default_references=("patient", "asserter"),
)

allergy_fetcher = ResourceFetcher(ALLERGY_QUERY)


async def get_allergy_data(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    """Recupere les AllergyIntolerance brutes du patient (une page)."""
    return await allergy_fetcher.fetch(transport, patient_id, options)


async def get_allergy_data_paginated(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
) -> list[dict[str, Any]]:
    """Recupere les AllergyIntolerance brutes du patient sur plusieurs pages."""
    return await allergy_fetcher.fetch_paginated(transport, patient_id, options)


def build_allergy_collection(
    allergies: list[dict[str, Any]], patient_id: str
) -> ResourceCollection:
    """
    Valide puis normalise les allergies brutes.

    Les ressources invalides (patient manquant, mauvais type) sont journalisees
    et ecartees; les avertissements n'empechent pas l'affichage.
    """
    valid, dropped = filter_valid_allergies(allergies)
    if dropped:
        logger.warning(f"{dropped} invalid allergy resources dropped for patient {patient_id}")
    return ResourceCollection(
        resource_type=ALLERGY_QUERY.selector,
        fhir_resource_type=ALLERGY_QUERY.resource_type,
        patient_id=patient_id,
        resources=normalize_allergies(valid),
        dropped=dropped,
    )


async def get_allergy_data_with_retry(
    transport: FHIRTransport,
    patient_id: str,
    options: FetchOptions | None = None,
    *,
    policy: RetryPolicy | None = None,
    events: RetryEventChannel | None = None,
    paginate: bool = False,
) -> ResourceCollection:
    """
    Recupere, valide et normalise les allergies du patient avec retry.

    Args:
        transport: Client FHIR authentifie
        patient_id: Identifiant du patient
        options: Options de requete
        policy: Politique de retry (defaut: 3 retries, 1000 ms, x2)
        events: Canal de progression des retries
        paginate: Suivre les liens ``next``

    Returns:
        ResourceCollection (vide si le patient n'a aucune allergie)

    Raises:
        ClassifiedError: Echec de la recuperation
    """
    allergies = await allergy_fetcher.fetch_with_retry(
        transport, patient_id, options, policy=policy, events=events, paginate=paginate
    )
    return build_allergy_collection(allergies, patient_id)
