"""Recuperation generique des ressources FHIR d'un patient.

Ce module implemente la recherche FHIR parametree par type de ressource:
- Verification des preconditions (client, patient) avant tout appel reseau
- Construction de la requete ``<Type>?patient=<id>&_sort=<ordre>&_count=<n>``
- Classification des erreurs brutes a la frontiere du transport
- Variante paginee suivant les liens ``next`` des Bundles
- Enveloppe de retry avec la politique de recuperation des ressources
"""

import logging
from typing import Any, Protocol
from urllib.parse import urlencode

from opentelemetry import trace
from pydantic import BaseModel, ConfigDict

from fhir_viewer.core.error_classifier import classify, create_error
from fhir_viewer.core.exceptions import AuthErrorKind, ClassifiedError, DataErrorKind
from fhir_viewer.core.retry import (
    RetryEventChannel,
    RetryPolicy,
    execute_with_retry,
    resource_fetch_policy,
)
from fhir_viewer.infrastructure.fhir.processors import next_page_url, process_response
from fhir_viewer.schemas.options import FetchOptions

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)


class FHIRTransport(Protocol):
    """Transport authentifie attendu par les fetchers (voir ``FHIRClient``)."""

    async def request(
        self,
        endpoint: str,
        *,
        resolve_references: Any = (),
        params: dict[str, Any] | None = None,
    ) -> Any: ...


class ResourceQuery(BaseModel):
    """
    Description d'une famille de ressources recuperables.

    Attributes:
        resource_type: Type FHIR interroge (ex: "AllergyIntolerance")
        selector: Selecteur expose a l'interface (ex: "allergies")
        label: Libelle pour les logs (ex: "allergy")
        default_references: References resolues par defaut
        default_status: Filtre ``status`` par defaut (None = aucun filtre)
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str
    selector: str
    label: str
    default_references: tuple[str, ...] = ()
    default_status: str | None = None


class ResourceFetcher:
    """
    Fetcher d'un type de ressource FHIR pour un patient.

    Example:
        ```python
        fetcher = ResourceFetcher(ALLERGY_QUERY)
        resources = await fetcher.fetch(client, "smart-1288992", FetchOptions())
        ```
    """

    def __init__(self, query: ResourceQuery):
        self.query = query

    @property
    def resource_type(self) -> str:
        return self.query.resource_type

    def build_endpoint(self, patient_id: str, options: FetchOptions) -> str:
        """Construit l'URL de recherche relative a la base FHIR."""
        params: dict[str, Any] = {"patient": patient_id}
        status = options.status or self.query.default_status
        if status:
            params["status"] = status
        params["_sort"] = options.sort_order
        params["_count"] = options.page_size
        return f"{self.resource_type}?{urlencode(params)}"

    def references(self, options: FetchOptions) -> tuple[str, ...]:
        if options.include_references is None:
            return self.query.default_references
        return options.include_references

    def _check_preconditions(self, transport: Any, patient_id: str | None) -> None:
        """Echec immediat, sans appel reseau, si le client ou le patient manque."""
        if transport is None or not callable(getattr(transport, "request", None)):
            raise create_error(
                AuthErrorKind.INVALID_CLIENT,
                resource_type=self.resource_type,
            )
        if not patient_id or not str(patient_id).strip():
            raise create_error(
                DataErrorKind.MISSING_PARAMETER,
                "Patient ID is required",
                resource_type=self.resource_type,
            )

    async def _request(
        self,
        transport: FHIRTransport,
        endpoint: str,
        patient_id: str,
        references: tuple[str, ...],
    ) -> Any:
        try:
            return await transport.request(endpoint, resolve_references=references)
        except ClassifiedError as e:
            # Deja classifiee: seul le contexte manquant est complete
            raise classify(
                e, resource_type=self.resource_type, patient_id=patient_id, endpoint=endpoint
            )
        except Exception as e:
            raise classify(
                e,
                resource_type=self.resource_type,
                patient_id=patient_id,
                endpoint=endpoint,
            ) from e

    async def fetch(
        self,
        transport: FHIRTransport,
        patient_id: str,
        options: FetchOptions | None = None,
    ) -> list[dict[str, Any]]:
        """
        Recupere une page de ressources du patient.

        Args:
            transport: Client FHIR authentifie
            patient_id: Identifiant du patient
            options: Options de requete (tri, nombre, statut, references)

        Returns:
            Ressources brutes du type attendu (liste vide si aucune)

        Raises:
            ClassifiedError: Precondition non respectee ou echec du transport
        """
        self._check_preconditions(transport, patient_id)
        options = options or FetchOptions()
        endpoint = self.build_endpoint(patient_id, options)

        with tracer.start_as_current_span(f"fetch_{self.resource_type}") as span:
            span.set_attribute("fhir.resource_type", self.resource_type)
            span.set_attribute("fhir.patient_id", patient_id)
            logger.info(f"Retrieving {self.query.label} data for patient: {patient_id}")

            try:
                response = await self._request(
                    transport, endpoint, patient_id, self.references(options)
                )
            except ClassifiedError as e:
                span.record_exception(e)
                span.set_attribute("fhir.error_type", e.kind.value)
                raise

            resources = process_response(response, self.resource_type)
            span.set_attribute("fhir.result_count", len(resources))
            logger.info(f"Retrieved {len(resources)} {self.resource_type} resources")
            return resources

    async def fetch_paginated(
        self,
        transport: FHIRTransport,
        patient_id: str,
        options: FetchOptions | None = None,
    ) -> list[dict[str, Any]]:
        """
        Recupere toutes les pages (liens ``next``) jusqu'a ``options.max_pages``.

        S'arrete des qu'une page n'a plus de lien ``next``.
        """
        self._check_preconditions(transport, patient_id)
        options = options or FetchOptions()
        references = self.references(options)
        endpoint: str | None = self.build_endpoint(patient_id, options)
        resources: list[dict[str, Any]] = []

        with tracer.start_as_current_span(f"fetch_{self.resource_type}_paginated") as span:
            span.set_attribute("fhir.resource_type", self.resource_type)
            span.set_attribute("fhir.patient_id", patient_id)

            pages = 0
            try:
                while endpoint and pages < options.max_pages:
                    response = await self._request(transport, endpoint, patient_id, references)
                    pages += 1
                    page_resources = process_response(response, self.resource_type)
                    resources.extend(page_resources)
                    logger.debug(
                        f"Retrieved page {pages} with {len(page_resources)} {self.resource_type} resources"
                    )
                    endpoint = next_page_url(response)
            except ClassifiedError as e:
                span.record_exception(e)
                span.set_attribute("fhir.error_type", e.kind.value)
                span.set_attribute("fhir.page_count", pages)
                raise

            if endpoint:
                logger.warning(
                    f"Stopped {self.resource_type} pagination at {options.max_pages} pages"
                )
            span.set_attribute("fhir.page_count", pages)
            span.set_attribute("fhir.result_count", len(resources))
            logger.info(
                f"Retrieved {len(resources)} {self.resource_type} resources in {pages} page(s)"
            )
            return resources

    async def fetch_with_retry(
        self,
        transport: FHIRTransport,
        patient_id: str,
        options: FetchOptions | None = None,
        *,
        policy: RetryPolicy | None = None,
        events: RetryEventChannel | None = None,
        paginate: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Recupere les ressources avec retry et backoff exponentiel.

        Politique par defaut: 3 retries, 1000 ms, multiplicateur 2.

        Raises:
            ClassifiedError: Apres epuisement des tentatives ou erreur non rejouable
        """
        fetch = self.fetch_paginated if paginate else self.fetch
        return await execute_with_retry(
            lambda: fetch(transport, patient_id, options),
            policy or resource_fetch_policy(),
            events=events,
            description=f"{self.query.label} retrieval",
        )
