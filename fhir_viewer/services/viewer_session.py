"""Session du viewer: patient en contexte et selection du type de ressource.

Chaque selection ouvre une nouvelle generation. Une recuperation encore en cours
pour une selection precedente est annulee, et un resultat arrivant pour une
generation depassee n'est jamais expose comme resultat courant.
"""

import asyncio
import logging

from pydantic import BaseModel, ConfigDict

from fhir_viewer.core.retry import RetryEventChannel, RetryPolicy
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.patient_context import PatientContext
from fhir_viewer.services.resource_fetcher import FHIRTransport
from fhir_viewer.services.resource_service import (
    ResourceType,
    fetch_resource_data,
    parse_resource_type,
)

logger = logging.getLogger(__name__)


class SelectionResult(BaseModel):
    """
    Issue d'une selection.

    ``superseded`` est vrai quand une selection plus recente a remplace
    celle-ci avant la fin de la recuperation; ``collection`` est alors None.
    """

    model_config = ConfigDict(frozen=True)

    generation: int
    resource_type: ResourceType
    collection: ResourceCollection | None = None
    superseded: bool = False


def _superseded(generation: int, resource_type: ResourceType) -> SelectionResult:
    return SelectionResult(generation=generation, resource_type=resource_type, superseded=True)


class ViewerSession:
    """
    Etat d'une session de consultation pour un patient.

    Example:
        ```python
        session = ViewerSession(client, patient_context, events=channel)
        result = await session.select("allergies")
        if not result.superseded:
            render(result.collection)
        ```
    """

    def __init__(
        self,
        transport: FHIRTransport,
        patient: PatientContext,
        *,
        options: FetchOptions | None = None,
        policy: RetryPolicy | None = None,
        events: RetryEventChannel | None = None,
        paginate: bool = False,
    ):
        self.transport = transport
        self.patient = patient
        self.options = options
        self.policy = policy
        self.events = events or RetryEventChannel()
        self.paginate = paginate
        self.current_resource_type: ResourceType | None = None
        self.current_collection: ResourceCollection | None = None
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info(f"Cancelled superseded fetch (generation {self._generation - 1})")

    async def select(self, resource_type: ResourceType | str) -> SelectionResult:
        """
        Selectionne un type de ressource et recupere ses donnees.

        Annule la recuperation en cours d'une selection precedente.

        Returns:
            SelectionResult (``superseded`` si une selection plus recente l'a remplacee)

        Raises:
            ClassifiedError: Type non supporte ou echec de recuperation (selection courante)
        """
        selected = parse_resource_type(resource_type)
        self._generation += 1
        generation = self._generation
        self.current_resource_type = selected
        self._cancel_in_flight()

        task = asyncio.create_task(
            fetch_resource_data(
                self.transport,
                self.patient.id,
                selected,
                self.options,
                policy=self.policy,
                events=self.events,
                paginate=self.paginate,
            )
        )
        self._task = task

        try:
            collection = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self.is_current(generation):
                return _superseded(generation, selected)
            task.cancel()
            raise
        except Exception:
            if not self.is_current(generation):
                return _superseded(generation, selected)
            raise

        if not self.is_current(generation):
            logger.debug(f"Discarding stale {selected.value} result (generation {generation})")
            return _superseded(generation, selected)

        self.current_collection = collection
        return SelectionResult(generation=generation, resource_type=selected, collection=collection)

    async def close(self) -> None:
        """Annule la recuperation en cours, le cas echeant."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
