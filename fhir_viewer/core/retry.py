"""Module de retry avec backoff exponentiel pour opérations asynchrones.

Ce module fournit l'exécuteur de retry du pipeline de récupération FHIR: toute
opération asynchrone sans argument est rejouée selon une ``RetryPolicy``
(délai de base, multiplicateur, codes HTTP éligibles), avec backoff exponentiel
sans jitter, via tenacity.

La progression des tentatives est publiée sur un ``RetryEventChannel``, séparé
du résultat de l'opération, pour que l'interface puisse afficher
"Retrying connection to FHIR server (attempt 1 of 3)..." sans partager de
closure avec la logique de récupération.

Quel que soit le chemin d'échec, l'appelant reçoit une ``ClassifiedError``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fhir_viewer.core.config import settings
from fhir_viewer.core.error_classifier import classify, create_error, extract_status
from fhir_viewer.core.exceptions import ClassifiedError, TransportErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


class RetryPolicy(BaseModel):
    """
    Configuration du retry pour un appel unique.

    Attributes:
        max_retries: Nombre maximum de nouvelles tentatives (0 = une seule tentative)
        base_delay_ms: Délai avant la première nouvelle tentative (millisecondes)
        backoff_multiplier: Facteur appliqué au délai à chaque tentative
        retryable_status_codes: Codes HTTP déclenchant un retry par défaut
        should_retry: Prédicat remplaçant la règle par défaut
        on_retry: Callback (tentative, erreur) appelé avant l'attente du backoff,
            en même temps que la publication du RetryEvent
        on_exhausted: Construit l'erreur finale à partir de la dernière erreur
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1000, gt=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    should_retry: Callable[[BaseException], bool] | None = None
    # Appelé avant le backoff, comme la publication du RetryEvent
    on_retry: Callable[[int, BaseException], None] | None = None
    on_exhausted: Callable[[BaseException], ClassifiedError] | None = None

    def delay_ms(self, attempt: int) -> float:
        """Délai (ms) avant la nouvelle tentative suivant l'échec ``attempt``."""
        return self.base_delay_ms * self.backoff_multiplier ** (attempt - 1)


def resource_fetch_policy(**overrides: Any) -> RetryPolicy:
    """Politique par défaut pour la récupération de ressources (3 / 1000 ms / x2)."""
    values: dict[str, Any] = {
        "max_retries": settings.RETRY_MAX_RETRIES,
        "base_delay_ms": settings.RETRY_BASE_DELAY_MS,
        "backoff_multiplier": settings.RETRY_BACKOFF_MULTIPLIER,
        "retryable_status_codes": frozenset(settings.RETRYABLE_STATUS_CODES),
    }
    values.update(overrides)
    return RetryPolicy(**values)


class RetryEvent(BaseModel):
    """Événement de progression publié avant chaque nouvelle tentative."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    attempt: int
    max_retries: int
    delay_ms: float
    error: BaseException
    message: str


RetryListener = Callable[[RetryEvent], None]


class RetryEventChannel:
    """
    Canal d'observation des tentatives de retry.

    Les abonnés reçoivent chaque ``RetryEvent``; une exception levée par un
    abonné est journalisée et n'interrompt ni les autres abonnés ni le retry.

    Example:
        ```python
        channel = RetryEventChannel()
        unsubscribe = channel.subscribe(lambda event: print(event.message))
        result = await execute_with_retry(operation, policy, events=channel)
        unsubscribe()
        ```
    """

    def __init__(self) -> None:
        self._listeners: list[RetryListener] = []

    def subscribe(self, listener: RetryListener) -> Callable[[], None]:
        """Abonne un listener et retourne la fonction de désabonnement."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: RetryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Retry event listener failed")


def is_retryable(error: BaseException, policy: RetryPolicy) -> bool:
    """
    Règle d'éligibilité au retry.

    ``policy.should_retry`` si fourni, sinon: une erreur portant un statut HTTP
    n'est rejouée que si ce statut est dans ``retryable_status_codes``; une
    erreur sans statut est rejouée si elle est de niveau réseau.

    Un prédicat ``should_retry`` qui lève une exception vaut refus du retry.
    """
    if not isinstance(error, Exception):
        return False
    if policy.should_retry is not None:
        try:
            return bool(policy.should_retry(error))
        except Exception:
            logger.exception(f"Retry predicate failed on {type(error).__name__}, not retrying")
            return False
    status = extract_status(error)
    if status is not None:
        return status in policy.retryable_status_codes
    classified = error if isinstance(error, ClassifiedError) else classify(error)
    return classified.is_network


def default_on_exhausted(error: BaseException, retries_attempted: int) -> ClassifiedError:
    """
    Construit l'erreur finale après épuisement ou refus du retry.

    - Erreur déjà classifiée: conservée, annotée avec ``retries_attempted``
    - Erreur brute rejouée: MAX_RETRIES_EXCEEDED
    - Erreur brute non rejouée: classifiée
    """
    if isinstance(error, ClassifiedError):
        return error.with_details(retries_attempted=retries_attempted)
    if retries_attempted > 0:
        return create_error(
            TransportErrorKind.MAX_RETRIES_EXCEEDED,
            cause=error,
            http_status=extract_status(error),
            retries_attempted=retries_attempted,
        )
    return classify(error).with_details(retries_attempted=0)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    events: RetryEventChannel | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Exécute une opération async avec retry et backoff exponentiel.

    Tentatives 1..max_retries+1; délai ``base_delay_ms * backoff_multiplier^(n-1)``
    avant la tentative n+1, sans jitter et sans bloquer la boucle d'événements.

    Args:
        operation: Fonction async sans argument
        policy: Politique de retry (défaut: RetryPolicy())
        events: Canal recevant un RetryEvent avant chaque nouvelle tentative
        sleep: Fonction d'attente async (secondes)
        description: Libellé de l'opération pour les logs

    Returns:
        Résultat de l'opération

    Raises:
        ClassifiedError: Après épuisement des tentatives ou erreur non éligible

    Example:
        ```python
        allergies = await execute_with_retry(
            lambda: fetcher.fetch(client, patient_id, options),
            resource_fetch_policy(),
            events=channel,
        )
        ```
    """
    policy = policy or RetryPolicy()
    attempts = 0

    def _before_sleep(retry_state: RetryCallState) -> None:
        attempt = retry_state.attempt_number
        error = retry_state.outcome.exception()
        delay_ms = policy.delay_ms(attempt)
        logger.warning(
            f"Retry attempt {attempt}/{policy.max_retries} for {description} "
            f"after {delay_ms:.0f}ms - Exception: {error}"
        )
        if events is not None:
            events.publish(
                RetryEvent(
                    attempt=attempt,
                    max_retries=policy.max_retries,
                    delay_ms=delay_ms,
                    error=error,
                    message=(
                        "Retrying connection to FHIR server "
                        f"(attempt {attempt} of {policy.max_retries})..."
                    ),
                )
            )
        if policy.on_retry is not None:
            policy.on_retry(attempt, error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(
            multiplier=policy.base_delay_ms / 1000,
            exp_base=policy.backoff_multiplier,
            min=0,
        ),
        retry=retry_if_exception(lambda e: is_retryable(e, policy)),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=False,
    )

    try:
        async for attempt_state in retrying:
            with attempt_state:
                attempts += 1
                return await operation()
    except RetryError as e:
        last_error = e.last_attempt.exception()
    except Exception as e:
        # Erreur non éligible au retry: tenacity la relance telle quelle
        last_error = e

    retries_attempted = max(attempts - 1, 0)
    if policy.on_exhausted is not None:
        final_error = policy.on_exhausted(last_error)
        if not isinstance(final_error, ClassifiedError):
            final_error = classify(final_error)
    else:
        final_error = default_on_exhausted(last_error, retries_attempted)

    logger.error(
        f"{description} failed after {attempts} attempt(s): "
        f"{final_error.kind.value} - {final_error.message}"
    )
    raise final_error
