"""
Taxonomie fermée des erreurs du pipeline de récupération FHIR.

Toute erreur remontée à l'interface est une ``ClassifiedError`` dont le ``kind``
appartient à l'une des trois énumérations ci-dessous (auth, transport, données).
Les erreurs brutes (httpx, FHIROperationError, ...) sont converties une seule fois,
à la frontière où elles sont observées, par ``fhir_viewer.core.error_classifier.classify``.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict


class AuthErrorKind(str, Enum):
    """Erreurs d'authentification et d'autorisation."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SCOPE = "INVALID_SCOPE"
    INVALID_CLIENT = "INVALID_FHIR_CLIENT"


class TransportErrorKind(str, Enum):
    """Erreurs réseau et serveur FHIR."""

    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    NOT_FOUND = "RESOURCE_NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
    DATA_RETRIEVAL_FAILED = "DATA_RETRIEVAL_FAILED"
    UNKNOWN = "UNKNOWN_ERROR"


class DataErrorKind(str, Enum):
    """Erreurs liées à la forme des données reçues ou des paramètres fournis."""

    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    MISSING_PATIENT_CONTEXT = "MISSING_PATIENT_CONTEXT"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNSUPPORTED_RESOURCE_TYPE = "UNSUPPORTED_RESOURCE_TYPE"


ErrorKind: TypeAlias = AuthErrorKind | TransportErrorKind | DataErrorKind

# Erreurs de niveau réseau (éligibles au retry par défaut)
NETWORK_KINDS: frozenset[ErrorKind] = frozenset(
    {TransportErrorKind.NETWORK_ERROR, TransportErrorKind.TIMEOUT}
)


class ErrorDetails(BaseModel):
    """Contexte attaché à une erreur classifiée."""

    model_config = ConfigDict(frozen=True)

    help_text: str | None = None
    http_status: int | None = None
    original_error: str | None = None
    resource_type: str | None = None
    patient_id: str | None = None
    endpoint: str | None = None
    retries_attempted: int | None = None


class ClassifiedError(Exception):
    """
    Erreur typée du pipeline FHIR.

    Immuable une fois créée: ``with_details`` retourne une nouvelle instance.
    Les appelants discriminent sur ``kind`` (ou ``category``) sans tester le type
    de l'exception d'origine, accessible via ``__cause__``.

    Attributes:
        kind: Membre de AuthErrorKind, TransportErrorKind ou DataErrorKind
        message: Message lisible par l'utilisateur
        details: Contexte (aide, statut HTTP, patient, ressource, retries)
        timestamp: Instant de création (UTC)

    Example:
        ```python
        try:
            collection = await get_allergy_data_with_retry(client, patient_id)
        except ClassifiedError as e:
            if e.category == "auth":
                show_login_prompt(e.details.help_text)
        ```
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: ErrorDetails | None = None,
        timestamp: datetime | None = None,
    ):
        if not isinstance(kind, AuthErrorKind | TransportErrorKind | DataErrorKind):
            raise TypeError(f"Unsupported error kind: {kind!r}")
        super().__init__(message)
        self._kind = kind
        self._message = message
        self._details = details or ErrorDetails()
        self._timestamp = timestamp or datetime.now(UTC)

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def details(self) -> ErrorDetails:
        return self._details

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def category(self) -> str:
        """Famille de l'erreur: "auth", "transport" ou "data"."""
        if isinstance(self._kind, AuthErrorKind):
            return "auth"
        if isinstance(self._kind, TransportErrorKind):
            return "transport"
        return "data"

    @property
    def is_network(self) -> bool:
        return self._kind in NETWORK_KINDS

    def with_details(self, **changes: Any) -> "ClassifiedError":
        """
        Retourne une copie de l'erreur avec des détails complétés.

        Le timestamp et la cause d'origine sont conservés.
        """
        updated = ClassifiedError(
            self._kind,
            self._message,
            self._details.model_copy(update=changes),
            self._timestamp,
        )
        updated.__cause__ = self.__cause__
        return updated

    def to_dict(self) -> dict[str, Any]:
        """Représentation sérialisable (affichage JSON brut)."""
        return {
            "type": self._kind.value,
            "category": self.category,
            "message": self._message,
            "details": self._details.model_dump(exclude_none=True),
            "timestamp": self._timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self._kind.value}, message={self._message!r})"
