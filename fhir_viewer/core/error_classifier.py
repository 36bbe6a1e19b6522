"""
Classification des erreurs brutes en ClassifiedError.

Ce module associe toute valeur levée (exception httpx, FHIROperationError, statut
HTTP, chaîne de caractères) à un membre de la taxonomie fermée définie dans
``fhir_viewer.core.exceptions``. Chaque type d'erreur porte un message fixe et un
conseil de remédiation (``help_text``) destiné à l'affichage direct.

La classification est pure: elle ne journalise rien et ne lève jamais.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from fhir_viewer.core.exceptions import (
    AuthErrorKind,
    ClassifiedError,
    DataErrorKind,
    ErrorDetails,
    ErrorKind,
    TransportErrorKind,
)
from fhir_viewer.infrastructure.fhir.exceptions import (
    FHIRAuthenticationError,
    FHIRConnectionError,
    FHIRInvalidResponseError,
    FHIRTimeoutError,
)
from fhir_viewer.schemas.results import EmptyDataInfo

# (message, help_text) par type d'erreur. "{resource}" est remplacé par le type
# de ressource FHIR quand il est connu.
ERROR_TEMPLATES: dict[ErrorKind, tuple[str, str]] = {
    AuthErrorKind.UNAUTHORIZED: (
        "Unauthorized access to FHIR resources",
        "Your session may have expired. Please try refreshing the page to re-authenticate.",
    ),
    AuthErrorKind.FORBIDDEN: (
        "Access to {resource} resources is forbidden",
        "Your account does not have permission to view this information. "
        "Contact your EHR administrator if you believe this is an error.",
    ),
    AuthErrorKind.EXPIRED_TOKEN: (
        "Your session has expired",
        "Relaunch the application from your EHR to obtain a new session.",
    ),
    AuthErrorKind.MISSING_TOKEN: (
        "User is not authenticated",
        "Please authenticate before making FHIR requests.",
    ),
    AuthErrorKind.INVALID_TOKEN: (
        "The access token was rejected by the FHIR server",
        "Relaunch the application from your EHR to obtain a new session.",
    ),
    AuthErrorKind.INVALID_SCOPE: (
        "The granted scopes do not allow access to {resource} resources",
        "Relaunch the application and approve the requested permissions.",
    ),
    AuthErrorKind.INVALID_CLIENT: (
        "Invalid FHIR client provided",
        "Please ensure you are properly authenticated before accessing FHIR resources.",
    ),
    TransportErrorKind.NETWORK_ERROR: (
        "Network error while connecting to FHIR server",
        "Please check your internet connection and try again.",
    ),
    TransportErrorKind.TIMEOUT: (
        "The FHIR server did not respond in time",
        "The server may be busy. Please try again in a few moments.",
    ),
    TransportErrorKind.RATE_LIMITED: (
        "Too many requests sent to the FHIR server",
        "Please wait a moment before trying again.",
    ),
    TransportErrorKind.SERVER_ERROR: (
        "FHIR server error occurred",
        "The FHIR server encountered an error. Please try again later.",
    ),
    TransportErrorKind.NOT_FOUND: (
        "{resource} resources not found",
        "The requested information could not be found for this patient.",
    ),
    TransportErrorKind.BAD_REQUEST: (
        "Bad request sent to the FHIR server",
        "The request was invalid. Please check the request parameters.",
    ),
    TransportErrorKind.VALIDATION_ERROR: (
        "The FHIR server rejected the request as invalid",
        "The FHIR resource failed validation. Please check the resource structure.",
    ),
    TransportErrorKind.MAX_RETRIES_EXCEEDED: (
        "Failed to connect to FHIR server after multiple attempts",
        "The server may be temporarily unavailable. Please try again later.",
    ),
    TransportErrorKind.DATA_RETRIEVAL_FAILED: (
        "Failed to retrieve {resource} data",
        "Please try again later. If the problem persists, contact support.",
    ),
    TransportErrorKind.UNKNOWN: (
        "An unexpected error occurred while retrieving {resource} data",
        "An unexpected error occurred. Please try again later.",
    ),
    DataErrorKind.EMPTY_RESPONSE: (
        "Empty response received from FHIR server",
        "The FHIR server returned an empty response. This may indicate a server issue.",
    ),
    DataErrorKind.INVALID_FORMAT: (
        "Invalid {resource} data format received",
        "The data returned from the FHIR server was not in the expected format.",
    ),
    DataErrorKind.MISSING_REQUIRED_FIELDS: (
        "{resource} resource is missing required fields",
        "The record is incomplete in the source EHR system.",
    ),
    DataErrorKind.MISSING_PARAMETER: (
        "A required parameter is missing",
        "A valid patient ID is required to retrieve health information.",
    ),
    DataErrorKind.MISSING_PATIENT_CONTEXT: (
        "Patient context could not be retrieved",
        "Try relaunching the application from your EHR with patient context.",
    ),
    DataErrorKind.VALIDATION_FAILED: (
        "{resource} resource failed validation",
        "The record does not conform to FHIR R4 and cannot be displayed.",
    ),
    DataErrorKind.UNSUPPORTED_RESOURCE_TYPE: (
        "Unsupported resource type: {resource}",
        "Please select a supported resource type.",
    ),
}

_AUTH_REASONS: dict[str, AuthErrorKind] = {
    "missing_token": AuthErrorKind.MISSING_TOKEN,
    "expired_token": AuthErrorKind.EXPIRED_TOKEN,
    "invalid_token": AuthErrorKind.INVALID_TOKEN,
    "invalid_scope": AuthErrorKind.INVALID_SCOPE,
}


def kind_for_status(status: int) -> ErrorKind:
    """Associe un statut HTTP d'échec à un type d'erreur."""
    if status == 401:
        return AuthErrorKind.UNAUTHORIZED
    if status == 403:
        return AuthErrorKind.FORBIDDEN
    if status == 404:
        return TransportErrorKind.NOT_FOUND
    if status == 400:
        return TransportErrorKind.BAD_REQUEST
    if status == 422:
        return TransportErrorKind.VALIDATION_ERROR
    if status == 408:
        return TransportErrorKind.TIMEOUT
    if status == 429:
        return TransportErrorKind.RATE_LIMITED
    if status >= 500:
        return TransportErrorKind.SERVER_ERROR
    return TransportErrorKind.UNKNOWN


def extract_status(raw_error: Any) -> int | None:
    """
    Extrait un statut HTTP d'une erreur brute, si elle en porte un.

    Supporte httpx.HTTPStatusError, les exceptions avec ``status_code`` ou
    ``status``, et les mappings avec une clé ``status``/``status_code``.
    """
    if isinstance(raw_error, ClassifiedError):
        return raw_error.details.http_status
    if isinstance(raw_error, httpx.HTTPStatusError):
        return raw_error.response.status_code
    if isinstance(raw_error, Mapping):
        candidate = raw_error.get("status", raw_error.get("status_code"))
    else:
        candidate = getattr(raw_error, "status_code", None)
        if candidate is None:
            candidate = getattr(raw_error, "status", None)
    if isinstance(candidate, bool):
        return None
    if isinstance(candidate, int):
        return candidate
    if isinstance(candidate, str) and candidate.isdigit():
        return int(candidate)
    return None


def _describe(raw_error: Any) -> str:
    if isinstance(raw_error, BaseException):
        text = str(raw_error)
        return f"{type(raw_error).__name__}: {text}" if text else type(raw_error).__name__
    if isinstance(raw_error, Mapping):
        return str(raw_error.get("message") or dict(raw_error))
    return str(raw_error)


def _kind_from_text(text: str) -> ErrorKind:
    lowered = text.lower()
    if "token" in lowered and "expired" in lowered:
        return AuthErrorKind.EXPIRED_TOKEN
    if "invalid token" in lowered or "invalid_token" in lowered:
        return AuthErrorKind.INVALID_TOKEN
    if "scope" in lowered and ("invalid" in lowered or "insufficient" in lowered):
        return AuthErrorKind.INVALID_SCOPE
    if "unauthorized" in lowered or "authentication" in lowered:
        return AuthErrorKind.UNAUTHORIZED
    if "forbidden" in lowered:
        return AuthErrorKind.FORBIDDEN
    if "timed out" in lowered or "timeout" in lowered:
        return TransportErrorKind.TIMEOUT
    if "network" in lowered or "fetch" in lowered or "connection" in lowered:
        return TransportErrorKind.NETWORK_ERROR
    return TransportErrorKind.UNKNOWN


def _kind_for(raw_error: Any) -> ErrorKind:
    if isinstance(raw_error, FHIRAuthenticationError):
        return _AUTH_REASONS.get(raw_error.reason, AuthErrorKind.UNAUTHORIZED)
    if isinstance(raw_error, FHIRInvalidResponseError):
        return DataErrorKind.INVALID_FORMAT

    status = extract_status(raw_error)
    if status is not None:
        return kind_for_status(status)

    if isinstance(
        raw_error, httpx.TimeoutException | FHIRTimeoutError | asyncio.TimeoutError
    ):
        return TransportErrorKind.TIMEOUT
    if isinstance(raw_error, httpx.TransportError | FHIRConnectionError | ConnectionError):
        return TransportErrorKind.NETWORK_ERROR

    return _kind_from_text(_describe(raw_error))


def render_template(kind: ErrorKind, resource_type: str | None = None) -> tuple[str, str]:
    """Retourne (message, help_text) pour un type d'erreur."""
    message, help_text = ERROR_TEMPLATES[kind]
    return message.format(resource=resource_type or "FHIR"), help_text


def create_error(
    kind: ErrorKind,
    message: str | None = None,
    *,
    cause: BaseException | None = None,
    **details: Any,
) -> ClassifiedError:
    """
    Construit directement une ClassifiedError d'un type connu.

    Utilisé aux points où l'échec est détecté sans exception brute (paramètre
    manquant, client invalide, format inattendu).

    Args:
        kind: Type d'erreur de la taxonomie
        message: Message explicite (sinon message du template)
        cause: Exception d'origine, chaînée via ``__cause__``
        **details: Champs de ErrorDetails (help_text, patient_id, ...)

    Returns:
        L'erreur classifiée (non levée)
    """
    template_message, template_help = render_template(kind, details.get("resource_type"))
    details.setdefault("help_text", template_help)
    if cause is not None:
        details.setdefault("original_error", _describe(cause))
    error = ClassifiedError(kind, message or template_message, ErrorDetails(**details))
    if cause is not None:
        error.__cause__ = cause
    return error


def classify(
    raw_error: Any,
    *,
    resource_type: str | None = None,
    patient_id: str | None = None,
    endpoint: str | None = None,
) -> ClassifiedError:
    """
    Convertit une erreur brute en ClassifiedError.

    Une erreur déjà classifiée est retournée telle quelle, complétée par le
    contexte manquant. Ne lève jamais: toute anomalie interne aboutit à une
    erreur de type UNKNOWN.

    Args:
        raw_error: Exception, réponse HTTP, mapping ou chaîne
        resource_type: Type de ressource FHIR concernée
        patient_id: Identifiant du patient
        endpoint: Requête FHIR concernée

    Returns:
        ClassifiedError correspondante

    Example:
        ```python
        try:
            response = await client.request(url)
        except Exception as e:
            raise classify(e, resource_type="AllergyIntolerance", patient_id=pid) from e
        ```
    """
    context = {
        "resource_type": resource_type,
        "patient_id": patient_id,
        "endpoint": endpoint,
    }
    try:
        if isinstance(raw_error, ClassifiedError):
            missing = {
                key: value
                for key, value in context.items()
                if value is not None and getattr(raw_error.details, key) is None
            }
            return raw_error.with_details(**missing) if missing else raw_error

        kind = _kind_for(raw_error)
        message, help_text = render_template(kind, resource_type)
        error = ClassifiedError(
            kind,
            message,
            ErrorDetails(
                help_text=help_text,
                http_status=extract_status(raw_error),
                original_error=_describe(raw_error),
                **context,
            ),
        )
    except Exception as exc:  # noqa: BLE001
        message, help_text = render_template(TransportErrorKind.UNKNOWN, resource_type)
        error = ClassifiedError(
            TransportErrorKind.UNKNOWN,
            message,
            ErrorDetails(help_text=help_text, original_error=repr(exc), **context),
        )
    if isinstance(raw_error, BaseException):
        error.__cause__ = raw_error
    return error


def handle_empty_data(
    resource_type: str,
    message: str | None = None,
    suggested_action: str | None = None,
) -> EmptyDataInfo:
    """
    Construit l'état informatif "aucune donnée" d'un type de ressource.

    Ce n'est pas une erreur: l'affichage doit le distinguer de toute
    ClassifiedError.
    """
    return EmptyDataInfo.for_resource(resource_type, message, suggested_action)
