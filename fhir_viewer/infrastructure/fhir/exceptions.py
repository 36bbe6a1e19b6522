"""FHIR transport exceptions raised by the HTTP layer.

These are the raw failures observed by ``FHIRClient``. The retrieval pipeline converts
them into ``ClassifiedError`` instances through the error classifier.
"""

from typing import Any


class FHIRError(Exception):
    """Root of the raw transport failures; ``details`` feeds the classified error context."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FHIRConnectionError(FHIRError):
    """No HTTP response was received (DNS, refused connection, dropped socket).

    Classified as NETWORK_ERROR and retried by the default retry rule.
    """


class FHIRTimeoutError(FHIRConnectionError):
    """The server did not answer within ``FHIR_TIMEOUT`` seconds. Classified as TIMEOUT."""


class FHIRAuthenticationError(FHIRError):
    """Raised before a request is sent when the SMART session cannot authorize it."""

    def __init__(self, reason: str, message: str):
        super().__init__(message, {"reason": reason})
        self.reason = reason


class FHIRInvalidResponseError(FHIRError):
    """A 2xx response whose body is not JSON. Classified as INVALID_FORMAT."""


class FHIROperationError(FHIRError):
    """The server answered with a non-2xx status.

    ``status_code`` drives both the error kind and retry eligibility;
    ``operation_outcome`` keeps the OperationOutcome (or raw text) the server sent.
    """

    def __init__(self, status_code: int, message: str, operation_outcome: dict | None = None):
        super().__init__(message, {"status_code": status_code, "outcome": operation_outcome})
        self.status_code = status_code
        self.operation_outcome = operation_outcome
