"""Authenticated async FHIR client for SMART on FHIR servers.

This module provides an async HTTP client for reading clinical resources from a
FHIR R4 server with bearer-token injection, inline reference resolution,
OpenTelemetry tracing, and proper error handling. Retries are applied by the
caller (see ``fhir_viewer.core.retry``), not by the transport.
"""

import copy
import json
import logging
from collections.abc import Iterable
from typing import Any

import httpx
from opentelemetry import trace

from fhir_viewer.infrastructure.fhir.auth import SMARTSession
from fhir_viewer.infrastructure.fhir.config import fhir_settings
from fhir_viewer.infrastructure.fhir.exceptions import (
    FHIRAuthenticationError,
    FHIRConnectionError,
    FHIRInvalidResponseError,
    FHIROperationError,
    FHIRTimeoutError,
)

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)

# (holder, key, reference) where holder[key] is the reference object
ReferenceSlot = tuple[dict | list, str | int, dict]


class FHIRClient:
    """Async FHIR client with SMART bearer authentication and OpenTelemetry tracing.

    This client provides the read primitives the viewer needs:
    - ``request`` for search URLs (relative or absolute ``next`` links)
    - ``read`` for a single resource by id
    - Inline resolution of referenced resources

    A client created without a session talks to an open (unsecured) FHIR endpoint.
    A client created with a session refuses to send requests once the session has
    no token or an expired token.

    Example:
        ```python
        async with FHIRClient("https://fhir.example.org/r4", session=session) as client:
            bundle = await client.request(
                "AllergyIntolerance?patient=123",
                resolve_references=["asserter"],
            )
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: SMARTSession | None = None,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the FHIR client.

        Args:
            base_url: FHIR server base URL. Defaults to the session server URL, then settings.
            session: SMART token state used to authorize requests.
            timeout: Request timeout in seconds. Defaults to settings.
            transport: Optional httpx transport (used by tests).
        """
        server_url = base_url or (session.server_url if session else None)
        self.base_url = (server_url or str(fhir_settings.FHIR_BASE_URL)).rstrip("/")
        self.session = session
        self.timeout = timeout or fhir_settings.FHIR_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def patient_id(self) -> str | None:
        """Patient in context for the current launch, if any."""
        return self.session.patient_id if self.session else None

    async def __aenter__(self) -> "FHIRClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/fhir+json"},
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        """Build the Authorization header from the session.

        Raises:
            FHIRAuthenticationError: If the session has no token or the token expired
        """
        if self.session is None:
            return {}
        if not self.session.access_token:
            raise FHIRAuthenticationError("missing_token", "No authentication token available")
        if self.session.is_expired():
            raise FHIRAuthenticationError("expired_token", "Not authenticated or token expired")
        return {"Authorization": self.session.authorization_header()}

    async def _get(
        self,
        url: str,
        span: trace.Span,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = self._auth_headers()
        try:
            client = await self._get_client()
            return await client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            span.record_exception(e)
            raise FHIRTimeoutError(f"FHIR server request timed out: {e}")
        except httpx.TransportError as e:
            span.record_exception(e)
            raise FHIRConnectionError(f"Failed to connect to FHIR server: {e}")

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise FHIRInvalidResponseError(
                f"FHIR server returned invalid JSON: {e}",
                {"status_code": response.status_code},
            )

    async def request(
        self,
        endpoint: str,
        *,
        resolve_references: Iterable[str] = (),
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform an authenticated GET and return the decoded JSON body.

        Args:
            endpoint: Relative search URL (``Type?param=value``) or absolute URL
            resolve_references: Dotted paths of references to resolve inline
                (e.g. ``"requester"``, ``"performer.actor"``)
            params: Extra query parameters

        Returns:
            Decoded JSON (Bundle, resource, or None for an empty body)

        Raises:
            FHIRAuthenticationError: If the session cannot authorize the request
            FHIRConnectionError: If connection to server fails
            FHIROperationError: If server returns a non-2xx status
        """
        with tracer.start_as_current_span("fhir_request") as span:
            span.set_attribute("fhir.endpoint", endpoint)
            if params:
                span.set_attribute("fhir.search_params", json.dumps(params, default=str))

            response = await self._get(endpoint, span, params)
            if not response.is_success:
                self._raise_for_status(response, span)

            payload = self._decode(response)
            paths = [path for path in resolve_references if path]
            if paths and payload is not None:
                span.set_attribute("fhir.resolve_references", ",".join(paths))
                await self._resolve_references(payload, paths, span)

            if isinstance(payload, dict) and payload.get("resourceType") == "Bundle":
                span.set_attribute("fhir.entry_count", len(payload.get("entry") or []))
            span.add_event("Request completed")
            return payload

    async def read(self, resource_type: str, resource_id: str) -> dict[str, Any] | None:
        """Fetch ``resource_type/resource_id``; a 404 yields None instead of an error."""
        with tracer.start_as_current_span("fhir_read") as span:
            span.set_attributes({"fhir.resource_type": resource_type, "fhir.resource_id": resource_id})

            response = await self._get(f"/{resource_type}/{resource_id}", span)
            if response.status_code == httpx.codes.NOT_FOUND:
                span.add_event("Not found")
                return None
            if not response.is_success:
                self._raise_for_status(response, span)

            return self._decode(response)

    async def _resolve_references(
        self, payload: Any, paths: list[str], span: trace.Span
    ) -> None:
        """Replace reference objects in ``payload`` with the referenced resources.

        Each distinct reference is fetched once per request. Contained references
        (``#id``) are looked up in the owning resource. References that cannot be
        resolved are logged and left unchanged.
        """
        cache: dict[str, dict | None] = {}
        resolved_count = 0
        for resource in _resources_of(payload):
            for path in paths:
                for holder, key, reference in _reference_slots(resource, path.split(".")):
                    target = await self._resolve_one(resource, reference, cache, span)
                    if target is not None:
                        holder[key] = target
                        resolved_count += 1
        span.set_attribute("fhir.resolved_references", resolved_count)

    async def _resolve_one(
        self,
        resource: dict,
        reference: dict,
        cache: dict[str, dict | None],
        span: trace.Span,
    ) -> dict | None:
        ref = reference.get("reference")
        if not isinstance(ref, str) or not ref:
            return None

        if ref.startswith("#"):
            contained_id = ref[1:]
            for contained in resource.get("contained") or []:
                if isinstance(contained, dict) and contained.get("id") == contained_id:
                    return copy.deepcopy(contained)
            logger.warning(f"Contained reference {ref} not found in {resource.get('id')}")
            return None

        if ref not in cache:
            try:
                response = await self._get(ref, span)
                if not response.is_success:
                    self._raise_for_status(response, span)
                target = self._decode(response)
                cache[ref] = target if isinstance(target, dict) else None
            except (FHIRConnectionError, FHIROperationError, FHIRInvalidResponseError) as e:
                logger.warning(f"Could not resolve reference {ref}: {e}")
                cache[ref] = None
        cached = cache[ref]
        return copy.deepcopy(cached) if cached is not None else None

    def _raise_for_status(self, response: httpx.Response, span: trace.Span) -> None:
        """Turn a non-2xx response into FHIROperationError, keeping any OperationOutcome body."""
        try:
            body = response.json()
        except json.JSONDecodeError:
            body = {"text": response.text}

        span.set_attribute("http.status_code", response.status_code)
        span.set_status(trace.Status(trace.StatusCode.ERROR))
        logger.debug(f"FHIR server answered {response.status_code} for {response.request.url}")
        raise FHIROperationError(
            status_code=response.status_code,
            message=f"FHIR server returned HTTP {response.status_code}",
            operation_outcome=body,
        )

    async def close(self) -> None:
        """Release the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _resources_of(payload: Any) -> list[dict]:
    """Resources carried by a Bundle, a list, or a single resource."""
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if not isinstance(payload, dict):
        return []
    if payload.get("resourceType") == "Bundle":
        return [
            entry["resource"]
            for entry in payload.get("entry") or []
            if isinstance(entry, dict) and isinstance(entry.get("resource"), dict)
        ]
    return [payload]


def _reference_slots(node: Any, parts: list[str]) -> list[ReferenceSlot]:
    """Collect the reference objects found at a dotted path, descending through lists."""
    if isinstance(node, list):
        return [slot for item in node for slot in _reference_slots(item, parts)]
    if not isinstance(node, dict) or not parts:
        return []

    head, rest = parts[0], parts[1:]
    value = node.get(head)
    if rest:
        return _reference_slots(value, rest)
    if isinstance(value, dict) and "reference" in value:
        return [(node, head, value)]
    if isinstance(value, list):
        return [
            (value, index, item)
            for index, item in enumerate(value)
            if isinstance(item, dict) and "reference" in item
        ]
    return []
