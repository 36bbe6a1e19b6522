"""Tests unitaires pour le client FHIR.

Ce module teste le client HTTP async: en-tête d'autorisation SMART, gestion des
erreurs HTTP et réseau, et résolution des références dans les réponses.
"""

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from fhir_viewer.infrastructure.fhir.auth import SMARTSession
from fhir_viewer.infrastructure.fhir.client import FHIRClient
from fhir_viewer.infrastructure.fhir.exceptions import (
    FHIRAuthenticationError,
    FHIRConnectionError,
    FHIRInvalidResponseError,
    FHIROperationError,
    FHIRTimeoutError,
)

BASE_URL = "http://test-fhir/fhir"

# =============================================================================
# Fixtures
# =============================================================================


class RecordingHandler:
    """Handler httpx.MockTransport: réponses par chemin, requêtes enregistrées."""

    def __init__(self, routes: dict[str, httpx.Response] | None = None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"resourceType": "OperationOutcome"})
        return response

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def fhir_json(payload) -> httpx.Response:
    return httpx.Response(200, json=payload)


@pytest.fixture
def valid_session():
    return SMARTSession(
        access_token="token-abc",
        expires_at=datetime.now(UTC) + timedelta(hours=1),
        patient_id="smart-1288992",
        server_url=BASE_URL,
    )


def make_client(handler, session=None) -> FHIRClient:
    return FHIRClient(base_url=BASE_URL, session=session, transport=httpx.MockTransport(handler))


# =============================================================================
# Authentification
# =============================================================================


class TestAuthorization:
    """Tests pour l'en-tête Authorization."""

    @pytest.mark.asyncio
    async def test_bearer_header_sent(self, valid_session):
        handler = RecordingHandler({"/fhir/Patient/smart-1288992": fhir_json({"id": "x"})})

        async with make_client(handler, valid_session) as client:
            await client.read("Patient", "smart-1288992")

        request = handler.requests[0]
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert request.headers["Accept"] == "application/fhir+json"

    @pytest.mark.asyncio
    async def test_open_server_without_session(self):
        handler = RecordingHandler({"/fhir/Patient/1": fhir_json({"id": "1"})})

        async with make_client(handler) as client:
            await client.read("Patient", "1")

        assert "Authorization" not in handler.requests[0].headers

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_request(self):
        handler = RecordingHandler()

        async with make_client(handler, SMARTSession()) as client:
            with pytest.raises(FHIRAuthenticationError) as exc_info:
                await client.request("AllergyIntolerance?patient=1")

        assert exc_info.value.reason == "missing_token"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_expired_token_fails_before_request(self):
        handler = RecordingHandler()
        session = SMARTSession(
            access_token="token-abc",
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )

        async with make_client(handler, session) as client:
            with pytest.raises(FHIRAuthenticationError) as exc_info:
                await client.request("AllergyIntolerance?patient=1")

        assert exc_info.value.reason == "expired_token"
        assert handler.requests == []

    def test_patient_id_from_session(self, valid_session):
        assert FHIRClient(session=valid_session).patient_id == "smart-1288992"
        assert FHIRClient(base_url=BASE_URL).patient_id is None

    def test_base_url_from_session(self, valid_session):
        assert FHIRClient(session=valid_session).base_url == BASE_URL


# =============================================================================
# Requêtes et erreurs
# =============================================================================


class TestRequest:
    """Tests pour request et read."""

    @pytest.mark.asyncio
    async def test_request_returns_decoded_bundle(self, make_bundle, sample_allergy):
        bundle = make_bundle(sample_allergy)
        handler = RecordingHandler({"/fhir/AllergyIntolerance": fhir_json(bundle)})

        async with make_client(handler) as client:
            result = await client.request("AllergyIntolerance?patient=smart-1288992&_count=100")

        assert result == bundle
        assert handler.requests[0].url.params["patient"] == "smart-1288992"

    @pytest.mark.asyncio
    async def test_absolute_next_link(self, make_bundle):
        handler = RecordingHandler({"/fhir": fhir_json(make_bundle())})

        async with make_client(handler) as client:
            await client.request(f"{BASE_URL}?_getpages=abc&_getpagesoffset=100")

        assert handler.requests[0].url.params["_getpages"] == "abc"

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        handler = RecordingHandler({"/fhir/Immunization": httpx.Response(200)})

        async with make_client(handler) as client:
            assert await client.request("Immunization?patient=1") is None

    @pytest.mark.asyncio
    async def test_server_error_raises_operation_error(self):
        outcome = {"resourceType": "OperationOutcome", "issue": [{"severity": "error"}]}
        handler = RecordingHandler(
            {"/fhir/AllergyIntolerance": httpx.Response(500, json=outcome)}
        )

        async with make_client(handler) as client:
            with pytest.raises(FHIROperationError) as exc_info:
                await client.request("AllergyIntolerance?patient=1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation_outcome == outcome

    @pytest.mark.asyncio
    async def test_error_without_json_body(self):
        handler = RecordingHandler(
            {"/fhir/AllergyIntolerance": httpx.Response(502, text="Bad Gateway")}
        )

        async with make_client(handler) as client:
            with pytest.raises(FHIROperationError) as exc_info:
                await client.request("AllergyIntolerance?patient=1")

        assert exc_info.value.operation_outcome == {"text": "Bad Gateway"}

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        handler = RecordingHandler(
            {"/fhir/AllergyIntolerance": httpx.Response(200, content=b"<html>oops</html>")}
        )

        async with make_client(handler) as client:
            with pytest.raises(FHIRInvalidResponseError):
                await client.request("AllergyIntolerance?patient=1")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(FHIRConnectionError):
                await client.request("AllergyIntolerance?patient=1")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(FHIRTimeoutError):
                await client.request("AllergyIntolerance?patient=1")

    @pytest.mark.asyncio
    async def test_read_not_found_returns_none(self):
        async with make_client(RecordingHandler()) as client:
            assert await client.read("Patient", "missing") is None

    @pytest.mark.asyncio
    async def test_read_server_error(self):
        handler = RecordingHandler({"/fhir/Patient/1": httpx.Response(503)})

        async with make_client(handler) as client:
            with pytest.raises(FHIROperationError) as exc_info:
                await client.read("Patient", "1")

        assert exc_info.value.status_code == 503


# =============================================================================
# Résolution des références
# =============================================================================


class TestReferenceResolution:
    """Tests pour la résolution des références inline."""

    @pytest.mark.asyncio
    async def test_resolves_and_caches_references(self, make_bundle):
        practitioner = {"resourceType": "Practitioner", "id": "pr-1", "name": [{"text": "Dr. Who"}]}
        requests = [
            {
                "resourceType": "MedicationRequest",
                "id": f"mr-{index}",
                "requester": {"reference": "Practitioner/pr-1"},
            }
            for index in range(2)
        ]
        handler = RecordingHandler(
            {
                "/fhir/MedicationRequest": fhir_json(make_bundle(*requests)),
                "/fhir/Practitioner/pr-1": fhir_json(practitioner),
            }
        )

        async with make_client(handler) as client:
            bundle = await client.request(
                "MedicationRequest?patient=1", resolve_references=["requester"]
            )

        resolved = [entry["resource"]["requester"] for entry in bundle["entry"]]
        assert resolved == [practitioner, practitioner]
        assert resolved[0] is not resolved[1]
        assert handler.paths().count("/fhir/Practitioner/pr-1") == 1

    @pytest.mark.asyncio
    async def test_nested_path_in_list(self, make_bundle):
        immunization = {
            "resourceType": "Immunization",
            "id": "imm-1",
            "performer": [{"actor": {"reference": "Practitioner/pr-2"}}],
        }
        practitioner = {"resourceType": "Practitioner", "id": "pr-2"}
        handler = RecordingHandler(
            {
                "/fhir/Immunization": fhir_json(make_bundle(immunization)),
                "/fhir/Practitioner/pr-2": fhir_json(practitioner),
            }
        )

        async with make_client(handler) as client:
            bundle = await client.request(
                "Immunization?patient=1", resolve_references=["performer.actor"]
            )

        assert bundle["entry"][0]["resource"]["performer"][0]["actor"] == practitioner

    @pytest.mark.asyncio
    async def test_contained_reference(self, make_bundle):
        medication = {"resourceType": "Medication", "id": "med1", "code": {"text": "Aspirin"}}
        request = {
            "resourceType": "MedicationRequest",
            "id": "mr-1",
            "contained": [medication],
            "medicationReference": {"reference": "#med1"},
        }
        handler = RecordingHandler({"/fhir/MedicationRequest": fhir_json(make_bundle(request))})

        async with make_client(handler) as client:
            bundle = await client.request(
                "MedicationRequest?patient=1", resolve_references=["medicationReference"]
            )

        assert bundle["entry"][0]["resource"]["medicationReference"] == medication
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_unresolvable_reference_is_left_unchanged(self, make_bundle):
        request = {
            "resourceType": "MedicationRequest",
            "id": "mr-1",
            "requester": {"reference": "Practitioner/gone", "display": "Dr. Gone"},
        }
        handler = RecordingHandler({"/fhir/MedicationRequest": fhir_json(make_bundle(request))})

        async with make_client(handler) as client:
            bundle = await client.request(
                "MedicationRequest?patient=1", resolve_references=["requester"]
            )

        assert bundle["entry"][0]["resource"]["requester"] == {
            "reference": "Practitioner/gone",
            "display": "Dr. Gone",
        }

    @pytest.mark.asyncio
    async def test_no_resolution_by_default(self, make_bundle):
        request = {
            "resourceType": "MedicationRequest",
            "id": "mr-1",
            "requester": {"reference": "Practitioner/pr-1"},
        }
        body = json.dumps(make_bundle(request)).encode()
        handler = RecordingHandler({"/fhir/MedicationRequest": httpx.Response(200, content=body)})

        async with make_client(handler) as client:
            await client.request("MedicationRequest?patient=1")

        assert handler.paths() == ["/fhir/MedicationRequest"]
