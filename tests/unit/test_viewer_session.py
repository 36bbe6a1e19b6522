"""Tests unitaires pour la session du viewer (sélection et annulation)."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fhir_viewer.core.exceptions import ClassifiedError, DataErrorKind, TransportErrorKind
from fhir_viewer.core.retry import RetryPolicy
from fhir_viewer.infrastructure.fhir.exceptions import FHIROperationError
from fhir_viewer.services.patient_context import PatientContext
from fhir_viewer.services.resource_service import ResourceType
from fhir_viewer.services.viewer_session import ViewerSession

NO_RETRY = RetryPolicy(max_retries=0)


@pytest.fixture
def patient(sample_patient):
    return PatientContext(id=sample_patient["id"], resource=sample_patient)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestViewerSession:
    """Tests pour ViewerSession.select."""

    @pytest.mark.asyncio
    async def test_select(self, patient, make_bundle, sample_allergy):
        transport = AsyncMock()
        transport.request.return_value = make_bundle(sample_allergy)
        session = ViewerSession(transport, patient, policy=NO_RETRY)

        result = await session.select("allergies")

        assert not result.superseded
        assert result.generation == 1
        assert result.resource_type == ResourceType.ALLERGIES
        assert len(result.collection) == 1
        assert session.current_collection is result.collection
        assert transport.request.await_args.args[0].startswith(
            f"AllergyIntolerance?patient={patient.id}"
        )

    @pytest.mark.asyncio
    async def test_new_selection_supersedes_in_flight_fetch(
        self, patient, make_bundle, sample_allergy, sample_immunization
    ):
        """Test qu'un changement de type annule la récupération précédente."""
        gate = asyncio.Event()

        async def request(endpoint, **kwargs):
            if endpoint.startswith("AllergyIntolerance"):
                await gate.wait()
                return make_bundle(sample_allergy)
            return make_bundle(sample_immunization)

        transport = AsyncMock()
        transport.request.side_effect = request
        session = ViewerSession(transport, patient, policy=NO_RETRY)

        first = asyncio.create_task(session.select("allergies"))
        await settle()
        second = await session.select("immunizations")
        first_result = await first

        assert first_result.superseded
        assert first_result.collection is None
        assert first_result.generation == 1
        assert not second.superseded
        assert second.generation == 2
        assert session.current_resource_type == ResourceType.IMMUNIZATIONS
        assert session.current_collection.resource_type == "immunizations"

    @pytest.mark.asyncio
    async def test_error_of_current_selection_propagates(self, patient):
        transport = AsyncMock()
        transport.request.side_effect = FHIROperationError(404, "not found")
        session = ViewerSession(transport, patient, policy=NO_RETRY)

        with pytest.raises(ClassifiedError) as exc_info:
            await session.select("medications")

        assert exc_info.value.kind == TransportErrorKind.NOT_FOUND
        assert session.current_collection is None

    @pytest.mark.asyncio
    async def test_unsupported_selection(self, patient):
        session = ViewerSession(AsyncMock(), patient)

        with pytest.raises(ClassifiedError) as exc_info:
            await session.select("observations")

        assert exc_info.value.kind == DataErrorKind.UNSUPPORTED_RESOURCE_TYPE
        assert session.generation == 0

    @pytest.mark.asyncio
    async def test_close_cancels_pending_fetch(self, patient):
        gate = asyncio.Event()

        async def request(endpoint, **kwargs):
            await gate.wait()

        transport = AsyncMock()
        transport.request.side_effect = request
        session = ViewerSession(transport, patient, policy=NO_RETRY)

        pending = asyncio.create_task(session.select("immunizations"))
        await settle()
        await session.close()

        with pytest.raises(asyncio.CancelledError):
            await pending

    def test_is_current(self, patient):
        session = ViewerSession(AsyncMock(), patient)

        assert session.is_current(0)
        assert not session.is_current(1)
