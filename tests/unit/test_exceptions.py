"""Tests unitaires pour la taxonomie d'erreurs ClassifiedError."""

from datetime import UTC, datetime

import pytest

from fhir_viewer.core.exceptions import (
    AuthErrorKind,
    ClassifiedError,
    DataErrorKind,
    ErrorDetails,
    TransportErrorKind,
)


class TestClassifiedError:
    """Tests pour ClassifiedError."""

    def test_creation_with_defaults(self):
        """Test création avec détails et horodatage par défaut."""
        error = ClassifiedError(TransportErrorKind.SERVER_ERROR, "FHIR server error occurred")

        assert error.kind == TransportErrorKind.SERVER_ERROR
        assert error.message == "FHIR server error occurred"
        assert str(error) == "FHIR server error occurred"
        assert error.details == ErrorDetails()
        assert error.timestamp.tzinfo is not None

    def test_rejects_unknown_kind(self):
        """Test qu'un type hors taxonomie est refusé."""
        with pytest.raises(TypeError):
            ClassifiedError("SOMETHING_ELSE", "boom")

    @pytest.mark.parametrize(
        "kind,category",
        [
            (AuthErrorKind.UNAUTHORIZED, "auth"),
            (AuthErrorKind.INVALID_CLIENT, "auth"),
            (TransportErrorKind.TIMEOUT, "transport"),
            (TransportErrorKind.MAX_RETRIES_EXCEEDED, "transport"),
            (DataErrorKind.MISSING_PARAMETER, "data"),
        ],
    )
    def test_category(self, kind, category):
        """Test la famille d'erreur déduite du type."""
        assert ClassifiedError(kind, "msg").category == category

    def test_is_network(self):
        """Test que seules les erreurs réseau et timeout sont de niveau réseau."""
        assert ClassifiedError(TransportErrorKind.NETWORK_ERROR, "x").is_network
        assert ClassifiedError(TransportErrorKind.TIMEOUT, "x").is_network
        assert not ClassifiedError(TransportErrorKind.SERVER_ERROR, "x").is_network
        assert not ClassifiedError(AuthErrorKind.UNAUTHORIZED, "x").is_network

    def test_with_details_returns_new_instance(self):
        """Test que with_details ne modifie pas l'erreur d'origine."""
        cause = ValueError("root cause")
        error = ClassifiedError(
            TransportErrorKind.SERVER_ERROR,
            "FHIR server error occurred",
            ErrorDetails(http_status=500),
        )
        error.__cause__ = cause

        updated = error.with_details(retries_attempted=3)

        assert updated is not error
        assert updated.details.retries_attempted == 3
        assert updated.details.http_status == 500
        assert error.details.retries_attempted is None
        assert updated.timestamp == error.timestamp
        assert updated.__cause__ is cause

    def test_to_dict(self):
        """Test la représentation sérialisable."""
        timestamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        error = ClassifiedError(
            AuthErrorKind.INVALID_CLIENT,
            "Invalid FHIR client provided",
            ErrorDetails(help_text="Please authenticate", resource_type="AllergyIntolerance"),
            timestamp,
        )

        assert error.to_dict() == {
            "type": "INVALID_FHIR_CLIENT",
            "category": "auth",
            "message": "Invalid FHIR client provided",
            "details": {
                "help_text": "Please authenticate",
                "resource_type": "AllergyIntolerance",
            },
            "timestamp": "2024-01-02T03:04:05+00:00",
        }

    def test_details_are_immutable(self):
        """Test que les détails ne peuvent pas être modifiés."""
        error = ClassifiedError(DataErrorKind.INVALID_FORMAT, "x", ErrorDetails(http_status=200))

        with pytest.raises(Exception):
            error.details.http_status = 500
