"""Tests unitaires pour l'état de session SMART."""

from datetime import UTC, datetime, timedelta

from fhir_viewer.infrastructure.fhir.auth import SMARTSession

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class TestSMARTSession:
    """Tests pour SMARTSession."""

    def test_from_token_response(self):
        session = SMARTSession.from_token_response(
            {
                "access_token": "abc",
                "token_type": "bearer",
                "expires_in": 3600,
                "scope": "patient/*.read",
                "patient": "smart-1288992",
            },
            server_url="https://launch.smarthealthit.org/v/r4/fhir",
            now=NOW,
        )

        assert session.access_token == "abc"
        assert session.expires_at == NOW + timedelta(hours=1)
        assert session.patient_id == "smart-1288992"
        assert session.authorization_header() == "bearer abc"

    def test_without_expiry_never_expires(self):
        session = SMARTSession.from_token_response({"access_token": "abc"}, now=NOW)

        assert session.expires_at is None
        assert not session.is_expired(NOW)
        assert session.is_authenticated(check_refresh=True, now=NOW)

    def test_not_authenticated_without_token(self):
        assert not SMARTSession().is_authenticated(now=NOW)

    def test_expired(self):
        session = SMARTSession(access_token="abc", expires_at=NOW - timedelta(seconds=1))

        assert session.is_expired(NOW)
        assert not session.is_authenticated(now=NOW)

    def test_refresh_threshold(self):
        """Test qu'un jeton expirant dans moins de 5 minutes est considéré périmé."""
        session = SMARTSession(access_token="abc", expires_at=NOW + timedelta(minutes=2))

        assert session.is_authenticated(now=NOW)
        assert not session.is_authenticated(check_refresh=True, now=NOW)
