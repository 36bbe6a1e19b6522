"""Session-scoped SMART on FHIR token state.

The SMART launch handshake itself is performed by an external OAuth2 client. This
module only keeps the resulting token response in memory and answers whether a request
may be authorized with it.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from fhir_viewer.infrastructure.fhir.config import fhir_settings


class SMARTSession(BaseModel):
    """Token state obtained from a SMART launch.

    Example:
        ```python
        session = SMARTSession.from_token_response(token_response, server_url=iss)
        if session.is_authenticated(check_refresh=True):
            client = FHIRClient(session=session)
        ```
    """

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_at: datetime | None = None
    scope: str | None = None
    refresh_token: str | None = None
    patient_id: str | None = None
    server_url: str | None = None

    @classmethod
    def from_token_response(
        cls,
        token_response: dict[str, Any],
        server_url: str | None = None,
        now: datetime | None = None,
    ) -> "SMARTSession":
        """Build a session from an OAuth2 token endpoint response.

        Args:
            token_response: Decoded token response (access_token, expires_in, patient, ...)
            server_url: FHIR base URL (``iss`` of the launch)
            now: Reference time used to turn ``expires_in`` into an absolute expiry

        Returns:
            The session state
        """
        issued_at = now or datetime.now(UTC)
        expires_in = token_response.get("expires_in")
        return cls(
            access_token=token_response.get("access_token"),
            token_type=token_response.get("token_type") or "Bearer",
            expires_at=issued_at + timedelta(seconds=int(expires_in)) if expires_in else None,
            scope=token_response.get("scope"),
            refresh_token=token_response.get("refresh_token"),
            patient_id=token_response.get("patient"),
            server_url=server_url,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or datetime.now(UTC))

    def is_authenticated(self, check_refresh: bool = False, now: datetime | None = None) -> bool:
        """Check whether the session holds a usable token.

        Args:
            check_refresh: Also report False when the token expires within the
                refresh threshold (``TOKEN_REFRESH_THRESHOLD_SECONDS``)
            now: Reference time (defaults to the current UTC time)

        Returns:
            True if a non-expired token is available
        """
        if not self.access_token:
            return False
        current = now or datetime.now(UTC)
        if self.is_expired(current):
            return False
        if check_refresh and self.expires_at is not None:
            threshold = timedelta(seconds=fhir_settings.TOKEN_REFRESH_THRESHOLD_SECONDS)
            return self.expires_at - current > threshold
        return True

    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"
