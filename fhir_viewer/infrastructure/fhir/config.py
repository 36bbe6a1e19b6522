"""Configuration for the FHIR server connection and SMART session."""

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings


class FHIRSettings(BaseSettings):
    """FHIR server configuration settings.

    Settings can be overridden via environment variables. ``FHIR_ACCESS_TOKEN`` and
    ``FHIR_PATIENT_ID`` stand in for the values a SMART launch would provide.
    """

    FHIR_BASE_URL: AnyHttpUrl = "https://launch.smarthealthit.org/v/r4/fhir"
    FHIR_TIMEOUT: int = 30
    FHIR_ACCESS_TOKEN: str | None = None
    FHIR_PATIENT_ID: str | None = None
    FHIR_SCOPE: str = "launch/patient patient/*.read openid fhirUser"
    # Tokens expiring within this window are considered stale
    TOKEN_REFRESH_THRESHOLD_SECONDS: int = 300

    model_config = {
        "env_prefix": "",
        "case_sensitive": True,
        "env_file": ".env",
        "extra": "ignore",
    }


fhir_settings = FHIRSettings()
