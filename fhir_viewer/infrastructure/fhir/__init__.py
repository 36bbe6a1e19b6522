"""FHIR integration package for SMART on FHIR server communication."""

from fhir_viewer.infrastructure.fhir.auth import SMARTSession
from fhir_viewer.infrastructure.fhir.client import FHIRClient
from fhir_viewer.infrastructure.fhir.config import fhir_settings

__all__ = [
    "FHIRClient",
    "SMARTSession",
    "fhir_settings",
]
