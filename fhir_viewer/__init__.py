"""SMART on FHIR clinical data viewer."""

__version__ = "0.1.0"
