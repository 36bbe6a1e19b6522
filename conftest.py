"""
Configuration pytest partagée.

Les tests n'accèdent à aucun serveur FHIR réel: le transport HTTP est simulé
(httpx.MockTransport) ou remplacé par un double (AsyncMock).

Usage:
    pip install -e ".[test]"
    pytest
"""

import os
from typing import Any

import pytest

# Variables d'environnement pour les tests
# Respecte les variables déjà définies
TEST_ENV = {
    "ENVIRONMENT": os.getenv("ENVIRONMENT", "test"),
    "FHIR_BASE_URL": os.getenv("FHIR_BASE_URL", "http://test-fhir/fhir"),
    "LOG_LEVEL": os.getenv("LOG_LEVEL", "DEBUG"),
}

# Appliquer les variables d'environnement de test (ne remplace pas si déjà définies)
for key, value in TEST_ENV.items():
    if key not in os.environ:
        os.environ[key] = value


PATIENT_ID = "smart-1288992"


# ============================================================================
# Ressources FHIR d'exemple
# ============================================================================


@pytest.fixture
def patient_id() -> str:
    return PATIENT_ID


@pytest.fixture
def sample_patient() -> dict[str, Any]:
    """Patient FHIR R4 avec un identifiant MRN."""
    return {
        "resourceType": "Patient",
        "id": PATIENT_ID,
        "name": [{"given": ["Daniel", "X."], "family": "Adams"}],
        "gender": "male",
        "birthDate": "1925-12-23",
        "identifier": [
            {
                "type": {
                    "coding": [
                        {
                            "system": "http://terminology.hl7.org/CodeSystem/v2-0203",
                            "code": "MR",
                        }
                    ]
                },
                "system": "https://github.com/synthetichealth/synthea",
                "value": "6c8a6b2b-3b0e-4f3b-9e32-2a2f4a0b4f41",
            }
        ],
    }


@pytest.fixture
def sample_allergy() -> dict[str, Any]:
    """AllergyIntolerance FHIR R4 complète."""
    return {
        "resourceType": "AllergyIntolerance",
        "id": "allergy-1",
        "clinicalStatus": {
            "coding": [
                {
                    "system": "http://terminology.hl7.org/CodeSystem/allergyintolerance-clinical",
                    "code": "active",
                }
            ]
        },
        "verificationStatus": {
            "coding": [
                {
                    "system": "http://terminology.hl7.org/CodeSystem/allergyintolerance-verification",
                    "code": "confirmed",
                }
            ]
        },
        "type": "allergy",
        "category": ["medication"],
        "criticality": "high",
        "code": {
            "coding": [
                {
                    "system": "http://www.nlm.nih.gov/research/umls/rxnorm",
                    "code": "7980",
                    "display": "Penicillin G",
                }
            ],
            "text": "Penicillin",
        },
        "patient": {"reference": f"Patient/{PATIENT_ID}"},
        "recordedDate": "2020-03-14",
        "reaction": [
            {
                "manifestation": [{"coding": [{"code": "271807003", "display": "Rash"}]}],
                "severity": "moderate",
            }
        ],
    }


@pytest.fixture
def sample_medication_request() -> dict[str, Any]:
    """MedicationRequest FHIR R4 active avec posologie structurée."""
    return {
        "resourceType": "MedicationRequest",
        "id": "medreq-1",
        "status": "active",
        "intent": "order",
        "medicationCodeableConcept": {
            "coding": [
                {
                    "system": "http://www.nlm.nih.gov/research/umls/rxnorm",
                    "code": "314076",
                    "display": "Lisinopril 10 MG Oral Tablet",
                }
            ]
        },
        "subject": {"reference": f"Patient/{PATIENT_ID}"},
        "authoredOn": "2021-06-01",
        "requester": {"reference": "Practitioner/pr-1", "display": "Dr. Jane Smith"},
        "dosageInstruction": [
            {
                "timing": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "d"}},
                "route": {"coding": [{"display": "Oral"}]},
                "doseAndRate": [{"doseQuantity": {"value": 10, "unit": "mg"}}],
            }
        ],
    }


@pytest.fixture
def sample_immunization() -> dict[str, Any]:
    """Immunization FHIR R4."""
    return {
        "resourceType": "Immunization",
        "id": "imm-1",
        "status": "completed",
        "vaccineCode": {
            "coding": [{"system": "http://hl7.org/fhir/sid/cvx", "code": "140"}],
            "text": "Influenza, seasonal, injectable",
        },
        "patient": {"reference": f"Patient/{PATIENT_ID}"},
        "occurrenceDateTime": "2022-10-01T10:00:00Z",
        "lotNumber": "LOT-42",
        "site": {"coding": [{"display": "Left arm"}]},
        "route": {"text": "Intramuscular"},
        "manufacturer": {"display": "Sanofi Pasteur"},
        "performer": [{"actor": {"reference": "Practitioner/pr-2", "display": "Nurse Joy"}}],
    }


@pytest.fixture
def make_bundle():
    """Fabrique de Bundle searchset (avec lien ``next`` optionnel)."""

    def _make(*resources: dict[str, Any], next_url: str | None = None) -> dict[str, Any]:
        bundle: dict[str, Any] = {
            "resourceType": "Bundle",
            "type": "searchset",
            "total": len(resources),
            "entry": [{"resource": resource} for resource in resources],
        }
        if next_url:
            bundle["link"] = [{"relation": "next", "url": next_url}]
        return bundle

    return _make


# ============================================================================
# Retry
# ============================================================================


class SleepRecorder:
    """Remplace asyncio.sleep: enregistre les délais sans attendre."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
