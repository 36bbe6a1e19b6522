"""Tests unitaires pour la mise en forme des résultats."""

import json

from fhir_viewer.core.error_classifier import create_error
from fhir_viewer.core.exceptions import TransportErrorKind
from fhir_viewer.infrastructure.fhir.normalizers import (
    normalize_allergy,
    normalize_immunization,
    normalize_medication_request,
)
from fhir_viewer.presentation import (
    build_cards,
    render_collection,
    render_error,
    render_json,
    render_patient_banner,
)
from fhir_viewer.schemas.immunization import NormalizedImmunization
from fhir_viewer.schemas.results import ResourceCollection
from fhir_viewer.services.patient_context import PatientDisplay


def collection_of(resource_type, fhir_type, *resources):
    return ResourceCollection(
        resource_type=resource_type,
        fhir_resource_type=fhir_type,
        patient_id="smart-1288992",
        resources=list(resources),
    )


class TestBuildCards:
    """Tests pour build_cards."""

    def test_first_card_expanded(self, sample_allergy):
        second = {**sample_allergy, "id": "allergy-2", "code": {"text": "Peanut"}}
        collection = collection_of(
            "allergies",
            "AllergyIntolerance",
            normalize_allergy(sample_allergy),
            normalize_allergy(second),
        )

        cards = build_cards(collection)

        assert [card.title for card in cards] == ["Penicillin", "Peanut"]
        assert [card.expanded for card in cards] == [True, False]

    def test_allergy_fields(self, sample_allergy):
        card = build_cards(
            collection_of("allergies", "AllergyIntolerance", normalize_allergy(sample_allergy))
        )[0]

        fields = {field.label: field.value for field in card.fields}
        assert fields["Status"] == "active (confirmed)"
        assert fields["Criticality"] == "high"
        assert fields["Category"] == "medication"
        assert fields["Reactions"] == "Rash"
        assert fields["Recorded"] == "2020-03-14"

    def test_medication_request_fields(self, sample_medication_request):
        card = build_cards(
            collection_of(
                "medication-requests",
                "MedicationRequest",
                normalize_medication_request(sample_medication_request),
            )
        )[0]

        fields = {field.label: field.value for field in card.fields}
        assert card.title == "Lisinopril 10 MG Oral Tablet"
        assert fields["Dosage"] == "10 mg via Oral 1 time(s) per 1 d"
        assert fields["Requester"] == "Dr. Jane Smith"
        assert "Note" not in fields

    def test_fallback_title(self):
        immunization = NormalizedImmunization(id="imm-1", vaccine_display="")

        card = build_cards(collection_of("immunizations", "Immunization", immunization))[0]

        assert card.title == "Unknown Vaccine"

    def test_placeholder_card(self):
        placeholder = normalize_immunization({"id": "imm-bad", "lotNumber": {"oops": 1}})

        card = build_cards(collection_of("immunizations", "Immunization", placeholder))[0]

        assert card.title == "Unknown Vaccine"
        assert card.error.startswith("Error processing immunization data")

    def test_empty_collection(self):
        assert build_cards(collection_of("allergies", "AllergyIntolerance")) == []


class TestRendering:
    """Tests pour le rendu texte et JSON."""

    def test_empty_state_is_not_an_error(self):
        text = render_collection(collection_of("allergies", "AllergyIntolerance"))

        assert text.startswith("No known allergies found for this patient.")
        assert "Error" not in text

    def test_collection_text(self, sample_immunization):
        text = render_collection(
            collection_of("immunizations", "Immunization", normalize_immunization(sample_immunization))
        )

        assert text.splitlines()[0] == "v Influenza, seasonal, injectable"
        assert "    Lot Number: LOT-42" in text

    def test_render_error(self):
        error = create_error(TransportErrorKind.SERVER_ERROR, resource_type="AllergyIntolerance")

        text = render_error(error)

        assert text.splitlines() == [
            "Error: FHIR server error occurred",
            "The FHIR server encountered an error. Please try again later.",
            "Error type: SERVER_ERROR",
        ]

    def test_render_json_collection_omits_raw_resource(self, sample_allergy):
        collection = collection_of(
            "allergies", "AllergyIntolerance", normalize_allergy(sample_allergy)
        )

        payload = json.loads(render_json(collection))

        resource = payload["resources"][0]
        assert resource["display"] == "Penicillin"
        assert resource["criticality"] == "high"
        assert "raw_resource" not in resource

    def test_render_json_error(self):
        payload = json.loads(render_json(create_error(TransportErrorKind.TIMEOUT)))

        assert payload["type"] == "TIMEOUT"
        assert payload["category"] == "transport"

    def test_patient_banner(self):
        banner = render_patient_banner(
            PatientDisplay(id="p1", name="Daniel Adams", gender="male", mrn="123")
        )

        assert banner == "Daniel Adams\nID: p1 | Gender: male | MRN: 123"
