"""Tests unitaires pour l'extraction des ressources des réponses FHIR."""

import pytest

from fhir_viewer.infrastructure.fhir.processors import next_page_url, process_response


class TestProcessResponse:
    """Tests pour process_response."""

    def test_bundle(self, make_bundle, sample_allergy):
        bundle = make_bundle(sample_allergy, sample_allergy)

        assert process_response(bundle, "AllergyIntolerance") == [sample_allergy, sample_allergy]

    def test_bundle_filters_other_types(self, make_bundle, sample_allergy):
        outcome = {"resourceType": "OperationOutcome", "issue": []}
        bundle = make_bundle(sample_allergy, outcome)
        bundle["entry"].append({"fullUrl": "urn:uuid:1"})

        assert process_response(bundle, "AllergyIntolerance") == [sample_allergy]

    def test_bundle_without_entries(self):
        assert process_response({"resourceType": "Bundle", "total": 0}, "Immunization") == []

    def test_list(self, sample_immunization):
        raw = [sample_immunization, {"resourceType": "Patient"}, "garbage"]

        assert process_response(raw, "Immunization") == [sample_immunization]

    def test_single_resource(self, sample_immunization):
        assert process_response(sample_immunization, "Immunization") == [sample_immunization]

    @pytest.mark.parametrize("raw", [None, {}, [], ""])
    def test_empty(self, raw):
        assert process_response(raw, "AllergyIntolerance") == []

    def test_operation_outcome(self):
        outcome = {"resourceType": "OperationOutcome", "issue": [{"severity": "error"}]}

        assert process_response(outcome, "AllergyIntolerance") == []

    def test_unexpected_shape(self):
        assert process_response(42, "AllergyIntolerance") == []


class TestNextPageUrl:
    """Tests pour next_page_url."""

    def test_next_link(self, make_bundle):
        bundle = make_bundle(next_url="http://test-fhir/fhir?_getpages=abc")

        assert next_page_url(bundle) == "http://test-fhir/fhir?_getpages=abc"

    def test_no_next_link(self, make_bundle):
        bundle = make_bundle()
        bundle["link"] = [{"relation": "self", "url": "http://test-fhir/fhir/Immunization"}]

        assert next_page_url(bundle) is None

    def test_not_a_bundle(self, sample_allergy):
        assert next_page_url(sample_allergy) is None
        assert next_page_url(None) is None
