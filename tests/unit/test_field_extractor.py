"""Unit tests for the transcript field extractor."""

import pytest

from orthocare.extraction.field_extractor import FieldExtractor, parse_patient_transcription
from orthocare.models.patient import FORM_FIELDS


@pytest.fixture
def extractor():
    return FieldExtractor()


@pytest.mark.unit
class TestBoundaries:

    def test_diagnosis_stops_at_procedure(self, extractor):
        fields = extractor.parse("diagnosis is distal radius fracture procedure is closed reduction")

        assert fields["diagnosis"] == "Distal radius fracture"
        assert fields["procedure"] == "Closed reduction"

    def test_full_dictation_lands_in_each_slot(self, extractor):
        fields = extractor.parse(
            "patient name is John Carter, age 52, diagnosis is rotator cuff tear, "
            "procedure is arthroscopic repair, hospital is St. Mary's Hospital"
        )

        assert fields["patientName"] == "John Carter"
        assert fields["age"] == "52"
        assert fields["diagnosis"] == "Rotator cuff tear"
        assert fields["procedure"] == "Arthroscopic repair"
        assert fields["hospital"] == "St. Mary'S Hospital"
        assert set(fields) == {"patientName", "age", "diagnosis", "procedure", "hospital"}

    def test_sentence_period_ends_capture(self, extractor):
        fields = extractor.parse("Diagnosis is ankle sprain. Patient is anxious.")

        assert fields["diagnosis"] == "Ankle sprain"

    def test_decimal_point_does_not_end_capture(self, extractor):
        fields = extractor.parse("diagnosis is 2.5 cm laceration")

        assert fields["diagnosis"] == "2.5 cm laceration"

    def test_dr_abbreviation_does_not_end_capture(self, extractor):
        fields = extractor.parse("procedure is ORIF with Dr. Smith, hospital is Mercy General")

        assert fields["procedure"] == "ORIF with Dr. Smith"
        assert fields["hospital"] == "Mercy General"

    def test_follow_up_ordinals_bound_each_other(self, extractor):
        fields = extractor.parse(
            "first follow-up at 2 weeks second follow up at 6 weeks third follow-up at 3 months"
        )

        assert fields["followUpFirst"] == "At 2 weeks"
        assert fields["followUpSecond"] == "At 6 weeks"
        assert fields["followUpThird"] == "At 3 months"

    def test_removal_schedule(self, extractor):
        fields = extractor.parse(
            "k-wire removal at 4 weeks, splint change at 2 weeks, suture removal at 10 days"
        )

        assert fields["kWireRemoval"] == "4 weeks"
        assert fields["splintChangeRemoval"] == "2 weeks"
        assert fields["typeAndSutureRemoval"] == "10 days"

    def test_expectations_and_parameters(self, extractor):
        fields = extractor.parse(
            "expectations are full range of motion in 3 months, "
            "follow-up parameters include x-ray and wound check, k-wire removal at 6 weeks"
        )

        assert fields["expectations"] == "Full range of motion in 3 months"
        assert fields["followUpParameters"] == "X-ray and wound check"
        assert fields["kWireRemoval"] == "6 weeks"


@pytest.mark.unit
class TestRuleOrder:

    def test_age_range_guard(self, extractor):
        assert "age" not in extractor.parse("age is 200")
        assert extractor.parse("age is 45")["age"] == "45"

    def test_out_of_range_age_falls_through(self, extractor):
        fields = extractor.parse("age is 200, she is 64 years old")

        assert fields["age"] == "64"

    @pytest.mark.parametrize("text,expected", [
        ("a 37 year old woman", "37"),
        ("37-year-old man", "37"),
        ("patient 81 yo", "81"),
        ("age: 007", "7"),
    ])
    def test_age_phrasings(self, extractor, text, expected):
        assert extractor.parse(text)["age"] == expected

    @pytest.mark.parametrize("text,expected", [
        ("name is maria lopez", "Maria Lopez"),
        ("This is Maria Lopez, age 34", "Maria Lopez"),
        ("patient Ana Maria Cruz", "Ana Maria Cruz"),
    ])
    def test_name_phrasings(self, extractor, text, expected):
        assert extractor.parse(text)["patientName"] == expected

    def test_single_word_name_not_taken(self, extractor):
        assert "patientName" not in extractor.parse("name is Cher")

    def test_diagnosis_alternatives(self, extractor):
        assert extractor.parse("diagnosed with scaphoid fracture")["diagnosis"] == "Scaphoid fracture"
        assert extractor.parse("presenting with knee pain")["diagnosis"] == "Knee pain"

    def test_procedure_alternatives(self, extractor):
        assert extractor.parse("underwent total knee replacement")["procedure"] == "Total knee replacement"
        assert extractor.parse("scheduled for carpal tunnel release")["procedure"] == "Carpal tunnel release"

    def test_hospital_alternatives(self, extractor):
        assert extractor.parse("seen at county general hospital")["hospital"] == "County General Hospital"
        assert extractor.parse("admitted to Saint Luke hospital")["hospital"] == "Saint Luke Hospital"

    def test_first_rule_wins(self, extractor):
        fields = extractor.parse("diagnosis is gout. diagnosed with arthritis")

        assert fields["diagnosis"] == "Gout"


@pytest.mark.unit
class TestNonDestructive:

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "nothing useful here",
        "diagnosis is",
        "diagnosis is , procedure is .",
        "hospital is -",
        "age is 0",
    ])
    def test_no_empty_values(self, extractor, text):
        fields = extractor.parse(text)

        assert all(value for value in fields.values())
        assert set(fields) <= set(FORM_FIELDS)

    def test_unmatched_fields_absent(self, extractor):
        fields = extractor.parse("procedure is closed reduction")

        assert list(fields) == ["procedure"]
        assert "diagnosis" not in fields

    def test_whitespace_normalized(self, extractor):
        fields = extractor.parse("diagnosis   is\n\tmeniscus    tear")

        assert fields["diagnosis"] == "Meniscus tear"

    def test_case_insensitive(self, extractor):
        fields = extractor.parse("DIAGNOSIS IS ACL TEAR PROCEDURE IS RECONSTRUCTION")

        assert fields["diagnosis"] == "ACL TEAR"
        assert fields["procedure"] == "RECONSTRUCTION"

    def test_result_is_immutable(self, extractor):
        fields = extractor.parse("age is 45")

        with pytest.raises(TypeError):
            fields["age"] = "46"


@pytest.mark.unit
def test_module_level_parser():
    assert parse_patient_transcription("age is 45")["age"] == "45"
