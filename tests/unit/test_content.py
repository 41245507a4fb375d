"""Tests for the consultation content accessor."""

from __future__ import annotations

import pytest

from consult_facts.content import ConsultNoteContent, parse_number


class TestParseNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(8, 8.0), (7.5, 7.5), ("6", 6.0), ("7.5 hours", 7.5), (" 4h", 4.0), (0, 0.0)],
    )
    def test_numeric_values(self, value, expected) -> None:
        assert parse_number(value) == expected

    @pytest.mark.parametrize(
        "value",
        [None, True, "about seven", "", [], {}, float("nan"), float("inf"), float("-inf"), 10**400],
    )
    def test_non_numeric_values(self, value) -> None:
        assert parse_number(value) is None


class TestProblemCount:
    def test_plain_list(self) -> None:
        assert ConsultNoteContent({"problemList": ["A", "B"]}).problem_count() == 2

    def test_sectioned_form(self) -> None:
        content = ConsultNoteContent({"problemList": {"problems": ["A"]}})
        assert content.problem_count() == 1

    def test_snake_case_key(self) -> None:
        assert ConsultNoteContent({"problem_list": ["A"]}).problem_count() == 1

    def test_missing_or_malformed(self) -> None:
        assert ConsultNoteContent({}).problem_count() is None
        assert ConsultNoteContent({"problemList": "A, B"}).problem_count() is None
        assert ConsultNoteContent({"problemList": {"items": ["A"]}}).problem_count() is None

    def test_empty_list_is_not_missing(self) -> None:
        assert ConsultNoteContent({"problemList": []}).problem_count() == 0

    def test_non_string_items_are_counted(self) -> None:
        content = ConsultNoteContent({"problemList": ["A", 3, None, {"code": "F43.1"}]})
        assert content.problem_count() == 4


class TestSections:
    def test_objective_value(self) -> None:
        content = ConsultNoteContent({"objectiveData": {"values": {"sleep_hours": 7}}})
        assert content.objective_value("sleep_hours") == 7
        assert content.objective_value("pulse") is None

    def test_objective_data_malformed(self) -> None:
        assert ConsultNoteContent({"objectiveData": ["x"]}).objective_values() == {}

    def test_functional_impact_blank_is_missing(self) -> None:
        assert ConsultNoteContent({"hpi": {"functionalImpact": "   "}}).functional_impact() is None

    def test_chief_complaint(self) -> None:
        assert ConsultNoteContent({"chiefComplaint": "stress"}).chief_complaint() == "stress"
        assert ConsultNoteContent({"chiefComplaint": {"text": "stress"}}).chief_complaint() == "stress"

    def test_red_flags_screened_requires_true(self) -> None:
        screening = ConsultNoteContent(
            {"redFlagsScreening": {"screened": "yes", "positive": ["x"]}}
        ).red_flags_screening()
        assert screening is not None
        assert screening.screened is False

    def test_non_dict_content(self) -> None:
        content = ConsultNoteContent("free text")
        assert content.problem_count() is None
        assert content.red_flags_screening() is None
        assert content.associated_symptoms() is None
