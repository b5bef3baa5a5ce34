"""Tests for the static question catalog and progress helpers."""

from spaceplan.activities.answers import parse_field_path
from spaceplan.activities.catalog import (
    CONTINUE_OPTIONAL,
    CUSTOM_VALUE,
    OPTIONAL_QUESTIONS,
    REQUIRED_QUESTIONS,
    conversation_progress,
    get_question,
    progress_label,
    questions_for,
)


class TestCatalogShape:
    def test_required_has_welcome_plus_ten_questions(self):
        assert len(REQUIRED_QUESTIONS) == 11

    def test_welcome_is_not_interactive(self):
        welcome = REQUIRED_QUESTIONS[0]
        assert welcome.options == ()
        assert welcome.input_type is None
        assert welcome.field is None

    def test_optional_intro_is_the_gate(self):
        intro = OPTIONAL_QUESTIONS[0]
        assert intro.field == CONTINUE_OPTIONAL
        assert {o.value for o in intro.options} == {"yes", "no"}
        assert not intro.skippable

    def test_optional_questions_after_intro_are_skippable(self):
        assert all(q.skippable for q in OPTIONAL_QUESTIONS[1:])

    def test_required_questions_are_not_skippable(self):
        assert not any(q.skippable for q in REQUIRED_QUESTIONS)

    def test_question_ids_unique_across_phases(self):
        ids = [q.id for q in REQUIRED_QUESTIONS + OPTIONAL_QUESTIONS]
        assert len(ids) == len(set(ids))

    def test_every_field_path_resolves(self):
        """Every field except the gate tag is a writable ProjectFacts path."""
        for q in REQUIRED_QUESTIONS[1:] + OPTIONAL_QUESTIONS[1:]:
            assert parse_field_path(q.field) is not None, q.id

    def test_custom_option_only_where_text_allowed(self):
        for q in REQUIRED_QUESTIONS + OPTIONAL_QUESTIONS:
            if any(o.value == CUSTOM_VALUE for o in q.options):
                assert q.allow_text_input, q.id

    def test_building_purchase_uses_bool_values(self):
        q = next(q for q in REQUIRED_QUESTIONS if q.field == "includeBuildingPurchase")
        assert [o.value for o in q.options] == [True, False]

    def test_budget_options_match_brackets(self):
        from spaceplan.activities.normalize import BUDGET_BRACKETS

        q = next(q for q in REQUIRED_QUESTIONS if q.field == "budget")
        assert {o.value for o in q.options} == set(BUDGET_BRACKETS)


class TestLookup:
    def test_get_question_by_phase(self):
        assert get_question("required", 1) is REQUIRED_QUESTIONS[1]
        assert get_question("optional", 0) is OPTIONAL_QUESTIONS[0]

    def test_out_of_range_is_none(self):
        assert get_question("required", len(REQUIRED_QUESTIONS)) is None
        assert get_question("optional", -1) is None

    def test_questions_for(self):
        assert questions_for("required") is REQUIRED_QUESTIONS
        assert questions_for("optional") is OPTIONAL_QUESTIONS


class TestProgress:
    def test_required_progress(self):
        assert conversation_progress("required", 0) == 0
        assert conversation_progress("required", 1) == 10
        assert conversation_progress("required", 5) == 50
        assert conversation_progress("required", 10) == 100

    def test_optional_phase_is_complete(self):
        assert conversation_progress("optional", 0) == 100
        assert conversation_progress("optional", 4) == 100

    def test_label_never_shows_zero(self):
        assert progress_label("required", 0) == "1/10 필수 항목"
        assert progress_label("required", 7) == "7/10 필수 항목"

    def test_optional_label(self):
        assert progress_label("optional", 2) == "추가 정보 입력"
