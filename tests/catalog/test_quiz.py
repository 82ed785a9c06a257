"""Tests for quiz authoring rules and reconciliation."""

from uuid import uuid4

import pytest

from govlearn.catalog.exceptions import QuizValidationError
from govlearn.catalog.models import QuizQuestion
from govlearn.catalog.quiz import (
    QuizQuestionInput,
    QuizRules,
    is_blank,
    is_draft_id,
    plan_quiz_sync,
    validate_question,
    validate_quiz,
)
from govlearn.config import Settings


RULES = QuizRules()


def question(options: int = 3, answer: int = 0, qid: str | None = None) -> QuizQuestionInput:
    return QuizQuestionInput(
        question=f"Question with {options} options",
        options=[f"Option {i}" for i in range(options)],
        correct_answer_index=answer,
        id=qid,
    )


class TestQuizRules:
    """Tests for rule defaults and settings mapping."""

    def test_defaults(self) -> None:
        """Defaults match the documented bounds."""
        assert RULES.min_options == 2
        assert RULES.max_options == 6
        assert RULES.max_questions == 15
        assert RULES.draft_id_prefix == "q-"

    def test_from_settings(self) -> None:
        """Rules follow the configured limits."""
        settings = Settings(quiz_max_questions=3, quiz_max_options=4)
        rules = QuizRules.from_settings(settings)
        assert rules.max_questions == 3
        assert rules.max_options == 4


class TestValidateQuestion:
    """Tests for single question validation."""

    @pytest.mark.parametrize("count", [2, 4, 6])
    def test_option_count_in_range(self, count: int) -> None:
        """Two to six options are accepted."""
        validate_question(question(options=count), 1, RULES)

    def test_single_option_fails(self) -> None:
        """A question with one option is rejected with its position."""
        with pytest.raises(QuizValidationError) as exc_info:
            validate_question(question(options=1), 3, RULES)

        assert exc_info.value.position == 3
        assert exc_info.value.code == "quiz_validation"
        assert exc_info.value.message == (
            "Question 3: Options must be between 2 and 6. Got 1."
        )

    def test_seven_options_fails(self) -> None:
        with pytest.raises(QuizValidationError, match="Got 7"):
            validate_question(question(options=7), 1, RULES)

    def test_answer_index_out_of_bounds(self) -> None:
        """Three options with answer index 5 names the valid range."""
        with pytest.raises(QuizValidationError) as exc_info:
            validate_question(question(options=3, answer=5), 2, RULES)

        assert exc_info.value.message == (
            "Question 2: Correct answer index out of bounds. Got 5, expected 0 to 2."
        )

    def test_negative_answer_index(self) -> None:
        with pytest.raises(QuizValidationError, match="out of bounds"):
            validate_question(question(answer=-1), 1, RULES)


class TestValidateQuiz:
    """Tests for whole-quiz validation."""

    def test_blank_rows_are_dropped(self) -> None:
        """Editor leftovers without text or options are ignored."""
        items = [question(), QuizQuestionInput(question="  "), question()]
        kept = validate_quiz(items, RULES)
        assert [position for position, _ in kept] == [1, 3]

    def test_positions_refer_to_submitted_list(self) -> None:
        """The error names the 1-based index of the submitted question."""
        items = [question(), QuizQuestionInput(), question(options=1)]
        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz(items, RULES)
        assert exc_info.value.position == 3

    def test_sixteen_questions_exceed_maximum(self) -> None:
        """A 16-question batch fails against the 15-question cap."""
        with pytest.raises(QuizValidationError, match="maximum") as exc_info:
            validate_quiz([question() for _ in range(16)], RULES)
        assert exc_info.value.position is None

    def test_fifteen_questions_allowed(self) -> None:
        assert len(validate_quiz([question() for _ in range(15)], RULES)) == 15


class TestHelpers:
    """Tests for draft id and blank detection."""

    @pytest.mark.parametrize("qid", [None, "", "q-1700000000", "q-abc"])
    def test_draft_ids(self, qid: str | None) -> None:
        assert is_draft_id(qid, RULES) is True

    def test_persisted_id_is_not_draft(self) -> None:
        assert is_draft_id(str(uuid4()), RULES) is False

    def test_blank(self) -> None:
        assert is_blank(QuizQuestionInput()) is True
        assert is_blank(QuizQuestionInput(question="Why?")) is False
        assert is_blank(QuizQuestionInput(options=["a"])) is False


class TestPlanQuizSync:
    """Tests for reconciling a submitted quiz against stored questions."""

    @pytest.fixture
    def lesson_id(self):
        return uuid4()

    @pytest.fixture
    def stored(self, lesson_id) -> list[QuizQuestion]:
        return [
            QuizQuestion(
                lesson_id=lesson_id,
                question=f"Stored {i}",
                options=["a", "b"],
                order_index=i,
            )
            for i in range(3)
        ]

    def test_drafts_insert_known_update_missing_delete(self, lesson_id, stored) -> None:
        """Draft ids insert, persisted ids update, absent ids delete."""
        items = [
            question(qid=str(stored[2].id)),
            question(qid="q-new"),
            question(qid=str(stored[0].id)),
        ]

        plan = plan_quiz_sync(lesson_id, items, stored, RULES)

        assert [q.id for q in plan.updates] == [stored[2].id, stored[0].id]
        assert len(plan.inserts) == 1
        assert plan.deletes == [stored[1].id]
        assert [q.order_index for q in plan.questions] == [0, 1, 2]
        assert plan.questions[0].id == stored[2].id

    def test_update_keeps_created_at(self, lesson_id, stored) -> None:
        plan = plan_quiz_sync(lesson_id, [question(qid=str(stored[1].id))], stored, RULES)
        assert plan.updates[0].created_at == stored[1].created_at

    def test_resubmitting_final_list_is_stable(self, lesson_id, stored) -> None:
        """Submitting the stored list again changes nothing but content."""
        items = [
            QuizQuestionInput(
                id=str(q.id),
                question=q.question,
                options=q.options,
                correct_answer_index=q.correct_answer_index,
            )
            for q in stored
        ]

        plan = plan_quiz_sync(lesson_id, items, stored, RULES)

        assert plan.inserts == []
        assert plan.deletes == []
        assert [q.to_dict() for q in plan.questions] == [q.to_dict() for q in stored]

    def test_unknown_id_rejected(self, lesson_id, stored) -> None:
        """An id that is not a question of this lesson is a validation error."""
        with pytest.raises(QuizValidationError, match="Question 1: Unknown question id"):
            plan_quiz_sync(lesson_id, [question(qid=str(uuid4()))], stored, RULES)

    def test_malformed_id_rejected(self, lesson_id, stored) -> None:
        with pytest.raises(QuizValidationError, match="Unknown question id not-a-uuid"):
            plan_quiz_sync(lesson_id, [question(qid="not-a-uuid")], stored, RULES)

    def test_duplicate_id_rejected(self, lesson_id, stored) -> None:
        items = [question(qid=str(stored[0].id)), question(qid=str(stored[0].id))]
        with pytest.raises(QuizValidationError) as exc_info:
            plan_quiz_sync(lesson_id, items, stored, RULES)
        assert exc_info.value.position == 2

    def test_empty_submission_deletes_all(self, lesson_id, stored) -> None:
        plan = plan_quiz_sync(lesson_id, [], stored, RULES)
        assert sorted(plan.deletes) == sorted(q.id for q in stored)
        assert plan.questions == []
