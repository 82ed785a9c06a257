"""Quiz authoring rules and reconciliation.

Pure functions, no I/O: the service validates a whole submission and builds a
QuizSyncPlan before it writes anything, so a rejected quiz never leaves a
partial set of questions behind.
"""

from dataclasses import dataclass, field
from uuid import UUID

from govlearn.catalog.exceptions import QuizValidationError
from govlearn.catalog.models import QuizQuestion
from govlearn.config.settings import Settings


@dataclass(frozen=True)
class QuizRules:
    """Bounds applied to every question and to the quiz as a whole."""

    min_options: int = 2
    max_options: int = 6
    max_questions: int = 15
    draft_id_prefix: str = "q-"

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuizRules":
        return cls(
            min_options=settings.quiz_min_options,
            max_options=settings.quiz_max_options,
            max_questions=settings.quiz_max_questions,
            draft_id_prefix=settings.draft_question_id_prefix,
        )


@dataclass
class QuizQuestionInput:
    """A question as submitted by an author.

    `id` is either a persisted question id, a client-side draft id (prefixed
    with the draft prefix) or None for a brand-new question.
    """

    question: str = ""
    options: list[str] = field(default_factory=list)
    correct_answer_index: int = 0
    id: str | None = None
    explanation: str | None = None


@dataclass
class QuizSyncPlan:
    """Writes needed to turn the stored quiz into the submitted one."""

    inserts: list[QuizQuestion] = field(default_factory=list)
    updates: list[QuizQuestion] = field(default_factory=list)
    deletes: list[UUID] = field(default_factory=list)

    @property
    def questions(self) -> list[QuizQuestion]:
        """Resulting quiz in display order."""
        return sorted(self.inserts + self.updates, key=lambda q: q.order_index)


def is_blank(item: QuizQuestionInput) -> bool:
    """Blank rows left over from the editor carry no text and no options."""
    return not (item.question or "").strip() and not item.options


def is_draft_id(question_id: str | None, rules: QuizRules) -> bool:
    return not question_id or question_id.startswith(rules.draft_id_prefix)


def validate_question(item: QuizQuestionInput, position: int, rules: QuizRules) -> None:
    """Check option count and answer index for one question.

    Args:
        item: Submitted question
        position: 1-based position used in the error message

    Raises:
        QuizValidationError: On the first violated bound
    """
    count = len(item.options)
    if count < rules.min_options or count > rules.max_options:
        raise QuizValidationError(
            f"Question {position}: Options must be between {rules.min_options} "
            f"and {rules.max_options}. Got {count}.",
            position=position,
        )
    if not 0 <= item.correct_answer_index < count:
        raise QuizValidationError(
            f"Question {position}: Correct answer index out of bounds. "
            f"Got {item.correct_answer_index}, expected 0 to {count - 1}.",
            position=position,
        )


def validate_quiz(
    items: list[QuizQuestionInput], rules: QuizRules
) -> list[tuple[int, QuizQuestionInput]]:
    """Validate a full submission.

    Blank rows are dropped. Positions in error messages refer to the list as
    submitted.

    Returns:
        (1-based submitted position, question) for every non-blank question

    Raises:
        QuizValidationError: On the first invalid question, or when the quiz
            holds more questions than allowed
    """
    kept = [(i + 1, item) for i, item in enumerate(items) if not is_blank(item)]
    if len(kept) > rules.max_questions:
        raise QuizValidationError(
            f"Quiz exceeds the maximum of {rules.max_questions} questions. "
            f"Got {len(kept)}."
        )
    for position, item in kept:
        validate_question(item, position, rules)
    return kept


def plan_quiz_sync(
    lesson_id: UUID,
    items: list[QuizQuestionInput],
    existing: list[QuizQuestion],
    rules: QuizRules,
) -> QuizSyncPlan:
    """Reconcile a submitted quiz against the stored questions.

    Draft or missing ids become inserts, known ids become updates and stored
    questions absent from the submission become deletes. Submitting the same
    final list twice produces the same stored rows.

    Raises:
        QuizValidationError: If any question is invalid or refers to an id
            that is not a question of this lesson
    """
    kept = validate_quiz(items, rules)
    stored = {q.id: q for q in existing}
    plan = QuizSyncPlan()
    seen: set[UUID] = set()

    for order_index, (position, item) in enumerate(kept):
        if is_draft_id(item.id, rules):
            plan.inserts.append(
                QuizQuestion(
                    lesson_id=lesson_id,
                    question=item.question.strip(),
                    options=item.options,
                    correct_answer_index=item.correct_answer_index,
                    explanation=item.explanation,
                    order_index=order_index,
                )
            )
            continue

        question_id = _parse_persisted_id(item.id, position)
        current = stored.get(question_id)
        if current is None or question_id in seen:
            raise QuizValidationError(
                f"Question {position}: Unknown question id {item.id}.",
                position=position,
            )
        seen.add(question_id)
        plan.updates.append(
            QuizQuestion(
                id=current.id,
                lesson_id=lesson_id,
                question=item.question.strip(),
                options=item.options,
                correct_answer_index=item.correct_answer_index,
                explanation=item.explanation,
                order_index=order_index,
                created_at=current.created_at,
            )
        )

    plan.deletes = [qid for qid in stored if qid not in seen]
    return plan


def _parse_persisted_id(raw: str | None, position: int) -> UUID:
    try:
        return UUID(str(raw))
    except ValueError as e:
        raise QuizValidationError(
            f"Question {position}: Unknown question id {raw}.",
            position=position,
        ) from e
