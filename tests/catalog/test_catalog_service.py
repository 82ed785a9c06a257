"""Tests for course and lesson services against the in-memory session."""

from uuid import uuid4

import pytest
import pytest_asyncio

from govlearn.catalog.exceptions import (
    CourseNotFoundError,
    EmptyReorderError,
    InvalidLessonError,
    InvalidLevelError,
    InvalidReorderError,
    LessonNotFoundError,
    QuestionNotFoundError,
    QuizValidationError,
    ReorderFailedError,
)
from govlearn.catalog.models import CourseLevel
from govlearn.catalog.quiz import QuizQuestionInput
from govlearn.catalog.schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    QuizQuestionPayload,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateQuizQuestionRequest,
)
from govlearn.catalog.service import compaction_moves, validate_reorder_ids
from govlearn.progress.models import LessonProgressPatch


def payload(text: str = "Which?", options: int = 3, qid: str | None = None) -> QuizQuestionPayload:
    return QuizQuestionPayload(
        id=qid,
        question=text,
        options=[f"{text} {i}" for i in range(options)],
        correct_answer=0,
    )


async def make_course(course_service, admin_id, title: str, level=CourseLevel.BEGINNER):
    return await course_service.create_course(
        CreateCourseRequest(title=title, level=level), created_by=admin_id
    )


async def make_lesson(lesson_service, course_id, title: str, **fields):
    outline = await lesson_service.add_lesson(
        course_id, CreateLessonRequest(title=title, **fields)
    )
    return outline.lesson


def order_of(cassandra, table: str, **criteria) -> list[tuple[str, int]]:
    rows = [
        row
        for row in cassandra.rows(table)
        if all(row.get(k) == v for k, v in criteria.items())
    ]
    key = "question" if table == "quiz_questions" else "title"
    return sorted(((row[key], row["order_index"]) for row in rows), key=lambda x: x[1])


class TestHelpers:
    """Tests for reorder validation and compaction."""

    def test_reorder_ids_must_be_permutation(self) -> None:
        a, b = uuid4(), uuid4()
        validate_reorder_ids([b, a], {a, b})

        with pytest.raises(EmptyReorderError):
            validate_reorder_ids([], {a, b})
        with pytest.raises(InvalidReorderError, match="duplicates"):
            validate_reorder_ids([a, a], {a, b})
        with pytest.raises(InvalidReorderError, match="Unknown"):
            validate_reorder_ids([a, b, uuid4()], {a, b})
        with pytest.raises(InvalidReorderError, match="missing 1"):
            validate_reorder_ids([a], {a, b})

    def test_compaction_moves_only_changed(self) -> None:
        class Item:
            def __init__(self, order_index: int):
                self.order_index = order_index

        items = [Item(0), Item(2), Item(3)]
        moves = compaction_moves(items)
        assert [(item.order_index, index) for item, index in moves] == [(2, 1), (3, 2)]


class TestCourses:
    """Tests for course creation, update, ordering and deletion."""

    @pytest.mark.asyncio
    async def test_create_appends_within_level(self, course_service, admin_id) -> None:
        """Each level has its own dense sequence."""
        c1 = await make_course(course_service, admin_id, "C1")
        c2 = await make_course(course_service, admin_id, "C2")
        i1 = await make_course(course_service, admin_id, "I1", CourseLevel.INTERMEDIATE)

        assert (c1.order_index, c2.order_index, i1.order_index) == (0, 1, 0)
        assert c1.created_by == admin_id

    @pytest.mark.asyncio
    async def test_list_courses_orders_by_level_then_index(
        self, course_service, admin_id
    ) -> None:
        await make_course(course_service, admin_id, "A1", CourseLevel.ADVANCED)
        await make_course(course_service, admin_id, "B1")
        await make_course(course_service, admin_id, "I1", CourseLevel.INTERMEDIATE)
        await make_course(course_service, admin_id, "B2")

        titles = [c.title for c in await course_service.list_courses()]
        assert titles == ["B1", "B2", "I1", "A1"]

    @pytest.mark.asyncio
    async def test_list_courses_hides_unpublished(self, course_service, admin_id) -> None:
        await make_course(course_service, admin_id, "Visible")
        await course_service.create_course(
            CreateCourseRequest(title="Draft", is_published=False), created_by=admin_id
        )

        published = [c.title for c in await course_service.list_courses()]
        everything = [c.title for c in await course_service.list_courses(published_only=False)]
        assert published == ["Visible"]
        assert everything == ["Visible", "Draft"]

    @pytest.mark.asyncio
    async def test_list_by_unknown_level(self, course_service) -> None:
        with pytest.raises(InvalidLevelError):
            await course_service.list_courses_by_level("Expert")

    @pytest.mark.asyncio
    async def test_reorder_within_level(self, course_service, cassandra, admin_id) -> None:
        """[c2, c1, c3] gives 0, 1, 2 in that order; other levels untouched."""
        c1 = await make_course(course_service, admin_id, "C1")
        c2 = await make_course(course_service, admin_id, "C2")
        c3 = await make_course(course_service, admin_id, "C3")
        await make_course(course_service, admin_id, "I1", CourseLevel.INTERMEDIATE)
        await make_course(course_service, admin_id, "I2", CourseLevel.INTERMEDIATE)

        await course_service.reorder_courses("Beginner", [c2.id, c1.id, c3.id])

        assert order_of(cassandra, "courses", level="Beginner") == [
            ("C2", 0),
            ("C1", 1),
            ("C3", 2),
        ]
        assert order_of(cassandra, "courses", level="Intermediate") == [
            ("I1", 0),
            ("I2", 1),
        ]
        assert len(cassandra.batches[-1]) == 3

    @pytest.mark.asyncio
    async def test_reorder_with_foreign_id_changes_nothing(
        self, course_service, cassandra, admin_id
    ) -> None:
        c1 = await make_course(course_service, admin_id, "C1")
        c2 = await make_course(course_service, admin_id, "C2")
        other = await make_course(course_service, admin_id, "I1", CourseLevel.INTERMEDIATE)

        with pytest.raises(InvalidReorderError):
            await course_service.reorder_courses("Beginner", [c2.id, c1.id, other.id])

        assert order_of(cassandra, "courses", level="Beginner") == [("C1", 0), ("C2", 1)]
        assert cassandra.batches == []

    @pytest.mark.asyncio
    async def test_reorder_empty_and_unknown_level(self, course_service) -> None:
        with pytest.raises(EmptyReorderError):
            await course_service.reorder_courses("Beginner", [])
        with pytest.raises(InvalidLevelError):
            await course_service.reorder_courses("Expert", [uuid4()])

    @pytest.mark.asyncio
    async def test_reorder_batch_failure(self, course_service, cassandra, admin_id) -> None:
        """A rejected batch surfaces as ReorderFailedError with no changes."""
        c1 = await make_course(course_service, admin_id, "C1")
        c2 = await make_course(course_service, admin_id, "C2")
        cassandra.fail_batches = True

        with pytest.raises(ReorderFailedError):
            await course_service.reorder_courses("Beginner", [c2.id, c1.id])

        assert order_of(cassandra, "courses", level="Beginner") == [("C1", 0), ("C2", 1)]

    @pytest.mark.asyncio
    async def test_update_fields(self, course_service, cassandra, admin_id) -> None:
        course = await make_course(course_service, admin_id, "Old")

        updated = await course_service.update_course(
            course.id,
            UpdateCourseRequest(title=" New ", description="About", is_published=False),
        )

        stored = cassandra.row("courses", id=course.id)
        assert updated.title == "New"
        assert stored["title"] == "New"
        assert stored["description"] == "About"
        assert stored["is_published"] is False
        assert stored["updated_at"] is not None

    @pytest.mark.asyncio
    async def test_level_change_moves_and_compacts(
        self, course_service, cassandra, admin_id
    ) -> None:
        """Moving a course appends it to the new level and closes the gap."""
        c1 = await make_course(course_service, admin_id, "C1")
        await make_course(course_service, admin_id, "C2")
        await make_course(course_service, admin_id, "C3")
        await make_course(course_service, admin_id, "I1", CourseLevel.INTERMEDIATE)

        moved = await course_service.update_course(
            c1.id, UpdateCourseRequest(level=CourseLevel.INTERMEDIATE)
        )

        assert moved.level == "Intermediate"
        assert order_of(cassandra, "courses", level="Beginner") == [("C2", 0), ("C3", 1)]
        assert order_of(cassandra, "courses", level="Intermediate") == [
            ("I1", 0),
            ("C1", 1),
        ]

    @pytest.mark.asyncio
    async def test_update_missing_course(self, course_service) -> None:
        with pytest.raises(CourseNotFoundError):
            await course_service.update_course(uuid4(), UpdateCourseRequest(title="X"))

    @pytest.mark.asyncio
    async def test_delete_cascades_and_compacts(
        self, course_service, lesson_service, progress_service, cassandra, admin_id, user_id
    ) -> None:
        """Course delete removes lessons, quiz, enrollments and progress."""
        doomed = await make_course(course_service, admin_id, "Doomed")
        keeper = await make_course(course_service, admin_id, "Keeper")
        outline = await lesson_service.add_lesson(
            doomed.id, CreateLessonRequest(title="L1", quiz=[payload(), payload("Two")])
        )
        await progress_service.enroll(user_id, doomed.id)
        await progress_service.update_lesson_progress(
            user_id, outline.lesson.id, LessonProgressPatch(progress_percent=40)
        )

        await course_service.delete_course(doomed.id)

        assert cassandra.row("courses", id=doomed.id) is None
        assert cassandra.rows("lessons") == []
        assert cassandra.rows("quiz_questions") == []
        assert cassandra.rows("enrollments") == []
        assert cassandra.rows("enrollments_by_course") == []
        assert cassandra.rows("lesson_progress") == []
        assert cassandra.row("courses", id=keeper.id)["order_index"] == 0

    @pytest.mark.asyncio
    async def test_delete_missing_course(self, course_service) -> None:
        with pytest.raises(CourseNotFoundError):
            await course_service.delete_course(uuid4())

    @pytest.mark.asyncio
    async def test_delete_purges_learners_in_small_batches(
        self, course_service, lesson_service, progress_service, cassandra, admin_id
    ) -> None:
        """Learner rows never share the catalog batch and respect the batch size."""
        course = await make_course(course_service, admin_id, "Popular")
        lesson = await make_lesson(lesson_service, course.id, "L1")
        for _ in range(5):
            learner = uuid4()
            await progress_service.enroll(learner, course.id)
            await progress_service.complete_lesson(learner, lesson.id)
        course_service.purger.batch_size = 2
        start = len(cassandra.batches)

        await course_service.delete_course(course.id)

        def touches_learner_data(batch) -> bool:
            return any(
                "enrollments" in statement.query_string
                or "lesson_progress" in statement.query_string
                for statement, _ in batch.entries
            )

        batches = cassandra.batches[start:]
        learner_batches = [b for b in batches if touches_learner_data(b)]
        assert len(learner_batches) >= 5
        assert all(len(b) <= 2 for b in learner_batches)
        assert not touches_learner_data(batches[-1])
        assert cassandra.rows("enrollments") == []
        assert cassandra.rows("enrollments_by_course") == []
        assert cassandra.rows("lesson_progress") == []
        assert cassandra.rows("courses") == []

    @pytest.mark.asyncio
    async def test_catalog_outline(self, course_service, lesson_service, admin_id) -> None:
        """Outlines list lessons by position; unpublished ones only for editors."""
        course = await make_course(course_service, admin_id, "C1")
        await make_lesson(lesson_service, course.id, "First")
        await make_lesson(lesson_service, course.id, "Hidden", is_published=False)
        await make_lesson(lesson_service, course.id, "Third")

        public = await course_service.list_catalog()
        editor = await course_service.list_catalog(include_unpublished=True)

        assert [x.lesson.title for x in public[0].lessons] == ["First", "Third"]
        assert [x.lesson.title for x in editor[0].lessons] == ["First", "Hidden", "Third"]


class TestLessons:
    """Tests for lesson authoring and quiz reconciliation."""

    @pytest_asyncio.fixture
    async def course(self, course_service, admin_id):
        return await make_course(course_service, admin_id, "Course")

    @pytest.mark.asyncio
    async def test_add_appends_with_default_passing_score(
        self, lesson_service, course
    ) -> None:
        first = await make_lesson(lesson_service, course.id, "L1")
        second = await make_lesson(lesson_service, course.id, "L2", passing_score=80)

        assert (first.order_index, second.order_index) == (0, 1)
        assert first.passing_score == 70
        assert second.passing_score == 80

    @pytest.mark.asyncio
    async def test_add_to_missing_course(self, lesson_service) -> None:
        with pytest.raises(CourseNotFoundError):
            await lesson_service.add_lesson(uuid4(), CreateLessonRequest(title="L"))

    @pytest.mark.asyncio
    async def test_add_rejects_passing_score_out_of_range(self, lesson_service, course) -> None:
        with pytest.raises(InvalidLessonError):
            await lesson_service.add_lesson(
                course.id, CreateLessonRequest(title="L", passing_score=101)
            )

    @pytest.mark.asyncio
    async def test_add_with_quiz_writes_one_batch(
        self, lesson_service, cassandra, course
    ) -> None:
        """Lesson and questions land together; blank rows are dropped."""
        outline = await lesson_service.add_lesson(
            course.id,
            CreateLessonRequest(
                title="Quiz lesson",
                type="quiz",
                quiz=[payload("One"), QuizQuestionPayload(), payload("Two")],
            ),
        )

        assert [q.question for q in outline.quiz] == ["One", "Two"]
        assert order_of(cassandra, "quiz_questions", lesson_id=outline.lesson.id) == [
            ("One", 0),
            ("Two", 1),
        ]
        assert len(cassandra.batches) == 1
        assert len(cassandra.batches[0]) == 3

    @pytest.mark.asyncio
    async def test_invalid_quiz_writes_nothing(self, lesson_service, cassandra, course) -> None:
        with pytest.raises(QuizValidationError, match="Question 2"):
            await lesson_service.add_lesson(
                course.id,
                CreateLessonRequest(title="Broken", quiz=[payload(), payload(options=1)]),
            )

        assert cassandra.rows("lessons") == []
        assert cassandra.rows("quiz_questions") == []

    @pytest.mark.asyncio
    async def test_update_fields_keeps_required_on_null(
        self, lesson_service, cassandra, course
    ) -> None:
        """Explicit null clears optional fields but never required ones."""
        lesson = await make_lesson(
            lesson_service, course.id, "L1", description="Intro", duration_min=10
        )

        outline = await lesson_service.update_lesson(
            lesson.id,
            UpdateLessonRequest.model_validate(
                {"title": None, "description": None, "durationMin": 25, "type": "video"}
            ),
        )

        stored = cassandra.row("lessons", id=lesson.id)
        assert outline.lesson.title == "L1"
        assert stored["description"] is None
        assert stored["duration_min"] == 25
        assert stored["type"] == "video"

    @pytest.mark.asyncio
    async def test_update_quiz_sync_is_idempotent(
        self, lesson_service, cassandra, course
    ) -> None:
        """Editing, adding a draft and dropping a question, then resubmitting."""
        outline = await lesson_service.add_lesson(
            course.id,
            CreateLessonRequest(title="L1", quiz=[payload("A"), payload("B"), payload("C")]),
        )
        a, _, c = outline.quiz

        submission = [
            payload("C edited", qid=str(c.id)),
            payload("New", qid="q-1700000000"),
            payload("A", qid=str(a.id)),
        ]
        first = await lesson_service.update_lesson(
            outline.lesson.id, UpdateLessonRequest(quiz=submission)
        )

        assert [q.question for q in first.quiz] == ["C edited", "New", "A"]
        assert order_of(cassandra, "quiz_questions") == [
            ("C edited", 0),
            ("New", 1),
            ("A", 2),
        ]

        resubmit = [payload(q.question, qid=str(q.id)) for q in first.quiz]
        second = await lesson_service.update_lesson(
            outline.lesson.id, UpdateLessonRequest(quiz=resubmit)
        )

        assert [q.id for q in second.quiz] == [q.id for q in first.quiz]
        assert len(cassandra.rows("quiz_questions")) == 3

    @pytest.mark.asyncio
    async def test_update_without_quiz_keeps_questions(
        self, lesson_service, cassandra, course
    ) -> None:
        outline = await lesson_service.add_lesson(
            course.id, CreateLessonRequest(title="L1", quiz=[payload()])
        )

        updated = await lesson_service.update_lesson(
            outline.lesson.id, UpdateLessonRequest(title="Renamed")
        )

        assert len(updated.quiz) == 1
        assert len(cassandra.rows("quiz_questions")) == 1

    @pytest.mark.asyncio
    async def test_update_with_unknown_question_id(
        self, lesson_service, cassandra, course
    ) -> None:
        outline = await lesson_service.add_lesson(
            course.id, CreateLessonRequest(title="L1", quiz=[payload("Kept")])
        )

        with pytest.raises(QuizValidationError, match="Unknown question id"):
            await lesson_service.update_lesson(
                outline.lesson.id,
                UpdateLessonRequest(quiz=[payload(qid=str(uuid4()))]),
            )

        assert order_of(cassandra, "quiz_questions") == [("Kept", 0)]

    @pytest.mark.asyncio
    async def test_reorder_lessons(self, lesson_service, cassandra, course) -> None:
        l1 = await make_lesson(lesson_service, course.id, "L1")
        l2 = await make_lesson(lesson_service, course.id, "L2")
        l3 = await make_lesson(lesson_service, course.id, "L3")

        await lesson_service.reorder_lessons(course.id, [l3.id, l1.id, l2.id])

        assert order_of(cassandra, "lessons") == [("L3", 0), ("L1", 1), ("L2", 2)]

    @pytest.mark.asyncio
    async def test_reorder_lessons_rejects_partial_list(
        self, lesson_service, cassandra, course
    ) -> None:
        l1 = await make_lesson(lesson_service, course.id, "L1")
        await make_lesson(lesson_service, course.id, "L2")

        with pytest.raises(InvalidReorderError):
            await lesson_service.reorder_lessons(course.id, [l1.id])
        with pytest.raises(CourseNotFoundError):
            await lesson_service.reorder_lessons(uuid4(), [l1.id])

        assert order_of(cassandra, "lessons") == [("L1", 0), ("L2", 1)]

    @pytest.mark.asyncio
    async def test_delete_lesson_cascades_and_compacts(
        self, lesson_service, progress_service, cassandra, course, user_id
    ) -> None:
        """Deleting the middle lesson removes its quiz and progress."""
        l1 = await make_lesson(lesson_service, course.id, "L1")
        middle = await lesson_service.add_lesson(
            course.id, CreateLessonRequest(title="L2", quiz=[payload()])
        )
        await make_lesson(lesson_service, course.id, "L3")
        await progress_service.complete_lesson(user_id, middle.lesson.id)
        await progress_service.complete_lesson(user_id, l1.id)

        await lesson_service.delete_lesson(middle.lesson.id)

        assert order_of(cassandra, "lessons") == [("L1", 0), ("L3", 1)]
        assert cassandra.rows("quiz_questions") == []
        remaining = cassandra.rows("lesson_progress")
        assert [row["lesson_id"] for row in remaining] == [l1.id]

    @pytest.mark.asyncio
    async def test_delete_missing_lesson(self, lesson_service) -> None:
        with pytest.raises(LessonNotFoundError):
            await lesson_service.delete_lesson(uuid4())


class TestQuizQuestions:
    """Tests for standalone question editing."""

    @pytest_asyncio.fixture
    async def lesson(self, course_service, lesson_service, admin_id):
        course = await make_course(course_service, admin_id, "Course")
        return await make_lesson(lesson_service, course.id, "Quiz")

    def item(self, text: str = "Q", options: int = 3, answer: int = 0) -> QuizQuestionInput:
        return QuizQuestionInput(
            question=text,
            options=[f"o{i}" for i in range(options)],
            correct_answer_index=answer,
        )

    @pytest.mark.asyncio
    async def test_add_appends(self, lesson_service, lesson) -> None:
        first = await lesson_service.add_quiz_question(lesson.id, self.item("Q1"))
        second = await lesson_service.add_quiz_question(lesson.id, self.item("Q2"))

        assert (first.order_index, second.order_index) == (0, 1)

    @pytest.mark.asyncio
    async def test_add_rejects_full_quiz(self, lesson_service, lesson) -> None:
        for i in range(15):
            await lesson_service.add_quiz_question(lesson.id, self.item(f"Q{i}"))

        with pytest.raises(QuizValidationError, match="maximum"):
            await lesson_service.add_quiz_question(lesson.id, self.item("Q16"))

    @pytest.mark.asyncio
    async def test_add_rejects_invalid_question(self, lesson_service, lesson) -> None:
        with pytest.raises(QuizValidationError, match="Question 1: Options"):
            await lesson_service.add_quiz_question(lesson.id, self.item(options=1))

    @pytest.mark.asyncio
    async def test_add_to_missing_lesson(self, lesson_service) -> None:
        with pytest.raises(LessonNotFoundError):
            await lesson_service.add_quiz_question(uuid4(), self.item())

    @pytest.mark.asyncio
    async def test_update_validates_merged_question(self, lesson_service, lesson) -> None:
        """Shrinking options below the stored answer index is rejected."""
        question = await lesson_service.add_quiz_question(
            lesson.id, self.item(options=4, answer=3)
        )

        with pytest.raises(QuizValidationError, match="out of bounds"):
            await lesson_service.update_quiz_question(
                question.id, UpdateQuizQuestionRequest(options=["a", "b"])
            )

        updated = await lesson_service.update_quiz_question(
            question.id,
            UpdateQuizQuestionRequest(options=["a", "b"], correct_answer=1, explanation="b"),
        )
        assert updated.options == ["a", "b"]
        assert updated.correct_answer_index == 1
        assert updated.explanation == "b"

    @pytest.mark.asyncio
    async def test_update_missing_question(self, lesson_service) -> None:
        with pytest.raises(QuestionNotFoundError):
            await lesson_service.update_quiz_question(
                uuid4(), UpdateQuizQuestionRequest(question="x")
            )

    @pytest.mark.asyncio
    async def test_delete_compacts(self, lesson_service, cassandra, lesson) -> None:
        await lesson_service.add_quiz_question(lesson.id, self.item("Q1"))
        q2 = await lesson_service.add_quiz_question(lesson.id, self.item("Q2"))
        await lesson_service.add_quiz_question(lesson.id, self.item("Q3"))

        await lesson_service.delete_quiz_question(q2.id)

        assert order_of(cassandra, "quiz_questions") == [("Q1", 0), ("Q3", 1)]

    @pytest.mark.asyncio
    async def test_delete_missing_question(self, lesson_service) -> None:
        with pytest.raises(QuestionNotFoundError):
            await lesson_service.delete_quiz_question(uuid4())
