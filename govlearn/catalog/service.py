"""Catalog service layer.

Business logic for:
- Course CRUD with per-level ordering
- Lesson CRUD with per-course ordering and embedded quiz reconciliation
- Standalone quiz question editing
- Cascade deletion of lessons, questions and learner progress

Order indices stay dense (0..n-1) in their scope. Any write that moves more
than one index, and every cascade, goes out as one LOGGED batch built only
after all validation has passed.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from cassandra import DriverException
from cassandra.query import BatchStatement, BatchType

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
from govlearn.catalog.models import (
    LEVEL_ORDER,
    Course,
    CourseLevel,
    Lesson,
    LessonType,
    QuizQuestion,
)
from govlearn.catalog.quiz import (
    QuizQuestionInput,
    QuizRules,
    plan_quiz_sync,
    validate_question,
    validate_quiz,
)
from govlearn.catalog.schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateQuizQuestionRequest,
)
from govlearn.utils.time import utc_now


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from govlearn.progress.purge import ProgressPurger

logger = structlog.get_logger(__name__)

Statement = tuple[Any, list[Any]]

REQUIRED_LESSON_FIELDS = frozenset(
    {"title", "type", "duration_min", "is_published", "is_external_link", "passing_score"}
)


def parse_level(level: CourseLevel | str) -> CourseLevel:
    """Coerce a level name.

    Raises:
        InvalidLevelError: If the value is not one of the three levels
    """
    if isinstance(level, CourseLevel):
        return level
    try:
        return CourseLevel(level)
    except ValueError as e:
        raise InvalidLevelError(level) from e


def validate_reorder_ids(ordered_ids: list[UUID], current_ids: set[UUID]) -> None:
    """The new order must be a permutation of the ids currently in scope.

    Raises:
        EmptyReorderError: If no ids were given
        InvalidReorderError: On duplicates, unknown ids or missing ids
    """
    if not ordered_ids:
        raise EmptyReorderError
    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidReorderError("orderedIds contains duplicates")
    unknown = set(ordered_ids) - current_ids
    if unknown:
        raise InvalidReorderError(
            f"Unknown ids in orderedIds: {', '.join(sorted(str(i) for i in unknown))}"
        )
    missing = current_ids - set(ordered_ids)
    if missing:
        raise InvalidReorderError(
            f"orderedIds must list every item in scope; missing {len(missing)}"
        )


def compaction_moves(items: list[Any]) -> list[tuple[Any, int]]:
    """(item, new_index) for every item whose index changes when compacted."""
    ordered = sorted(items, key=lambda item: item.order_index)
    return [
        (item, index)
        for index, item in enumerate(ordered)
        if item.order_index != index
    ]


def new_batch() -> BatchStatement:
    return BatchStatement(batch_type=BatchType.LOGGED)


async def execute_statements(session: "Session", statements: list[Statement]) -> None:
    """Run statements atomically; a single statement skips the batch."""
    if not statements:
        return
    if len(statements) == 1:
        await session.aexecute(*statements[0])
        return
    batch = new_batch()
    for statement, params in statements:
        batch.add(statement, params)
    await session.aexecute(batch)


@dataclass
class LessonOutline:
    """Lesson together with its quiz, in display order."""

    lesson: Lesson
    quiz: list[QuizQuestion] = field(default_factory=list)


@dataclass
class CourseOutline:
    """Course together with its lessons, in display order."""

    course: Course
    lessons: list[LessonOutline] = field(default_factory=list)


# ==============================================================================
# Lesson Service
# ==============================================================================


class LessonService:
    """Service for lessons and their quizzes."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        rules: QuizRules | None = None,
        default_passing_score: int = 70,
        purger: "ProgressPurger | None" = None,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.rules = rules or QuizRules()
        self.default_passing_score = default_passing_score
        self.purger = purger
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._course_exists = self.session.prepare(
            f"SELECT id FROM {ks}.courses WHERE id = ?"
        )

        # Lessons
        self._get_lesson_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._get_course_lessons = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE course_id = ?"
        )
        self._upsert_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.lessons
            (id, course_id, title, description, type, duration_min, video_url,
             video_source, file_url, file_name, page_count, content,
             is_external_link, order_index, is_published, passing_score,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._set_lesson_order = self.session.prepare(
            f"UPDATE {ks}.lessons SET order_index = ?, updated_at = ? WHERE id = ?"
        )
        self._delete_lesson = self.session.prepare(
            f"DELETE FROM {ks}.lessons WHERE id = ?"
        )

        # Quiz questions
        self._get_question_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_questions WHERE id = ?"
        )
        self._get_lesson_questions = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_questions WHERE lesson_id = ?"
        )
        self._upsert_question = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_questions
            (id, lesson_id, question, options, correct_answer_index, explanation,
             order_index, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._set_question_order = self.session.prepare(
            f"UPDATE {ks}.quiz_questions SET order_index = ? WHERE id = ?"
        )
        self._delete_question = self.session.prepare(
            f"DELETE FROM {ks}.quiz_questions WHERE id = ?"
        )

    # ==========================================================================
    # Statement builders
    # ==========================================================================

    def _lesson_write(self, lesson: Lesson) -> Statement:
        return (
            self._upsert_lesson,
            [
                lesson.id,
                lesson.course_id,
                lesson.title,
                lesson.description,
                lesson.type,
                lesson.duration_min,
                lesson.video_url,
                lesson.video_source,
                lesson.file_url,
                lesson.file_name,
                lesson.page_count,
                lesson.content,
                lesson.is_external_link,
                lesson.order_index,
                lesson.is_published,
                lesson.passing_score,
                lesson.created_at,
                lesson.updated_at,
            ],
        )

    def _question_write(self, question: QuizQuestion) -> Statement:
        return (
            self._upsert_question,
            [
                question.id,
                question.lesson_id,
                question.question,
                question.options,
                question.correct_answer_index,
                question.explanation,
                question.order_index,
                question.created_at,
            ],
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def course_exists(self, course_id: UUID) -> bool:
        result = await self.session.aexecute(self._course_exists, [course_id])
        return result.one() is not None

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by ID."""
        result = await self.session.aexecute(self._get_lesson_by_id, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def require_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        return lesson

    async def list_course_lessons(
        self, course_id: UUID, published_only: bool = False
    ) -> list[Lesson]:
        """Lessons of a course ordered by order_index."""
        rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        lessons = [Lesson.from_row(row) for row in rows]
        if published_only:
            lessons = [lesson for lesson in lessons if lesson.is_published]
        return sorted(lessons, key=lambda lesson: lesson.order_index)

    async def list_published_lessons(self, course_id: UUID) -> list[Lesson]:
        return await self.list_course_lessons(course_id, published_only=True)

    async def get_quiz(self, lesson_id: UUID) -> list[QuizQuestion]:
        """Quiz questions of a lesson ordered by order_index."""
        rows = await self.session.aexecute(self._get_lesson_questions, [lesson_id])
        return sorted(
            (QuizQuestion.from_row(row) for row in rows),
            key=lambda q: q.order_index,
        )

    async def get_question(self, question_id: UUID) -> QuizQuestion | None:
        result = await self.session.aexecute(self._get_question_by_id, [question_id])
        row = result.one()
        return QuizQuestion.from_row(row) if row else None

    async def get_outline(self, lesson: Lesson) -> LessonOutline:
        return LessonOutline(lesson=lesson, quiz=await self.get_quiz(lesson.id))

    # ==========================================================================
    # Lesson commands
    # ==========================================================================

    def _check_passing_score(self, score: int) -> None:
        if not 0 <= score <= 100:  # noqa: PLR2004
            raise InvalidLessonError(
                f"Passing score must be between 0 and 100. Got {score}."
            )

    async def add_lesson(
        self, course_id: UUID, data: CreateLessonRequest
    ) -> LessonOutline:
        """Append a lesson to a course, optionally with its full quiz.

        The quiz is validated before anything is written; the lesson and its
        questions are then stored in one batch.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            QuizValidationError: If a question or the question count is invalid
            InvalidLessonError: If the passing score is out of range
        """
        if not await self.course_exists(course_id):
            raise CourseNotFoundError

        passing_score = (
            data.passing_score
            if data.passing_score is not None
            else self.default_passing_score
        )
        self._check_passing_score(passing_score)

        items = [q.to_input() for q in data.quiz or []]
        try:
            kept = validate_quiz(items, self.rules)
        except QuizValidationError as e:
            logger.warning(
                "quiz_validation_failed",
                course_id=str(course_id),
                position=e.position,
                reason=e.message,
            )
            raise

        existing = await self.list_course_lessons(course_id)
        lesson = Lesson(
            course_id=course_id,
            title=data.title,
            description=data.description,
            type=data.type.value,
            duration_min=data.duration_min,
            video_url=data.video_url,
            video_source=data.video_source,
            file_url=data.file_url,
            file_name=data.file_name,
            page_count=data.page_count,
            content=data.content,
            is_external_link=data.is_external_link,
            order_index=max((x.order_index for x in existing), default=-1) + 1,
            is_published=data.is_published,
            passing_score=passing_score,
        )
        quiz = [
            QuizQuestion(
                lesson_id=lesson.id,
                question=item.question.strip(),
                options=item.options,
                correct_answer_index=item.correct_answer_index,
                explanation=item.explanation,
                order_index=order_index,
            )
            for order_index, (_, item) in enumerate(kept)
        ]

        await execute_statements(
            self.session,
            [self._lesson_write(lesson), *(self._question_write(q) for q in quiz)],
        )

        logger.info(
            "lesson_added",
            course_id=str(course_id),
            lesson_id=str(lesson.id),
            order_index=lesson.order_index,
            questions=len(quiz),
        )
        return LessonOutline(lesson=lesson, quiz=quiz)

    async def update_lesson(
        self, lesson_id: UUID, data: UpdateLessonRequest
    ) -> LessonOutline:
        """Patch a lesson; a submitted quiz replaces the stored one.

        Only fields present in the request are changed. When `quiz` is
        present it is reconciled against the stored questions: draft ids are
        inserted, known ids updated, missing ids deleted, all in the same
        batch as the lesson row.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
            QuizValidationError: If the quiz is invalid (nothing is written)
        """
        lesson = await self.require_lesson(lesson_id)

        fields = data.model_dump(exclude_unset=True, exclude={"quiz"})
        for name, value in fields.items():
            # Explicit null clears optional fields only
            if value is None and name in REQUIRED_LESSON_FIELDS:
                continue
            if isinstance(value, LessonType):
                value = value.value  # noqa: PLW2901
            elif name == "title":
                value = value.strip()  # noqa: PLW2901
            setattr(lesson, name, value)
        self._check_passing_score(lesson.passing_score)
        lesson.updated_at = utc_now()

        statements = [self._lesson_write(lesson)]
        quiz: list[QuizQuestion] | None = None
        if "quiz" in data.model_fields_set and data.quiz is not None:
            existing = await self.get_quiz(lesson_id)
            try:
                plan = plan_quiz_sync(
                    lesson_id, [q.to_input() for q in data.quiz], existing, self.rules
                )
            except QuizValidationError as e:
                logger.warning(
                    "quiz_validation_failed",
                    lesson_id=str(lesson_id),
                    position=e.position,
                    reason=e.message,
                )
                raise
            statements.extend(self._question_write(q) for q in plan.questions)
            statements.extend((self._delete_question, [qid]) for qid in plan.deletes)
            quiz = plan.questions
            logger.info(
                "quiz_synchronized",
                lesson_id=str(lesson_id),
                inserted=len(plan.inserts),
                updated=len(plan.updates),
                deleted=len(plan.deletes),
            )

        await execute_statements(self.session, statements)
        logger.info("lesson_updated", lesson_id=str(lesson_id), fields=sorted(fields))

        if quiz is None:
            quiz = await self.get_quiz(lesson_id)
        return LessonOutline(lesson=lesson, quiz=quiz)

    async def delete_lesson(self, lesson_id: UUID) -> None:
        """Delete a lesson with its questions and all learner progress on it.

        Progress rows go first, in chunks; the lesson, its quiz and the
        compaction of the remaining lessons then share one batch.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
        """
        lesson = await self.require_lesson(lesson_id)
        if self.purger is not None:
            await self.purger.purge_lesson(lesson_id)
        statements = await self.lesson_cascade_statements(lesson)

        siblings = [
            x
            for x in await self.list_course_lessons(lesson.course_id)
            if x.id != lesson_id
        ]
        now = utc_now()
        statements.extend(
            (self._set_lesson_order, [index, now, sibling.id])
            for sibling, index in compaction_moves(siblings)
        )

        await execute_statements(self.session, statements)
        logger.info(
            "lesson_deleted",
            lesson_id=str(lesson_id),
            course_id=str(lesson.course_id),
        )

    async def lesson_cascade_statements(self, lesson: Lesson) -> list[Statement]:
        """Deletes for a lesson and its quiz."""
        statements: list[Statement] = [
            (self._delete_question, [q.id]) for q in await self.get_quiz(lesson.id)
        ]
        statements.append((self._delete_lesson, [lesson.id]))
        return statements

    async def reorder_lessons(self, course_id: UUID, ordered_ids: list[UUID]) -> None:
        """Assign order 0..n-1 to a course's lessons following `ordered_ids`.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            EmptyReorderError, InvalidReorderError: Nothing is written
            ReorderFailedError: If the batch is rejected; nothing is applied
        """
        if not await self.course_exists(course_id):
            raise CourseNotFoundError
        lessons = await self.list_course_lessons(course_id)
        try:
            validate_reorder_ids(ordered_ids, {lesson.id for lesson in lessons})
        except (EmptyReorderError, InvalidReorderError) as e:
            logger.warning("reorder_rejected", course_id=str(course_id), reason=e.message)
            raise

        now = utc_now()
        batch = new_batch()
        for index, lesson_id in enumerate(ordered_ids):
            batch.add(self._set_lesson_order, [index, now, lesson_id])
        try:
            await self.session.aexecute(batch)
        except DriverException as e:
            logger.error("lessons_reorder_failed", course_id=str(course_id), error=str(e))
            raise ReorderFailedError from e

        logger.info("lessons_reordered", course_id=str(course_id), count=len(ordered_ids))

    # ==========================================================================
    # Standalone quiz commands
    # ==========================================================================

    async def add_quiz_question(
        self, lesson_id: UUID, item: QuizQuestionInput
    ) -> QuizQuestion:
        """Append one question to a lesson's quiz.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
            QuizValidationError: If the question is invalid or the quiz is full
        """
        await self.require_lesson(lesson_id)
        existing = await self.get_quiz(lesson_id)
        position = len(existing) + 1

        if len(existing) >= self.rules.max_questions:
            raise QuizValidationError(
                f"Quiz exceeds the maximum of {self.rules.max_questions} questions. "
                f"Got {position}.",
            )
        validate_question(item, position, self.rules)

        question = QuizQuestion(
            lesson_id=lesson_id,
            question=item.question.strip(),
            options=item.options,
            correct_answer_index=item.correct_answer_index,
            explanation=item.explanation,
            order_index=max((q.order_index for q in existing), default=-1) + 1,
        )
        await self.session.aexecute(*self._question_write(question))
        logger.info(
            "quiz_question_added",
            lesson_id=str(lesson_id),
            question_id=str(question.id),
        )
        return question

    async def update_quiz_question(
        self, question_id: UUID, data: UpdateQuizQuestionRequest
    ) -> QuizQuestion:
        """Patch one question; the merged result must still be valid.

        Raises:
            QuestionNotFoundError: If the question doesn't exist
            QuizValidationError: If the merged question is invalid
        """
        question = await self.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError

        if data.question is not None:
            question.question = data.question.strip()
        if data.options is not None:
            question.options = list(data.options)
        if data.correct_answer is not None:
            question.correct_answer_index = data.correct_answer
        if "explanation" in data.model_fields_set:
            question.explanation = data.explanation

        validate_question(
            QuizQuestionInput(
                question=question.question,
                options=question.options,
                correct_answer_index=question.correct_answer_index,
            ),
            question.order_index + 1,
            self.rules,
        )

        await self.session.aexecute(*self._question_write(question))
        logger.info("quiz_question_updated", question_id=str(question_id))
        return question

    async def delete_quiz_question(self, question_id: UUID) -> None:
        """Delete one question and close the gap in the quiz order.

        Raises:
            QuestionNotFoundError: If the question doesn't exist
        """
        question = await self.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError

        remaining = [
            q for q in await self.get_quiz(question.lesson_id) if q.id != question_id
        ]
        statements: list[Statement] = [(self._delete_question, [question_id])]
        statements.extend(
            (self._set_question_order, [index, q.id])
            for q, index in compaction_moves(remaining)
        )
        await execute_statements(self.session, statements)
        logger.info(
            "quiz_question_deleted",
            question_id=str(question_id),
            lesson_id=str(question.lesson_id),
        )


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for courses and their per-level ordering."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        lesson_service: LessonService,
        purger: "ProgressPurger | None" = None,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.lesson_service = lesson_service
        self.purger = purger
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(f"SELECT * FROM {ks}.courses")
        self._list_courses_by_level = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE level = ?"
        )
        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {ks}.courses
            (id, title, description, thumbnail_url, level, total_duration,
             is_published, order_index, created_by, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._set_course_order = self.session.prepare(
            f"UPDATE {ks}.courses SET order_index = ?, updated_at = ? WHERE id = ?"
        )
        self._delete_course = self.session.prepare(
            f"DELETE FROM {ks}.courses WHERE id = ?"
        )

    def _course_write(self, course: Course) -> Statement:
        return (
            self._upsert_course,
            [
                course.id,
                course.title,
                course.description,
                course.thumbnail_url,
                course.level,
                course.total_duration,
                course.is_published,
                course.order_index,
                course.created_by,
                course.created_at,
                course.updated_at,
            ],
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def list_courses_by_level(self, level: CourseLevel | str) -> list[Course]:
        """Courses of one level ordered by order_index."""
        level = parse_level(level)
        rows = await self.session.aexecute(self._list_courses_by_level, [level.value])
        return sorted(
            (Course.from_row(row) for row in rows), key=lambda c: c.order_index
        )

    async def list_courses(self, published_only: bool = True) -> list[Course]:
        """All courses ordered by level, then by order_index."""
        rows = await self.session.aexecute(self._list_courses, [])
        courses = [Course.from_row(row) for row in rows]
        if published_only:
            courses = [c for c in courses if c.is_published]
        rank = {level.value: i for i, level in enumerate(LEVEL_ORDER)}
        return sorted(
            courses, key=lambda c: (rank.get(c.level, len(rank)), c.order_index)
        )

    async def get_outline(
        self, course: Course, include_unpublished: bool = False
    ) -> CourseOutline:
        lessons = await self.lesson_service.list_course_lessons(
            course.id, published_only=not include_unpublished
        )
        return CourseOutline(
            course=course,
            lessons=[await self.lesson_service.get_outline(x) for x in lessons],
        )

    async def list_catalog(self, include_unpublished: bool = False) -> list[CourseOutline]:
        """Catalog tree: courses with their lessons and quizzes."""
        courses = await self.list_courses(published_only=not include_unpublished)
        return [await self.get_outline(c, include_unpublished) for c in courses]

    # ==========================================================================
    # Commands
    # ==========================================================================

    async def create_course(self, data: CreateCourseRequest, created_by: UUID) -> Course:
        """Create a course at the end of its level."""
        siblings = await self.list_courses_by_level(data.level)
        course = Course(
            title=data.title,
            description=data.description,
            thumbnail_url=data.thumbnail_url,
            level=data.level.value,
            total_duration=data.total_duration,
            is_published=data.is_published,
            order_index=max((c.order_index for c in siblings), default=-1) + 1,
            created_by=created_by,
        )
        await self.session.aexecute(*self._course_write(course))
        logger.info(
            "course_created",
            course_id=str(course.id),
            level=course.level,
            order_index=course.order_index,
        )
        return course

    async def update_course(self, course_id: UUID, data: UpdateCourseRequest) -> Course:
        """Patch a course.

        A level change appends the course to the target level and compacts
        the level it left, in one batch.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.require_course(course_id)
        statements: list[Statement] = []
        now = utc_now()

        if data.title is not None:
            course.title = data.title.strip()
        for name in ("description", "thumbnail_url", "total_duration"):
            if name in data.model_fields_set:
                setattr(course, name, getattr(data, name))
        if data.is_published is not None:
            course.is_published = data.is_published

        if data.level is not None and data.level.value != course.level:
            source_level = course.level
            target = await self.list_courses_by_level(data.level)
            source = [
                c
                for c in await self.list_courses_by_level(source_level)
                if c.id != course_id
            ]
            course.level = data.level.value
            course.order_index = max((c.order_index for c in target), default=-1) + 1
            statements.extend(
                (self._set_course_order, [index, now, c.id])
                for c, index in compaction_moves(source)
            )
            logger.info(
                "course_level_changed",
                course_id=str(course_id),
                from_level=source_level,
                to_level=course.level,
            )

        course.updated_at = now
        statements.insert(0, self._course_write(course))
        await execute_statements(self.session, statements)
        logger.info("course_updated", course_id=str(course_id))
        return course

    async def delete_course(self, course_id: UUID) -> None:
        """Delete a course and everything hanging off it.

        Enrollments and learner progress are purged first, in chunks. Lessons,
        quiz questions, the course row and the compaction of the remaining
        courses of the level then go in one batch.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.require_course(course_id)
        if self.purger is not None:
            await self.purger.purge_course(course_id)

        statements: list[Statement] = []
        for lesson in await self.lesson_service.list_course_lessons(course_id):
            statements.extend(
                await self.lesson_service.lesson_cascade_statements(lesson)
            )
        statements.append((self._delete_course, [course_id]))

        siblings = [
            c for c in await self.list_courses_by_level(course.level) if c.id != course_id
        ]
        now = utc_now()
        statements.extend(
            (self._set_course_order, [index, now, c.id])
            for c, index in compaction_moves(siblings)
        )

        await execute_statements(self.session, statements)
        logger.info("course_deleted", course_id=str(course_id), level=course.level)

    async def reorder_courses(
        self, level: CourseLevel | str, ordered_ids: list[UUID]
    ) -> None:
        """Assign order 0..n-1 within `level` following `ordered_ids`.

        All indices of the level change in one logged batch; other levels are
        untouched.

        Raises:
            InvalidLevelError: If level is unknown
            EmptyReorderError: If ordered_ids is empty
            InvalidReorderError: If ordered_ids is not a permutation of the
                level's courses (nothing is written)
            ReorderFailedError: If the batch is rejected; nothing is applied
        """
        level = parse_level(level)
        current = await self.list_courses_by_level(level)
        try:
            validate_reorder_ids(ordered_ids, {c.id for c in current})
        except (EmptyReorderError, InvalidReorderError) as e:
            logger.warning("reorder_rejected", level=level.value, reason=e.message)
            raise

        now = utc_now()
        batch = new_batch()
        for index, course_id in enumerate(ordered_ids):
            batch.add(self._set_course_order, [index, now, course_id])
        try:
            await self.session.aexecute(batch)
        except DriverException as e:
            logger.error("courses_reorder_failed", level=level.value, error=str(e))
            raise ReorderFailedError from e

        logger.info("courses_reordered", level=level.value, count=len(ordered_ids))
