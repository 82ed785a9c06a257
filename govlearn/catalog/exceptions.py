"""Catalog error hierarchy.

Every error carries a human readable `message` and a machine `code`; the
router layer maps codes to HTTP statuses (see `handle_catalog_error`).
"""


class CatalogError(Exception):
    """Base catalog error."""

    def __init__(self, message: str, code: str = "catalog_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CatalogError):
    """Course does not exist."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CatalogError):
    """Lesson does not exist."""

    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


class QuestionNotFoundError(CatalogError):
    """Quiz question does not exist."""

    def __init__(self, message: str = "Quiz question not found"):
        super().__init__(message, "question_not_found")


class QuizValidationError(CatalogError):
    """A quiz question or the quiz as a whole breaks the authoring rules.

    Attributes:
        position: 1-based index of the offending question, None for
            quiz-level violations such as the question cap.
    """

    def __init__(self, message: str, position: int | None = None):
        self.position = position
        super().__init__(message, "quiz_validation")


class InvalidLevelError(CatalogError):
    """Level is not one of Beginner, Intermediate, Advanced."""

    def __init__(self, level: object):
        super().__init__(
            f"Invalid level: {level}. Expected Beginner, Intermediate or Advanced.",
            "invalid_level",
        )


class EmptyReorderError(CatalogError):
    """Reorder called without ids."""

    def __init__(self, message: str = "orderedIds must be a non-empty list"):
        super().__init__(message, "empty_reorder")


class InvalidReorderError(CatalogError):
    """Reorder ids do not match the items currently in scope."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_reorder")


class InvalidLessonError(CatalogError):
    """Lesson fields out of range (e.g. passing score)."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_lesson")


class ReorderFailedError(CatalogError):
    """The reorder batch was rejected by the database; nothing was applied."""

    def __init__(self, message: str = "Failed to reorder; no changes applied"):
        super().__init__(message, "reorder_failed")
