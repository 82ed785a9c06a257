"""Course catalog module.

Provides:
- Courses ordered within their level
- Lessons ordered within their course
- Quiz questions with authoring validation
"""

from .models import (
    CATALOG_TABLES_CQL,
    LEVEL_ORDER,
    Course,
    CourseLevel,
    Lesson,
    LessonType,
    QuizQuestion,
)


__all__ = [
    "CATALOG_TABLES_CQL",
    "LEVEL_ORDER",
    "Course",
    "CourseLevel",
    "Lesson",
    "LessonType",
    "QuizQuestion",
]
