"""Learner progress module.

Provides:
- Enrollment ledger with duplicate protection
- Lesson progress upserts and completion
- Course completion percent and enrollment completion
- Level gating derived from completed courses
"""

from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    LessonProgress,
    LessonProgressPatch,
    LessonProgressStatus,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "LessonProgress",
    "LessonProgressPatch",
    "LessonProgressStatus",
]
