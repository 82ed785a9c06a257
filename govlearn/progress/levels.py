"""Level gate.

Beginner is always open. Any other level opens when the level before it is
open and the user has enrolled in at least one course of that previous level
and finished every course there they enrolled in. Courses of the previous
level the user never enrolled in do not count either way.

Access is derived on each call from current enrollments and progress; it is
never stored.
"""

from collections.abc import Iterable, Mapping

from govlearn.catalog.models import LEVEL_ORDER, CourseLevel
from govlearn.progress.evaluator import FULL


def level_is_finished(percents: Iterable[int]) -> bool:
    """True if there is at least one enrolled course and all are at 100%."""
    values = list(percents)
    return bool(values) and all(p >= FULL for p in values)


def compute_level_access(
    enrolled_percents: Mapping[CourseLevel, Iterable[int]],
) -> dict[CourseLevel, bool]:
    """Unlock status for every level.

    Args:
        enrolled_percents: For each level, the user's percent in each course
            of that level they are enrolled in. Missing levels mean no
            enrollments there.
    """
    access: dict[CourseLevel, bool] = {}
    for level in LEVEL_ORDER:
        previous = level.previous
        if previous is None:
            access[level] = True
            continue
        access[level] = access[previous] and level_is_finished(
            enrolled_percents.get(previous, ())
        )
    return access
