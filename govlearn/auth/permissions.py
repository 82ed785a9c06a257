"""Role-based access control for catalog authoring.

Roles are issued by the identity service and arrive as a token claim:
- ADMIN: Full catalog administration
- SUBADMIN: Catalog authoring for a ministry
- SUPERUSER: Learner with access to restricted learning paths
- LEARNER: Regular public servant

Roles are matched exactly; a higher rank grants nothing by itself.
"""

from enum import Enum


class UserRole(str, Enum):
    """Principal roles."""

    LEARNER = "LEARNER"
    SUPERUSER = "SUPERUSER"
    SUBADMIN = "SUBADMIN"
    ADMIN = "ADMIN"


# Roles allowed to mutate courses, lessons and quizzes
CATALOG_EDITOR_ROLES: frozenset[UserRole] = frozenset(
    {UserRole.ADMIN, UserRole.SUBADMIN}
)


def parse_role(role: UserRole | str) -> UserRole | None:
    """Coerce a claim value to a UserRole, None when unknown."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role.upper())
    except ValueError:
        return None


def can_edit_catalog(role: UserRole | str) -> bool:
    """Check if role may author courses, lessons and quizzes.

    SUPERUSER outranks LEARNER but is still a learner: only the two
    administrative roles edit the catalog.
    """
    return parse_role(role) in CATALOG_EDITOR_ROLES
