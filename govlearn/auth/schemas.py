"""Principal model extracted from access tokens."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from govlearn.auth.permissions import UserRole, can_edit_catalog


class Principal(BaseModel):
    """Authenticated caller as asserted by the identity service.

    The engine treats the principal as opaque apart from its id and role;
    ministry is carried for logging only.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: UserRole
    ministry: str | None = None

    @property
    def can_edit_catalog(self) -> bool:
        return can_edit_catalog(self.role)
