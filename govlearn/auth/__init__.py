"""Authentication boundary: token decoding and role checks."""

from govlearn.auth.permissions import UserRole
from govlearn.auth.schemas import Principal


__all__ = ["Principal", "UserRole"]
