"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current principal extraction from the bearer token
- Optional principal for public catalog reads
- Role checks for catalog authoring
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from govlearn.auth.permissions import UserRole, parse_role
from govlearn.auth.schemas import Principal
from govlearn.auth.security import decode_access_token
from govlearn.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def principal_from_token(token: str) -> Principal:
    """Decode a token into a Principal.

    Raises:
        JWTError: If the token is invalid or carries an unknown role
    """
    payload = decode_access_token(token)
    role = parse_role(payload["role"])
    if role is None:
        msg = f"Unknown role claim: {payload['role']}"
        raise JWTError(msg)
    try:
        return Principal(id=payload["sub"], role=role, ministry=payload.get("ministry"))
    except ValueError as e:
        raise JWTError(str(e)) from e


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Principal:
    """Get the authenticated principal.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        principal = principal_from_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    set_user_id(principal.id)
    return principal


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Principal | None:
    """Get the principal if a valid token was sent, None otherwise.

    Used by catalog reads that anonymous visitors may also perform.
    """
    if not token:
        return None

    try:
        principal = principal_from_token(token)
    except JWTError:
        return None

    set_user_id(principal.id)
    return principal


def require_role(*allowed_roles: UserRole):
    """Create dependency requiring one of the given roles (exact match).

    Example:
        @router.post("/reorder")
        async def reorder(
            user: Annotated[Principal, Depends(require_role(UserRole.ADMIN))]
        ):
            ...
    """

    async def role_checker(
        user: Annotated[Principal, Depends(get_current_user)],
    ) -> Principal:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return role_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[Principal, Depends(get_current_user)]

OptionalUser = Annotated[Principal | None, Depends(get_current_user_optional)]

CatalogEditor = Annotated[
    Principal, Depends(require_role(UserRole.ADMIN, UserRole.SUBADMIN))
]
