"""Bearer token handling.

Credentials are issued by the identity service; this engine only verifies
the access tokens it receives. `create_access_token` exists for tooling and
tests that need a token signed with the shared key.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from govlearn.config.settings import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an access token.

    Args:
        data: Claims, typically {"sub": user_id, "role": role, "ministry": ...}
        expires_delta: Token lifetime (default from settings)

    Returns:
        Encoded JWT string carrying exp, iat and type="access"
    """
    settings = get_settings()
    now = datetime.now(UTC)
    claims = {
        **data,
        "exp": now
        + (expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(claims, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates the signature, expiration, token type and presence of the
    subject and role claims.

    Raises:
        JWTError: If token is invalid, expired, of the wrong type or incomplete
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)
    if not payload.get("sub") or not payload.get("role"):
        msg = "Token missing subject or role claim"
        raise JWTError(msg)

    return payload
