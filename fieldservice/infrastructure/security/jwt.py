"""JWT token creation and verification for authentication.

Tokens carry the session identity: sub (user id), tenant_id and role.
Uses fieldservice.core.config for secret and algorithm.
"""

from datetime import timedelta
from typing import Any, cast

from jose import JWTError, jwt

from fieldservice.core.config import get_settings
from fieldservice.shared.utils.datetime import utc_now

REQUIRED_CLAIMS = ("sub", "tenant_id", "role")


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token with the given claims.

    Args:
        data: Claims to encode (sub, tenant_id, role).
        expires_delta: Optional TTL; else uses settings.access_token_expire_minutes.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = utc_now() + expires_delta
    encoded = jwt.encode(
        to_encode,
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    return cast(str, encoded)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a JWT. Returns the payload.

    Raises:
        ValueError: If token is invalid, expired, or missing sub, tenant_id or role.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e!s}") from e
    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        raise ValueError(f"Token missing required claim: {', '.join(missing)}")
    return payload
