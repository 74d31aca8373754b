"""JWT access token handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from learning_engine.config.settings import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta = timedelta(minutes=15),
) -> str:
    """Create a JWT access token.

    Used by the identity service contract tests and local tooling; production
    tokens come from the identity service with the same claims.

    Args:
        data: Payload data ({"sub": user_id, "email": email, "role": role})
        expires_delta: Token lifetime
    """
    settings = get_settings()
    now = datetime.now(UTC)
    to_encode = {**data, "exp": now + expires_delta, "iat": now, "type": "access"}
    return jwt.encode(to_encode, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        JWTError: If token is invalid, expired, or wrong type
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

    return payload
