"""JWT helpers used to resolve the caller behind a bearer token.

Token issuing lives in the identity service; this backend only verifies
tokens signed with the shared secret.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from salesmind.config.settings import settings

_DEFAULT_TOKEN_LIFETIME = timedelta(minutes=60)


class AuthenticationError(Exception):
    """Raised when a JWT cannot be decoded or is otherwise invalid."""


class TokenPayload(BaseModel):
    """Minimal payload structure embedded in JWT access tokens."""

    sub: str
    exp: datetime
    company_id: int | None = None
    role: str | None = None
    iat: datetime | None = None


def create_access_token(
    subject: str,
    *,
    company_id: int | None = None,
    role: str | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Generate a signed JWT access token for the provided subject."""

    now = datetime.now(timezone.utc)
    expire_at = now + (expires_delta or _DEFAULT_TOKEN_LIFETIME)
    to_encode: dict[str, Any] = {"sub": subject, "exp": expire_at, "iat": now}
    if company_id is not None:
        to_encode["company_id"] = company_id
    if role is not None:
        to_encode["role"] = role

    secret = settings.security.jwt_secret_key.get_secret_value()
    return jwt.encode(
        to_encode,
        secret,
        algorithm=settings.security.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a JWT access token, returning its payload."""

    secret = settings.security.jwt_secret_key.get_secret_value()
    try:
        payload = jwt.decode(
            token, secret, algorithms=[settings.security.jwt_algorithm]
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        raise AuthenticationError("Invalid authentication token") from exc


__all__ = [
    "AuthenticationError",
    "TokenPayload",
    "create_access_token",
    "decode_access_token",
]
