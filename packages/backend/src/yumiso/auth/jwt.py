"""JWT verification for provider-issued session tokens.

Learn: the token carries the user id in ``sub`` and optionally ``name``
and ``pseudo`` — the display name shown to collaborators in live events.
create_access_token mints the same shape for tooling and tests.

The same secret also signs the recipe-views throttle cookie
(see yumiso.views.throttle).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from yumiso.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    name: Optional[str] = None,
    pseudo: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a session token in the provider's format."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    if name:
        payload["name"] = name
    if pseudo:
        payload["pseudo"] = pseudo
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a session token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if not payload.get("sub"):
        raise TokenError("Invalid token: missing subject")
    return payload
