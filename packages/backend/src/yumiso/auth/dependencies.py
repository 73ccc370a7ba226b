"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request. The bearer token is
the only mechanism; the auth provider owns everything else.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from yumiso.auth.jwt import TokenError, verify_token

ANONYMOUS_NAME = "Anonyme"


class CurrentIdentity:
    """The authenticated user making the request.

    display_name is what collaborators see in live events:
    pseudo first, then name, then a neutral placeholder.
    """

    def __init__(
        self,
        user_id: str,
        name: Optional[str] = None,
        pseudo: Optional[str] = None,
    ):
        self.user_id = user_id
        self.name = name
        self.pseudo = pseudo

    @property
    def display_name(self) -> str:
        return self.pseudo or self.name or ANONYMOUS_NAME


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        return _authenticate_jwt(authorization[7:])
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def _authenticate_jwt(token: str) -> CurrentIdentity:
    try:
        payload = verify_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(
        user_id=payload["sub"],
        name=payload.get("name"),
        pseudo=payload.get("pseudo"),
    )
