"""FastAPI identity dependencies.

These are used as Depends() in route handlers to turn a request into
the Identity it acts as:

1. Bearer JWT access token → AuthenticatedIdentity (user id from the
   token subject only)
2. No credentials → GuestIdentity from the guestId cookie, minted on
   first contact

A bearer token that fails verification is a 401, not a silent fallback
to guest: the client claimed a session it doesn't have and should
refresh or log in again.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response

from taskflow.auth.guest import guest_store
from taskflow.auth.identity import AuthenticatedIdentity, GuestIdentity, Identity
from taskflow.auth.jwt import TokenError, verify_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_session_user(
    authorization: Optional[str] = Header(None),
) -> Optional[AuthenticatedIdentity]:
    """Authenticated identity from the Authorization header, or None.

    This is the "soft" session lookup: no header means no session.
    """
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise _unauthorized("Unsupported authorization scheme")

    try:
        payload = verify_token(authorization[7:])
        return AuthenticatedIdentity(user_id=uuid.UUID(payload["sub"]))
    except TokenError as e:
        raise _unauthorized(str(e))
    except (KeyError, ValueError):
        raise _unauthorized("Invalid token subject")


async def resolve_identity(
    request: Request,
    response: Response,
    user: Optional[AuthenticatedIdentity] = Depends(get_session_user),
) -> Identity:
    """The single identity this request acts as.

    Cached on request.state so every dependency in the request sees the
    same value, even if a guest cookie had to be minted.
    """
    cached = getattr(request.state, "identity", None)
    if cached is not None:
        return cached

    identity: Identity
    if user is not None:
        identity = user
    else:
        identity = GuestIdentity(guest_id=guest_store.get_or_create(request, response))

    request.state.identity = identity
    return identity


async def require_user(
    user: Optional[AuthenticatedIdentity] = Depends(get_session_user),
) -> AuthenticatedIdentity:
    """The "hard" dependency — 401 unless a user session is present."""
    if user is None:
        raise _unauthorized("Authentication required")
    return user
