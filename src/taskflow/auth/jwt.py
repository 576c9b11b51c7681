"""JWT token creation and verification.

- Access token: short-lived (60min), sent as a Bearer header on API calls
- Refresh token: long-lived (30 days), exchanged for new access tokens

The subject claim is the user id; it is the only source of a user
identity on the server.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from taskflow.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


def _encode(user_id: str, token_type: str, expires: datetime) -> str:
    payload = {
        "sub": user_id,
        "type": token_type,
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    return _encode(user_id, "access", expires)


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Create a JWT refresh token."""
    expires = datetime.now(timezone.utc) + timedelta(
        days=expires_days or settings.refresh_token_expire_days
    )
    return _encode(user_id, "refresh", expires)


def verify_token(token: str, expected_type: str = "access") -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure, including a token of the wrong type
    (a refresh token is not accepted where an access token is expected).
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError(f"Not an {expected_type} token")
    return payload
