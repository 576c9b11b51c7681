"""Guest session store — the guestId cookie.

A guest is identified only by a random UUID kept in an HttpOnly,
SameSite=Lax cookie that lives for a year. The server never accepts a
guest id from anywhere else (headers, query, body, client-side
fingerprints): the cookie it issued is the sole authority.

Clearing the cookie forfeits any rows the guest still owns; the next
request mints a fresh identity.
"""

import uuid
from typing import Optional

import structlog
from starlette.requests import Request
from starlette.responses import Response

from taskflow.config import settings

logger = structlog.get_logger()


def _well_formed(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


class GuestSessionStore:
    """Read, mint, and retire guest identities via the response cookie."""

    def __init__(
        self,
        cookie_name: Optional[str] = None,
        max_age: Optional[int] = None,
        secure: Optional[bool] = None,
    ):
        self.cookie_name = cookie_name or settings.guest_cookie_name
        self.max_age = max_age or settings.guest_cookie_max_age
        self.secure = settings.cookie_secure if secure is None else secure

    def read(self, request: Request) -> Optional[str]:
        """Return the request's guest id, or None if absent or malformed."""
        value = request.cookies.get(self.cookie_name)
        if value and _well_formed(value):
            return value
        return None

    def get_or_create(self, request: Request, response: Response) -> str:
        """Return the existing guest id, minting and setting one if needed."""
        guest_id = self.read(request)
        if guest_id:
            return guest_id

        guest_id = str(uuid.uuid4())
        self._set(response, guest_id)
        request.state.minted_guest_id = guest_id
        logger.info("guest.minted", guest_id=guest_id)
        return guest_id

    def reissue(self, request: Request, response: Response) -> None:
        """Re-send a cookie minted earlier in this request.

        Error responses are built from scratch, without the headers set
        on the injected Response, so the error handlers call this to keep
        the new guest identity.
        """
        guest_id = getattr(request.state, "minted_guest_id", None)
        if guest_id:
            self._set(response, guest_id)

    def _set(self, response: Response, guest_id: str) -> None:
        response.set_cookie(
            self.cookie_name,
            guest_id,
            max_age=self.max_age,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )

    def clear(self, response: Response) -> None:
        """Expire the guest cookie on the client."""
        response.delete_cookie(
            self.cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )


guest_store = GuestSessionStore()
