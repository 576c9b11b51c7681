"""The resolved principal of a request, and how it scopes queries.

An Identity is either an AuthenticatedIdentity (a registered user) or a
GuestIdentity (an anonymous visitor holding a guestId cookie). Exactly
one is active per request. Every owned table filters on the column that
matches the active variant and stamps that same column on insert.
"""

import uuid
from dataclasses import dataclass
from typing import Union

from sqlalchemy import ColumnElement


@dataclass(frozen=True)
class AuthenticatedIdentity:
    user_id: uuid.UUID

    is_guest = False

    @property
    def actor(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class GuestIdentity:
    guest_id: str

    is_guest = True

    @property
    def actor(self) -> str:
        return f"guest:{self.guest_id}"


Identity = Union[AuthenticatedIdentity, GuestIdentity]


def owner_clause(model, identity: Identity) -> ColumnElement[bool]:
    """WHERE clause restricting ``model`` rows to the identity's own.

    Only the active side is compared, so a guest can never match a
    user's rows (whose guest_id is NULL) and vice versa.
    """
    if isinstance(identity, AuthenticatedIdentity):
        return model.user_id == identity.user_id
    return model.guest_id == identity.guest_id


def owner_values(identity: Identity) -> dict:
    """Ownership columns for a new row: the active side set, the other NULL."""
    if isinstance(identity, AuthenticatedIdentity):
        return {"user_id": identity.user_id, "guest_id": None}
    return {"user_id": None, "guest_id": identity.guest_id}
