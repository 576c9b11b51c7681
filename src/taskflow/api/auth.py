"""Auth API — accounts, tokens, and the guest → user handover.

- POST /auth/register → create a user account
- POST /auth/login → email/password → JWT tokens
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → current user (401 for guests)
- GET /auth/user-info → who the caller is (user or guest), quotas, usage
- POST /auth/migrate-guest → move the guest cookie's data to the user
- POST /auth/clear-guest → drop the guest cookie
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import Field
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import require_user, resolve_identity
from taskflow.auth.guest import guest_store
from taskflow.auth.identity import AuthenticatedIdentity, Identity
from taskflow.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from taskflow.auth.password import hash_password, verify_password
from taskflow.db.engine import get_db
from taskflow.db.models import Board, User
from taskflow.schemas.base import ReadModel, WireModel, dump
from taskflow.services.limits import GuestLimits
from taskflow.services.migration import MigrationService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(WireModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(min_length=8)


class LoginRequest(WireModel):
    email: str
    password: str


class TokenResponse(WireModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(WireModel):
    refresh_token: str


class UserRead(ReadModel):
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime


def _tokens(user_id: str) -> dict:
    return dump(
        TokenResponse,
        {
            "access_token": create_access_token(user_id),
            "refresh_token": create_refresh_token(user_id),
        },
    )


# ─── Register / login ────────────────────────────────────


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account."""
    email = body.email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=email,
        name=body.name,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    await db.commit()
    logger.info("auth.registered", user_id=str(user.id))
    return {"user": dump(UserRead, user)}


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT tokens."""
    result = await db.execute(
        select(User).where(User.email == body.email.strip().lower())
    )
    user = result.scalars().first()

    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {"user": dump(UserRead, user), **_tokens(str(user.id))}


@router.post("/refresh")
async def refresh(body: RefreshRequest):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return _tokens(payload["sub"])


# ─── Who am I ────────────────────────────────────────────


@router.get("/me")
async def get_me(
    identity: AuthenticatedIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current authenticated user's info."""
    user = await db.get(User, identity.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": dump(UserRead, user)}


@router.get("/user-info")
async def user_info(
    identity: Identity = Depends(resolve_identity),
    db: AsyncSession = Depends(get_db),
):
    """Identity kind, guest quotas (null for users), and current usage."""
    usage = await GuestLimits(db).usage(identity)
    limits = usage["limits"]
    info: dict = {
        "isGuest": identity.is_guest,
        "limits": (
            {
                "maxBoards": limits["max_boards"],
                "maxTasksPerBoard": limits["max_tasks_per_board"],
            }
            if limits
            else None
        ),
        "usage": usage["usage"],
    }
    if identity.is_guest:
        info["guestId"] = identity.guest_id
    else:
        info["userId"] = str(identity.user_id)
    return info


# ─── Guest handover ──────────────────────────────────────


@router.post("/migrate-guest")
async def migrate_guest(
    request: Request,
    response: Response,
    identity: AuthenticatedIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Reassign everything the guest cookie owns to the signed-in user.

    Safe to repeat: a second call finds nothing left to move. The
    cookie is cleared only when every kind was migrated.
    """
    guest_id: Optional[str] = guest_store.read(request)
    if not guest_id:
        return {
            "message": "No guest data to migrate",
            "migrated": {},
            "migratedBoards": 0,
        }

    result = await MigrationService(db).migrate(identity, guest_id)
    if result.complete:
        guest_store.clear(response)
    else:
        response.status_code = 207

    return {
        "message": (
            "Guest data migrated successfully"
            if result.complete
            else "Guest data partially migrated; retry to finish"
        ),
        "migrated": {to_camel(k): n for k, n in result.migrated.items()},
        "migratedBoards": result.migrated.get(Board.__tablename__, 0),
        "discarded": {to_camel(k): n for k, n in result.discarded.items()},
        "failed": [to_camel(k) for k in result.failed],
    }


@router.post("/clear-guest")
async def clear_guest(response: Response):
    """Forget the guest identity. Unmigrated guest data is left behind."""
    guest_store.clear(response)
    return {"message": "Guest session cleared"}
