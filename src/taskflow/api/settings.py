"""Settings API — the editable page header above the board list.

One header per identity, created with defaults the first time it is
read, so GET never 404s.
"""

import uuid

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import resolve_identity
from taskflow.auth.identity import Identity
from taskflow.db.engine import get_db
from taskflow.schemas.base import ReadModel, WireModel, dump
from taskflow.services.board_service import BoardService

router = APIRouter(prefix="/settings")


# ─── Schemas ─────────────────────────────────────────────


class HeaderUpdate(WireModel):
    title: str = Field(..., min_length=1, max_length=200)
    subtitle: str = Field(default="", max_length=500)


class HeaderRead(ReadModel):
    id: uuid.UUID
    title: str
    subtitle: str


# ─── Routes ──────────────────────────────────────────────


@router.get("/header")
async def get_header(
    identity: Identity = Depends(resolve_identity),
    db: AsyncSession = Depends(get_db),
):
    header = await BoardService(db).get_header(identity)
    return {"header": dump(HeaderRead, header)}


@router.patch("/header")
async def update_header(
    body: HeaderUpdate,
    identity: Identity = Depends(resolve_identity),
    db: AsyncSession = Depends(get_db),
):
    header = await BoardService(db).update_header(identity, body.title, body.subtitle)
    return {"header": dump(HeaderRead, header)}
