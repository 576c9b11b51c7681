"""Boards API — kanban boards and the tasks on them.

Every route acts as the resolved identity (user or guest). A board the
caller doesn't own is indistinguishable from a missing one: 404.

Guest quotas surface as 403 with ``requiresAuth: true`` so the client
can offer sign-up instead of a generic error.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import resolve_identity
from taskflow.auth.identity import Identity
from taskflow.db.engine import get_db
from taskflow.schemas.base import dump, dump_many
from taskflow.schemas.board import (
    BoardCreate,
    BoardRead,
    BoardReorder,
    BoardUpdate,
    TaskCreate,
    TaskRead,
)
from taskflow.services.board_service import BoardService
from taskflow.services.limits import GuestQuotaExceededError
from taskflow.services.reorder import ReorderService

router = APIRouter(prefix="/boards")


def _svc(db: AsyncSession = Depends(get_db)) -> BoardService:
    return BoardService(db)


def quota_denied(e: GuestQuotaExceededError) -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={
            "error": str(e),
            "requiresAuth": True,
            "resource": e.resource,
            "limit": e.limit,
        },
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Board not found")


# ═══════════════════════════════════════════════════════════
# Boards
# ═══════════════════════════════════════════════════════════


@router.get("")
async def list_boards(
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    """All of the caller's boards, in display order, with their tasks."""
    boards = await svc.list_boards(identity)
    return {"boards": dump_many(BoardRead, boards)}


@router.post("", status_code=201)
async def create_board(
    body: BoardCreate,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    try:
        board = await svc.create_board(
            identity,
            title=body.title,
            description=body.description,
            color=body.color,
        )
    except GuestQuotaExceededError as e:
        raise quota_denied(e)
    return {"board": dump(BoardRead, board)}


@router.post("/reorder")
async def reorder_boards(
    body: BoardReorder,
    identity: Identity = Depends(resolve_identity),
    db: AsyncSession = Depends(get_db),
):
    """Persist a drag-and-drop order. Unknown or foreign ids are skipped."""
    updated = await ReorderService(db).reorder_boards(
        identity, [(p.id, p.order) for p in body.boards]
    )
    return {"updated": updated}


@router.get("/{board_id}")
async def get_board(
    board_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    board = await svc.get_board(identity, board_id)
    if not board:
        raise _not_found()
    return {"board": dump(BoardRead, board)}


@router.patch("/{board_id}")
async def update_board(
    board_id: uuid.UUID,
    body: BoardUpdate,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    board = await svc.update_board(
        identity, board_id, body.model_dump(exclude_unset=True)
    )
    if not board:
        raise _not_found()
    return {"board": dump(BoardRead, board)}


@router.delete("/{board_id}")
async def delete_board(
    board_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    """Delete a board together with all of its tasks."""
    if not await svc.delete_board(identity, board_id):
        raise _not_found()
    return {"deleted": True}


# ═══════════════════════════════════════════════════════════
# Tasks on a board
# ═══════════════════════════════════════════════════════════


@router.get("/{board_id}/tasks")
async def list_board_tasks(
    board_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    tasks = await svc.list_tasks(identity, board_id)
    if tasks is None:
        raise _not_found()
    return {"tasks": dump_many(TaskRead, tasks)}


@router.post("/{board_id}/tasks", status_code=201)
async def create_board_task(
    board_id: uuid.UUID,
    body: TaskCreate,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    """Append a task to the end of the board."""
    try:
        task = await svc.create_task(identity, board_id, **body.model_dump())
    except GuestQuotaExceededError as e:
        raise quota_denied(e)
    if task is None:
        raise _not_found()
    return {"task": dump(TaskRead, task)}
