"""Tasks API — edit, move, delete and reorder kanban cards.

Tasks are owned through their board: a task on someone else's board is
a 404, and a task can only be moved onto a board the caller owns.
Comments, assignees and time logs are sub-resources of a task and
follow the same rule.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.api.boards import quota_denied
from taskflow.auth.dependencies import resolve_identity
from taskflow.auth.identity import Identity
from taskflow.db.engine import get_db
from taskflow.schemas.base import dump
from taskflow.schemas.board import (
    AssigneeAdd,
    Comment,
    CommentCreate,
    CommentUpdate,
    TaskRead,
    TaskReorder,
    TaskUpdate,
    TimeRequest,
)
from taskflow.services.board_service import BoardService
from taskflow.services.limits import GuestQuotaExceededError
from taskflow.services.reorder import ReorderService
from taskflow.services.task_activity import (
    ActivityEntryNotFoundError,
    TaskActivityError,
    TaskActivityService,
)

router = APIRouter(prefix="/tasks")


def _svc(db: AsyncSession = Depends(get_db)) -> BoardService:
    return BoardService(db)


@router.post("/reorder")
async def reorder_tasks(
    body: TaskReorder,
    identity: Identity = Depends(resolve_identity),
    db: AsyncSession = Depends(get_db),
):
    """Persist card positions, optionally moving cards between boards."""
    updated = await ReorderService(db).reorder_tasks(
        identity, [(p.id, p.order, p.board_id) for p in body.tasks]
    )
    return {"updated": updated}


@router.patch("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    """Partial update. Send ``boardId`` to move the card to another board."""
    try:
        task = await svc.update_task(identity, task_id, body.changes())
    except GuestQuotaExceededError as e:
        raise quota_denied(e)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"task": dump(TaskRead, task)}


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: BoardService = Depends(_svc),
):
    if not await svc.delete_task(identity, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"deleted": True}


# ═══════════════════════════════════════════════════════════
# Comments, assignees, time tracking
# ═══════════════════════════════════════════════════════════


def _activity(db: AsyncSession = Depends(get_db)) -> TaskActivityService:
    return TaskActivityService(db)


def _task_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Task not found")


@router.post("/{task_id}/comments")
async def add_comment(
    task_id: uuid.UUID,
    body: CommentCreate,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    added = await svc.add_comment(identity, task_id, body.content, body.author)
    if added is None:
        raise _task_not_found()
    task, comment = added
    return {"task": dump(TaskRead, task), "comment": dump(Comment, comment)}


@router.patch("/{task_id}/comments/{comment_id}")
async def update_comment(
    task_id: uuid.UUID,
    comment_id: str,
    body: CommentUpdate,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    try:
        edited = await svc.update_comment(identity, task_id, comment_id, body.content)
    except ActivityEntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if edited is None:
        raise _task_not_found()
    task, comment = edited
    return {"task": dump(TaskRead, task), "comment": dump(Comment, comment)}


@router.delete("/{task_id}/comments/{comment_id}")
async def delete_comment(
    task_id: uuid.UUID,
    comment_id: str,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    try:
        task = await svc.delete_comment(identity, task_id, comment_id)
    except ActivityEntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if task is None:
        raise _task_not_found()
    return {"task": dump(TaskRead, task), "message": "Comment deleted"}


@router.post("/{task_id}/assignees")
async def add_assignee(
    task_id: uuid.UUID,
    body: AssigneeAdd,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    try:
        task = await svc.add_assignee(identity, task_id, body.assignee_id)
    except TaskActivityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise _task_not_found()
    return {"task": dump(TaskRead, task)}


@router.delete("/{task_id}/assignees/{assignee_id}")
async def remove_assignee(
    task_id: uuid.UUID,
    assignee_id: str,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    task = await svc.remove_assignee(identity, task_id, assignee_id)
    if task is None:
        raise _task_not_found()
    return {"task": dump(TaskRead, task)}


@router.post("/{task_id}/time")
async def track_time(
    task_id: uuid.UUID,
    body: TimeRequest,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    """Start or stop the card's timer, log a past interval, or set an estimate."""
    extra: dict = {}
    try:
        if body.action == "start":
            task, message = await svc.start_timer(identity, task_id), "Timer started"
        elif body.action == "stop":
            stopped = await svc.stop_timer(identity, task_id, body.note)
            if stopped is None:
                raise _task_not_found()
            task, extra["duration"] = stopped
            message = "Timer stopped"
        elif body.action == "log":
            task = await svc.log_time(
                identity, task_id, body.start_time, body.end_time, body.note
            )
            message = "Time log added"
        else:
            task = await svc.set_estimate(identity, task_id, body.estimated_time)
            message = "Estimate updated"
    except TaskActivityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise _task_not_found()
    return {"task": dump(TaskRead, task), "message": message, **extra}


@router.delete("/{task_id}/time/{log_id}")
async def delete_time_log(
    task_id: uuid.UUID,
    log_id: str,
    identity: Identity = Depends(resolve_identity),
    svc: TaskActivityService = Depends(_activity),
):
    try:
        task = await svc.delete_time_log(identity, task_id, log_id)
    except ActivityEntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if task is None:
        raise _task_not_found()
    return {"task": dump(TaskRead, task), "message": "Time log deleted"}
