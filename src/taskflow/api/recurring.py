"""Recurring tasks API — schedules that re-create a card on a cadence.

Schedules are owned rows: another identity's schedule is a 404, and a
schedule can only point at a task on one of the caller's own boards.
POST /generate is called by the client (on load, or on a timer) to
materialize whatever has come due.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import resolve_identity
from taskflow.auth.identity import Identity
from taskflow.db.engine import get_db
from taskflow.schemas.base import dump, dump_many
from taskflow.schemas.board import TaskRead
from taskflow.schemas.recurring import (
    RecurringTaskCreate,
    RecurringTaskRead,
    RecurringTaskUpdate,
)
from taskflow.services.recurring import RecurringTaskService, ScheduleTargetNotFoundError

router = APIRouter(prefix="/recurring-tasks")


def _svc(db: AsyncSession = Depends(get_db)) -> RecurringTaskService:
    return RecurringTaskService(db)


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Recurring task not found")


@router.get("")
async def list_recurring_tasks(
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    """The caller's schedules, soonest due first."""
    schedules = await svc.list(identity)
    return {"recurringTasks": dump_many(RecurringTaskRead, schedules)}


@router.post("", status_code=201)
async def create_recurring_task(
    body: RecurringTaskCreate,
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    try:
        schedule = await svc.create(
            identity,
            board_id=body.board_id,
            task_id=body.task_id,
            pattern=body.pattern.model_dump(mode="json"),
            next_due_date=body.next_due_date,
        )
    except ScheduleTargetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"recurringTask": dump(RecurringTaskRead, schedule)}


@router.post("/generate")
async def generate_recurring_tasks(
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    """Create the cards that are due now and advance their schedules."""
    result = await svc.generate(identity)
    return {
        "generatedCount": len(result.generated),
        "generatedTasks": dump_many(TaskRead, result.generated),
        "skipped": [str(s) for s in result.skipped],
    }


@router.get("/{schedule_id}")
async def get_recurring_task(
    schedule_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    schedule = await svc.get(identity, schedule_id)
    if not schedule:
        raise _not_found()
    return {"recurringTask": dump(RecurringTaskRead, schedule)}


@router.patch("/{schedule_id}")
async def update_recurring_task(
    schedule_id: uuid.UUID,
    body: RecurringTaskUpdate,
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    schedule = await svc.update(identity, schedule_id, body.changes())
    if not schedule:
        raise _not_found()
    return {"recurringTask": dump(RecurringTaskRead, schedule)}


@router.delete("/{schedule_id}")
async def delete_recurring_task(
    schedule_id: uuid.UUID,
    identity: Identity = Depends(resolve_identity),
    svc: RecurringTaskService = Depends(_svc),
):
    if not await svc.delete(identity, schedule_id):
        raise _not_found()
    return {"deleted": True}
