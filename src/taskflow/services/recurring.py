"""Recurring tasks — schedules that copy a template card when due.

A schedule is an owned row (it migrates guest → user with everything
else) pointing at a template task on one of its owner's boards.
``generate`` copies every due, active schedule's template onto the
board, dated at the schedule's due date, then advances the schedule by
its pattern.

Date stepping:
- daily / custom: ``interval`` days
- weekly: the next listed weekday (0 = Sunday), or ``interval`` weeks
  when no weekdays are listed
- monthly: ``interval`` months, on ``day_of_month`` when set; days past
  the end of a short month clamp to its last day
- yearly: ``interval`` years (29 February clamps to the 28th)

A schedule whose next date would fall after the pattern's ``end_date``
is deactivated instead of advanced past it.
"""

import calendar
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskflow.auth.identity import Identity
from taskflow.db.models import Board, RecurringTask, Task, as_utc, utcnow
from taskflow.events.store import EventStore
from taskflow.events.types import RECURRING_GENERATED
from taskflow.schemas.recurring import RecurrencePattern
from taskflow.services.limits import GuestLimits
from taskflow.services.repository import OwnedRepository

logger = structlog.get_logger()

_WITH_TARGETS = (selectinload(RecurringTask.board), selectinload(RecurringTask.task))


class ScheduleTargetNotFoundError(Exception):
    """The board or template task of a new schedule isn't the caller's."""


def _add_months(value: datetime, months: int, day: Optional[int] = None) -> datetime:
    index = value.month - 1 + months
    year, month = value.year + index // 12, index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(day or value.day, last_day))


def next_due_date(current: datetime, pattern: RecurrencePattern) -> datetime:
    """The occurrence after ``current`` (ignores end_date)."""
    if pattern.frequency in ("daily", "custom"):
        return current + timedelta(days=pattern.interval)

    if pattern.frequency == "weekly":
        if not pattern.days_of_week:
            return current + timedelta(weeks=pattern.interval)
        weekday = (current.weekday() + 1) % 7  # Sunday = 0
        days = sorted(set(pattern.days_of_week))
        later = [d for d in days if d > weekday]
        step = later[0] - weekday if later else 7 - weekday + days[0]
        return current + timedelta(days=step)

    if pattern.frequency == "monthly":
        return _add_months(current, pattern.interval, pattern.day_of_month)

    return _add_months(current, 12 * pattern.interval)


@dataclass
class GenerateResult:
    generated: list[Task] = field(default_factory=list)
    skipped: list[uuid.UUID] = field(default_factory=list)


class RecurringTaskService:
    """CRUD on an identity's schedules, plus generating due copies."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.schedules = OwnedRepository(db, RecurringTask)
        self.boards = OwnedRepository(db, Board)
        self.limits = GuestLimits(db)
        self.events = EventStore(db)

    async def list(self, identity: Identity) -> list[RecurringTask]:
        return await self.schedules.list(
            identity, order_by=RecurringTask.next_due_date, options=_WITH_TARGETS
        )

    async def get(self, identity: Identity, schedule_id: uuid.UUID) -> Optional[RecurringTask]:
        return await self.schedules.get(identity, schedule_id, options=_WITH_TARGETS)

    async def create(
        self,
        identity: Identity,
        board_id: uuid.UUID,
        task_id: uuid.UUID,
        pattern: dict,
        next_due_date: datetime,
    ) -> RecurringTask:
        """Schedule a template task. Both it and its board must be the caller's."""
        if await self.boards.get(identity, board_id) is None:
            raise ScheduleTargetNotFoundError("Board not found")
        template = await self.db.execute(
            select(Task.id).where(Task.id == task_id, Task.board_id == board_id)
        )
        if template.first() is None:
            raise ScheduleTargetNotFoundError("Task not found")

        schedule = await self.schedules.create(
            identity,
            board_id=board_id,
            task_id=task_id,
            pattern=pattern,
            next_due_date=next_due_date,
        )
        return await self.get(identity, schedule.id)

    async def update(
        self, identity: Identity, schedule_id: uuid.UUID, changes: dict
    ) -> Optional[RecurringTask]:
        if await self.schedules.update(identity, schedule_id, changes) is None:
            return None
        return await self.get(identity, schedule_id)

    async def delete(self, identity: Identity, schedule_id: uuid.UUID) -> bool:
        return await self.schedules.delete(identity, schedule_id)

    async def generate(
        self, identity: Identity, now: Optional[datetime] = None
    ) -> GenerateResult:
        """Copy each due template once and advance its schedule.

        A guest's board at the task quota gets no copy; that schedule is
        reported in ``skipped`` and left due for a later run.
        """
        now = now or utcnow()
        due = await self.schedules.list(
            identity,
            RecurringTask.is_active.is_(True),
            RecurringTask.next_due_date <= now,
            order_by=RecurringTask.next_due_date,
            options=(selectinload(RecurringTask.task),),
        )

        result = GenerateResult()
        for schedule in due:
            template = schedule.task
            if template is None or not await self.limits.has_task_room(
                identity, schedule.board_id
            ):
                logger.info(
                    "recurring.skipped",
                    schedule_id=str(schedule.id),
                    board_id=str(schedule.board_id),
                )
                result.skipped.append(schedule.id)
                continue

            last = await self.db.execute(
                select(func.max(Task.order)).where(Task.board_id == schedule.board_id)
            )
            max_order = last.scalar_one_or_none()
            copy = Task(
                board_id=schedule.board_id,
                text=template.text,
                description=template.description,
                color=template.color,
                show_gradient=template.show_gradient,
                priority=template.priority,
                checklist=list(template.checklist),
                tags=list(template.tags),
                due_date=schedule.next_due_date,
                order=0 if max_order is None else max_order + 1,
            )
            self.db.add(copy)
            await self.db.flush()
            result.generated.append(copy)

            pattern = RecurrencePattern.model_validate(schedule.pattern)
            following = next_due_date(as_utc(schedule.next_due_date), pattern)
            schedule.last_generated = now
            if pattern.end_date and following > as_utc(pattern.end_date):
                schedule.is_active = False
            else:
                schedule.next_due_date = following

        if result.generated:
            await self.events.append(
                stream_id=identity.actor,
                event_type=RECURRING_GENERATED,
                data={
                    "tasks": [str(t.id) for t in result.generated],
                    "skipped": [str(s) for s in result.skipped],
                },
                metadata={"actor": identity.actor},
            )
        await self.db.commit()
        logger.info(
            "recurring.generated",
            count=len(result.generated),
            skipped=len(result.skipped),
        )
        return result
