"""Task activity — comments, assignees, and time tracking on a card.

All three live in JSON columns on the task row, so they are owned
through the task's board exactly like the card itself: a task on a
board the caller doesn't own is None here and a 404 at the API.

Each write replaces the whole list. Two concurrent writes to the same
card can drop one of them; the last write wins.

Comment authors are recorded, not enforced. Whoever owns the board may
edit or delete any comment on it, which keeps comments editable after a
guest's board has been migrated to their account.
"""

import math
import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import null, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import Identity
from taskflow.db.models import Task, as_utc, utcnow
from taskflow.schemas.board import ActiveTimer, Comment, TimeLog
from taskflow.services.board_service import BoardService

logger = structlog.get_logger()


class TaskActivityError(Exception):
    """The request conflicts with the card's current state (timer, assignees)."""


class ActivityEntryNotFoundError(Exception):
    """A comment or time log id that isn't on the card."""


def _minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, halves rounded up."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return math.floor(seconds / 60 + 0.5)


def _entry_id() -> str:
    return uuid.uuid4().hex


class TaskActivityService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.boards = BoardService(db)

    async def _save(self, identity: Identity, task_id: uuid.UUID, **values) -> Task:
        await self.db.execute(
            update(Task)
            .where(*self.boards._owned_task(identity, task_id))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return await self.boards.get_task(identity, task_id)

    # ─── Comments ────────────────────────────────────────

    async def add_comment(
        self, identity: Identity, task_id: uuid.UUID, content: str, author: str
    ) -> Optional[tuple[Task, dict]]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        now = utcnow()
        comment = Comment(
            id=_entry_id(),
            content=content,
            author=author,
            author_id=identity.actor,
            created_at=now,
            updated_at=now,
        ).model_dump(mode="json")
        task = await self._save(identity, task_id, comments=[*task.comments, comment])
        return task, comment

    async def update_comment(
        self, identity: Identity, task_id: uuid.UUID, comment_id: str, content: str
    ) -> Optional[tuple[Task, dict]]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        comments = list(task.comments)
        for i, existing in enumerate(comments):
            if existing.get("id") == comment_id:
                break
        else:
            raise ActivityEntryNotFoundError("Comment not found")

        edited = {**comments[i], "content": content, "updated_at": utcnow().isoformat()}
        comments[i] = edited
        task = await self._save(identity, task_id, comments=comments)
        return task, edited

    async def delete_comment(
        self, identity: Identity, task_id: uuid.UUID, comment_id: str
    ) -> Optional[Task]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        remaining = [c for c in task.comments if c.get("id") != comment_id]
        if len(remaining) == len(task.comments):
            raise ActivityEntryNotFoundError("Comment not found")
        return await self._save(identity, task_id, comments=remaining)

    # ─── Assignees ───────────────────────────────────────

    async def add_assignee(
        self, identity: Identity, task_id: uuid.UUID, assignee_id: str
    ) -> Optional[Task]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        if assignee_id in task.assignee_ids:
            raise TaskActivityError("Assignee already added")
        return await self._save(
            identity, task_id, assignee_ids=[*task.assignee_ids, assignee_id]
        )

    async def remove_assignee(
        self, identity: Identity, task_id: uuid.UUID, assignee_id: str
    ) -> Optional[Task]:
        """Removing someone who isn't assigned leaves the card as it is."""
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        return await self._save(
            identity,
            task_id,
            assignee_ids=[a for a in task.assignee_ids if a != assignee_id],
        )

    # ─── Time tracking ───────────────────────────────────

    async def start_timer(self, identity: Identity, task_id: uuid.UUID) -> Optional[Task]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        if task.active_timer:
            raise TaskActivityError("Timer already running")
        timer = ActiveTimer(start_time=utcnow(), user_id=identity.actor)
        return await self._save(
            identity, task_id, active_timer=timer.model_dump(mode="json")
        )

    async def stop_timer(
        self, identity: Identity, task_id: uuid.UUID, note: Optional[str] = None
    ) -> Optional[tuple[Task, int]]:
        """Close the running timer into a time log. Returns (task, minutes)."""
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        if not task.active_timer:
            raise TaskActivityError("No active timer")
        started = ActiveTimer.model_validate(task.active_timer).start_time
        task = await self._log(identity, task, started, utcnow(), note, active_timer=null())
        return task, task.time_logs[-1]["duration"]

    async def log_time(
        self,
        identity: Identity,
        task_id: uuid.UUID,
        start: datetime,
        end: datetime,
        note: Optional[str] = None,
    ) -> Optional[Task]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        if _minutes(start, end) <= 0:
            raise TaskActivityError("Invalid time range")
        return await self._log(identity, task, start, end, note)

    async def set_estimate(
        self, identity: Identity, task_id: uuid.UUID, minutes: int
    ) -> Optional[Task]:
        if await self.boards.get_task(identity, task_id) is None:
            return None
        return await self._save(identity, task_id, estimated_time=minutes)

    async def delete_time_log(
        self, identity: Identity, task_id: uuid.UUID, log_id: str
    ) -> Optional[Task]:
        task = await self.boards.get_task(identity, task_id)
        if task is None:
            return None
        remaining = [log for log in task.time_logs if log.get("id") != log_id]
        if len(remaining) == len(task.time_logs):
            raise ActivityEntryNotFoundError("Time log not found")
        return await self._save(
            identity,
            task_id,
            time_logs=remaining,
            actual_time=sum(log.get("duration", 0) for log in remaining),
        )

    async def _log(
        self,
        identity: Identity,
        task: Task,
        start: datetime,
        end: datetime,
        note: Optional[str],
        **extra,
    ) -> Task:
        entry = TimeLog(
            id=_entry_id(),
            start_time=as_utc(start),
            end_time=as_utc(end),
            duration=_minutes(start, end),
            note=note or None,
            user_id=identity.actor,
        ).model_dump(mode="json")
        logs = [*task.time_logs, entry]
        logger.info(
            "task.time_logged",
            task_id=str(task.id),
            minutes=entry["duration"],
        )
        return await self._save(
            identity,
            task.id,
            time_logs=logs,
            actual_time=sum(log.get("duration", 0) for log in logs),
            **extra,
        )
