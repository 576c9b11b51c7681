"""Board service — kanban boards and the tasks on them.

Boards are owned rows; tasks are owned through their board. Every
method takes the resolved Identity and never sees a row that belongs to
anyone else.
"""

import uuid
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskflow.auth.identity import Identity, owner_clause
from taskflow.db.models import Board, PageHeader, RecurringTask, Task
from taskflow.events.store import EventStore
from taskflow.events.types import BOARD_CREATED, BOARD_DELETED
from taskflow.services.limits import GuestLimits
from taskflow.services.repository import OwnedRepository, settable

_WITH_TASKS = (selectinload(Board.tasks),)


class BoardService:
    """Business logic for boards, board tasks, and the page header."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.boards = OwnedRepository(db, Board)
        self.headers = OwnedRepository(db, PageHeader)
        self.limits = GuestLimits(db)
        self.events = EventStore(db)

    # ─── Boards ──────────────────────────────────────────

    async def list_boards(self, identity: Identity) -> list[Board]:
        return await self.boards.list(
            identity, order_by=Board.order, options=_WITH_TASKS
        )

    async def get_board(self, identity: Identity, board_id: uuid.UUID) -> Optional[Board]:
        return await self.boards.get(identity, board_id, options=_WITH_TASKS)

    async def create_board(
        self,
        identity: Identity,
        title: str,
        description: Optional[str] = None,
        color: str = "#3b82f6",
    ) -> Board:
        """Create a board at the end of the identity's list.

        Guests are quota-checked first (GuestQuotaExceededError).
        """
        await self.limits.check_board_create(identity)

        last = await self.db.execute(
            select(func.max(Board.order)).where(owner_clause(Board, identity))
        )
        max_order = last.scalar_one_or_none()
        next_order = 0 if max_order is None else max_order + 1

        board = await self.boards.create(
            identity,
            commit=False,
            title=title,
            description=description,
            color=color,
            order=next_order,
        )
        await self.events.append(
            stream_id=f"board:{board.id}",
            event_type=BOARD_CREATED,
            data={"title": title, "order": next_order},
            metadata={"actor": identity.actor},
        )
        await self.db.commit()
        return await self.get_board(identity, board.id)

    async def update_board(
        self, identity: Identity, board_id: uuid.UUID, changes: dict
    ) -> Optional[Board]:
        board = await self.boards.update(identity, board_id, changes)
        if board is None:
            return None
        return await self.get_board(identity, board_id)

    async def delete_board(self, identity: Identity, board_id: uuid.UUID) -> bool:
        """Delete a board, its tasks and their schedules in one transaction."""
        owned = select(Board.id).where(
            Board.id == board_id, owner_clause(Board, identity)
        )
        await self.db.execute(
            delete(RecurringTask)
            .where(
                or_(
                    RecurringTask.board_id.in_(owned),
                    RecurringTask.task_id.in_(
                        select(Task.id).where(Task.board_id.in_(owned))
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Task)
            .where(Task.board_id.in_(owned))
            .execution_options(synchronize_session=False)
        )
        deleted = await self.boards.delete(identity, board_id, commit=False)
        if not deleted:
            await self.db.rollback()
            return False

        await self.events.append(
            stream_id=f"board:{board_id}",
            event_type=BOARD_DELETED,
            data={},
            metadata={"actor": identity.actor},
        )
        await self.db.commit()
        return True

    # ─── Tasks ───────────────────────────────────────────

    def _owned_task(self, identity: Identity, task_id: uuid.UUID):
        owned_boards = select(Board.id).where(owner_clause(Board, identity))
        return Task.id == task_id, Task.board_id.in_(owned_boards)

    async def list_tasks(
        self, identity: Identity, board_id: uuid.UUID
    ) -> Optional[list[Task]]:
        """Tasks on an owned board, or None if the board isn't visible."""
        if await self.boards.get(identity, board_id) is None:
            return None
        result = await self.db.execute(
            select(Task).where(Task.board_id == board_id).order_by(Task.order)
        )
        return list(result.scalars().all())

    async def create_task(
        self, identity: Identity, board_id: uuid.UUID, **values
    ) -> Optional[Task]:
        """Append a task to an owned board. None if the board isn't visible."""
        if await self.boards.get(identity, board_id) is None:
            return None
        await self.limits.check_task_create(identity, board_id)

        last = await self.db.execute(
            select(func.max(Task.order)).where(Task.board_id == board_id)
        )
        max_order = last.scalar_one_or_none()

        task = Task(
            board_id=board_id,
            order=0 if max_order is None else max_order + 1,
            **values,
        )
        self.db.add(task)
        await self.db.commit()
        return task

    async def get_task(self, identity: Identity, task_id: uuid.UUID) -> Optional[Task]:
        result = await self.db.execute(
            select(Task)
            .where(*self._owned_task(identity, task_id))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def update_task(
        self, identity: Identity, task_id: uuid.UUID, changes: dict
    ) -> Optional[Task]:
        """Partial update. Moving to another board requires owning it.

        A guest moving a card onto a different board is held to that
        board's task quota (GuestQuotaExceededError).
        """
        task = await self.get_task(identity, task_id)
        if task is None:
            return None
        target = changes.get("board_id")
        if target is not None and target != task.board_id:
            if await self.boards.get(identity, target) is None:
                return None
            await self.limits.check_task_create(identity, target)

        changes = settable(Task, changes)
        if changes:
            res = await self.db.execute(
                update(Task)
                .where(*self._owned_task(identity, task_id))
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                return None
            await self.db.commit()
        return await self.get_task(identity, task_id)

    async def delete_task(self, identity: Identity, task_id: uuid.UUID) -> bool:
        """Delete a card along with any schedule that uses it as a template."""
        owned = select(Task.id).where(*self._owned_task(identity, task_id))
        await self.db.execute(
            delete(RecurringTask)
            .where(RecurringTask.task_id.in_(owned))
            .execution_options(synchronize_session=False)
        )
        res = await self.db.execute(
            delete(Task)
            .where(*self._owned_task(identity, task_id))
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            return False
        await self.db.commit()
        return True

    # ─── Page header ─────────────────────────────────────

    async def get_header(self, identity: Identity) -> PageHeader:
        return await self.headers.find_or_create(identity)

    async def update_header(self, identity: Identity, title: str, subtitle: str) -> PageHeader:
        header = await self.headers.find_or_create(identity)
        return await self.headers.update(
            identity, header.id, {"title": title, "subtitle": subtitle}
        )
