"""Reorder coordinator — batched position writes from drag-and-drop.

A reorder request is a list of (id, order) pairs. All updates for one
request run in a single transaction and commit once, so a concurrent
reader sees either the old order or the new one, never a mix.

Entries the caller doesn't own are skipped without error, matching the
"not found, never forbidden" rule of the repository. Positions are
stored as given: duplicates are allowed and nothing is renumbered.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import Identity, owner_clause
from taskflow.db.models import Board, Task
from taskflow.events.store import EventStore
from taskflow.events.types import BOARDS_REORDERED
from taskflow.services.limits import GuestLimits

logger = structlog.get_logger()


class ReorderService:
    """Applies batches of position updates scoped to one identity."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    async def reorder_boards(
        self,
        identity: Identity,
        positions: list[tuple[uuid.UUID, int]],
    ) -> int:
        """Set ``order`` on each owned board. Returns boards updated."""
        updated = 0
        try:
            for board_id, order in positions:
                res = await self.db.execute(
                    update(Board)
                    .where(Board.id == board_id, owner_clause(Board, identity))
                    .values(order=order)
                    .execution_options(synchronize_session=False)
                )
                updated += res.rowcount
            if updated:
                await self.events.append(
                    stream_id=identity.actor,
                    event_type=BOARDS_REORDERED,
                    data={"boards": [[str(b), o] for b, o in positions]},
                    metadata={"actor": identity.actor},
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return updated

    async def reorder_tasks(
        self,
        identity: Identity,
        positions: list[tuple[uuid.UUID, int, Optional[uuid.UUID]]],
    ) -> int:
        """Set ``order`` (and optionally move board) on owned tasks.

        A task is owned when its current board is; a move is only
        applied when the target board is owned too. A guest's move onto
        a board already at the task quota is skipped as well.
        """
        limits = GuestLimits(self.db)
        owned_boards = select(Board.id).where(owner_clause(Board, identity))
        targets = {board_id for _, _, board_id in positions if board_id}
        allowed_targets: set[uuid.UUID] = set()
        if targets:
            res = await self.db.execute(
                owned_boards.where(Board.id.in_(targets))
            )
            allowed_targets = set(res.scalars().all())

        updated = 0
        try:
            for task_id, order, board_id in positions:
                if board_id and board_id not in allowed_targets:
                    continue
                values: dict = {"order": order}
                if board_id:
                    if identity.is_guest:
                        current = await self.db.execute(
                            select(Task.board_id).where(
                                Task.id == task_id, Task.board_id.in_(owned_boards)
                            )
                        )
                        source = current.scalar_one_or_none()
                        if source is None:
                            continue
                        if source != board_id and not await limits.has_task_room(
                            identity, board_id
                        ):
                            logger.info(
                                "reorder.move_skipped_quota",
                                task_id=str(task_id),
                                board_id=str(board_id),
                            )
                            continue
                    values["board_id"] = board_id
                res = await self.db.execute(
                    update(Task)
                    .where(Task.id == task_id, Task.board_id.in_(owned_boards))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                updated += res.rowcount
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return updated
