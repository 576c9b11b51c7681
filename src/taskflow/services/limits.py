"""Guest limit enforcer — quotas that registration lifts.

Guests may keep a couple of boards with a bounded number of tasks each;
users are unlimited. Counts are derived on demand from the rows the
guest owns, nothing is stored.

The check and the insert that follows are separate statements. Two
concurrent creates from the same guest can both pass the check and
leave the guest one row over quota; guest data is low-stakes, so this
is accepted.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import Identity
from taskflow.config import settings
from taskflow.db.models import Board, Task
from taskflow.services.repository import OwnedRepository

logger = structlog.get_logger()


class GuestQuotaExceededError(Exception):
    """Raised when a guest create would exceed a quota.

    Registering removes the limit, so callers surface this with a
    ``requiresAuth`` flag.
    """

    def __init__(self, message: str, resource: str, limit: int):
        super().__init__(message)
        self.resource = resource
        self.limit = limit


class GuestLimits:
    """Quota checks invoked before guest-owned creates."""

    def __init__(
        self,
        db: AsyncSession,
        max_boards: Optional[int] = None,
        max_tasks_per_board: Optional[int] = None,
    ):
        self.db = db
        self.max_boards = max_boards or settings.guest_max_boards
        self.max_tasks_per_board = (
            max_tasks_per_board or settings.guest_max_tasks_per_board
        )

    async def board_count(self, identity: Identity) -> int:
        return await OwnedRepository(self.db, Board).count(identity)

    async def task_count(self, board_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Task).where(Task.board_id == board_id)
        )
        return result.scalar_one()

    async def check_board_create(self, identity: Identity) -> None:
        if not identity.is_guest:
            return
        if await self.board_count(identity) >= self.max_boards:
            logger.info(
                "guest.quota_exceeded",
                resource="boards",
                guest_id=identity.guest_id,
                limit=self.max_boards,
            )
            raise GuestQuotaExceededError(
                f"Guest users can only create {self.max_boards} boards. "
                "Please register to create more boards.",
                resource="boards",
                limit=self.max_boards,
            )

    async def has_task_room(self, identity: Identity, board_id: uuid.UUID) -> bool:
        if not identity.is_guest:
            return True
        return await self.task_count(board_id) < self.max_tasks_per_board

    async def check_task_create(self, identity: Identity, board_id: uuid.UUID) -> None:
        """Guard a task landing on ``board_id``, by create or by move."""
        if not await self.has_task_room(identity, board_id):
            logger.info(
                "guest.quota_exceeded",
                resource="tasks",
                guest_id=identity.guest_id,
                board_id=str(board_id),
                limit=self.max_tasks_per_board,
            )
            raise GuestQuotaExceededError(
                f"Guest users can only add {self.max_tasks_per_board} tasks per board. "
                "Please register to add more tasks.",
                resource="tasks",
                limit=self.max_tasks_per_board,
            )

    async def usage(self, identity: Identity) -> dict:
        """Limits and current usage, as shown by GET /auth/user-info."""
        limits = None
        if identity.is_guest:
            limits = {
                "max_boards": self.max_boards,
                "max_tasks_per_board": self.max_tasks_per_board,
            }
        return {"limits": limits, "usage": {"boards": await self.board_count(identity)}}
