"""Guest → user migration, run once when a guest signs in or registers.

Every owned table is handed over with one UPDATE per kind:

    UPDATE <kind> SET user_id = :user, guest_id = NULL WHERE guest_id = :guest

Each kind commits on its own. If one kind fails it is rolled back and
reported while the kinds before it stay migrated; the guest cookie is
kept in that case so the client can call migrate again, and since the
statement only matches rows still owned by the guest, re-running moves
exactly what was left behind.

Singleton kinds (page header, Scrum settings) allow one row per
identity. When the user already has one, the user's row wins and the
guest's row is discarded.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import AuthenticatedIdentity
from taskflow.db.models import OWNED_MODELS, SINGLETON_MODELS
from taskflow.events.store import EventStore
from taskflow.events.types import GUEST_MIGRATED

logger = structlog.get_logger()


@dataclass
class MigrationResult:
    """Per-kind outcome of one migrate() call."""

    migrated: dict[str, int] = field(default_factory=dict)
    discarded: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return sum(self.migrated.values())


class MigrationService:
    """Reassigns everything a guest owns to an authenticated user."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    async def migrate(
        self,
        identity: AuthenticatedIdentity,
        guest_id: Optional[str],
    ) -> MigrationResult:
        result = MigrationResult()
        if not guest_id:
            return result

        log = logger.bind(guest_id=guest_id, user_id=str(identity.user_id))
        for model in OWNED_MODELS:
            kind = model.__tablename__
            try:
                if model in SINGLETON_MODELS:
                    moved, dropped = await self._migrate_singleton(
                        model, identity.user_id, guest_id
                    )
                    if dropped:
                        result.discarded[kind] = dropped
                else:
                    moved = await self._migrate_kind(model, identity.user_id, guest_id)
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                log.exception("guest.migration_kind_failed", kind=kind)
                result.failed.append(kind)
                continue
            result.migrated[kind] = moved

        if result.total or result.failed:
            await self.events.append(
                stream_id=f"user:{identity.user_id}",
                event_type=GUEST_MIGRATED,
                data={
                    "guest_id": guest_id,
                    "migrated": result.migrated,
                    "discarded": result.discarded,
                    "failed": result.failed,
                },
                metadata={"actor": identity.actor},
            )
            await self.db.commit()

        log.info(
            "guest.migrated",
            total=result.total,
            failed=result.failed,
        )
        return result

    async def _migrate_kind(self, model, user_id: uuid.UUID, guest_id: str) -> int:
        res = await self.db.execute(
            update(model)
            .where(model.guest_id == guest_id)
            .values(user_id=user_id, guest_id=None)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    async def _migrate_singleton(
        self, model, user_id: uuid.UUID, guest_id: str
    ) -> tuple[int, int]:
        """Returns (moved, discarded)."""
        existing = await self.db.execute(
            select(model.id).where(model.user_id == user_id).limit(1)
        )
        if existing.first() is None:
            return await self._migrate_kind(model, user_id, guest_id), 0

        res = await self.db.execute(
            delete(model)
            .where(model.guest_id == guest_id)
            .execution_options(synchronize_session=False)
        )
        return 0, res.rowcount
