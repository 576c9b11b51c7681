"""Ownership-scoped repository — one CRUD path for every owned table.

Every board, sprint, story, standup, etc. is read and written through
OwnedRepository so the ownership filter lives in exactly one place:

- reads, updates and deletes add ``owner_clause(model, identity)``
- creates stamp ``owner_values(identity)`` (user_id XOR guest_id)
- update/delete run the ownership-checked write first and look at the
  affected row count; zero rows means "not found", whether the row is
  missing or belongs to someone else. Callers can't tell the two apart,
  so ids owned by other identities don't leak.

Services commit; the repository only flushes unless told otherwise.
"""

import uuid
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import Identity, owner_clause, owner_values
from taskflow.db.models import OwnedMixin

M = TypeVar("M", bound=OwnedMixin)

_PROTECTED = ("id", "user_id", "guest_id")


def settable(model, changes: dict) -> dict:
    """Drop protected keys, and nulls aimed at NOT NULL columns."""
    columns = model.__table__.c
    return {
        k: v
        for k, v in changes.items()
        if k not in _PROTECTED and (v is not None or columns[k].nullable)
    }


class OwnedRepository(Generic[M]):
    """CRUD over one owned model, always filtered to one identity."""

    def __init__(self, db: AsyncSession, model: type[M]):
        self.db = db
        self.model = model

    def scoped(self, identity: Identity, *criteria):
        """SELECT of the identity's rows, plus any extra criteria."""
        return select(self.model).where(owner_clause(self.model, identity), *criteria)

    # ─── Read ────────────────────────────────────────────

    async def list(
        self,
        identity: Identity,
        *criteria,
        order_by: Any = None,
        options: tuple = (),
    ) -> list[M]:
        query = self.scoped(identity, *criteria)
        if order_by is not None:
            query = query.order_by(order_by)
        if options:
            query = query.options(*options)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(
        self,
        identity: Identity,
        entity_id: uuid.UUID,
        options: tuple = (),
    ) -> Optional[M]:
        query = (
            self.scoped(identity, self.model.id == entity_id)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def count(self, identity: Identity, *criteria) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(self.model)
            .where(owner_clause(self.model, identity), *criteria)
        )
        return result.scalar_one()

    # ─── Write ───────────────────────────────────────────

    async def create(self, identity: Identity, commit: bool = True, **values) -> M:
        """Insert a row stamped with the identity's ownership column."""
        # Ownership always comes from the identity, never from the payload.
        values.pop("user_id", None)
        values.pop("guest_id", None)
        entity = self.model(**values, **owner_values(identity))
        self.db.add(entity)
        await self.db.flush()
        if commit:
            await self.db.commit()
        return entity

    async def update(
        self,
        identity: Identity,
        entity_id: uuid.UUID,
        changes: dict,
        commit: bool = True,
    ) -> Optional[M]:
        """Apply ``changes`` to an owned row. None if nothing matched."""
        changes = settable(self.model, changes)
        if changes:
            result = await self.db.execute(
                update(self.model)
                .where(self.model.id == entity_id, owner_clause(self.model, identity))
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            if commit:
                await self.db.commit()
        return await self.get(identity, entity_id)

    async def delete(
        self,
        identity: Identity,
        entity_id: uuid.UUID,
        commit: bool = True,
    ) -> bool:
        """Delete an owned row. False if nothing matched."""
        result = await self.db.execute(
            delete(self.model)
            .where(self.model.id == entity_id, owner_clause(self.model, identity))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False
        if commit:
            await self.db.commit()
        return True

    async def find_or_create(
        self,
        identity: Identity,
        defaults: Optional[dict] = None,
    ) -> M:
        """Singleton lookup: the identity's only row, created on first use."""
        existing = (await self.list(identity))[:1]
        if existing:
            return existing[0]
        return await self.create(identity, **(defaults or {}))
