"""Scrum service — sprints, epics, stories, tasks, team, ceremonies.

All eight Scrum collections share the same owned-CRUD shape, so they
are described once in SCRUM_KINDS and served by one service instead of
eight copies. What differs per kind:

- list filters accepted from the query string
- references to other Scrum rows, which must belong to the same identity
- what happens to dependents on delete (cascade or detach)
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.identity import Identity, owner_clause
from taskflow.db.models import (
    DailyStandup,
    Epic,
    Retrospective,
    ScrumSettings,
    ScrumTask,
    Sprint,
    SprintReview,
    TeamMember,
    UserStory,
)
from taskflow.events.store import EventStore
from taskflow.events.types import SCRUM_IMPORTED
from taskflow.services.repository import OwnedRepository

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScrumKind:
    """How one Scrum collection is stored and exposed."""

    name: str  # URL segment: /scrum/{name}
    model: type
    singular: str  # response envelope key for one row
    plural: str  # response envelope key for a list
    order_by: Any
    filters: tuple[str, ...] = ()
    references: dict[str, type] = field(default_factory=dict)
    cascade: tuple[tuple[type, str], ...] = ()  # (child, fk) deleted with parent
    detach: tuple[tuple[type, str], ...] = ()  # (child, fk) set NULL on delete


SCRUM_KINDS: dict[str, ScrumKind] = {
    k.name: k
    for k in (
        ScrumKind(
            name="sprints",
            model=Sprint,
            singular="sprint",
            plural="sprints",
            order_by=Sprint.start_date.desc(),
            filters=("status",),
            cascade=(
                (DailyStandup, "sprint_id"),
                (Retrospective, "sprint_id"),
                (SprintReview, "sprint_id"),
            ),
            detach=((UserStory, "sprint_id"),),
        ),
        ScrumKind(
            name="epics",
            model=Epic,
            singular="epic",
            plural="epics",
            order_by=Epic.created_at.desc(),
            filters=("status",),
            detach=((UserStory, "epic_id"),),
        ),
        ScrumKind(
            name="stories",
            model=UserStory,
            singular="story",
            plural="stories",
            order_by=UserStory.created_at.desc(),
            filters=("sprint_id", "epic_id", "status"),
            references={
                "sprint_id": Sprint,
                "epic_id": Epic,
                "assignee_id": TeamMember,
            },
            cascade=((ScrumTask, "story_id"),),
        ),
        ScrumKind(
            name="tasks",
            model=ScrumTask,
            singular="task",
            plural="tasks",
            order_by=ScrumTask.created_at.desc(),
            filters=("story_id", "status"),
            references={"story_id": UserStory, "assignee_id": TeamMember},
        ),
        ScrumKind(
            name="team",
            model=TeamMember,
            singular="member",
            plural="members",
            order_by=TeamMember.name,
            detach=((UserStory, "assignee_id"), (ScrumTask, "assignee_id")),
        ),
        ScrumKind(
            name="standups",
            model=DailyStandup,
            singular="standup",
            plural="standups",
            order_by=DailyStandup.date.desc(),
            filters=("sprint_id",),
            references={"sprint_id": Sprint},
        ),
        ScrumKind(
            name="reviews",
            model=SprintReview,
            singular="review",
            plural="reviews",
            order_by=SprintReview.date.desc(),
            filters=("sprint_id",),
            references={"sprint_id": Sprint},
        ),
        ScrumKind(
            name="retrospectives",
            model=Retrospective,
            singular="retrospective",
            plural="retrospectives",
            order_by=Retrospective.created_at.desc(),
            filters=("sprint_id",),
            references={"sprint_id": Sprint},
        ),
    )
}


class ReferenceNotFoundError(Exception):
    """A referenced row is missing or owned by a different identity."""

    def __init__(self, field_name: str):
        super().__init__(f"{field_name} does not refer to an existing record")
        self.field_name = field_name


class ScrumService:
    """Owned CRUD for every Scrum collection plus the settings singleton."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = OwnedRepository(db, ScrumSettings)
        self.events = EventStore(db)

    def _repo(self, kind: ScrumKind) -> OwnedRepository:
        return OwnedRepository(self.db, kind.model)

    async def _check_references(
        self, kind: ScrumKind, identity: Identity, values: dict
    ) -> None:
        for attr, target in kind.references.items():
            ref_id = values.get(attr)
            if ref_id is None:
                continue
            found = await OwnedRepository(self.db, target).get(identity, ref_id)
            if found is None:
                raise ReferenceNotFoundError(attr)

    # ─── CRUD ────────────────────────────────────────────

    async def list(
        self,
        kind: ScrumKind,
        identity: Identity,
        filters: Optional[dict] = None,
    ) -> list:
        """List the identity's rows, with optional equality filters.

        Only filters declared on the kind are applied; unknown keys are
        ignored.
        """
        criteria = [
            getattr(kind.model, name) == value
            for name, value in (filters or {}).items()
            if name in kind.filters and value is not None
        ]
        return await self._repo(kind).list(identity, *criteria, order_by=kind.order_by)

    async def get(self, kind: ScrumKind, identity: Identity, entity_id: uuid.UUID):
        return await self._repo(kind).get(identity, entity_id)

    async def create(self, kind: ScrumKind, identity: Identity, values: dict):
        await self._check_references(kind, identity, values)
        return await self._repo(kind).create(identity, **values)

    async def update(
        self,
        kind: ScrumKind,
        identity: Identity,
        entity_id: uuid.UUID,
        changes: dict,
    ):
        await self._check_references(kind, identity, changes)
        return await self._repo(kind).update(identity, entity_id, changes)

    async def delete(
        self, kind: ScrumKind, identity: Identity, entity_id: uuid.UUID
    ) -> bool:
        """Delete an owned row and handle its dependents in one transaction."""
        owned = select(kind.model.id).where(
            kind.model.id == entity_id, owner_clause(kind.model, identity)
        )
        try:
            for child, fk in kind.cascade:
                await self.db.execute(
                    delete(child)
                    .where(getattr(child, fk).in_(owned))
                    .execution_options(synchronize_session=False)
                )
            for child, fk in kind.detach:
                await self.db.execute(
                    update(child)
                    .where(getattr(child, fk).in_(owned))
                    .values({fk: None})
                    .execution_options(synchronize_session=False)
                )
            deleted = await self._repo(kind).delete(identity, entity_id, commit=False)
            if not deleted:
                await self.db.rollback()
                return False
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return True

    # ─── Settings ────────────────────────────────────────

    async def get_settings(self, identity: Identity) -> ScrumSettings:
        return await self.settings.find_or_create(identity)

    async def update_settings(self, identity: Identity, changes: dict) -> ScrumSettings:
        current = await self.settings.find_or_create(identity, defaults=changes)
        return await self.settings.update(identity, current.id, changes)

    # ─── Bulk import ─────────────────────────────────────

    async def import_local_data(
        self,
        identity: Identity,
        collections: dict,
        settings: Optional[dict] = None,
    ) -> "ImportResult":
        """Copy browser-local Scrum data into the identity's rows.

        Items carry the client's own ``id`` and reference each other by
        those ids. Rows get fresh server ids; references are rewritten
        through the ids created earlier in the same import. An optional
        reference that can't be resolved is dropped, while a row whose
        required sprint can't be resolved is skipped.

        The whole import is one transaction.
        """
        result = ImportResult()
        id_maps: dict[str, dict[str, uuid.UUID]] = {}

        try:
            for step in IMPORT_ORDER:
                kind = SCRUM_KINDS[step.kind]
                repo = self._repo(kind)
                created_ids = id_maps.setdefault(step.kind, {})
                imported = skipped = 0

                for item in collections.get(step.kind) or []:
                    values = dict(item)
                    client_id = values.pop("id", None)

                    unresolved = False
                    for attr, source in step.references.items():
                        ref = values.get(attr)
                        mapped = id_maps.get(source, {}).get(str(ref)) if ref else None
                        values[attr] = mapped
                        if mapped is None and attr in step.required:
                            unresolved = True
                    if unresolved:
                        skipped += 1
                        continue

                    row = await repo.create(identity, commit=False, **values)
                    if client_id is not None:
                        created_ids[str(client_id)] = row.id
                    imported += 1

                result.imported[step.kind] = imported
                if skipped:
                    result.skipped[step.kind] = skipped

            if settings:
                current = await self.settings.find_or_create(identity, defaults=settings)
                await self.settings.update(identity, current.id, settings, commit=False)
                result.settings = True

            await self.events.append(
                stream_id=identity.actor,
                event_type=SCRUM_IMPORTED,
                data={
                    "imported": result.imported,
                    "skipped": result.skipped,
                    "settings": result.settings,
                },
                metadata={"actor": identity.actor},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "scrum.imported",
            actor=identity.actor,
            total=sum(result.imported.values()),
            skipped=sum(result.skipped.values()),
        )
        return result


@dataclass
class ImportResult:
    imported: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    settings: bool = False


@dataclass(frozen=True)
class _ImportStep:
    kind: str
    references: dict[str, str] = field(default_factory=dict)  # attr -> kind
    required: tuple[str, ...] = ()


# Parents before children so every reference can be rewritten.
IMPORT_ORDER = (
    _ImportStep("team"),
    _ImportStep("sprints"),
    _ImportStep("epics"),
    _ImportStep(
        "stories",
        references={"sprint_id": "sprints", "epic_id": "epics", "assignee_id": "team"},
    ),
    _ImportStep("tasks", references={"story_id": "stories", "assignee_id": "team"}),
    _ImportStep("standups", references={"sprint_id": "sprints"}, required=("sprint_id",)),
    _ImportStep("reviews", references={"sprint_id": "sprints"}, required=("sprint_id",)),
    _ImportStep(
        "retrospectives", references={"sprint_id": "sprints"}, required=("sprint_id",)
    ),
)
