"""Scrum API — one CRUD router per collection, built from SCRUM_KINDS.

For each kind (sprints, epics, stories, tasks, team, standups, reviews,
retrospectives):
- GET    /scrum/{kind}        → {plural: [...]}, optional query filters
- POST   /scrum/{kind}        → {singular: {...}}
- GET    /scrum/{kind}/{id}   → {singular: {...}}
- PATCH  /scrum/{kind}/{id}   → {singular: {...}}
- DELETE /scrum/{kind}/{id}   → {deleted: true}

Plus the per-identity settings singleton and the bulk import of
browser-local data.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.api.errors import invalid_input
from taskflow.auth.dependencies import resolve_identity
from taskflow.auth.identity import Identity
from taskflow.db.engine import get_db
from taskflow.schemas.base import dump, dump_many
from taskflow.schemas.scrum import (
    EpicCreate,
    EpicRead,
    EpicUpdate,
    MemberCreate,
    MemberRead,
    MemberUpdate,
    RetrospectiveCreate,
    RetrospectiveRead,
    RetrospectiveUpdate,
    ReviewCreate,
    ReviewRead,
    ReviewUpdate,
    ScrumImport,
    ScrumSettingsRead,
    ScrumSettingsUpdate,
    ScrumTaskCreate,
    ScrumTaskRead,
    ScrumTaskUpdate,
    SprintCreate,
    SprintRead,
    SprintUpdate,
    StandupCreate,
    StandupRead,
    StandupUpdate,
    StoryCreate,
    StoryRead,
    StoryUpdate,
)
from taskflow.services.scrum_service import (
    SCRUM_KINDS,
    ReferenceNotFoundError,
    ScrumKind,
    ScrumService,
)

router = APIRouter(prefix="/scrum")


def _svc(db: AsyncSession = Depends(get_db)) -> ScrumService:
    return ScrumService(db)


def _bad_reference(e: ReferenceNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=invalid_input(
            [
                {
                    "field": to_camel(e.field_name),
                    "message": str(e),
                    "type": "reference_not_found",
                }
            ]
        ),
    )


def _kind_router(
    kind: ScrumKind,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    read_schema: type[BaseModel],
) -> APIRouter:
    r = APIRouter(prefix=f"/{kind.name}", tags=[f"scrum-{kind.name}"])
    label = kind.singular.capitalize()

    def _not_found() -> HTTPException:
        return HTTPException(status_code=404, detail=f"{label} not found")

    @r.get("")
    async def list_items(
        sprint_id: Optional[uuid.UUID] = Query(None, alias="sprintId"),
        epic_id: Optional[uuid.UUID] = Query(None, alias="epicId"),
        story_id: Optional[uuid.UUID] = Query(None, alias="storyId"),
        status: Optional[str] = Query(None),
        identity: Identity = Depends(resolve_identity),
        svc: ScrumService = Depends(_svc),
    ):
        filters = {
            "sprint_id": sprint_id,
            "epic_id": epic_id,
            "story_id": story_id,
            "status": status,
        }
        items = await svc.list(kind, identity, filters)
        return {kind.plural: dump_many(read_schema, items)}

    @r.post("", status_code=201)
    async def create_item(
        body: create_schema,
        identity: Identity = Depends(resolve_identity),
        svc: ScrumService = Depends(_svc),
    ):
        try:
            item = await svc.create(kind, identity, body.model_dump(exclude_none=True))
        except ReferenceNotFoundError as e:
            raise _bad_reference(e)
        return {kind.singular: dump(read_schema, item)}

    @r.get("/{item_id}")
    async def get_item(
        item_id: uuid.UUID,
        identity: Identity = Depends(resolve_identity),
        svc: ScrumService = Depends(_svc),
    ):
        item = await svc.get(kind, identity, item_id)
        if item is None:
            raise _not_found()
        return {kind.singular: dump(read_schema, item)}

    @r.patch("/{item_id}")
    async def update_item(
        item_id: uuid.UUID,
        body: update_schema,
        identity: Identity = Depends(resolve_identity),
        svc: ScrumService = Depends(_svc),
    ):
        try:
            item = await svc.update(
                kind, identity, item_id, body.model_dump(exclude_unset=True)
            )
        except ReferenceNotFoundError as e:
            raise _bad_reference(e)
        if item is None:
            raise _not_found()
        return {kind.singular: dump(read_schema, item)}

    @r.delete("/{item_id}")
    async def delete_item(
        item_id: uuid.UUID,
        identity: Identity = Depends(resolve_identity),
        svc: ScrumService = Depends(_svc),
    ):
        if not await svc.delete(kind, identity, item_id):
            raise _not_found()
        return {"deleted": True}

    return r


_SCHEMAS = {
    "sprints": (SprintCreate, SprintUpdate, SprintRead),
    "epics": (EpicCreate, EpicUpdate, EpicRead),
    "stories": (StoryCreate, StoryUpdate, StoryRead),
    "tasks": (ScrumTaskCreate, ScrumTaskUpdate, ScrumTaskRead),
    "team": (MemberCreate, MemberUpdate, MemberRead),
    "standups": (StandupCreate, StandupUpdate, StandupRead),
    "reviews": (ReviewCreate, ReviewUpdate, ReviewRead),
    "retrospectives": (RetrospectiveCreate, RetrospectiveUpdate, RetrospectiveRead),
}


# ─── Settings ────────────────────────────────────────────


@router.get("/settings")
async def get_settings(
    identity: Identity = Depends(resolve_identity),
    svc: ScrumService = Depends(_svc),
):
    """The caller's Scrum settings, created with defaults on first read."""
    current = await svc.get_settings(identity)
    return {"settings": dump(ScrumSettingsRead, current)}


@router.patch("/settings")
async def update_settings(
    body: ScrumSettingsUpdate,
    identity: Identity = Depends(resolve_identity),
    svc: ScrumService = Depends(_svc),
):
    current = await svc.update_settings(identity, body.model_dump(exclude_none=True))
    return {"settings": dump(ScrumSettingsRead, current)}


# ─── Import ──────────────────────────────────────────────


@router.post("/import")
async def import_local_data(
    body: ScrumImport,
    identity: Identity = Depends(resolve_identity),
    svc: ScrumService = Depends(_svc),
):
    """Copy Scrum data kept in the browser into the caller's account.

    Client ids are remapped to new server ids. Ceremonies whose sprint
    isn't part of the import are skipped and counted.
    """
    collections = {
        name: [item.model_dump(exclude_none=True) for item in items]
        for name, items in (
            ("team", body.members),
            ("sprints", body.sprints),
            ("epics", body.epics),
            ("stories", body.stories),
            ("tasks", body.tasks),
            ("standups", body.standups),
            ("reviews", body.reviews),
            ("retrospectives", body.retrospectives),
        )
    }
    settings = body.settings.model_dump(exclude_none=True) if body.settings else None
    result = await svc.import_local_data(identity, collections, settings)

    def _public(counts: dict) -> dict:
        return {("members" if k == "team" else k): n for k, n in counts.items()}

    return {
        "imported": _public(result.imported),
        "skipped": _public(result.skipped),
        "settings": result.settings,
    }


# ─── Collections ─────────────────────────────────────────

for _name, (_create, _update, _read) in _SCHEMAS.items():
    router.include_router(_kind_router(SCRUM_KINDS[_name], _create, _update, _read))
