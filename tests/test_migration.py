"""Guest → user migration — completeness, idempotence, partial failure."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from taskflow.auth.identity import AuthenticatedIdentity, GuestIdentity
from taskflow.db.models import OWNED_MODELS, Board, PageHeader, ScrumSettings, Sprint, User
from taskflow.events.store import EventStore
from taskflow.events.types import GUEST_MIGRATED
from taskflow.services.migration import MigrationService
from taskflow.services.repository import OwnedRepository


async def _seed_guest(ac) -> None:
    """A guest with boards, tasks, a header, settings and Scrum rows."""
    board = (await ac.post("/api/boards", json={"title": "Guest board"})).json()["board"]
    await ac.post(f"/api/boards/{board['id']}/tasks", json={"text": "card"})
    await ac.post("/api/boards", json={"title": "Second"})
    await ac.patch("/api/settings/header", json={"title": "My header", "subtitle": "hi"})
    await ac.patch("/api/scrum/settings", json={"dailyCapacity": 4})
    sprint = (
        await ac.post(
            "/api/scrum/sprints",
            json={"name": "S1", "startDate": "2026-01-01T00:00:00Z", "endDate": "2026-01-14T00:00:00Z"},
        )
    ).json()["sprint"]
    await ac.post("/api/scrum/stories", json={"title": "Story", "sprintId": sprint["id"]})
    await ac.post(
        "/api/scrum/standups",
        json={"sprintId": sprint["id"], "date": "2026-01-02T09:00:00Z"},
    )


async def _guest_rows(db, guest_id: str) -> int:
    total = 0
    for model in OWNED_MODELS:
        r = await db.execute(
            select(func.count()).select_from(model).where(model.guest_id == guest_id)
        )
        total += r.scalar_one()
    return total


# ═══════════════════════════════════════════════════════════
# Through the API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_migrate_moves_everything(client, signup, session_factory):
    await _seed_guest(client)
    guest_id = client.cookies.get("guestId")
    headers = await signup(client)

    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["migratedBoards"] == 2
    assert body["migrated"]["boards"] == 2
    assert body["migrated"]["pageHeaders"] == 1
    assert body["migrated"]["scrumSettings"] == 1
    assert body["migrated"]["sprints"] == 1
    assert body["migrated"]["userStories"] == 1
    assert body["migrated"]["dailyStandups"] == 1
    assert body["failed"] == []

    # Cookie cleared
    assert client.cookies.get("guestId") is None

    # Nothing left on the guest side
    async with session_factory() as db:
        assert await _guest_rows(db, guest_id) == 0

    # Everything visible to the user, tasks included
    boards = (await client.get("/api/boards", headers=headers)).json()["boards"]
    assert sorted(b["title"] for b in boards) == ["Guest board", "Second"]
    assert sum(len(b["tasks"]) for b in boards) == 1
    header = (await client.get("/api/settings/header", headers=headers)).json()["header"]
    assert header["title"] == "My header"
    stories = (await client.get("/api/scrum/stories", headers=headers)).json()["stories"]
    assert stories[0]["sprintId"] is not None


@pytest.mark.asyncio
async def test_migrate_is_idempotent(client, signup):
    await _seed_guest(client)
    guest_id = client.cookies.get("guestId")
    headers = await signup(client)

    await client.post("/api/auth/migrate-guest", headers=headers)

    # Replay with the old cookie: nothing left to move
    client.cookies.set("guestId", guest_id)
    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 200
    assert r.json()["migratedBoards"] == 0
    assert sum(r.json()["migrated"].values()) == 0
    assert len((await client.get("/api/boards", headers=headers)).json()["boards"]) == 2


@pytest.mark.asyncio
async def test_migrate_without_guest_cookie(client, signup):
    headers = await signup(client)
    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"message": "No guest data to migrate", "migrated": {}, "migratedBoards": 0}


@pytest.mark.asyncio
async def test_migrate_requires_login(client):
    await client.post("/api/boards", json={"title": "B"})
    r = await client.post("/api/auth/migrate-guest")
    assert r.status_code == 401
    # Guest data untouched
    assert len((await client.get("/api/boards")).json()["boards"]) == 1


@pytest.mark.asyncio
async def test_migrate_leaves_other_guests_alone(client, other_client, signup):
    await client.post("/api/boards", json={"title": "Mine"})
    await other_client.post("/api/boards", json={"title": "Theirs"})
    headers = await signup(client)

    await client.post("/api/auth/migrate-guest", headers=headers)
    assert [b["title"] for b in (await other_client.get("/api/boards")).json()["boards"]] == ["Theirs"]


@pytest.mark.asyncio
async def test_singleton_collision_keeps_user_row(client, signup):
    headers = await signup(client)
    await client.patch(
        "/api/settings/header", json={"title": "User header"}, headers=headers
    )
    await client.patch("/api/settings/header", json={"title": "Guest header"})

    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 200
    assert r.json()["discarded"] == {"pageHeaders": 1}
    assert "pageHeaders" not in r.json()["failed"]

    header = (await client.get("/api/settings/header", headers=headers)).json()["header"]
    assert header["title"] == "User header"


# ═══════════════════════════════════════════════════════════
# Service level
# ═══════════════════════════════════════════════════════════


async def _user(db) -> AuthenticatedIdentity:
    user = User(email=f"{uuid.uuid4().hex[:8]}@example.com", name="U", password_hash="x")
    db.add(user)
    await db.commit()
    return AuthenticatedIdentity(user_id=user.id)


@pytest.mark.asyncio
async def test_partial_failure_is_reported_and_retryable(session_factory, monkeypatch):
    guest = GuestIdentity(guest_id=str(uuid.uuid4()))
    async with session_factory() as db:
        user = await _user(db)
        await OwnedRepository(db, Board).create(guest, title="B")
        await OwnedRepository(db, Sprint).create(
            guest,
            name="S",
            start_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2026, 1, 14, tzinfo=timezone.utc),
        )

    real = MigrationService._migrate_kind

    async def flaky(self, model, user_id, guest_id):
        if model is Sprint:
            raise OperationalError("UPDATE sprints", {}, Exception("lock timeout"))
        return await real(self, model, user_id, guest_id)

    monkeypatch.setattr(MigrationService, "_migrate_kind", flaky)
    async with session_factory() as db:
        result = await MigrationService(db).migrate(user, guest.guest_id)
    assert result.failed == ["sprints"]
    assert result.complete is False
    assert result.migrated["boards"] == 1

    monkeypatch.setattr(MigrationService, "_migrate_kind", real)
    async with session_factory() as db:
        retry = await MigrationService(db).migrate(user, guest.guest_id)
        assert retry.complete
        assert retry.migrated["sprints"] == 1
        assert retry.migrated["boards"] == 0
        assert await _guest_rows(db, guest.guest_id) == 0


@pytest.mark.asyncio
async def test_partial_failure_keeps_cookie(client, signup, monkeypatch):
    await client.post("/api/boards", json={"title": "B"})
    await client.patch("/api/scrum/settings", json={"dailyCapacity": 3})
    guest_id = client.cookies.get("guestId")
    headers = await signup(client)

    real = MigrationService._migrate_singleton

    async def broken(self, model, user_id, gid):
        if model is ScrumSettings:
            raise OperationalError("UPDATE scrum_settings", {}, Exception("boom"))
        return await real(self, model, user_id, gid)

    monkeypatch.setattr(MigrationService, "_migrate_singleton", broken)
    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 207
    assert r.json()["failed"] == ["scrumSettings"]
    assert r.json()["migratedBoards"] == 1
    assert client.cookies.get("guestId") == guest_id

    monkeypatch.setattr(MigrationService, "_migrate_singleton", real)
    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.status_code == 200
    assert r.json()["migrated"]["scrumSettings"] == 1
    assert client.cookies.get("guestId") is None


@pytest.mark.asyncio
async def test_migration_is_audited(session_factory):
    guest = GuestIdentity(guest_id=str(uuid.uuid4()))
    async with session_factory() as db:
        user = await _user(db)
        await OwnedRepository(db, PageHeader).create(guest)
        await MigrationService(db).migrate(user, guest.guest_id)

        events = await EventStore(db).read_stream(f"user:{user.user_id}")
        assert [e.type for e in events] == [GUEST_MIGRATED]
        assert events[0].data["guest_id"] == guest.guest_id
        assert events[0].data["migrated"]["page_headers"] == 1
