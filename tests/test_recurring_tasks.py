"""Recurring tasks — schedule CRUD, ownership, generation and date stepping."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from taskflow.db.models import RecurringTask
from taskflow.schemas.recurring import RecurrencePattern
from taskflow.services.recurring import next_due_date

MISSING = "00000000-0000-0000-0000-000000000000"
DUE = "2020-01-06T09:00:00Z"  # a Monday, long past


async def _template(ac, headers=None, title="Chores", text="Water plants") -> tuple[dict, dict]:
    board = (await ac.post("/api/boards", json={"title": title}, headers=headers)).json()["board"]
    r = await ac.post(
        f"/api/boards/{board['id']}/tasks",
        json={"text": text, "priority": "high", "tags": ["home"]},
        headers=headers,
    )
    return board, r.json()["task"]


async def _schedule(ac, board, task, headers=None, **pattern) -> dict:
    body = {
        "boardId": board["id"],
        "taskId": task["id"],
        "pattern": {"frequency": "daily", "interval": 1, **pattern},
        "nextDueDate": DUE,
    }
    r = await ac.post("/api/recurring-tasks", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["recurringTask"]


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_and_read_schedule(client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task, daysOfWeek=[1, 3])

    assert schedule["boardId"] == board["id"]
    assert schedule["taskId"] == task["id"]
    assert schedule["isActive"] is True
    assert schedule["lastGenerated"] is None
    assert schedule["pattern"]["frequency"] == "daily"
    assert schedule["pattern"]["daysOfWeek"] == [1, 3]
    assert schedule["board"] == {"id": board["id"], "title": "Chores"}
    assert schedule["task"]["text"] == "Water plants"

    r = await client.get(f"/api/recurring-tasks/{schedule['id']}")
    assert r.status_code == 200
    assert r.json()["recurringTask"]["id"] == schedule["id"]


@pytest.mark.asyncio
async def test_list_is_soonest_first(client):
    board, task = await _template(client)
    later = await _schedule(client, board, task)
    await client.patch(
        f"/api/recurring-tasks/{later['id']}", json={"nextDueDate": "2030-01-01T00:00:00Z"}
    )
    sooner = await _schedule(client, board, task)

    r = await client.get("/api/recurring-tasks")
    ids = [s["id"] for s in r.json()["recurringTasks"]]
    assert ids == [sooner["id"], later["id"]]


@pytest.mark.asyncio
async def test_update_schedule(client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task)

    r = await client.patch(
        f"/api/recurring-tasks/{schedule['id']}",
        json={"isActive": False, "pattern": {"frequency": "monthly", "interval": 1, "dayOfMonth": 31}},
    )
    assert r.status_code == 200
    updated = r.json()["recurringTask"]
    assert updated["isActive"] is False
    assert updated["pattern"]["frequency"] == "monthly"
    assert updated["pattern"]["dayOfMonth"] == 31
    assert updated["nextDueDate"].startswith("2020-01-06")


@pytest.mark.asyncio
async def test_delete_schedule(client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task)

    r = await client.delete(f"/api/recurring-tasks/{schedule['id']}")
    assert r.status_code == 200
    assert r.json() == {"deleted": True}
    r = await client.get(f"/api/recurring-tasks/{schedule['id']}")
    assert r.status_code == 404
    assert r.json() == {"error": "Recurring task not found"}


@pytest.mark.asyncio
async def test_pattern_validation(client):
    board, task = await _template(client)
    for pattern in [
        {"frequency": "hourly", "interval": 1},
        {"frequency": "daily", "interval": 0},
        {"frequency": "weekly", "interval": 1, "daysOfWeek": [7]},
        {"frequency": "monthly", "interval": 1, "dayOfMonth": 32},
    ]:
        r = await client.post(
            "/api/recurring-tasks",
            json={"boardId": board["id"], "taskId": task["id"], "pattern": pattern, "nextDueDate": DUE},
        )
        assert r.status_code == 400, pattern


# ═══════════════════════════════════════════════════════════
# Ownership
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_schedule_needs_own_board_and_task(client, other_client):
    board, task = await _template(client)
    their_board, their_task = await _template(other_client)
    _, other_task = await _template(client, title="Second")

    body = {"pattern": {"frequency": "daily", "interval": 1}, "nextDueDate": DUE}
    r = await client.post(
        "/api/recurring-tasks",
        json={**body, "boardId": their_board["id"], "taskId": their_task["id"]},
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Board not found"}

    r = await client.post(
        "/api/recurring-tasks",
        json={**body, "boardId": board["id"], "taskId": their_task["id"]},
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Task not found"}

    # A task of mine, but on a different board
    r = await client.post(
        "/api/recurring-tasks",
        json={**body, "boardId": board["id"], "taskId": other_task["id"]},
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Task not found"}


@pytest.mark.asyncio
async def test_other_guest_cannot_see_or_touch_schedule(client, other_client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task)
    url = f"/api/recurring-tasks/{schedule['id']}"

    assert (await other_client.get("/api/recurring-tasks")).json() == {"recurringTasks": []}
    assert (await other_client.get(url)).status_code == 404
    assert (await other_client.patch(url, json={"isActive": False})).status_code == 404
    assert (await other_client.delete(url)).status_code == 404

    r = await other_client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 0

    assert (await client.get(url)).json()["recurringTask"]["isActive"] is True
    assert len((await client.get(f"/api/boards/{board['id']}/tasks")).json()["tasks"]) == 1


@pytest.mark.asyncio
async def test_missing_schedule_is_404(client):
    assert (await client.get(f"/api/recurring-tasks/{MISSING}")).status_code == 404


@pytest.mark.asyncio
async def test_schedules_migrate_with_the_guest(client, signup, session_factory):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task)
    guest_id = client.cookies.get("guestId")
    headers = await signup(client)

    r = await client.post("/api/auth/migrate-guest", headers=headers)
    assert r.json()["migrated"]["recurringTasks"] == 1

    r = await client.get(f"/api/recurring-tasks/{schedule['id']}", headers=headers)
    assert r.status_code == 200
    async with session_factory() as db:
        left = await db.execute(
            select(func.count()).select_from(RecurringTask).where(RecurringTask.guest_id == guest_id)
        )
        assert left.scalar_one() == 0


@pytest.mark.asyncio
async def test_deleting_template_or_board_removes_schedule(client):
    board, task = await _template(client)
    by_task = await _schedule(client, board, task)
    await client.delete(f"/api/tasks/{task['id']}")
    assert (await client.get(f"/api/recurring-tasks/{by_task['id']}")).status_code == 404

    board, task = await _template(client, title="Other")
    by_board = await _schedule(client, board, task)
    await client.delete(f"/api/boards/{board['id']}")
    assert (await client.get(f"/api/recurring-tasks/{by_board['id']}")).status_code == 404


# ═══════════════════════════════════════════════════════════
# Generate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_generate_copies_template_and_advances(client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task)

    r = await client.post("/api/recurring-tasks/generate")
    assert r.status_code == 200
    body = r.json()
    assert body["generatedCount"] == 1
    assert body["skipped"] == []
    (copy,) = body["generatedTasks"]
    assert copy["boardId"] == board["id"]
    assert copy["text"] == "Water plants"
    assert copy["priority"] == "high"
    assert copy["tags"] == ["home"]
    assert copy["dueDate"].startswith("2020-01-06")
    assert copy["order"] == 1
    assert copy["id"] != task["id"]

    after = (await client.get(f"/api/recurring-tasks/{schedule['id']}")).json()["recurringTask"]
    assert after["nextDueDate"].startswith("2020-01-07")
    assert after["lastGenerated"] is not None
    assert len((await client.get(f"/api/boards/{board['id']}/tasks")).json()["tasks"]) == 2


@pytest.mark.asyncio
async def test_generate_makes_one_copy_per_call(client):
    board, task = await _template(client)
    await _schedule(client, board, task)

    await client.post("/api/recurring-tasks/generate")
    r = await client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 1
    assert len((await client.get(f"/api/boards/{board['id']}/tasks")).json()["tasks"]) == 3


@pytest.mark.asyncio
async def test_generate_skips_inactive_and_future(client):
    board, task = await _template(client)
    paused = await _schedule(client, board, task)
    await client.patch(f"/api/recurring-tasks/{paused['id']}", json={"isActive": False})
    future = await _schedule(client, board, task)
    await client.patch(
        f"/api/recurring-tasks/{future['id']}", json={"nextDueDate": "2999-01-01T00:00:00Z"}
    )

    r = await client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 0


@pytest.mark.asyncio
async def test_schedule_past_end_date_is_deactivated(client):
    board, task = await _template(client)
    schedule = await _schedule(client, board, task, endDate="2020-01-06T12:00:00Z")

    r = await client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 1

    after = (await client.get(f"/api/recurring-tasks/{schedule['id']}")).json()["recurringTask"]
    assert after["isActive"] is False
    assert after["nextDueDate"].startswith("2020-01-06")

    r = await client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 0


@pytest.mark.asyncio
async def test_generate_respects_guest_task_quota(client):
    board, task = await _template(client)
    for i in range(19):
        await client.post(f"/api/boards/{board['id']}/tasks", json={"text": f"t{i}"})
    schedule = await _schedule(client, board, task)

    r = await client.post("/api/recurring-tasks/generate")
    assert r.json()["generatedCount"] == 0
    assert r.json()["skipped"] == [schedule["id"]]
    assert len((await client.get(f"/api/boards/{board['id']}/tasks")).json()["tasks"]) == 20

    # Still due, so it is picked up once there is room
    after = (await client.get(f"/api/recurring-tasks/{schedule['id']}")).json()["recurringTask"]
    assert after["nextDueDate"].startswith("2020-01-06")


@pytest.mark.asyncio
async def test_users_generate_past_the_guest_quota(client, signup):
    headers = await signup(client)
    board, task = await _template(client, headers=headers)
    for i in range(19):
        await client.post(f"/api/boards/{board['id']}/tasks", json={"text": f"t{i}"}, headers=headers)
    await _schedule(client, board, task, headers=headers)

    r = await client.post("/api/recurring-tasks/generate", headers=headers)
    assert r.json()["generatedCount"] == 1


# ═══════════════════════════════════════════════════════════
# Date stepping
# ═══════════════════════════════════════════════════════════


def _pattern(frequency, interval=1, **kw) -> RecurrencePattern:
    return RecurrencePattern(frequency=frequency, interval=interval, **kw)


def test_daily_and_custom_step_by_interval():
    start = _utc(2020, 1, 30, 9)
    assert next_due_date(start, _pattern("daily", 3)) == _utc(2020, 2, 2, 9)
    assert next_due_date(start, _pattern("custom", 10)) == _utc(2020, 2, 9, 9)


def test_weekly_picks_next_listed_weekday():
    monday = _utc(2020, 1, 6, 9)
    assert next_due_date(monday, _pattern("weekly", days_of_week=[1, 3, 5])) == _utc(2020, 1, 8, 9)
    assert next_due_date(monday, _pattern("weekly", days_of_week=[1])) == _utc(2020, 1, 13, 9)

    friday = _utc(2020, 1, 10, 9)
    assert next_due_date(friday, _pattern("weekly", days_of_week=[3, 1])) == _utc(2020, 1, 13, 9)

    sunday = _utc(2020, 1, 12, 9)
    assert next_due_date(sunday, _pattern("weekly", days_of_week=[0])) == _utc(2020, 1, 19, 9)


def test_weekly_without_days_steps_whole_weeks():
    assert next_due_date(_utc(2020, 1, 6), _pattern("weekly", 2)) == _utc(2020, 1, 20)


def test_monthly_clamps_to_month_end():
    assert next_due_date(_utc(2020, 1, 31), _pattern("monthly")) == _utc(2020, 2, 29)
    assert next_due_date(_utc(2021, 1, 31), _pattern("monthly")) == _utc(2021, 2, 28)
    assert next_due_date(_utc(2020, 3, 15), _pattern("monthly", day_of_month=31)) == _utc(2020, 4, 30)
    assert next_due_date(_utc(2020, 11, 5), _pattern("monthly", 3)) == _utc(2021, 2, 5)


def test_yearly_from_leap_day():
    assert next_due_date(_utc(2020, 2, 29), _pattern("yearly")) == _utc(2021, 2, 28)
    assert next_due_date(_utc(2020, 2, 29), _pattern("yearly", 4)) == _utc(2024, 2, 29)
