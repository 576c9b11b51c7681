"""Task activity — comments, assignees and time tracking on a card."""

import pytest

MISSING = "00000000-0000-0000-0000-000000000000"


async def _card(ac, headers=None) -> dict:
    board = (await ac.post("/api/boards", json={"title": "B"}, headers=headers)).json()["board"]
    r = await ac.post(f"/api/boards/{board['id']}/tasks", json={"text": "Card"}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["task"]


async def _comment(ac, task_id, content="Looks good") -> dict:
    r = await ac.post(
        f"/api/tasks/{task_id}/comments", json={"content": content, "author": "Ana"}
    )
    assert r.status_code == 200, r.text
    return r.json()["comment"]


# ═══════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_comment(client):
    task = await _card(client)
    r = await client.post(
        f"/api/tasks/{task['id']}/comments", json={"content": "First!", "author": "Ana"}
    )
    assert r.status_code == 200
    comment = r.json()["comment"]
    assert comment["content"] == "First!"
    assert comment["author"] == "Ana"
    assert comment["authorId"].startswith("guest:")
    assert comment["createdAt"] and comment["updatedAt"]
    assert r.json()["task"]["comments"] == [comment]


@pytest.mark.asyncio
async def test_comments_keep_their_order(client):
    task = await _card(client)
    await _comment(client, task["id"], "one")
    await _comment(client, task["id"], "two")

    board_id = task["boardId"]
    card = (await client.get(f"/api/boards/{board_id}/tasks")).json()["tasks"][0]
    assert [c["content"] for c in card["comments"]] == ["one", "two"]


@pytest.mark.asyncio
async def test_edit_comment(client):
    task = await _card(client)
    comment = await _comment(client, task["id"])

    r = await client.patch(
        f"/api/tasks/{task['id']}/comments/{comment['id']}", json={"content": "Edited"}
    )
    assert r.status_code == 200
    edited = r.json()["comment"]
    assert edited["id"] == comment["id"]
    assert edited["content"] == "Edited"
    assert edited["author"] == "Ana"
    assert r.json()["task"]["comments"][0]["content"] == "Edited"


@pytest.mark.asyncio
async def test_delete_comment(client):
    task = await _card(client)
    keep = await _comment(client, task["id"], "keep")
    drop = await _comment(client, task["id"], "drop")

    r = await client.delete(f"/api/tasks/{task['id']}/comments/{drop['id']}")
    assert r.status_code == 200
    assert r.json()["message"] == "Comment deleted"
    assert [c["id"] for c in r.json()["task"]["comments"]] == [keep["id"]]

    r = await client.delete(f"/api/tasks/{task['id']}/comments/{drop['id']}")
    assert r.status_code == 404
    assert r.json() == {"error": "Comment not found"}


@pytest.mark.asyncio
async def test_unknown_comment_is_404(client):
    task = await _card(client)
    r = await client.patch(
        f"/api/tasks/{task['id']}/comments/nope", json={"content": "x"}
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Comment not found"}


@pytest.mark.asyncio
async def test_comment_validation(client):
    task = await _card(client)
    r = await client.post(f"/api/tasks/{task['id']}/comments", json={"content": ""})
    assert r.status_code == 400
    fields = {d["field"] for d in r.json()["details"]}
    assert {"content", "author"} <= fields


@pytest.mark.asyncio
async def test_comments_on_foreign_card_are_404(client, other_client):
    task = await _card(client)
    comment = await _comment(client, task["id"])

    r = await other_client.post(
        f"/api/tasks/{task['id']}/comments", json={"content": "hi", "author": "Eve"}
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Task not found"}
    r = await other_client.patch(
        f"/api/tasks/{task['id']}/comments/{comment['id']}", json={"content": "pwned"}
    )
    assert r.status_code == 404
    r = await other_client.delete(f"/api/tasks/{task['id']}/comments/{comment['id']}")
    assert r.status_code == 404

    card = (await client.get(f"/api/boards/{task['boardId']}/tasks")).json()["tasks"][0]
    assert [c["content"] for c in card["comments"]] == ["Looks good"]


@pytest.mark.asyncio
async def test_comment_on_missing_card_is_404(client):
    r = await client.post(
        f"/api/tasks/{MISSING}/comments", json={"content": "hi", "author": "Ana"}
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_comments_survive_migration(client, signup):
    task = await _card(client)
    comment = await _comment(client, task["id"])
    headers = await signup(client)
    await client.post("/api/auth/migrate-guest", headers=headers)

    r = await client.patch(
        f"/api/tasks/{task['id']}/comments/{comment['id']}",
        json={"content": "Still mine"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["comment"]["content"] == "Still mine"


# ═══════════════════════════════════════════════════════════
# Assignees
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_and_remove_assignees(client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/assignees"

    r = await client.post(url, json={"assigneeId": "member-1"})
    assert r.status_code == 200
    await client.post(url, json={"assigneeId": "member-2"})

    r = await client.post(url, json={"assigneeId": "member-1"})
    assert r.status_code == 400
    assert r.json() == {"error": "Assignee already added"}

    r = await client.delete(f"{url}/member-1")
    assert r.status_code == 200
    assert r.json()["task"]["assigneeIds"] == ["member-2"]

    # Removing someone not assigned is a no-op
    r = await client.delete(f"{url}/member-9")
    assert r.status_code == 200
    assert r.json()["task"]["assigneeIds"] == ["member-2"]


@pytest.mark.asyncio
async def test_assignees_on_foreign_card_are_404(client, other_client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/assignees"
    await client.post(url, json={"assigneeId": "member-1"})

    assert (await other_client.post(url, json={"assigneeId": "x"})).status_code == 404
    assert (await other_client.delete(f"{url}/member-1")).status_code == 404

    card = (await client.get(f"/api/boards/{task['boardId']}/tasks")).json()["tasks"][0]
    assert card["assigneeIds"] == ["member-1"]


# ═══════════════════════════════════════════════════════════
# Time tracking
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_timer_start_and_stop(client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/time"

    r = await client.post(url, json={"action": "start"})
    assert r.status_code == 200
    assert r.json()["message"] == "Timer started"
    assert r.json()["task"]["activeTimer"]["startTime"]

    r = await client.post(url, json={"action": "start"})
    assert r.status_code == 400
    assert r.json() == {"error": "Timer already running"}

    r = await client.post(url, json={"action": "stop", "note": "pairing"})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Timer stopped"
    assert body["duration"] == 0
    assert body["task"]["activeTimer"] is None
    (log,) = body["task"]["timeLogs"]
    assert log["note"] == "pairing"
    assert log["duration"] == 0


@pytest.mark.asyncio
async def test_stop_without_timer_is_400(client):
    task = await _card(client)
    r = await client.post(f"/api/tasks/{task['id']}/time", json={"action": "stop"})
    assert r.status_code == 400
    assert r.json() == {"error": "No active timer"}


@pytest.mark.asyncio
async def test_manual_logs_add_up(client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/time"

    r = await client.post(
        url,
        json={
            "action": "log",
            "startTime": "2026-03-02T09:00:00Z",
            "endTime": "2026-03-02T10:30:00Z",
        },
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Time log added"
    r = await client.post(
        url,
        json={
            "action": "log",
            "startTime": "2026-03-02T13:00:00Z",
            "endTime": "2026-03-02T13:20:00Z",
            "note": "review",
        },
    )
    task = r.json()["task"]
    assert [log["duration"] for log in task["timeLogs"]] == [90, 20]
    assert task["actualTime"] == 110

    first = task["timeLogs"][0]["id"]
    r = await client.delete(f"{url}/{first}")
    assert r.status_code == 200
    assert r.json()["message"] == "Time log deleted"
    assert r.json()["task"]["actualTime"] == 20

    r = await client.delete(f"{url}/{first}")
    assert r.status_code == 404
    assert r.json() == {"error": "Time log not found"}


@pytest.mark.asyncio
async def test_log_rejects_empty_or_backwards_range(client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/time"
    for start, end in [
        ("2026-03-02T10:00:00Z", "2026-03-02T10:00:00Z"),
        ("2026-03-02T10:00:00Z", "2026-03-02T09:00:00Z"),
    ]:
        r = await client.post(url, json={"action": "log", "startTime": start, "endTime": end})
        assert r.status_code == 400
        assert r.json() == {"error": "Invalid time range"}


@pytest.mark.asyncio
async def test_time_request_validation(client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/time"

    assert (await client.post(url, json={"action": "rewind"})).status_code == 400
    assert (await client.post(url, json={"action": "log"})).status_code == 400
    assert (await client.post(url, json={"action": "set_estimate"})).status_code == 400
    r = await client.post(url, json={"action": "set_estimate", "estimatedTime": -5})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_set_estimate(client):
    task = await _card(client)
    r = await client.post(
        f"/api/tasks/{task['id']}/time", json={"action": "set_estimate", "estimatedTime": 120}
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Estimate updated"
    assert r.json()["task"]["estimatedTime"] == 120
    assert r.json()["task"]["actualTime"] == 0


@pytest.mark.asyncio
async def test_time_on_foreign_card_is_404(client, other_client):
    task = await _card(client)
    url = f"/api/tasks/{task['id']}/time"
    r = await client.post(
        url,
        json={"action": "log", "startTime": "2026-03-02T09:00:00Z", "endTime": "2026-03-02T10:00:00Z"},
    )
    log_id = r.json()["task"]["timeLogs"][0]["id"]

    assert (await other_client.post(url, json={"action": "start"})).status_code == 404
    assert (
        await other_client.post(url, json={"action": "set_estimate", "estimatedTime": 1})
    ).status_code == 404
    assert (await other_client.delete(f"{url}/{log_id}")).status_code == 404

    card = (await client.get(f"/api/boards/{task['boardId']}/tasks")).json()["tasks"][0]
    assert card["activeTimer"] is None
    assert card["estimatedTime"] is None
    assert card["actualTime"] == 60
