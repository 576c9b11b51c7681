#!/usr/bin/env python3
"""
Taskflow Scrum import — move browser-local planning data to the server.

Posts a snapshot of locally kept sprints, stories and ceremonies (with
client-side ids) to /scrum/import and reads the result back with the
new server ids wired up.
Run with: python examples/scrum_import.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

from _common import check_backend, guest_client

LOCAL_DATA = {
    "members": [{"id": "local-ada", "name": "Ada", "role": "developer"}],
    "sprints": [
        {
            "id": "local-s1",
            "name": "Sprint 1",
            "goal": "Login works end to end",
            "startDate": "2026-03-02T00:00:00Z",
            "endDate": "2026-03-16T00:00:00Z",
            "status": "active",
        }
    ],
    "epics": [{"id": "local-auth", "title": "Authentication"}],
    "stories": [
        {
            "id": "local-login",
            "title": "As a user I can log in",
            "sprintId": "local-s1",
            "epicId": "local-auth",
            "assigneeId": "local-ada",
            "storyPoints": 5,
        }
    ],
    "tasks": [{"id": "local-form", "title": "Build the form", "storyId": "local-login"}],
    "standups": [{"sprintId": "local-s1", "date": "2026-03-03T09:00:00Z"}],
    "settings": {"dailyCapacity": 5},
}


def main():
    check_backend()
    client = guest_client()

    print("\n1. Importing local Scrum data...")
    resp = client.post("/scrum/import", json=LOCAL_DATA)
    assert resp.status_code == 200, f"Failed: {resp.text}"
    result = resp.json()
    for kind, count in result["imported"].items():
        print(f"   {kind}: {count}")
    for kind, count in result["skipped"].items():
        print(f"   {kind}: {count} skipped (sprint not found)")

    print("\n2. Reading it back...")
    sprint = client.get("/scrum/sprints").json()["sprints"][0]
    print(f"   Sprint: {sprint['name']} ({sprint['id'][:8]}...) {sprint['status']}")
    stories = client.get("/scrum/stories", params={"sprintId": sprint["id"]}).json()["stories"]
    for story in stories:
        tasks = client.get("/scrum/tasks", params={"storyId": story["id"]}).json()["tasks"]
        print(f"   Story: {story['title']} ({story['storyPoints']} pts, {len(tasks)} tasks)")

    settings = client.get("/scrum/settings").json()["settings"]
    print(f"   Daily capacity: {settings['dailyCapacity']}h")

    print("\n✓ Done. Sign in and call /auth/migrate-guest to keep this data.")


if __name__ == "__main__":
    main()
