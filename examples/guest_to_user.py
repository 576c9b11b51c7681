#!/usr/bin/env python3
"""
Taskflow Quickstart — from anonymous guest to account owner.

Creates boards as a guest → hits the board quota → registers → migrates
the guest data → keeps going without limits.
Run with: python examples/guest_to_user.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys

from _common import check_backend, guest_client, register_and_login


def main():
    check_backend()
    client = guest_client()

    # ── Guest boards ──────────────────────────────────────────────
    print("\n1. Creating boards as a guest...")
    for title in ("Sprint Plan", "Backlog"):
        resp = client.post("/boards", json={"title": title})
        assert resp.status_code == 201, f"Failed: {resp.text}"
        board = resp.json()["board"]
        print(f"   Board: {board['title']} ({board['id'][:8]}...)")

    resp = client.post(f"/boards/{board['id']}/tasks", json={"text": "Groom stories", "priority": "high"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   Task:  {resp.json()['task']['text']}")

    info = client.get("/auth/user-info").json()
    print(f"   Guest {info['guestId'][:8]}... using {info['usage']['boards']}/{info['limits']['maxBoards']} boards")

    # ── Quota ─────────────────────────────────────────────────────
    print("\n2. Trying a third board...")
    resp = client.post("/boards", json={"title": "Ideas"})
    if resp.status_code != 403 or not resp.json().get("requiresAuth"):
        print(f"ERROR: expected the guest quota, got {resp.status_code} {resp.text}")
        sys.exit(1)
    print(f"   ✗ {resp.json()['error']}")

    # ── Sign up and migrate ───────────────────────────────────────
    print("\n3. Signing up...")
    headers = register_and_login(client)

    print("\n4. Migrating guest data...")
    resp = client.post("/auth/migrate-guest", headers=headers)
    assert resp.status_code == 200, f"Failed: {resp.status_code} {resp.text}"
    result = resp.json()
    for kind, count in result["migrated"].items():
        if count:
            print(f"   {kind}: {count}")
    print(f"   Guest cookie cleared: {'guestId' not in client.cookies}")

    # ── No more limits ────────────────────────────────────────────
    print("\n5. Creating the third board as a user...")
    resp = client.post("/boards", json={"title": "Ideas"}, headers=headers)
    assert resp.status_code == 201, f"Failed: {resp.text}"

    boards = client.get("/boards", headers=headers).json()["boards"]
    for b in boards:
        print(f"   [{b['order']}] {b['title']} ({len(b['tasks'])} tasks)")

    print(f"\n✓ Done. {len(boards)} boards now belong to the account.")


if __name__ == "__main__":
    main()
