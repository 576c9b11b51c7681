"""
Shared helpers for Taskflow examples.

Handles the health check and account setup so each example can focus
on its own flow. Clients are plain httpx.Client instances; their cookie
jar plays the part of the browser holding the guestId cookie.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api"


def check_backend() -> None:
    """Verify the backend is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  taskflow serve --reload")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {health['redis']}")

    if health["status"] != "healthy":
        print("\nERROR: Database is not connected. Check TASKFLOW_DATABASE_URL.")
        sys.exit(1)


def guest_client() -> httpx.Client:
    """A fresh "browser": no cookies yet, so the first call mints a guest."""
    return httpx.Client(base_url=BASE, timeout=10)


def register_and_login(client: httpx.Client) -> dict:
    """Register a fresh user and login, returning bearer auth headers.

    Uses a unique email per run so examples are idempotent.
    """
    run_id = uuid.uuid4().hex[:8]
    email = f"demo-{run_id}@example.com"
    password = "demo-password-123"

    resp = client.post(
        "/auth/register",
        json={"email": email, "name": f"Demo User {run_id}", "password": password},
    )
    if resp.status_code not in (201, 409):  # 409 = already exists
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    resp = client.post("/auth/login", json={"email": email, "password": password})
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    print(f"  Auth:     ✓ {email}")
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}
