"""Auth tests — registration, login, refresh, me, user-info, clear-guest."""

import uuid

import pytest


def _email(prefix: str = "test") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    email = _email()
    r = await client.post(
        "/api/auth/register",
        json={"email": email, "name": "Test User", "password": "secure_password_123"},
    )
    assert r.status_code == 201
    user = r.json()["user"]
    assert user["email"] == email
    assert user["name"] == "Test User"
    assert "createdAt" in user
    assert "passwordHash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    body = {"email": _email("dup"), "name": "User 1", "password": "password_123"}
    r1 = await client.post("/api/auth/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post("/api/auth/register", json=body)
    assert r2.status_code == 409
    assert r2.json() == {"error": "Email already registered"}


@pytest.mark.asyncio
async def test_register_email_is_case_insensitive(client):
    email = _email("case")
    body = {"email": email, "name": "A", "password": "password_123"}
    assert (await client.post("/api/auth/register", json=body)).status_code == 201

    body["email"] = email.upper()
    assert (await client.post("/api/auth/register", json=body)).status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client):
    r = await client.post(
        "/api/auth/register",
        json={"email": _email("short"), "name": "Short", "password": "abc"},
    )
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "password"


# ═══════════════════════════════════════════════════════════
# Login / refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client):
    email = _email("login")
    await client.post(
        "/api/auth/register",
        json={"email": email, "name": "Login", "password": "password_123"},
    )
    r = await client.post("/api/auth/login", json={"email": email, "password": "password_123"})
    assert r.status_code == 200
    body = r.json()
    assert body["accessToken"]
    assert body["refreshToken"]
    assert body["tokenType"] == "bearer"
    assert body["user"]["email"] == email


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    email = _email("wrong")
    await client.post(
        "/api/auth/register",
        json={"email": email, "name": "Wrong", "password": "password_123"},
    )
    r = await client.post("/api/auth/login", json={"email": email, "password": "nope-nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    r = await client.post(
        "/api/auth/login", json={"email": _email("ghost"), "password": "password_123"}
    )
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_refresh_token(client):
    email = _email("refresh")
    await client.post(
        "/api/auth/register",
        json={"email": email, "name": "Refresh", "password": "password_123"},
    )
    login = (
        await client.post("/api/auth/login", json={"email": email, "password": "password_123"})
    ).json()

    r = await client.post("/api/auth/refresh", json={"refreshToken": login["refreshToken"]})
    assert r.status_code == 200
    assert r.json()["accessToken"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client, signup):
    headers = await signup(client)
    access = headers["Authorization"].split(" ", 1)[1]
    r = await client.post("/api/auth/refresh", json={"refreshToken": access})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Me / user-info
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, signup):
    email = _email("me")
    headers = await signup(client, email=email)
    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["email"] == email


@pytest.mark.asyncio
async def test_me_as_guest_is_401(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}


@pytest.mark.asyncio
async def test_user_info_guest_limits_and_usage(client):
    await client.post("/api/boards", json={"title": "One"})
    r = await client.get("/api/auth/user-info")
    body = r.json()
    assert body["isGuest"] is True
    assert body["limits"] == {"maxBoards": 2, "maxTasksPerBoard": 20}
    assert body["usage"] == {"boards": 1}


# ═══════════════════════════════════════════════════════════
# Clear guest
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_clear_guest_forgets_identity(client):
    await client.post("/api/boards", json={"title": "Left behind"})
    old = client.cookies.get("guestId")

    r = await client.post("/api/auth/clear-guest")
    assert r.status_code == 200
    assert client.cookies.get("guestId") is None

    r = await client.get("/api/boards")
    assert r.json()["boards"] == []
    assert client.cookies.get("guestId") not in (None, old)
