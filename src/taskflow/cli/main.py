"""Taskflow CLI — run the server and poke at boards from a terminal.

Usage:
    taskflow serve                          # Run the API with uvicorn
    taskflow init-db                        # Create tables without Alembic
    taskflow boards                         # List your boards (guest or user)
    taskflow create-board "Sprint Plan"     # Create a board
    taskflow whoami                         # Guest or user, quotas, usage
    taskflow register EMAIL NAME            # Create an account
    taskflow login EMAIL                    # Sign in (prompts for password)
    taskflow migrate-guest                  # Move guest boards to your account

The client behaves like a browser: it keeps the guestId cookie and any
tokens in a small session file between runs, so the same guest identity
is reused until you log in and migrate.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
GUEST_COOKIE = "guestId"


def _api_url() -> str:
    return os.environ.get("TASKFLOW_API_URL", DEFAULT_API_URL).rstrip("/")


def _session_path() -> Path:
    default = Path.home() / ".taskflow" / "session.json"
    return Path(os.environ.get("TASKFLOW_SESSION_FILE", default))


# ---------------------------------------------------------------------------
# Session file
# ---------------------------------------------------------------------------


def load_session(path: Path) -> dict:
    """Read the saved session; a missing or corrupt file is an empty one."""
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_session(path: Path, session: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({k: v for k, v in session.items() if v}, indent=2))
    path.chmod(0o600)


def _cookie_domain() -> str:
    """Domain the cookie jar files a host-only cookie from the API under."""
    host = httpx.URL(_api_url()).host
    # http.cookiejar appends ".local" to dotless hosts such as localhost
    return host if "." in host else f"{host}.local"


def _client(
    session: dict, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """An HTTP client carrying the saved guest cookie and bearer token.

    The cookie is seeded under the same domain and path the server's
    Set-Cookie would produce, so a mint replaces it and a clear removes it.
    """
    headers = {}
    if session.get("accessToken"):
        headers["Authorization"] = f"Bearer {session['accessToken']}"
    client = httpx.AsyncClient(
        base_url=_api_url(), headers=headers, timeout=30.0, transport=transport
    )
    if session.get(GUEST_COOKIE):
        client.cookies.set(
            GUEST_COOKIE, session[GUEST_COOKIE], domain=_cookie_domain(), path="/"
        )
    return client


def _remember_cookie(client: httpx.AsyncClient, session: dict) -> None:
    """Copy the guest cookie from the client's jar; gone means cleared."""
    session[GUEST_COOKIE] = client.cookies.get(GUEST_COOKIE, domain=_cookie_domain())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Inside an already-running loop (e.g. a test runner) the coroutine is
    offloaded to a thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _fail(r: httpx.Response) -> None:
    """Print the API's error envelope and exit non-zero."""
    try:
        message = r.json().get("error", r.text)
    except ValueError:
        message = r.text
    click.secho(f"Error ({r.status_code}): {message}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="taskflow")
def main():
    """Taskflow — kanban boards and Scrum planning, with or without an account."""


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from taskflow.config import settings

    uvicorn.run(
        "taskflow.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create all tables directly from the models (dev databases only)."""
    _run(_init_db_impl())
    click.secho("Database schema created.", fg="green")


async def _init_db_impl():
    from taskflow.db.engine import engine
    from taskflow.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


# ---------------------------------------------------------------------------
# taskflow boards / create-board
# ---------------------------------------------------------------------------


@main.command()
def boards():
    """List your boards in display order."""
    _run(_boards_impl())


async def _boards_impl():
    path = _session_path()
    session = load_session(path)
    async with _client(session) as c:
        r = await c.get("/api/boards")
        if r.status_code != 200:
            _fail(r)
        _remember_cookie(c, session)
    save_session(path, session)

    rows = [
        {
            "order": b["order"],
            "title": b["title"],
            "tasks": len(b.get("tasks", [])),
            "id": b["id"],
        }
        for b in r.json()["boards"]
    ]
    if not rows:
        click.echo("No boards yet. Create one with: taskflow create-board TITLE")
        return
    _print_table(rows, [("#", "order", 3), ("TITLE", "title", 30), ("TASKS", "tasks", 5), ("ID", "id", 36)])


@main.command("create-board")
@click.argument("title")
@click.option("--description", "-d", default=None, help="Board description")
@click.option("--color", "-c", default=None, help='Hex color (e.g. "#3b82f6")')
def create_board(title: str, description: Optional[str], color: Optional[str]):
    """Create a board. Guests are limited; register to lift the limit."""
    _run(_create_board_impl(title, description, color))


async def _create_board_impl(title: str, description: Optional[str], color: Optional[str]):
    path = _session_path()
    session = load_session(path)
    body: dict = {"title": title}
    if description:
        body["description"] = description
    if color:
        body["color"] = color

    async with _client(session) as c:
        r = await c.post("/api/boards", json=body)
        _remember_cookie(c, session)
    save_session(path, session)

    if r.status_code == 403 and r.json().get("requiresAuth"):
        click.secho(r.json()["error"], fg="yellow", err=True)
        click.echo("Run `taskflow register` and `taskflow login` to keep going.", err=True)
        sys.exit(1)
    if r.status_code != 201:
        _fail(r)
    board = r.json()["board"]
    click.secho(f"Created board '{board['title']}' ({board['id']})", fg="green")


# ---------------------------------------------------------------------------
# taskflow whoami / register / login / migrate-guest
# ---------------------------------------------------------------------------


@main.command()
def whoami():
    """Show whether you're a guest or a user, with quotas and usage."""
    _run(_whoami_impl())


async def _whoami_impl():
    path = _session_path()
    session = load_session(path)
    async with _client(session) as c:
        r = await c.get("/api/auth/user-info")
        if r.status_code != 200:
            _fail(r)
        _remember_cookie(c, session)
    save_session(path, session)

    info = r.json()
    if info["isGuest"]:
        limits = info["limits"]
        click.echo(f"Guest {info['guestId']}")
        click.echo(f"  Boards: {info['usage']['boards']}/{limits['maxBoards']}")
        click.echo(f"  Tasks per board: up to {limits['maxTasksPerBoard']}")
    else:
        click.echo(f"User {info['userId']}")
        click.echo(f"  Boards: {info['usage']['boards']} (unlimited)")


@main.command()
@click.argument("email")
@click.argument("name")
@click.password_option()
def register(email: str, name: str, password: str):
    """Create an account. Log in afterwards to use it."""
    _run(_register_impl(email, name, password))


async def _register_impl(email: str, name: str, password: str):
    async with _client({}) as c:
        r = await c.post(
            "/api/auth/register",
            json={"email": email, "name": name, "password": password},
        )
    if r.status_code != 201:
        _fail(r)
    click.secho(f"Registered {r.json()['user']['email']}", fg="green")


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
@click.option("--no-migrate", is_flag=True, help="Keep guest data where it is")
def login(email: str, password: str, no_migrate: bool):
    """Sign in, then move any guest boards onto the account."""
    _run(_login_impl(email, password, no_migrate))


async def _login_impl(email: str, password: str, no_migrate: bool):
    path = _session_path()
    session = load_session(path)
    async with _client(session) as c:
        r = await c.post("/api/auth/login", json={"email": email, "password": password})
        if r.status_code != 200:
            _fail(r)
        tokens = r.json()
        session["accessToken"] = tokens["accessToken"]
        session["refreshToken"] = tokens["refreshToken"]
    save_session(path, session)
    click.secho(f"Logged in as {tokens['user']['email']}", fg="green")

    if not no_migrate and session.get(GUEST_COOKIE):
        await _migrate_guest_impl()


@main.command("migrate-guest")
def migrate_guest():
    """Move the saved guest identity's data to the logged-in account."""
    _run(_migrate_guest_impl())


async def _migrate_guest_impl():
    path = _session_path()
    session = load_session(path)
    if not session.get("accessToken"):
        click.secho("Not logged in. Run `taskflow login EMAIL` first.", fg="red", err=True)
        sys.exit(1)

    async with _client(session) as c:
        r = await c.post("/api/auth/migrate-guest")
        if r.status_code not in (200, 207):
            _fail(r)
        _remember_cookie(c, session)
    save_session(path, session)

    result = r.json()
    moved = sum(result.get("migrated", {}).values())
    click.secho(f"{result['message']} ({moved} rows)", fg="green")
    if result.get("failed"):
        click.secho(
            f"Failed: {', '.join(result['failed'])}. Run migrate-guest again.",
            fg="yellow",
        )


if __name__ == "__main__":
    main()
