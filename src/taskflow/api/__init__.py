"""API route aggregation.

All routers registered here get mounted in main.py under /api.

There is no router-level auth: every data route depends on
resolve_identity, which yields either the signed-in user or the guest
behind the cookie. Routes that need a real account (me, migrate-guest)
depend on require_user instead.
"""

from fastapi import APIRouter

from taskflow.api.auth import router as auth_router
from taskflow.api.boards import router as boards_router
from taskflow.api.health import router as health_router
from taskflow.api.recurring import router as recurring_router
from taskflow.api.scrum import router as scrum_router
from taskflow.api.settings import router as settings_router
from taskflow.api.tasks import router as tasks_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(boards_router, tags=["boards"])
api_router.include_router(tasks_router, tags=["tasks"])
api_router.include_router(recurring_router, tags=["recurring"])
api_router.include_router(scrum_router, tags=["scrum"])
api_router.include_router(settings_router, tags=["settings"])
