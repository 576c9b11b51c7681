"""FastAPI application factory.

create_app() returns a configured FastAPI instance; the lifespan
handles startup and shutdown (Redis for rate limiting, the database
engine). Middleware, CORS, error handlers and routers are all
registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskflow import __version__
from taskflow.api import api_router
from taskflow.api.errors import register_exception_handlers
from taskflow.config import settings
from taskflow.db.redis import close_redis, init_redis
from taskflow.middleware.rate_limit import RateLimitMiddleware
from taskflow.middleware.request_id import RequestIdMiddleware
from taskflow.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Anything before ``yield`` runs at startup, after it at shutdown."""
    logger.info(
        "taskflow.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    try:
        await init_redis()
        logger.info("taskflow.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis only backs rate limiting; run without it.
        logger.warning("taskflow.redis_unavailable", error=str(e))

    yield

    logger.info("taskflow.shutdown")
    await close_redis()

    from taskflow.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Taskflow",
        description="Kanban boards and Scrum planning for guests and registered users",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,  # the guest cookie travels with every request
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: taskflow.main:app)
app = create_app()
