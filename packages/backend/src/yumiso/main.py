"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The in-process state of the realtime and view-counting core
(one subscriber registry + broadcaster per list kind, view buffer) is created here and
stored on app.state, so its lifetime is exactly the app's lifetime.
Lifespan manages what needs a running loop: Redis and the view flusher.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from yumiso import __version__
from yumiso.api import api_router
from yumiso.config import settings
from yumiso.db.engine import async_session_factory
from yumiso.realtime.broadcaster import ListBroadcasters
from yumiso.realtime.events import LIST_KINDS
from yumiso.views.buffer import ViewBuffer, ViewFlusher

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "yumiso.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from yumiso.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("yumiso.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("yumiso.redis_unavailable", error=str(e))
        # Redis is optional — only rate limiting depends on it

    flusher = ViewFlusher(
        app.state.view_buffer, interval=settings.view_flush_interval_seconds
    )
    flush_task = asyncio.create_task(flusher.run_loop())

    yield

    logger.info("yumiso.shutdown", live_lists=app.state.broadcasters.live_lists())

    flusher.stop()
    flush_task.cancel()
    try:
        await flush_task
    except asyncio.CancelledError:
        pass

    # Last chance for buffered views before the process goes away
    await app.state.view_buffer.flush()

    await close_redis()

    from yumiso.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Yumiso",
        description="Recipes, weekly meal plans and live shopping lists",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.broadcasters = ListBroadcasters(LIST_KINDS)
    app.state.view_buffer = ViewBuffer(async_session_factory)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from yumiso.middleware.rate_limit import RateLimitMiddleware
    from yumiso.middleware.request_id import RequestIdMiddleware
    from yumiso.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware, rpm=settings.rate_limit_rpm)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: yumiso.main:app)
app = create_app()
