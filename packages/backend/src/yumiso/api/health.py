"""Health check endpoint.

Learn: reports the database and Redis, plus the size of the in-process
realtime and view state — useful when a deployment runs several instances
and each holds its own subscribers and buffered views.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from yumiso import __version__
from yumiso.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    try:
        from yumiso.redis_client import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    status = "healthy" if checks["postgres"] == "ok" else "degraded"

    return {
        "status": status,
        **checks,
        "live_lists": request.app.state.broadcasters.live_lists(),
        "view_buffer": request.app.state.view_buffer.stats(),
    }
