"""Recipe view routes.

Learn: POST /recipes/views is called by the recipe page after it renders.
It never writes to the database. It checks that the recipe is visible,
then the signed throttle cookie, bumps the in-memory buffer and refreshes
the cookie. GET/PUT expose the buffer for debugging; the periodic flusher
and the cron route do the real flushing.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from yumiso.api.deps import get_view_buffer
from yumiso.auth.dependencies import get_current_user
from yumiso.config import settings
from yumiso.db.engine import get_db
from yumiso.schemas.views import RecipeSummary
from yumiso.services.view_service import RecipeNotFoundError, ViewService
from yumiso.views.buffer import ViewBuffer
from yumiso.views.throttle import (
    decode_views_cookie,
    encode_views_cookie,
    should_count_view,
    update_views_data,
)

router = APIRouter()

# Buffer inspection and manual flush are for signed-in users only
_auth = [Depends(get_current_user)]

COOKIE_MAX_AGE = 24 * 60 * 60


def _svc(
    db: AsyncSession = Depends(get_db),
    buffer: ViewBuffer = Depends(get_view_buffer),
) -> ViewService:
    return ViewService(db, buffer)


@router.post("/recipes/views")
async def register_view(
    request: Request,
    payload: dict[str, Any] = Body(default_factory=dict),
    svc: ViewService = Depends(_svc),
):
    """Count one view of a recipe, at most once per visitor per 30 minutes."""
    recipe_id = payload.get("recipeId")
    if not recipe_id or not isinstance(recipe_id, int) or isinstance(recipe_id, bool):
        raise HTTPException(status_code=400, detail="Invalid recipe ID")

    # A deleted recipe is 404 even for a visitor who viewed it recently
    try:
        await svc.ensure_visible(recipe_id)
    except RecipeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    views_data = decode_views_cookie(request.cookies.get(settings.views_cookie_name))
    if not should_count_view(views_data, recipe_id):
        return {
            "success": False,
            "reason": "throttled",
            "message": "View already counted recently",
        }

    svc.buffer.register_view(recipe_id)

    response = JSONResponse(
        {"success": True, "message": "View registered", "buffered": True}
    )
    response.set_cookie(
        settings.views_cookie_name,
        encode_views_cookie(update_views_data(views_data, recipe_id)),
        max_age=COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/recipes/views", dependencies=_auth)
async def buffer_stats(buffer: ViewBuffer = Depends(get_view_buffer)):
    stats = buffer.stats()
    return {
        "buffer": stats,
        "message": f"{stats['totalViews']} views pending for {stats['recipes']} recipes",
    }


@router.put("/recipes/views", dependencies=_auth)
async def force_flush(buffer: ViewBuffer = Depends(get_view_buffer)):
    result = await buffer.flush()
    return {
        "success": True,
        **result,
        "message": f"Flushed {result['total']} views for {result['flushed']} recipes",
    }


@router.get("/recipes/views/stats", dependencies=_auth)
async def views_stats(svc: ViewService = Depends(_svc)):
    """Persisted totals plus what is still waiting in the buffer."""
    return await svc.views_stats()


@router.get("/recipes/most-viewed", response_model=list[RecipeSummary])
async def most_viewed(
    limit: int = Query(10, ge=1, le=100),
    svc: ViewService = Depends(_svc),
):
    return await svc.most_viewed(limit)
