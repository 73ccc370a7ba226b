"""Shopping-list API routes — live stream + item mutations.

Learn: these routes only translate HTTP to ShoppingListService calls and
map domain errors to status codes. The service persists, then broadcasts.

The live stream is a plain ``text/event-stream`` response. Access is
checked before the stream starts; the snapshot is loaded inside the
stream with its own session, because the request's session is closed
once the handler returns.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from yumiso.api.deps import get_broadcasters, get_session_factory
from yumiso.auth.dependencies import CurrentIdentity, get_current_user
from yumiso.config import settings
from yumiso.db.engine import get_db
from yumiso.realtime.broadcaster import ListBroadcasters
from yumiso.realtime.stream import live_event_stream
from yumiso.schemas.shopping_list import (
    ClearChecked,
    ItemEdit,
    ItemMove,
    ItemRemove,
    ItemsAdd,
    ItemToggle,
)
from yumiso.services.shopping_list_service import (
    DuplicateItemsError,
    InvalidListOperationError,
    ItemNotFoundError,
    ListAccessDeniedError,
    ListNotFoundError,
    ShoppingListService,
)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _svc(
    db: AsyncSession = Depends(get_db),
    broadcasters: ListBroadcasters = Depends(get_broadcasters),
) -> ShoppingListService:
    return ShoppingListService(db, broadcasters)


async def _run(call):
    """Await a service call, translating domain errors to HTTP errors."""
    try:
        return await call
    except ListNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ListAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DuplicateItemsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidListOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ═══════════════════════════════════════════════════════════
# Live stream
# ═══════════════════════════════════════════════════════════


@router.get("/shopping-lists/{list_id}/stream")
async def stream_list(
    list_id: int,
    type: Literal["plan", "list"] = Query("plan"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Server-sent events for one shopping list.

    ``type=plan`` (default) addresses a meal plan's list, ``type=list`` a
    standalone list; each kind has its own subscribers. Unknown lists
    and lists the caller cannot see are both reported as 404.
    """
    try:
        await svc.authorize(type, list_id, identity)
    except (ListNotFoundError, ListAccessDeniedError):
        raise HTTPException(status_code=404, detail="List not found or access denied")

    async def load_snapshot() -> list[dict]:
        async with session_factory() as session:
            return await ShoppingListService(session).snapshot(type, list_id)

    return StreamingResponse(
        live_event_stream(
            list_id,
            svc.broadcasters.for_kind(type),
            load_snapshot,
            heartbeat_seconds=settings.sse_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ═══════════════════════════════════════════════════════════
# Item mutations
# ═══════════════════════════════════════════════════════════


@router.post("/shopping-lists/items")
async def add_items(
    body: ItemsAdd,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    """Add one item or a batch; names already on the list are skipped."""
    return await _run(svc.add_items(identity, body))


@router.post("/shopping-lists/items/remove")
async def remove_item(
    body: ItemRemove,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    return await _run(svc.remove_item(identity, body))


@router.post("/shopping-lists/items/toggle")
async def toggle_item(
    body: ItemToggle,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    return await _run(svc.toggle_item(identity, body))


@router.post("/shopping-lists/items/edit")
async def edit_item(
    body: ItemEdit,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    """Rename an item, addressed by id."""
    return await _run(svc.edit_item(identity, body))


@router.post("/shopping-lists/items/move")
async def move_item(
    body: ItemMove,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    return await _run(svc.move_item(identity, body))


@router.post("/shopping-lists/items/clear-checked")
async def clear_checked(
    body: ClearChecked,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    return await _run(svc.clear_checked(identity, body))


@router.post("/shopping-lists/{list_id}/reset")
async def reset_list(
    list_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ShoppingListService = Depends(_svc),
):
    """Empty a standalone list. Lists linked to a meal plan are refused."""
    return await _run(svc.reset_list(identity, list_id))
