"""Cron routes — called by the external scheduler, not by users.

Learn: the scheduler hits GET /cron/flush-views every minute. In
production, when YUMISO_CRON_SECRET is set, the call must carry
``Authorization: Bearer <secret>``. Outside production the route is
open so it can be triggered by hand.
"""

import hmac
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException

from yumiso.api.deps import get_view_buffer
from yumiso.config import settings
from yumiso.views.buffer import ViewBuffer

logger = structlog.get_logger()
router = APIRouter()


def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not (settings.is_production and settings.cron_secret):
        return
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/cron/flush-views", dependencies=[Depends(require_cron_secret)])
async def cron_flush_views(buffer: ViewBuffer = Depends(get_view_buffer)):
    """Flush the view buffer now.

    ``before`` is what the buffer held; ``flushed`` and ``totalViews`` count
    only increments that reached a recipe row. Views of recipes that no
    longer exist, and increments that failed, are dropped, so
    ``totalViews`` may be lower than ``before.totalViews``.
    """
    before = buffer.stats()
    result = await buffer.flush()
    logger.info("cron.flush_views", before=before, **result)
    return {
        "success": True,
        "before": before,
        "flushed": result["flushed"],
        "totalViews": result["total"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
