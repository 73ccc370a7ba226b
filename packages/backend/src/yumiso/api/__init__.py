"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: shopping-list routes resolve the user themselves (they need the
identity for access checks and event attribution) and are also guarded
at the include_router level. The view router mixes a public counter with
signed-in inspection routes, so it guards per route. Health and the cron
trigger are open — cron carries its own secret.
"""

from fastapi import APIRouter, Depends

from yumiso.api.cron import router as cron_router
from yumiso.api.health import router as health_router
from yumiso.api.shopping_lists import router as shopping_lists_router
from yumiso.api.views import router as views_router
from yumiso.auth.dependencies import get_current_user

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(cron_router, tags=["cron"])
api_router.include_router(views_router, tags=["views"])
api_router.include_router(shopping_lists_router, tags=["shopping-lists"], dependencies=_auth)
