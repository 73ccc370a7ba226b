"""Shared route dependencies for the in-process realtime and view state.

Learn: the per-kind broadcasters and the view buffer are owned by the app
(created in create_app, stored on app.state), never by module globals.
Routes reach them through these dependencies, which tests can override.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from yumiso.db.engine import async_session_factory
from yumiso.realtime.broadcaster import ListBroadcasters
from yumiso.views.buffer import ViewBuffer


def get_broadcasters(request: Request) -> ListBroadcasters:
    return request.app.state.broadcasters


def get_view_buffer(request: Request) -> ViewBuffer:
    return request.app.state.view_buffer


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request (live streams)."""
    return async_session_factory
