"""Database engine and the one session factory everything shares.

Learn: three kinds of work open sessions here, and none of them may borrow
another's session:

- request handlers get one through get_db, closed when the request ends
- a live shopping-list stream loads its initial snapshot with a session
  of its own, because the stream outlives the request that opened it
- the view flusher opens one short session per recipe increment

The pool is sized for short transactions (YUMISO_DB_POOL_SIZE,
YUMISO_DB_MAX_OVERFLOW). Open streams do not hold a connection while
they wait for events.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from yumiso.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# expire_on_commit=False: services serialize items after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session
