"""In-memory view buffer and its periodic flusher.

Learn: register_view is a dict increment — no I/O, safe to call on every
page view. flush() swaps an empty dict in *before* touching the database,
so views registered while a flush is in flight land in the new dict and
are picked up by the next flush instead of being cleared by this one.

Each recipe's increment runs in its own session/transaction:

    UPDATE recipes SET views_count = views_count + :count WHERE id = :id

A failed increment is logged and its views are dropped — they are not
put back. Perfect accuracy is not a goal for a popularity counter.

Cancellation is different: a flush cancelled mid-way (shutdown, the
flusher task being stopped) merges every increment it had not finished
back into the buffer, so the final flush on shutdown still writes them.
"""

import asyncio

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from yumiso.db.models import Recipe

logger = structlog.get_logger()


class ViewBuffer:
    """Pending view increments keyed by recipe id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._pending: dict[int, int] = {}
        self._flushing = False

    def register_view(self, recipe_id: int) -> None:
        self._pending[recipe_id] = self._pending.get(recipe_id, 0) + 1

    def pending(self, recipe_id: int) -> int:
        return self._pending.get(recipe_id, 0)

    def stats(self) -> dict[str, int]:
        return {
            "recipes": len(self._pending),
            "totalViews": sum(self._pending.values()),
        }

    async def flush(self) -> dict[str, int]:
        """Persist every pending increment, then forget it.

        Returns {"flushed": recipes written, "total": views written}.
        A call made while another flush is running returns zeros.
        """
        if self._flushing or not self._pending:
            return {"flushed": 0, "total": 0}

        self._flushing = True
        snapshot, self._pending = self._pending, {}
        flushed = 0
        total = 0
        items = list(snapshot.items())
        index = 0
        try:
            for index, (recipe_id, count) in enumerate(items):
                try:
                    written = await self._increment(recipe_id, count)
                except Exception:
                    logger.exception(
                        "views.increment_failed", recipe_id=recipe_id, dropped=count
                    )
                    continue
                if not written:
                    logger.warning(
                        "views.recipe_missing", recipe_id=recipe_id, dropped=count
                    )
                    continue
                flushed += 1
                total += count
        except asyncio.CancelledError:
            self._requeue(items[index:])
            raise
        finally:
            self._flushing = False

        logger.info("views.flushed", recipes=flushed, views=total)
        return {"flushed": flushed, "total": total}

    def _requeue(self, unwritten: list[tuple[int, int]]) -> None:
        for recipe_id, count in unwritten:
            self._pending[recipe_id] = self._pending.get(recipe_id, 0) + count
        logger.warning(
            "views.flush_cancelled",
            requeued=sum(count for _, count in unwritten),
        )

    async def _increment(self, recipe_id: int, count: int) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(Recipe)
                .where(Recipe.id == recipe_id)
                .values(views_count=Recipe.views_count + count)
            )
            await session.commit()
            return result.rowcount > 0


class ViewFlusher:
    """Background task that flushes the buffer on a fixed cadence.

    Learn: Runs as a long-lived task in the FastAPI lifespan, next to the
    cron endpoint — whichever fires first does the work, the other finds
    an empty buffer.

    Usage:
        flusher = ViewFlusher(buffer, interval=60)
        asyncio.create_task(flusher.run_loop())
    """

    def __init__(self, buffer: ViewBuffer, interval: float = 60.0):
        self.buffer = buffer
        self.interval = interval
        self._running = False

    async def run_loop(self) -> None:
        self._running = True
        logger.info("view_flusher.started", interval=self.interval)

        while self._running:
            await asyncio.sleep(self.interval)
            try:
                await self.buffer.flush()
            except Exception:
                logger.exception("view_flusher.error")

    def stop(self) -> None:
        self._running = False
        logger.info("view_flusher.stopping")
