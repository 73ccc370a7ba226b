"""Recipe view service — read models over persisted counters.

Learn: the counters in the recipes table lag the truth by at most one
flush interval; views_stats() reports the buffered remainder next to the
persisted total so admins can see both.
"""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from yumiso.db.models import Recipe
from yumiso.views.buffer import ViewBuffer


class RecipeNotFoundError(Exception):
    """Raised when the recipe does not exist or was soft-deleted."""
    pass


class ViewService:
    def __init__(self, db: AsyncSession, buffer: ViewBuffer):
        self.db = db
        self.buffer = buffer

    async def ensure_visible(self, recipe_id: int) -> None:
        """Raise RecipeNotFoundError unless the recipe exists and is not deleted."""
        result = await self.db.execute(
            select(Recipe.id).where(Recipe.id == recipe_id, Recipe.deleted_at.is_(None))
        )
        if result.scalar_one_or_none() is None:
            raise RecipeNotFoundError("Recipe not found")

    async def most_viewed(self, limit: int = 10) -> list[Recipe]:
        result = await self.db.execute(
            select(Recipe)
            .where(Recipe.deleted_at.is_(None))
            .order_by(Recipe.views_count.desc(), Recipe.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def views_stats(self) -> dict[str, Any]:
        visible = Recipe.deleted_at.is_(None)
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Recipe.views_count), 0)).where(visible)
        )
        with_views = await self.db.scalar(
            select(func.count()).select_from(Recipe).where(visible, Recipe.views_count > 0)
        )
        return {
            "totalViews": int(total or 0),
            "recipesWithViews": int(with_views or 0),
            "buffer": self.buffer.stats(),
        }
