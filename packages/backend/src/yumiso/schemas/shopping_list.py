"""Pydantic schemas for shopping-list items and mutations.

Learn: the browser client speaks camelCase (planId, ingredientName), so
these schemas use a camelCase alias generator and accept either spelling
on input. Items of both tables (plan-linked and standalone) serialize to
the same ShoppingItemRead shape — the standalone ``name`` column is
exposed as ``ingredientName``.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Read models ─────────────────────────────────────────

class UserBrief(CamelModel):
    id: str
    pseudo: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ShoppingItemRead(CamelModel):
    id: int
    ingredient_name: str
    category: str
    is_checked: bool
    is_manually_added: bool
    checked_at: Optional[datetime] = None
    checked_by_user_id: Optional[str] = None
    checked_by_user: Optional[UserBrief] = None


# ─── Mutations ───────────────────────────────────────────

class ListTarget(CamelModel):
    """A mutation addresses either a meal plan's list or a standalone list."""
    plan_id: Optional[int] = None
    list_id: Optional[int] = None

    @model_validator(mode="after")
    def require_target(self):
        if self.plan_id is None and self.list_id is None:
            raise ValueError("planId or listId is required")
        return self


class ItemsAdd(ListTarget):
    """Add one item (ingredientName + optional category) or many (ingredientNames)."""
    ingredient_name: Optional[str] = Field(None, max_length=200)
    ingredient_names: Optional[list[str]] = None
    category: Optional[str] = Field(None, max_length=100)


class ItemRemove(ListTarget):
    ingredient_name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)


class ItemToggle(ItemRemove):
    is_checked: bool


class ClearChecked(ListTarget):
    pass


class ItemEdit(ListTarget):
    item_id: int
    name: str = Field(..., min_length=1, max_length=200)


class ItemMove(CamelModel):
    """Meal plan lists only: standalone items are recategorised by editing."""
    plan_id: int
    ingredient_name: str = Field(..., min_length=1, max_length=200)
    from_category: str = Field(..., min_length=1, max_length=100)
    to_category: str = Field(..., min_length=1, max_length=100)
