"""Pydantic schemas for recipe view counting."""

from typing import Optional

from pydantic import BaseModel


class RecipeSummary(BaseModel):
    id: int
    slug: str
    name: str
    image_url: Optional[str]
    category: str
    views_count: int
    rating: float
    preparation_time: int
    cooking_time: int

    model_config = {"from_attributes": True}
