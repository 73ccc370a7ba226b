"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are written against these models.

Key concepts:
- User ids are strings: they come from the external auth provider.
- Recipes, plans, lists and items use integer ids; list ids double as
  the key of the live-update subscriber registry.
- Two item tables: items of a meal-plan-linked list, and items of a
  standalone shopping list. Both serialize to the same item shape.
- Column types are portable (no PostgreSQL-only types) so the test suite
  can run against SQLite.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Contributor roles. Owners are not stored here — ownership is user_id.
ROLE_CONTRIBUTOR = "CONTRIBUTOR"
ROLE_VIEWER = "VIEWER"


# ══════════════════════════════════════════════════════════════
# Users + Recipes
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A user known to the auth provider. Mirrored locally for joins."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pseudo: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Recipe(Base):
    """A recipe page. views_count is only ever written by the view flusher.

    Learn: deleted_at is a soft delete — deleted recipes keep their row
    (and their counter) but are invisible to views and rankings.
    """

    __tablename__ = "recipes"
    __table_args__ = (
        Index("idx_recipes_views", "views_count"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="MAIN_DISH")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    preparation_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cooking_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )


# ══════════════════════════════════════════════════════════════
# Weekly meal plans
# ══════════════════════════════════════════════════════════════


class WeeklyMealPlan(Base):
    """A weekly menu. Its shopping list items hang directly off the plan."""

    __tablename__ = "weekly_meal_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    contributors: Mapped[list["PlanContributor"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan"
    )
    items: Mapped[list["ShoppingListItem"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan"
    )


class PlanContributor(Base):
    __tablename__ = "plan_contributors"
    __table_args__ = (
        UniqueConstraint("weekly_meal_plan_id", "user_id", name="uq_plan_contributor"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    weekly_meal_plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_CONTRIBUTOR)

    plan: Mapped["WeeklyMealPlan"] = relationship(back_populates="contributors")


class ShoppingListItem(Base):
    """An item of a meal-plan-linked shopping list."""

    __tablename__ = "shopping_list_items"
    __table_args__ = (
        Index("idx_shopping_items_plan", "weekly_meal_plan_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    weekly_meal_plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    ingredient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    is_checked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manually_added: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    checked_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    plan: Mapped["WeeklyMealPlan"] = relationship(back_populates="items")
    checked_by_user: Mapped[Optional["User"]] = relationship(lazy="selectin")


# ══════════════════════════════════════════════════════════════
# Standalone shopping lists
# ══════════════════════════════════════════════════════════════


class ShoppingList(Base):
    """A shopping list. Optionally linked to the meal plan it was generated from."""

    __tablename__ = "shopping_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    weekly_meal_plan_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("weekly_meal_plans.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    contributors: Mapped[list["ListContributor"]] = relationship(
        back_populates="shopping_list", cascade="all, delete-orphan"
    )
    items: Mapped[list["StandaloneShoppingItem"]] = relationship(
        back_populates="shopping_list", cascade="all, delete-orphan"
    )


class ListContributor(Base):
    __tablename__ = "list_contributors"
    __table_args__ = (
        UniqueConstraint("shopping_list_id", "user_id", name="uq_list_contributor"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shopping_list_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_CONTRIBUTOR)

    shopping_list: Mapped["ShoppingList"] = relationship(back_populates="contributors")


class StandaloneShoppingItem(Base):
    """An item of a standalone shopping list. Duplicates by name are allowed."""

    __tablename__ = "standalone_shopping_items"
    __table_args__ = (
        Index("idx_standalone_items_list", "shopping_list_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shopping_list_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    is_checked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manually_added: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    checked_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    shopping_list: Mapped["ShoppingList"] = relationship(back_populates="items")
    checked_by_user: Mapped[Optional["User"]] = relationship(lazy="selectin")
