"""Shopping-list service — item mutations that fan out to live subscribers.

Learn: every mutation follows the same three steps:
1. Resolve the target (a meal plan's list or a standalone list) and check
   the caller's access
2. Persist the change and commit
3. Broadcast the matching event to the list's live subscribers

Broadcasting happens only after the commit, so a subscriber never sees an
event for a change that was rolled back. Broadcast failures never reach
the caller — the broadcaster drops dead channels on its own.

Access rules:
- read (live stream): owner or any contributor
- add / toggle / edit / move / reset: owner or contributor with the CONTRIBUTOR role
- remove / clear checked: owner or any contributor
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from yumiso.auth.dependencies import CurrentIdentity
from yumiso.db.models import (
    ROLE_CONTRIBUTOR,
    ShoppingList,
    ShoppingListItem,
    StandaloneShoppingItem,
    WeeklyMealPlan,
)
from yumiso.realtime import events
from yumiso.realtime.broadcaster import ListBroadcasters
from yumiso.realtime.events import KIND_LIST, KIND_PLAN
from yumiso.schemas.shopping_list import (
    ItemEdit,
    ItemMove,
    ItemRemove,
    ItemsAdd,
    ItemToggle,
    ListTarget,
    ShoppingItemRead,
    UserBrief,
)
from yumiso.services.categories import categorize_ingredient, clean_names

Owner = Union[WeeklyMealPlan, ShoppingList]
Item = Union[ShoppingListItem, StandaloneShoppingItem]


class ListNotFoundError(Exception):
    """Raised when the plan or list does not exist."""
    pass


class ListAccessDeniedError(Exception):
    """Raised when the caller is neither owner nor an allowed contributor."""
    pass


class InvalidListOperationError(Exception):
    """Raised when an operation does not apply to this kind of list."""
    pass


class DuplicateItemsError(Exception):
    """Raised when every item to add is already on a meal plan's list."""
    pass


class ItemNotFoundError(Exception):
    pass


# ═══════════════════════════════════════════════════════════
# Serialization
# ═══════════════════════════════════════════════════════════


def serialize_item(item: Item) -> dict[str, Any]:
    """Both item tables → the single item shape clients understand.

    The checked_by_user relationship must already be loaded.
    """
    if isinstance(item, StandaloneShoppingItem):
        name = item.name
    else:
        name = item.ingredient_name
    checked_by = item.checked_by_user
    read = ShoppingItemRead(
        id=item.id,
        ingredient_name=name,
        category=item.category,
        is_checked=item.is_checked,
        is_manually_added=item.is_manually_added,
        checked_at=item.checked_at,
        checked_by_user_id=item.checked_by_user_id,
        checked_by_user=UserBrief.model_validate(checked_by) if checked_by else None,
    )
    return read.model_dump(mode="json", by_alias=True)


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class ShoppingListService:
    """Business logic for shopping-list items and their live events."""

    def __init__(self, db: AsyncSession, broadcasters: Optional[ListBroadcasters] = None):
        self.db = db
        self.broadcasters = broadcasters

    # ─── Access ──────────────────────────────────────────

    async def _load_owner(self, kind: str, list_id: int) -> Owner:
        model = WeeklyMealPlan if kind == KIND_PLAN else ShoppingList
        result = await self.db.execute(
            select(model)
            .where(model.id == list_id)
            .options(selectinload(model.contributors))
        )
        owner = result.scalars().first()
        if owner is None:
            raise ListNotFoundError(
                "Plan not found" if kind == KIND_PLAN else "List not found"
            )
        return owner

    @staticmethod
    def _check_access(owner: Owner, identity: CurrentIdentity, write: bool) -> None:
        if owner.user_id == identity.user_id:
            return
        for contributor in owner.contributors:
            if contributor.user_id != identity.user_id:
                continue
            if not write or contributor.role == ROLE_CONTRIBUTOR:
                return
        raise ListAccessDeniedError("Access denied")

    async def authorize(
        self,
        kind: str,
        list_id: int,
        identity: CurrentIdentity,
        write: bool = False,
    ) -> Owner:
        owner = await self._load_owner(kind, list_id)
        self._check_access(owner, identity, write)
        return owner

    @staticmethod
    def _target(body: ListTarget) -> tuple[str, int]:
        # planId wins when both are given
        if body.plan_id is not None:
            return KIND_PLAN, body.plan_id
        return KIND_LIST, body.list_id

    def _broadcast(self, kind: str, list_id: int, event: dict[str, Any]) -> None:
        if self.broadcasters is not None:
            self.broadcasters.for_kind(kind).broadcast(list_id, event)

    # ─── Read ────────────────────────────────────────────

    async def snapshot(self, kind: str, list_id: int) -> list[dict[str, Any]]:
        """Current items of a list, in insertion order."""
        if kind == KIND_PLAN:
            query = (
                select(ShoppingListItem)
                .where(ShoppingListItem.weekly_meal_plan_id == list_id)
                .order_by(ShoppingListItem.id)
            )
        else:
            query = (
                select(StandaloneShoppingItem)
                .where(StandaloneShoppingItem.shopping_list_id == list_id)
                .order_by(StandaloneShoppingItem.id)
            )
        result = await self.db.execute(query)
        return [serialize_item(item) for item in result.scalars().all()]

    # ─── Add ─────────────────────────────────────────────

    async def add_items(self, identity: CurrentIdentity, body: ItemsAdd) -> dict[str, Any]:
        """Add one or many items, skipping names already on the list.

        Learn: a batch (ingredientNames) always gets auto-detected
        categories; a single item keeps the caller's category if given.
        """
        kind, list_id = self._target(body)

        if body.ingredient_names is not None:
            wanted = [(n, categorize_ingredient(n)) for n in clean_names(body.ingredient_names)]
        elif body.ingredient_name and body.ingredient_name.strip():
            name = body.ingredient_name.strip()
            wanted = [(name, body.category or categorize_ingredient(name))]
        else:
            wanted = []
        if not wanted:
            raise InvalidListOperationError("No ingredient provided")

        await self.authorize(kind, list_id, identity, write=True)

        if kind == KIND_PLAN:
            name_col = ShoppingListItem.ingredient_name
            scope = ShoppingListItem.weekly_meal_plan_id == list_id
        else:
            name_col = StandaloneShoppingItem.name
            scope = StandaloneShoppingItem.shopping_list_id == list_id

        result = await self.db.execute(
            select(name_col).where(
                scope, func.lower(name_col).in_([n.lower() for n, _ in wanted])
            )
        )
        seen = {n.lower() for n in result.scalars().all()}
        fresh: list[tuple[str, str]] = []
        for name, category in wanted:
            if name.lower() not in seen:
                seen.add(name.lower())
                fresh.append((name, category))

        if not fresh:
            if kind == KIND_PLAN:
                raise DuplicateItemsError(
                    "This item is already on the list"
                    if len(wanted) == 1
                    else "All items are already on the list"
                )
            return {
                "success": True,
                "items": [],
                "addedCount": 0,
                "skippedCount": len(wanted),
                "userName": identity.display_name,
            }

        created: list[Item] = []
        for name, category in fresh:
            if kind == KIND_PLAN:
                item = ShoppingListItem(
                    weekly_meal_plan_id=list_id,
                    ingredient_name=name,
                    category=category,
                    is_checked=False,
                    is_manually_added=True,
                )
            else:
                item = StandaloneShoppingItem(
                    shopping_list_id=list_id,
                    name=name,
                    category=category,
                    is_checked=False,
                )
            self.db.add(item)
            created.append(item)
        await self.db.commit()

        items = []
        for item in created:
            await self.db.refresh(item, attribute_names=["checked_by_user"])
            items.append(serialize_item(item))

        for item in items:
            self._broadcast(kind, list_id, events.make_event(
                events.ITEM_ADDED,
                user_id=identity.user_id,
                user_name=identity.display_name,
                item=item,
                ingredientName=item["ingredientName"],
                category=item["category"],
            ))

        return {
            "success": True,
            "items": items,
            "addedCount": len(items),
            "skippedCount": len(wanted) - len(items),
            "userName": identity.display_name,
        }

    # ─── Remove ──────────────────────────────────────────

    async def remove_item(self, identity: CurrentIdentity, body: ItemRemove) -> dict[str, Any]:
        kind, list_id = self._target(body)
        await self.authorize(kind, list_id, identity, write=False)

        name = body.ingredient_name.strip()
        if kind == KIND_PLAN:
            stmt = delete(ShoppingListItem).where(
                ShoppingListItem.weekly_meal_plan_id == list_id,
                ShoppingListItem.ingredient_name == name,
                ShoppingListItem.category == body.category,
            )
        else:
            stmt = delete(StandaloneShoppingItem).where(
                StandaloneShoppingItem.shopping_list_id == list_id,
                StandaloneShoppingItem.name == name,
                StandaloneShoppingItem.category == body.category,
            )
        result = await self.db.execute(stmt)
        await self.db.commit()

        self._broadcast(kind, list_id, events.make_event(
            events.ITEM_REMOVED,
            user_id=identity.user_id,
            user_name=identity.display_name,
            ingredientName=name,
            category=body.category,
        ))
        return {
            "success": True,
            "userName": identity.display_name,
            "wasInDatabase": result.rowcount > 0,
        }

    # ─── Toggle ──────────────────────────────────────────

    async def toggle_item(self, identity: CurrentIdentity, body: ItemToggle) -> dict[str, Any]:
        """Check or uncheck an item.

        Learn: a meal plan's list is derived from its recipes, so the
        item may not have a row yet — toggling creates it. Standalone
        lists may hold duplicates; every matching row is updated.
        """
        kind, list_id = self._target(body)
        await self.authorize(kind, list_id, identity, write=True)

        checked_at = datetime.now(timezone.utc) if body.is_checked else None
        checked_by = identity.user_id if body.is_checked else None
        updated_count = 1

        if kind == KIND_PLAN:
            result = await self.db.execute(
                select(ShoppingListItem).where(
                    ShoppingListItem.weekly_meal_plan_id == list_id,
                    ShoppingListItem.ingredient_name == body.ingredient_name,
                    ShoppingListItem.category == body.category,
                ).limit(1)
            )
            item = result.scalars().first()
            if item is None:
                item = ShoppingListItem(
                    weekly_meal_plan_id=list_id,
                    ingredient_name=body.ingredient_name,
                    category=body.category,
                )
                self.db.add(item)
            item.is_checked = body.is_checked
            item.checked_at = checked_at
            item.checked_by_user_id = checked_by
            await self.db.commit()
        else:
            match = (
                StandaloneShoppingItem.shopping_list_id == list_id,
                StandaloneShoppingItem.name == body.ingredient_name,
                StandaloneShoppingItem.category == body.category,
            )
            result = await self.db.execute(
                update(StandaloneShoppingItem)
                .where(*match)
                .values(
                    is_checked=body.is_checked,
                    checked_at=checked_at,
                    checked_by_user_id=checked_by,
                )
                .execution_options(synchronize_session=False)
            )
            updated_count = result.rowcount
            await self.db.commit()

            result = await self.db.execute(
                select(StandaloneShoppingItem)
                .where(*match)
                .order_by(StandaloneShoppingItem.id)
                .limit(1)
                .execution_options(populate_existing=True)
            )
            item = result.scalars().first()
            if item is None:
                raise ItemNotFoundError("Item not found")

        await self.db.refresh(item, attribute_names=["checked_by_user"])
        payload = serialize_item(item)

        self._broadcast(kind, list_id, events.make_event(
            events.INGREDIENT_TOGGLED,
            user_id=identity.user_id,
            user_name=identity.display_name,
            item=payload,
        ))
        response = {"success": True, "item": payload, "userName": identity.display_name}
        if kind == KIND_LIST:
            response["updatedCount"] = updated_count
        return response

    # ─── Edit / move ─────────────────────────────────────

    async def edit_item(self, identity: CurrentIdentity, body: ItemEdit) -> dict[str, Any]:
        """Rename one item, addressed by id within its list."""
        kind, list_id = self._target(body)
        name = body.name.strip()
        if not name:
            raise InvalidListOperationError("Name is required")
        await self.authorize(kind, list_id, identity, write=True)

        if kind == KIND_PLAN:
            query = select(ShoppingListItem).where(
                ShoppingListItem.id == body.item_id,
                ShoppingListItem.weekly_meal_plan_id == list_id,
            )
        else:
            query = select(StandaloneShoppingItem).where(
                StandaloneShoppingItem.id == body.item_id,
                StandaloneShoppingItem.shopping_list_id == list_id,
            )
        item = (await self.db.execute(query)).scalars().first()
        if item is None:
            raise ItemNotFoundError("Item not found")

        if kind == KIND_PLAN:
            item.ingredient_name = name
        else:
            item.name = name
        await self.db.commit()
        await self.db.refresh(item, attribute_names=["checked_by_user"])
        payload = serialize_item(item)

        self._broadcast(kind, list_id, events.make_event(
            events.ITEM_EDITED,
            user_id=identity.user_id,
            user_name=identity.display_name,
            item=payload,
        ))
        return {"success": True, "item": payload, "userName": identity.display_name}

    async def move_item(self, identity: CurrentIdentity, body: ItemMove) -> dict[str, Any]:
        """Move an ingredient of a meal plan's list to another category.

        Learn: the source rows are deleted and the target row is found or
        created, so moving onto a category that already holds the
        ingredient merges the two. The moved item keeps no checked state.
        """
        list_id = body.plan_id
        await self.authorize(KIND_PLAN, list_id, identity, write=True)

        await self.db.execute(
            delete(ShoppingListItem).where(
                ShoppingListItem.weekly_meal_plan_id == list_id,
                ShoppingListItem.ingredient_name == body.ingredient_name,
                ShoppingListItem.category == body.from_category,
            )
        )
        result = await self.db.execute(
            select(ShoppingListItem).where(
                ShoppingListItem.weekly_meal_plan_id == list_id,
                ShoppingListItem.ingredient_name == body.ingredient_name,
                ShoppingListItem.category == body.to_category,
            ).limit(1)
        )
        item = result.scalars().first()
        if item is None:
            item = ShoppingListItem(
                weekly_meal_plan_id=list_id,
                ingredient_name=body.ingredient_name,
                category=body.to_category,
                is_checked=False,
                is_manually_added=False,
            )
            self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item, attribute_names=["checked_by_user"])
        payload = serialize_item(item)

        self._broadcast(KIND_PLAN, list_id, events.make_event(
            events.ITEM_MOVED,
            user_id=identity.user_id,
            user_name=identity.display_name,
            item=payload,
            fromCategory=body.from_category,
            toCategory=body.to_category,
        ))
        return {"success": True, "item": payload, "userName": identity.display_name}

    # ─── Bulk ────────────────────────────────────────────

    async def clear_checked(self, identity: CurrentIdentity, body: ListTarget) -> dict[str, Any]:
        kind, list_id = self._target(body)
        await self.authorize(kind, list_id, identity, write=False)

        if kind == KIND_PLAN:
            stmt = delete(ShoppingListItem).where(
                ShoppingListItem.weekly_meal_plan_id == list_id,
                ShoppingListItem.is_checked.is_(True),
            )
        else:
            stmt = delete(StandaloneShoppingItem).where(
                StandaloneShoppingItem.shopping_list_id == list_id,
                StandaloneShoppingItem.is_checked.is_(True),
            )
        result = await self.db.execute(stmt)
        await self.db.commit()

        self._broadcast(kind, list_id, events.make_event(
            events.CHECKED_ITEMS_CLEARED,
            user_id=identity.user_id,
            user_name=identity.display_name,
            deletedCount=result.rowcount,
        ))
        return {
            "success": True,
            "deletedCount": result.rowcount,
            "userName": identity.display_name,
        }

    async def reset_list(self, identity: CurrentIdentity, list_id: int) -> dict[str, Any]:
        """Delete every item of a standalone list.

        Lists generated from a meal plan cannot be reset — their content
        comes from the plan.
        """
        shopping_list = await self._load_owner(KIND_LIST, list_id)
        if shopping_list.weekly_meal_plan_id is not None:
            raise InvalidListOperationError(
                "Only standalone lists can be reset"
            )
        self._check_access(shopping_list, identity, write=True)

        result = await self.db.execute(
            delete(StandaloneShoppingItem).where(
                StandaloneShoppingItem.shopping_list_id == list_id
            )
        )
        await self.db.commit()

        self._broadcast(KIND_LIST, list_id, events.make_event(
            events.LIST_RESET,
            user_id=identity.user_id,
            user_name=identity.display_name,
        ))
        return {
            "success": True,
            "deletedCount": result.rowcount,
            "message": f"{result.rowcount} item(s) deleted",
        }
