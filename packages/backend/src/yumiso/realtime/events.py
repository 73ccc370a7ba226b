"""Live shopping-list event types.

Learn: Centralizing event types as constants prevents typos and makes it
easy to discover every event a client may receive. Each event is a flat
JSON object with a ``type`` discriminator and an ISO-8601 ``timestamp``;
events caused by a user also carry ``userId`` and ``userName``.
"""

from datetime import datetime, timezone
from typing import Any, Optional

# ─── List kinds ──────────────────────────────────────────
# Live events are addressed by (kind, list id): meal plan ids and
# standalone list ids are separate sequences.

KIND_PLAN = "plan"
KIND_LIST = "list"
LIST_KINDS = (KIND_PLAN, KIND_LIST)

# ─── Connection lifecycle ────────────────────────────────

CONNECTED = "connected"
INITIAL = "initial"

# ─── Item mutations ──────────────────────────────────────

ITEM_ADDED = "item_added"
ITEM_REMOVED = "item_removed"
INGREDIENT_TOGGLED = "ingredient_toggled"
ITEM_EDITED = "item_edited"
ITEM_MOVED = "item_moved"
CHECKED_ITEMS_CLEARED = "checked_items_cleared"
LIST_RESET = "list_reset"


def timestamp() -> str:
    """UTC timestamp in the same shape browsers produce (…T12:00:00.000Z)."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def make_event(
    event_type: str,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    **fields: Any,
) -> dict[str, Any]:
    event: dict[str, Any] = {"type": event_type, **fields}
    if user_id is not None:
        event["userId"] = user_id
    if user_name is not None:
        event["userName"] = user_name
    event["timestamp"] = timestamp()
    return event


def connected(list_id: int) -> dict[str, Any]:
    return make_event(CONNECTED, planId=list_id)


def initial(items: list[dict[str, Any]]) -> dict[str, Any]:
    return make_event(INITIAL, items=items)
