"""Shopping-list API tests — mutations, access rules and live fan-out.

Learn: every mutation test subscribes a QueueChannel to the app's registry
for the list's kind first, so it can assert both the HTTP response and
the event that the other collaborators would have received.
"""

import json

import pytest
from sqlalchemy import select

from yumiso.db.models import ShoppingList, ShoppingListItem, StandaloneShoppingItem
from yumiso.realtime.channel import QueueChannel
from yumiso.realtime.events import KIND_LIST, KIND_PLAN
from yumiso.realtime.stream import live_event_stream
from yumiso.services.shopping_list_service import ShoppingListService

from conftest import CONTRIBUTOR, LINKED_LIST_ID, LIST_ID, PLAN_ID, STRANGER, VIEWER


def decode(frame: str) -> dict:
    return json.loads(frame[len("data: "):-2])


def received(channel: QueueChannel) -> list[dict]:
    """Drain everything queued on a channel."""
    frames = []
    while channel.pending():
        frames.append(decode(channel._queue.get_nowait()))
    return frames


@pytest.fixture()
def listener(app):
    """Subscribe a channel to a plan or list id; returns the channel."""
    def subscribe(kind: str, list_id: int) -> QueueChannel:
        channel = QueueChannel()
        app.state.broadcasters.registry(kind).subscribe(list_id, channel)
        return channel
    return subscribe


async def add(client, **body):
    return await client.post("/api/v1/shopping-lists/items", json=body)


# ═══════════════════════════════════════════════════════════
# Add
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_item_to_plan_broadcasts(client, seed, listener):
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await add(client, planId=PLAN_ID, ingredientName="Lait", category="Produits laitiers")

    assert r.status_code == 200
    data = r.json()
    assert data["addedCount"] == 1
    assert data["userName"] == "Chef"
    item = data["items"][0]
    assert item["ingredientName"] == "Lait"
    assert item["category"] == "Produits laitiers"
    assert item["isChecked"] is False
    assert item["isManuallyAdded"] is True

    (event,) = received(channel)
    assert event["type"] == "item_added"
    assert event["ingredientName"] == "Lait"
    assert event["category"] == "Produits laitiers"
    assert event["item"] == item
    assert event["userId"] == "u-owner"
    assert event["userName"] == "Chef"


@pytest.mark.asyncio
async def test_add_item_detects_category(client, seed):
    r = await add(client, listId=LIST_ID, ingredientName="  Tomates cerises ")
    assert r.status_code == 200
    item = r.json()["items"][0]
    assert item["ingredientName"] == "Tomates cerises"
    assert item["category"] == "Fruits & Légumes"


@pytest.mark.asyncio
async def test_add_batch_skips_duplicates(client, seed, listener):
    await add(client, listId=LIST_ID, ingredientName="Beurre")
    channel = listener(KIND_LIST, LIST_ID)

    r = await add(client, listId=LIST_ID, ingredientNames=["beurre", "Riz", "riz", " "])

    assert r.status_code == 200
    data = r.json()
    assert data["addedCount"] == 1
    assert data["skippedCount"] == 2
    assert [i["ingredientName"] for i in data["items"]] == ["Riz"]
    assert [e["type"] for e in received(channel)] == ["item_added"]


@pytest.mark.asyncio
async def test_add_duplicate_to_plan_conflicts(client, seed, listener):
    await add(client, planId=PLAN_ID, ingredientName="Farine")
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await add(client, planId=PLAN_ID, ingredientName="FARINE")

    assert r.status_code == 409
    assert received(channel) == []


@pytest.mark.asyncio
async def test_add_duplicate_to_list_is_not_an_error(client, seed):
    await add(client, listId=LIST_ID, ingredientName="Farine")

    r = await add(client, listId=LIST_ID, ingredientName="farine")

    assert r.status_code == 200
    assert r.json()["addedCount"] == 0


@pytest.mark.asyncio
async def test_add_without_name_rejected(client, seed):
    r = await add(client, listId=LIST_ID, ingredientName="   ")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_add_without_target_rejected(client, seed):
    r = await add(client, ingredientName="Lait")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_add_as_contributor(client, seed, login):
    login(CONTRIBUTOR)
    r = await add(client, planId=PLAN_ID, ingredientName="Sel")
    assert r.status_code == 200
    assert r.json()["userName"] == "Sacha"


@pytest.mark.asyncio
async def test_add_as_viewer_forbidden(client, seed, login):
    login(VIEWER)
    r = await add(client, planId=PLAN_ID, ingredientName="Sel")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_add_as_stranger_forbidden(client, seed, login):
    login(STRANGER)
    r = await add(client, listId=LIST_ID, ingredientName="Sel")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_add_to_unknown_plan(client, seed):
    r = await add(client, planId=999, ingredientName="Sel")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_mutation_requires_auth(client, seed, login):
    login(None)
    r = await add(client, planId=PLAN_ID, ingredientName="Sel")
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Remove
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_remove_item_broadcasts(client, seed, listener, db_session):
    await add(client, planId=PLAN_ID, ingredientName="Lait", category="Produits laitiers")
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await client.post("/api/v1/shopping-lists/items/remove", json={
        "planId": PLAN_ID, "ingredientName": "Lait", "category": "Produits laitiers",
    })

    assert r.status_code == 200
    assert r.json()["wasInDatabase"] is True
    (event,) = received(channel)
    assert event["type"] == "item_removed"
    assert event["ingredientName"] == "Lait"
    assert event["category"] == "Produits laitiers"

    rows = await db_session.execute(
        select(ShoppingListItem).where(ShoppingListItem.weekly_meal_plan_id == PLAN_ID)
    )
    assert rows.scalars().all() == []


@pytest.mark.asyncio
async def test_remove_missing_item_still_broadcasts(client, seed, listener):
    """Plan items may be derived from recipes and have no row yet."""
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await client.post("/api/v1/shopping-lists/items/remove", json={
        "planId": PLAN_ID, "ingredientName": "Carottes", "category": "Fruits & Légumes",
    })

    assert r.status_code == 200
    assert r.json()["wasInDatabase"] is False
    assert [e["type"] for e in received(channel)] == ["item_removed"]


@pytest.mark.asyncio
async def test_remove_allowed_for_viewer(client, seed, login):
    login(VIEWER)
    r = await client.post("/api/v1/shopping-lists/items/remove", json={
        "listId": LIST_ID, "ingredientName": "Lait", "category": "Produits Laitiers",
    })
    assert r.status_code == 200


# ═══════════════════════════════════════════════════════════
# Toggle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_toggle_plan_item_creates_row(client, seed, listener, login):
    login(CONTRIBUTOR)
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await client.post("/api/v1/shopping-lists/items/toggle", json={
        "planId": PLAN_ID, "ingredientName": "Oignons",
        "category": "Fruits & Légumes", "isChecked": True,
    })

    assert r.status_code == 200
    item = r.json()["item"]
    assert item["isChecked"] is True
    assert item["isManuallyAdded"] is False
    assert item["checkedByUserId"] == "u-contrib"
    assert item["checkedByUser"]["name"] == "Sacha"
    assert item["checkedAt"] is not None

    (event,) = received(channel)
    assert event["type"] == "ingredient_toggled"
    assert event["item"]["isChecked"] is True
    assert event["userName"] == "Sacha"


@pytest.mark.asyncio
async def test_toggle_uncheck_clears_checked_by(client, seed):
    body = {
        "planId": PLAN_ID, "ingredientName": "Oignons",
        "category": "Fruits & Légumes", "isChecked": True,
    }
    await client.post("/api/v1/shopping-lists/items/toggle", json=body)

    r = await client.post(
        "/api/v1/shopping-lists/items/toggle", json={**body, "isChecked": False}
    )

    item = r.json()["item"]
    assert item["isChecked"] is False
    assert item["checkedByUserId"] is None
    assert item["checkedByUser"] is None
    assert item["checkedAt"] is None


@pytest.mark.asyncio
async def test_toggle_list_updates_all_duplicates(client, seed, db_session):
    db_session.add_all([
        StandaloneShoppingItem(shopping_list_id=LIST_ID, name="Pain", category="Pain & Boulangerie"),
        StandaloneShoppingItem(shopping_list_id=LIST_ID, name="Pain", category="Pain & Boulangerie"),
    ])
    await db_session.commit()

    r = await client.post("/api/v1/shopping-lists/items/toggle", json={
        "listId": LIST_ID, "ingredientName": "Pain",
        "category": "Pain & Boulangerie", "isChecked": True,
    })

    assert r.status_code == 200
    assert r.json()["updatedCount"] == 2
    assert r.json()["item"]["isChecked"] is True


@pytest.mark.asyncio
async def test_toggle_missing_list_item_not_found(client, seed):
    r = await client.post("/api/v1/shopping-lists/items/toggle", json={
        "listId": LIST_ID, "ingredientName": "Pain",
        "category": "Pain & Boulangerie", "isChecked": True,
    })
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_toggle_as_viewer_forbidden(client, seed, login):
    login(VIEWER)
    r = await client.post("/api/v1/shopping-lists/items/toggle", json={
        "planId": PLAN_ID, "ingredientName": "Oignons",
        "category": "Fruits & Légumes", "isChecked": True,
    })
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Edit + move
# ═══════════════════════════════════════════════════════════


async def edit(client, **body):
    return await client.post("/api/v1/shopping-lists/items/edit", json=body)


async def move(client, **body):
    return await client.post("/api/v1/shopping-lists/items/move", json=body)


@pytest.mark.asyncio
async def test_edit_plan_item_broadcasts(client, seed, listener):
    added = await add(client, planId=PLAN_ID, ingredientName="Lait", category="Produits laitiers")
    item_id = added.json()["items"][0]["id"]
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await edit(client, planId=PLAN_ID, itemId=item_id, name="  Lait d'avoine ")

    assert r.status_code == 200
    item = r.json()["item"]
    assert item["id"] == item_id
    assert item["ingredientName"] == "Lait d'avoine"
    assert item["category"] == "Produits laitiers"
    assert r.json()["userName"] == "Chef"

    (event,) = received(channel)
    assert event["type"] == "item_edited"
    assert event["item"] == item
    assert event["userId"] == "u-owner"


@pytest.mark.asyncio
async def test_edit_standalone_item(client, seed, login, db_session):
    added = await add(client, listId=LIST_ID, ingredientName="Pain")
    item_id = added.json()["items"][0]["id"]
    login(CONTRIBUTOR)

    r = await edit(client, listId=LIST_ID, itemId=item_id, name="Baguette")

    assert r.status_code == 200
    assert r.json()["userName"] == "Sacha"
    rows = await db_session.execute(
        select(StandaloneShoppingItem.name).where(StandaloneShoppingItem.id == item_id)
    )
    assert rows.scalar_one() == "Baguette"


@pytest.mark.asyncio
async def test_edit_item_of_another_list_not_found(client, seed, listener):
    added = await add(client, listId=LIST_ID, ingredientName="Pain")
    item_id = added.json()["items"][0]["id"]
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await edit(client, planId=PLAN_ID, itemId=item_id, name="Baguette")

    assert r.status_code == 404
    assert received(channel) == []


@pytest.mark.asyncio
async def test_edit_blank_name_rejected(client, seed):
    added = await add(client, listId=LIST_ID, ingredientName="Pain")
    item_id = added.json()["items"][0]["id"]

    r = await edit(client, listId=LIST_ID, itemId=item_id, name="   ")

    assert r.status_code == 400


@pytest.mark.asyncio
async def test_edit_as_viewer_forbidden(client, seed, login):
    added = await add(client, listId=LIST_ID, ingredientName="Pain")
    item_id = added.json()["items"][0]["id"]
    login(VIEWER)

    r = await edit(client, listId=LIST_ID, itemId=item_id, name="Baguette")

    assert r.status_code == 403


@pytest.mark.asyncio
async def test_move_plan_item_broadcasts(client, seed, listener, db_session):
    await client.post("/api/v1/shopping-lists/items/toggle", json={
        "planId": PLAN_ID, "ingredientName": "Oignons",
        "category": "Épicerie", "isChecked": True,
    })
    channel = listener(KIND_PLAN, PLAN_ID)

    r = await move(
        client, planId=PLAN_ID, ingredientName="Oignons",
        fromCategory="Épicerie", toCategory="Fruits & Légumes",
    )

    assert r.status_code == 200
    item = r.json()["item"]
    assert item["category"] == "Fruits & Légumes"
    assert item["isChecked"] is False
    assert item["isManuallyAdded"] is False

    (event,) = received(channel)
    assert event["type"] == "item_moved"
    assert event["fromCategory"] == "Épicerie"
    assert event["toCategory"] == "Fruits & Légumes"
    assert event["item"] == item
    assert event["userName"] == "Chef"

    rows = await db_session.execute(
        select(ShoppingListItem.category).where(
            ShoppingListItem.weekly_meal_plan_id == PLAN_ID,
            ShoppingListItem.ingredient_name == "Oignons",
        )
    )
    assert rows.scalars().all() == ["Fruits & Légumes"]


@pytest.mark.asyncio
async def test_move_onto_existing_item_merges(client, seed, db_session):
    added = await add(client, planId=PLAN_ID, ingredientName="Ail", category="Fruits & Légumes")
    existing_id = added.json()["items"][0]["id"]
    await client.post("/api/v1/shopping-lists/items/toggle", json={
        "planId": PLAN_ID, "ingredientName": "Ail",
        "category": "Épicerie", "isChecked": False,
    })

    r = await move(
        client, planId=PLAN_ID, ingredientName="Ail",
        fromCategory="Épicerie", toCategory="Fruits & Légumes",
    )

    assert r.status_code == 200
    assert r.json()["item"]["id"] == existing_id
    rows = await db_session.execute(
        select(ShoppingListItem.id).where(ShoppingListItem.ingredient_name == "Ail")
    )
    assert rows.scalars().all() == [existing_id]


@pytest.mark.asyncio
async def test_move_as_viewer_forbidden(client, seed, login):
    login(VIEWER)
    r = await move(
        client, planId=PLAN_ID, ingredientName="Ail",
        fromCategory="Épicerie", toCategory="Fruits & Légumes",
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_move_needs_a_plan(client, seed):
    r = await move(
        client, listId=LIST_ID, ingredientName="Ail",
        fromCategory="Épicerie", toCategory="Fruits & Légumes",
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_move_in_unknown_plan(client, seed):
    r = await move(
        client, planId=999, ingredientName="Ail",
        fromCategory="Épicerie", toCategory="Fruits & Légumes",
    )
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Clear checked + reset
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_clear_checked_removes_only_checked(client, seed, listener, db_session):
    db_session.add_all([
        StandaloneShoppingItem(shopping_list_id=LIST_ID, name="Riz", category="Épicerie", is_checked=True),
        StandaloneShoppingItem(shopping_list_id=LIST_ID, name="Sucre", category="Épicerie", is_checked=True),
        StandaloneShoppingItem(shopping_list_id=LIST_ID, name="Thé", category="Boissons"),
    ])
    await db_session.commit()
    channel = listener(KIND_LIST, LIST_ID)

    r = await client.post(
        "/api/v1/shopping-lists/items/clear-checked", json={"listId": LIST_ID}
    )

    assert r.status_code == 200
    assert r.json()["deletedCount"] == 2
    (event,) = received(channel)
    assert event["type"] == "checked_items_cleared"
    assert event["deletedCount"] == 2

    rows = await db_session.execute(
        select(StandaloneShoppingItem.name).where(
            StandaloneShoppingItem.shopping_list_id == LIST_ID
        )
    )
    assert rows.scalars().all() == ["Thé"]


@pytest.mark.asyncio
async def test_reset_standalone_list(client, seed, listener):
    await add(client, listId=LIST_ID, ingredientNames=["Lait", "Pain", "Riz"])
    channel = listener(KIND_LIST, LIST_ID)

    r = await client.post(f"/api/v1/shopping-lists/{LIST_ID}/reset")

    assert r.status_code == 200
    assert r.json()["deletedCount"] == 3
    (event,) = received(channel)
    assert event["type"] == "list_reset"
    assert event["userName"] == "Chef"


@pytest.mark.asyncio
async def test_reset_plan_linked_list_rejected(client, seed, listener):
    channel = listener(KIND_LIST, LINKED_LIST_ID)

    r = await client.post(f"/api/v1/shopping-lists/{LINKED_LIST_ID}/reset")

    assert r.status_code == 400
    assert received(channel) == []


@pytest.mark.asyncio
async def test_reset_as_viewer_forbidden(client, seed, login):
    login(VIEWER)
    r = await client.post(f"/api/v1/shopping-lists/{LIST_ID}/reset")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_reset_unknown_list(client, seed):
    r = await client.post("/api/v1/shopping-lists/999/reset")
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Live stream
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_stream_requires_auth(client, seed, login):
    login(None)
    r = await client.get(f"/api/v1/shopping-lists/{PLAN_ID}/stream")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_stream_hidden_from_stranger(client, seed, login):
    login(STRANGER)
    r = await client.get(f"/api/v1/shopping-lists/{PLAN_ID}/stream")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_stream_unknown_list(client, seed):
    r = await client.get("/api/v1/shopping-lists/999/stream?type=list")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_stream_rejects_unknown_type(client, seed):
    r = await client.get(f"/api/v1/shopping-lists/{PLAN_ID}/stream?type=recipe")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_two_watchers_see_removal(app, client, seed, session_factory):
    """Two open streams on plan 42; one collaborator removes "Lait"."""
    await add(client, planId=PLAN_ID, ingredientName="Lait", category="Produits laitiers")

    async def load_snapshot():
        async with session_factory() as session:
            return await ShoppingListService(session).snapshot(KIND_PLAN, PLAN_ID)

    broadcaster = app.state.broadcasters.for_kind(KIND_PLAN)
    first = live_event_stream(PLAN_ID, broadcaster, load_snapshot)
    second = live_event_stream(PLAN_ID, broadcaster, load_snapshot)
    for stream in (first, second):
        assert decode(await anext(stream))["type"] == "connected"
        initial = decode(await anext(stream))
        assert [i["ingredientName"] for i in initial["items"]] == ["Lait"]
    assert broadcaster.registry.count_subscribers(PLAN_ID) == 2

    r = await client.post("/api/v1/shopping-lists/items/remove", json={
        "planId": PLAN_ID, "ingredientName": "Lait", "category": "Produits laitiers",
    })
    assert r.status_code == 200

    for stream in (first, second):
        event = decode(await anext(stream))
        assert event["type"] == "item_removed"
        assert event["ingredientName"] == "Lait"
        assert event["category"] == "Produits laitiers"
        assert event["userName"] == "Chef"

    await first.aclose()
    await second.aclose()
    assert PLAN_ID not in broadcaster.registry


# ═══════════════════════════════════════════════════════════
# Plans and standalone lists are separate channels
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_standalone_list_event_never_reaches_plan_with_same_id(
    client, seed, listener, login, db_session
):
    """Plan 42 belongs to OWNER; standalone list 42 to STRANGER."""
    db_session.add(ShoppingList(id=PLAN_ID, name="Perso", user_id=STRANGER.user_id))
    await db_session.commit()
    plan_channel = listener(KIND_PLAN, PLAN_ID)
    list_channel = listener(KIND_LIST, PLAN_ID)

    login(STRANGER)
    r = await add(client, listId=PLAN_ID, ingredientName="Secret")

    assert r.status_code == 200
    assert received(plan_channel) == []
    (event,) = received(list_channel)
    assert event["ingredientName"] == "Secret"


@pytest.mark.asyncio
async def test_plan_event_never_reaches_standalone_list_with_same_id(
    client, seed, listener
):
    channel = listener(KIND_LIST, PLAN_ID)

    r = await add(client, planId=PLAN_ID, ingredientName="Lait")

    assert r.status_code == 200
    assert received(channel) == []


@pytest.mark.asyncio
async def test_stream_subscribes_on_its_own_kind(app, seed):
    async def load_snapshot():
        return []

    broadcasters = app.state.broadcasters
    stream = live_event_stream(LIST_ID, broadcasters.for_kind(KIND_LIST), load_snapshot)
    await anext(stream)

    assert broadcasters.registry(KIND_LIST).count_subscribers(LIST_ID) == 1
    assert LIST_ID not in broadcasters.registry(KIND_PLAN)
    await stream.aclose()
