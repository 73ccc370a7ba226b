"""Yumiso CLI — operate the view buffer and watch live shopping lists.

Usage:
    yumiso flush-views                  # Trigger the cron flush (uses YUMISO_CRON_SECRET)
    yumiso view-stats                   # Buffered + persisted view counts
    yumiso most-viewed --limit 5        # Top recipes by persisted views
    yumiso watch 42                     # Print live events of meal plan 42's list
    yumiso watch 7 --type list          # ... or of standalone list 7
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("YUMISO_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None, timeout: Optional[float] = 30.0) -> httpx.AsyncClient:
    """Async HTTP client pointed at the Yumiso backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=timeout, headers=headers)


def _token() -> str:
    token = os.environ.get("YUMISO_TOKEN")
    if not token:
        click.secho("Error: set YUMISO_TOKEN to a session token", fg="red", err=True)
        sys.exit(1)
    return token


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _fail(resp: httpx.Response) -> None:
    click.secho(f"Error {resp.status_code}: {resp.text}", fg="red", err=True)
    sys.exit(1)


EVENT_COLORS = {
    "connected": "cyan",
    "initial": "cyan",
    "item_added": "green",
    "item_removed": "red",
    "ingredient_toggled": "yellow",
    "item_edited": "blue",
    "item_moved": "blue",
    "checked_items_cleared": "magenta",
    "list_reset": "magenta",
}


def describe_event(event: dict) -> str:
    """One human-readable line per live event."""
    kind = event.get("type", "?")
    who = event.get("userName")
    if kind == "connected":
        text = f"connected to list {event.get('planId')}"
    elif kind == "initial":
        text = f"{len(event.get('items', []))} item(s) on the list"
    elif kind in ("item_added", "item_removed"):
        text = f"{kind.replace('_', ' ')}: {event.get('ingredientName')} ({event.get('category')})"
    elif kind == "ingredient_toggled":
        item = event.get("item") or {}
        mark = "x" if item.get("isChecked") else " "
        text = f"[{mark}] {item.get('ingredientName')}"
    elif kind == "item_edited":
        item = event.get("item") or {}
        text = f"item renamed: {item.get('ingredientName')}"
    elif kind == "item_moved":
        item = event.get("item") or {}
        text = (
            f"item moved: {item.get('ingredientName')} "
            f"({event.get('fromCategory')} → {event.get('toCategory')})"
        )
    elif kind == "checked_items_cleared":
        text = f"{event.get('deletedCount', 0)} checked item(s) cleared"
    else:
        text = kind.replace("_", " ")
    return f"{text} — {who}" if who else text


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="yumiso")
def main():
    """Yumiso — live shopping lists and recipe view counting."""


@main.command("flush-views")
def flush_views():
    """Flush buffered recipe views to the database now."""
    asyncio.run(_flush_views_impl())


async def _flush_views_impl():
    secret = os.environ.get("YUMISO_CRON_SECRET")
    async with _client(secret) as c:
        r = await c.get("/api/v1/cron/flush-views")
        if r.status_code != 200:
            _fail(r)
        data = r.json()
    click.secho(
        f"Flushed {data['totalViews']} view(s) for {data['flushed']} recipe(s)",
        fg="green",
    )
    before = data["before"]
    click.echo(f"  Buffer before: {before['totalViews']} view(s) / {before['recipes']} recipe(s)")
    dropped = before["totalViews"] - data["totalViews"]
    if dropped > 0:
        click.secho(f"  Dropped: {dropped} view(s) of missing recipes or failed writes", fg="yellow")


@main.command("view-stats")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def view_stats(as_json: bool):
    """Show persisted view totals and what is still buffered."""
    asyncio.run(_view_stats_impl(as_json))


async def _view_stats_impl(as_json: bool):
    async with _client(_token()) as c:
        r = await c.get("/api/v1/recipes/views/stats")
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    if as_json:
        click.echo(_pretty_json(data))
        return
    click.secho("--- Recipe views ---", bold=True)
    click.echo(f"  Persisted:    {data['totalViews']}")
    click.echo(f"  Recipes seen: {data['recipesWithViews']}")
    click.echo(
        f"  Buffered:     {data['buffer']['totalViews']} "
        f"({data['buffer']['recipes']} recipe(s))"
    )


@main.command("most-viewed")
@click.option("--limit", "-n", default=10, show_default=True, help="How many recipes")
def most_viewed(limit: int):
    """List the most viewed recipes."""
    asyncio.run(_most_viewed_impl(limit))


async def _most_viewed_impl(limit: int):
    async with _client() as c:
        r = await c.get("/api/v1/recipes/most-viewed", params={"limit": limit})
        if r.status_code != 200:
            _fail(r)
        recipes = r.json()

    if not recipes:
        click.echo("No recipes yet.")
        return
    for rank, recipe in enumerate(recipes, start=1):
        click.echo(f"{rank:>3}. {recipe['name'][:50]:<50} {recipe['views_count']:>8}")


@main.command()
@click.argument("list_id", type=int)
@click.option(
    "--type", "list_type",
    type=click.Choice(["plan", "list"]), default="plan", show_default=True,
    help="Meal plan list or standalone list",
)
def watch(list_id: int, list_type: str):
    """Print the live events of a shopping list until interrupted."""
    try:
        asyncio.run(_watch_impl(list_id, list_type))
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl(list_id: int, list_type: str):
    async with _client(_token(), timeout=None) as c:
        async with c.stream(
            "GET",
            f"/api/v1/shopping-lists/{list_id}/stream",
            params={"type": list_type},
        ) as r:
            if r.status_code != 200:
                await r.aread()
                _fail(r)
            async for line in r.aiter_lines():
                if not line.startswith("data: "):
                    continue  # heartbeat or frame separator
                event = json.loads(line[len("data: "):])
                color = EVENT_COLORS.get(event.get("type"), "white")
                click.secho(describe_event(event), fg=color)
