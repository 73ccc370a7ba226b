"""Per-visitor view throttling.

The throttle map is ``{str(recipe_id): last_counted_ms}``. It lives in a
cookie signed with the app's JWT secret, so a client cannot forge or
reset its own history without dropping the cookie altogether.
"""

import time
from typing import Optional

import jwt

from yumiso.config import settings

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def should_count_view(
    views_data: dict[str, int],
    recipe_id: int,
    now: Optional[int] = None,
    throttle_minutes: int = settings.view_throttle_minutes,
) -> bool:
    """True unless this recipe was counted less than throttle_minutes ago."""
    last_view = views_data.get(str(recipe_id))
    if not last_view:
        return True
    now = now_ms() if now is None else now
    return now - last_view >= throttle_minutes * MINUTE_MS


def update_views_data(
    views_data: dict[str, int],
    recipe_id: int,
    now: Optional[int] = None,
    retention_hours: int = settings.view_retention_hours,
) -> dict[str, int]:
    """Return a new map with recipe_id stamped now and stale entries pruned."""
    now = now_ms() if now is None else now
    cutoff = now - retention_hours * HOUR_MS
    cleaned = {key: ts for key, ts in views_data.items() if ts >= cutoff}
    cleaned[str(recipe_id)] = now
    return cleaned


# ─── Cookie codec ────────────────────────────────────────

def encode_views_cookie(views_data: dict[str, int]) -> str:
    return jwt.encode(
        {"views": views_data}, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def decode_views_cookie(value: Optional[str]) -> dict[str, int]:
    """Decode the throttle cookie. Missing, forged or malformed → empty map."""
    if not value:
        return {}
    try:
        payload = jwt.decode(
            value, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.InvalidTokenError:
        return {}

    views = payload.get("views")
    if not isinstance(views, dict):
        return {}
    return {
        str(key): int(ts)
        for key, ts in views.items()
        if isinstance(ts, (int, float)) and not isinstance(ts, bool)
    }
