"""ERPNext connection credentials, one per user."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import aiosqlite

from .db import open_db


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "url": row["url"],
        "apiKey": row["api_key"],
        "apiSecret": row["api_secret"],
        "isActive": bool(row["is_active"]),
        "lastConnected": row["last_connected"],
    }


def public_view(connection: dict[str, Any]) -> dict[str, Any]:
    """Connection without its API secret."""
    return {k: v for k, v in connection.items() if k != "apiSecret"}


async def get_connection(user_id: int) -> dict[str, Any] | None:
    async with open_db() as db:
        async with db.execute("SELECT * FROM erp_connections WHERE user_id = ?", (user_id,)) as cur:
            row = await cur.fetchone()
    return _row_to_dict(row) if row else None


async def save_connection(
    user_id: int,
    *,
    url: str,
    api_key: str,
    api_secret: str,
    is_active: bool = True,
) -> dict[str, Any]:
    """Create or replace the user's connection."""
    async with open_db() as db:
        await db.execute(
            "INSERT INTO erp_connections(user_id, url, api_key, api_secret, is_active) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET url = excluded.url, api_key = excluded.api_key, "
            "api_secret = excluded.api_secret, is_active = excluded.is_active",
            (user_id, url.rstrip("/"), api_key, api_secret, int(is_active)),
        )
        await db.commit()
    saved = await get_connection(user_id)
    assert saved is not None
    return saved


async def touch_connection(user_id: int) -> None:
    """Stamp ``last_connected`` after a successful upstream call."""
    now = datetime.now(timezone.utc).isoformat()
    async with open_db() as db:
        await db.execute("UPDATE erp_connections SET last_connected = ? WHERE user_id = ?", (now, user_id))
        await db.commit()
