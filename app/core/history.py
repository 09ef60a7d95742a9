"""Command history storage."""

from __future__ import annotations

import json
from typing import Any

import aiosqlite

from .db import open_db
from .logger import get_logger

__all__ = [
    "COMMAND_STATUSES",
    "TERMINAL_STATUSES",
    "InvalidTransition",
    "create_command",
    "complete_command",
    "get_command",
    "list_commands",
]

COMMAND_STATUSES = ("pending", "success", "error")
TERMINAL_STATUSES = ("success", "error")

logger = get_logger("history")


class InvalidTransition(Exception):
    """Raised when a record is not pending or the target status is not terminal."""


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    item = dict(row)
    raw = item.get("metadata")
    if raw:
        try:
            item["metadata"] = json.loads(raw)
        except ValueError:
            pass
    return {
        "id": item["id"],
        "userId": item["user_id"],
        "command": item["command"],
        "response": item.get("response"),
        "status": item["status"],
        "metadata": item.get("metadata"),
        "timestamp": item.get("timestamp"),
    }


async def get_command(command_id: int) -> dict[str, Any] | None:
    async with open_db() as db:
        async with db.execute("SELECT * FROM command_history WHERE id = ?", (command_id,)) as cur:
            row = await cur.fetchone()
    return _row_to_dict(row) if row else None


async def create_command(
    user_id: int,
    command: str,
    *,
    status: str = "pending",
    response: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Append a history record and return it."""
    if status not in COMMAND_STATUSES:
        raise ValueError(f"unknown status {status!r}")
    data = json.dumps(metadata, ensure_ascii=False) if metadata is not None else None
    async with open_db() as db:
        cursor = await db.execute(
            "INSERT INTO command_history(user_id, command, response, status, metadata) VALUES (?, ?, ?, ?, ?)",
            (user_id, command, response, status, data),
        )
        await db.commit()
        rowid = cursor.lastrowid
        async with db.execute("SELECT * FROM command_history WHERE id = ?", (rowid,)) as cur:
            row = await cur.fetchone()
    if row is None:
        raise LookupError(f"command {rowid} was not stored")
    logger.info("Command recorded", extra={"fields": {"id": rowid, "user_id": user_id, "status": status}})
    return _row_to_dict(row)


async def complete_command(
    command_id: int,
    *,
    status: str,
    response: str | None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Move a pending record to its terminal status.

    Returns ``None`` when the record does not exist. A record leaves
    ``pending`` exactly once; later attempts raise :class:`InvalidTransition`.
    """
    if status not in TERMINAL_STATUSES:
        raise InvalidTransition(f"status {status!r} is not terminal")
    current = await get_command(command_id)
    if current is None:
        return None
    if current["status"] != "pending":
        raise InvalidTransition(f"command {command_id} is already {current['status']}")
    data = json.dumps(metadata, ensure_ascii=False) if metadata is not None else None
    async with open_db() as db:
        await db.execute(
            "UPDATE command_history SET status = ?, response = ?, metadata = COALESCE(?, metadata) "
            "WHERE id = ? AND status = 'pending'",
            (status, response, data, command_id),
        )
        await db.commit()
    logger.info("Command completed", extra={"fields": {"id": command_id, "status": status}})
    return await get_command(command_id)


async def list_commands(user_id: int, limit: int | None = None) -> list[dict[str, Any]]:
    """Return the user's records, newest first."""
    query = "SELECT * FROM command_history WHERE user_id = ? ORDER BY id DESC"
    params: list[Any] = [user_id]
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    async with open_db() as db:
        async with db.execute(query, params) as cur:
            rows = await cur.fetchall()
    return [_row_to_dict(row) for row in rows]
