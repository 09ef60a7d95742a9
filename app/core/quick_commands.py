from __future__ import annotations

from typing import Any

import aiosqlite

from .db import open_db

_COLUMNS = {"commandText": "command_text", "icon": "icon", "sortOrder": "sort_order"}


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "commandText": row["command_text"],
        "icon": row["icon"],
        "sortOrder": row["sort_order"],
    }


async def _get(db: aiosqlite.Connection, command_id: int) -> dict[str, Any] | None:
    async with db.execute("SELECT * FROM quick_commands WHERE id = ?", (command_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_dict(row) if row else None


async def list_quick_commands(user_id: int) -> list[dict[str, Any]]:
    async with open_db() as db:
        async with db.execute(
            "SELECT * FROM quick_commands WHERE user_id = ? ORDER BY sort_order, id",
            (user_id,),
        ) as cur:
            rows = await cur.fetchall()
    return [_row_to_dict(row) for row in rows]


async def create_quick_command(user_id: int, command_text: str, *, icon: str = "command", sort_order: int = 0) -> dict[str, Any]:
    async with open_db() as db:
        cursor = await db.execute(
            "INSERT INTO quick_commands(user_id, command_text, icon, sort_order) VALUES (?, ?, ?, ?)",
            (user_id, command_text, icon, sort_order),
        )
        await db.commit()
        created = await _get(db, int(cursor.lastrowid))
    assert created is not None
    return created


async def update_quick_command(command_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
    updates = {_COLUMNS[k]: v for k, v in values.items() if k in _COLUMNS and v is not None}
    async with open_db() as db:
        if await _get(db, command_id) is None:
            return None
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            await db.execute(
                f"UPDATE quick_commands SET {assignments} WHERE id = ?",
                [*updates.values(), command_id],
            )
            await db.commit()
        return await _get(db, command_id)


async def delete_quick_command(command_id: int) -> bool:
    async with open_db() as db:
        cursor = await db.execute("DELETE FROM quick_commands WHERE id = ?", (command_id,))
        await db.commit()
        return cursor.rowcount > 0
