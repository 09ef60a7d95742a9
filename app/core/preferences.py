"""Per-user voice assistant settings."""

from __future__ import annotations

from typing import Any

import aiosqlite

from .config import Settings
from .db import open_db

_COLUMNS = {
    "wakeWord": "wake_word",
    "sensitivity": "sensitivity",
    "voiceResponse": "voice_response",
    "continuousListening": "continuous_listening",
    "voiceLanguage": "voice_language",
}
_BOOL_COLUMNS = {"voice_response", "continuous_listening"}


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "wakeWord": row["wake_word"],
        "sensitivity": row["sensitivity"],
        "voiceResponse": bool(row["voice_response"]),
        "continuousListening": bool(row["continuous_listening"]),
        "voiceLanguage": row["voice_language"],
    }


def defaults() -> dict[str, Any]:
    settings = Settings()
    return {
        "wakeWord": settings.default_wake_word,
        "sensitivity": settings.default_sensitivity,
        "voiceResponse": settings.default_voice_response,
        "continuousListening": settings.default_continuous_listening,
        "voiceLanguage": settings.default_voice_language,
    }


async def _fetch(db: aiosqlite.Connection, user_id: int) -> dict[str, Any] | None:
    async with db.execute("SELECT * FROM voice_settings WHERE user_id = ?", (user_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_dict(row) if row else None


async def get_voice_settings(user_id: int, *, create: bool = True) -> dict[str, Any] | None:
    """Return the user's settings, creating them from defaults on first read."""
    async with open_db() as db:
        current = await _fetch(db, user_id)
    if current is not None or not create:
        return current
    return await upsert_voice_settings(user_id, {})


async def upsert_voice_settings(user_id: int, values: dict[str, Any]) -> dict[str, Any]:
    provided = {k: v for k, v in values.items() if k in _COLUMNS and v is not None}
    async with open_db() as db:
        existing = await _fetch(db, user_id)
        base = {k: existing[k] for k in _COLUMNS} if existing is not None else defaults()
        merged = {**base, **provided}
        await db.execute(
            "INSERT INTO voice_settings(user_id, wake_word, sensitivity, voice_response, continuous_listening, voice_language) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET wake_word = excluded.wake_word, sensitivity = excluded.sensitivity, "
            "voice_response = excluded.voice_response, continuous_listening = excluded.continuous_listening, "
            "voice_language = excluded.voice_language",
            (
                user_id,
                merged["wakeWord"],
                int(merged["sensitivity"]),
                int(bool(merged["voiceResponse"])),
                int(bool(merged["continuousListening"])),
                merged["voiceLanguage"],
            ),
        )
        await db.commit()
        saved = await _fetch(db, user_id)
    assert saved is not None
    return saved


async def update_voice_settings(user_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
    """Apply a partial update; ``None`` when the user has no settings yet."""
    updates = {_COLUMNS[k]: v for k, v in values.items() if k in _COLUMNS and v is not None}
    async with open_db() as db:
        if await _fetch(db, user_id) is None:
            return None
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            params = [int(bool(v)) if column in _BOOL_COLUMNS else v for column, v in updates.items()]
            await db.execute(
                f"UPDATE voice_settings SET {assignments} WHERE user_id = ?",
                [*params, user_id],
            )
            await db.commit()
        return await _fetch(db, user_id)
