from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import sqlite3

import aiosqlite

from app.core.config import Settings

_SCHEMA = """
CREATE TABLE IF NOT EXISTS command_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    command TEXT NOT NULL,
    response TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    metadata TEXT,
    timestamp TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_command_history_user ON command_history(user_id, id DESC);

CREATE TABLE IF NOT EXISTS voice_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE,
    wake_word TEXT NOT NULL,
    sensitivity INTEGER NOT NULL,
    voice_response INTEGER NOT NULL,
    continuous_listening INTEGER NOT NULL,
    voice_language TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS erp_connections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE,
    url TEXT NOT NULL,
    api_key TEXT NOT NULL,
    api_secret TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    last_connected TEXT
);

CREATE TABLE IF NOT EXISTS quick_commands (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    command_text TEXT NOT NULL,
    icon TEXT NOT NULL DEFAULT 'command',
    sort_order INTEGER NOT NULL DEFAULT 0
);
"""

_SEED_ICONS = ("inventory", "receipt", "shopping_cart", "contacts")


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass


@asynccontextmanager
async def open_db() -> AsyncIterator[aiosqlite.Connection]:
    """Open the configured SQLite database with WAL enabled."""
    settings = Settings()
    db_path = Path(settings.db_path)
    _ensure_parent(db_path)
    db = await aiosqlite.connect(db_path, detect_types=sqlite3.PARSE_DECLTYPES)
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys = ON")
    await db.executescript(_SCHEMA)
    db.row_factory = aiosqlite.Row
    try:
        yield db
    finally:
        await db.close()


async def init_db() -> None:
    """Create the schema and seed the default user's quick commands."""
    settings = Settings()
    async with open_db() as db:
        async with db.execute(
            "SELECT COUNT(*) AS c FROM quick_commands WHERE user_id = ?",
            (settings.default_user_id,),
        ) as cur:
            row = await cur.fetchone()
        if row is not None and int(row["c"]) == 0:
            for order, text in enumerate(settings.seed_quick_commands, start=1):
                icon = _SEED_ICONS[(order - 1) % len(_SEED_ICONS)]
                await db.execute(
                    "INSERT INTO quick_commands(user_id, command_text, icon, sort_order) VALUES (?, ?, ?, ?)",
                    (settings.default_user_id, text, icon, order),
                )
        await db.commit()


async def ping_db() -> bool:
    """Check that the database answers."""
    try:
        async with open_db() as db:
            await db.execute("SELECT 1")
        return True
    except (OSError, sqlite3.Error):
        return False
