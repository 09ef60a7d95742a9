from __future__ import annotations

from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter

from app.core.db import ping_db

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def get_health() -> dict[str, object]:
    """Report process and database health."""
    try:
        pkg_version = version("erpvoice")
    except PackageNotFoundError:  # pragma: no cover - depends on installation
        pkg_version = "unknown"

    db_ok = await ping_db()
    return {
        "status": "ok" if db_ok else "error",
        "version": pkg_version,
        "time": datetime.now(timezone.utc).isoformat(),
        "db_ok": db_ok,
    }
