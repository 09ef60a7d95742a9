from __future__ import annotations

from .routes_commands import router as commands_router
from .routes_connection import router as connection_router
from .routes_erp import router as erp_router
from .routes_health import router as health_router
from .routes_quickcommands import router as quickcommands_router
from .routes_settings import router as settings_router

__all__ = [
    "health_router",
    "commands_router",
    "settings_router",
    "connection_router",
    "erp_router",
    "quickcommands_router",
]
