from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import (
    commands_router,
    connection_router,
    erp_router,
    health_router,
    quickcommands_router,
    settings_router,
)
from app.core.config import Settings
from app.core.db import init_db
from app.core.logger import get_logger, new_trace_id, set_trace_id

config = Settings()
logger = get_logger("server")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    await init_db()
    logger.info("Server started", extra={"fields": {"host": config.host, "port": config.port}})
    yield
    logger.info("Server stopped")


app = FastAPI(title="ERP voice proxy", lifespan=_lifespan)


@app.middleware("http")
async def _trace_middleware(request, call_next):
    tid = request.headers.get("X-Trace-Id") or new_trace_id()
    set_trace_id(tid)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = tid
    return response


# Credentials are only allowed with an explicit origin list
_allow_credentials = config.cors_origins != ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(commands_router)
app.include_router(settings_router)
app.include_router(connection_router)
app.include_router(erp_router)
app.include_router(quickcommands_router)
