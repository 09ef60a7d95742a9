from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.core import errors
from app.core.connections import get_connection, public_view, save_connection
from app.core.erpnext import ErpNextClient, ErpNextError
from app.core.logger import get_logger

router = APIRouter(prefix="/api/connection", tags=["connection"])
logger = get_logger("erp")


class ConnectionTestPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    api_key: str = Field(alias="apiKey", min_length=1)
    api_secret: str = Field(alias="apiSecret", min_length=1)


class ConnectionPayload(ConnectionTestPayload):
    user_id: int = Field(alias="userId")
    is_active: bool = Field(default=True, alias="isActive")


def _client_factory(url: str, api_key: str, api_secret: str) -> ErpNextClient:
    return ErpNextClient(url, api_key, api_secret)


@router.post("/test")
async def test_connection(payload: ConnectionTestPayload) -> Any:
    try:
        async with _client_factory(payload.url, payload.api_key, payload.api_secret) as client:
            user = await client.get_logged_user()
    except ErpNextError as exc:
        logger.info("Connection test failed", extra={"fields": {"url": payload.url, "status": exc.status_code}})
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Failed to connect to ERPNext API", "error": exc.details or str(exc)},
        )
    logger.info("Connection test succeeded", extra={"fields": {"url": payload.url, "user": user}})
    return {"success": True, "user": user}


@router.get("/{user_id}")
async def read_connection(user_id: int) -> dict[str, Any]:
    connection = await get_connection(user_id)
    if connection is None:
        raise errors.http_error(404, errors.NOT_FOUND, "Connection not found")
    return public_view(connection)


@router.post("")
async def write_connection(payload: ConnectionPayload) -> JSONResponse:
    existed = await get_connection(payload.user_id) is not None
    saved = await save_connection(
        payload.user_id,
        url=payload.url,
        api_key=payload.api_key,
        api_secret=payload.api_secret,
        is_active=payload.is_active,
    )
    return JSONResponse(status_code=200 if existed else 201, content=public_view(saved))
