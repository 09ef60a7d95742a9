from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.core import errors
from app.core.connections import get_connection, touch_connection
from app.core.erpnext import ErpNextClient, ErpNextError
from app.core.logger import get_logger

router = APIRouter(prefix="/api/erp", tags=["erp"])
logger = get_logger("erp")


class ErpQueryPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    connection_id: int | None = Field(default=None, alias="connectionId")
    method: Literal["get_list", "get_doc"] = "get_list"
    doctype: str = Field(min_length=1)
    name: str | None = None
    filters: list[list[Any]] | None = None
    fields: list[str] | None = None
    order_by: str | None = Field(default=None, alias="orderBy")
    limit: int | None = Field(default=None, ge=1, le=1000)


class ErpCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    connection_id: int | None = Field(default=None, alias="connectionId")
    doctype: str = Field(min_length=1)
    doc: dict[str, Any]


def _client_factory(connection: dict[str, Any]) -> ErpNextClient:
    return ErpNextClient(connection["url"], connection["apiKey"], connection["apiSecret"])


async def _active_connection(user_id: int) -> dict[str, Any]:
    connection = await get_connection(user_id)
    if connection is None:
        raise errors.http_error(404, errors.NOT_FOUND, "ERP connection not found")
    if not connection["isActive"]:
        raise errors.http_error(400, errors.CONNECTION_INACTIVE, "ERP connection is inactive")
    return connection


def _upstream_failure(exc: ErpNextError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": "ERPNext API error",
            "error": exc.details if exc.details is not None else str(exc),
            "code": errors.UPSTREAM_FAILURE,
        },
    )


@router.post("/query")
async def erp_query(payload: ErpQueryPayload) -> Any:
    connection = await _active_connection(payload.user_id)
    if payload.method == "get_doc" and not payload.name:
        raise errors.http_error(400, errors.INVALID_PAYLOAD, "Doctype and name are required for get_doc")
    try:
        async with _client_factory(connection) as client:
            if payload.method == "get_doc":
                rows = [await client.get_doc(payload.doctype, payload.name or "")]
            else:
                rows = await client.get_list(
                    payload.doctype,
                    filters=payload.filters,
                    fields=payload.fields,
                    order_by=payload.order_by,
                    limit=payload.limit,
                )
    except ErpNextError as exc:
        return _upstream_failure(exc)
    await touch_connection(payload.user_id)
    logger.info(
        "ERP query",
        extra={"fields": {"doctype": payload.doctype, "method": payload.method, "rows": len(rows)}},
    )
    return {"success": True, "data": rows}


@router.post("/create")
async def erp_create(payload: ErpCreatePayload) -> Any:
    connection = await _active_connection(payload.user_id)
    try:
        async with _client_factory(connection) as client:
            doc = await client.insert(payload.doctype, payload.doc)
    except ErpNextError as exc:
        return _upstream_failure(exc)
    await touch_connection(payload.user_id)
    return {"success": True, "message": f"{payload.doctype} created successfully", "doc": doc}
