from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from app.core import errors
from app.core.history import InvalidTransition, complete_command, create_command, list_commands

router = APIRouter(prefix="/api/commands", tags=["commands"])


class CommandCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    command: str = Field(min_length=1)
    status: Literal["pending", "success", "error"] = "pending"
    response: str | None = None
    metadata: dict[str, Any] | None = None


class CommandCompletePayload(BaseModel):
    status: Literal["success", "error"]
    response: str | None = None
    metadata: dict[str, Any] | None = None


@router.get("/{user_id}")
async def get_history(user_id: int, limit: int | None = Query(default=None, ge=1, le=500)) -> list[dict[str, Any]]:
    return await list_commands(user_id, limit)


@router.post("", status_code=201)
async def record_command(payload: CommandCreatePayload) -> dict[str, Any]:
    return await create_command(
        payload.user_id,
        payload.command,
        status=payload.status,
        response=payload.response,
        metadata=payload.metadata,
    )


@router.patch("/{command_id}")
async def finish_command(command_id: int, payload: CommandCompletePayload) -> dict[str, Any]:
    try:
        record = await complete_command(
            command_id,
            status=payload.status,
            response=payload.response,
            metadata=payload.metadata,
        )
    except InvalidTransition as exc:
        raise errors.http_error(409, errors.INVALID_TRANSITION, str(exc)) from exc
    if record is None:
        raise errors.http_error(404, errors.NOT_FOUND, "Command not found")
    return record
