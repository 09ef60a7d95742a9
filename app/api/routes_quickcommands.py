from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field

from app.core import errors
from app.core.quick_commands import (
    create_quick_command,
    delete_quick_command,
    list_quick_commands,
    update_quick_command,
)

router = APIRouter(prefix="/api/quickcommands", tags=["quickcommands"])


class QuickCommandPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    command_text: str = Field(alias="commandText", min_length=1)
    icon: str = "command"
    sort_order: int = Field(default=0, alias="sortOrder")


class QuickCommandPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command_text: str | None = Field(default=None, alias="commandText", min_length=1)
    icon: str | None = None
    sort_order: int | None = Field(default=None, alias="sortOrder")


@router.get("/{user_id}")
async def get_quick_commands(user_id: int) -> list[dict[str, Any]]:
    return await list_quick_commands(user_id)


@router.post("", status_code=201)
async def add_quick_command(payload: QuickCommandPayload) -> dict[str, Any]:
    return await create_quick_command(
        payload.user_id,
        payload.command_text,
        icon=payload.icon,
        sort_order=payload.sort_order,
    )


@router.patch("/{command_id}")
async def edit_quick_command(command_id: int, payload: QuickCommandPatch) -> dict[str, Any]:
    updated = await update_quick_command(command_id, payload.model_dump(by_alias=True, exclude_none=True))
    if updated is None:
        raise errors.http_error(404, errors.NOT_FOUND, "Quick command not found")
    return updated


@router.delete("/{command_id}", status_code=204)
async def remove_quick_command(command_id: int) -> Response:
    if not await delete_quick_command(command_id):
        raise errors.http_error(404, errors.NOT_FOUND, "Quick command not found")
    return Response(status_code=204)
