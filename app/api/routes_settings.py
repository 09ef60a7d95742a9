from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from app.core import errors
from app.core.preferences import get_voice_settings, update_voice_settings, upsert_voice_settings

router = APIRouter(prefix="/api/settings", tags=["settings"])


class VoiceSettingsPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wake_word: str | None = Field(default=None, alias="wakeWord", min_length=1)
    sensitivity: int | None = Field(default=None, ge=1, le=10)
    voice_response: bool | None = Field(default=None, alias="voiceResponse")
    continuous_listening: bool | None = Field(default=None, alias="continuousListening")
    voice_language: str | None = Field(default=None, alias="voiceLanguage", min_length=2)

    def values(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"user_id"})


class VoiceSettingsPayload(VoiceSettingsPatch):
    user_id: int = Field(alias="userId")


@router.get("/{user_id}")
async def read_settings(user_id: int) -> dict[str, Any]:
    settings = await get_voice_settings(user_id)
    if settings is None:
        raise errors.http_error(404, errors.NOT_FOUND, "Settings not found")
    return settings


@router.post("")
async def save_settings(payload: VoiceSettingsPayload) -> dict[str, Any]:
    return await upsert_voice_settings(payload.user_id, payload.values())


@router.patch("/{user_id}")
async def patch_settings(user_id: int, payload: VoiceSettingsPatch) -> dict[str, Any]:
    updated = await update_voice_settings(user_id, payload.values())
    if updated is None:
        raise errors.http_error(404, errors.NOT_FOUND, "Settings not found")
    return updated
