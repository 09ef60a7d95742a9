"""Shared state model for the voice client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..config.settings import AppSettings
from ..services.schemas import CommandRecord, Connection, QuickCommand, Reply, VoiceSettings, VoiceState


@dataclass(slots=True)
class AppState:
    """Global state for the client."""

    settings: AppSettings = field(default_factory=AppSettings)
    voice: VoiceSettings = field(default_factory=VoiceSettings)
    connection: Optional[Connection] = None
    voice_state: VoiceState = VoiceState.INACTIVE
    transcript: str = ""
    result_text: str = ""
    last_reply: Optional[Reply] = None
    error_message: Optional[str] = None
    page: str = "/"
    history: list[CommandRecord] = field(default_factory=list)
    quick_commands: list[QuickCommand] = field(default_factory=list)

    @property
    def user_id(self) -> int:
        return self.settings.session.user_id

    @property
    def connected(self) -> bool:
        return self.connection is not None and self.connection.usable
