"""Data schemas exchanged with the proxy server and between session components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


CommandStatus = Literal["pending", "success", "error"]


class VoiceState(str, Enum):
    """States of the voice session."""

    INACTIVE = "inactive"
    LISTENING = "listening"
    PROCESSING = "processing"
    RESULT = "result"


class Intent(str, Enum):
    """What a command asks for."""

    CHECK_INVENTORY = "check_inventory"
    CREATE_INVOICE = "create_invoice"
    SHOW_OPEN_ORDERS = "show_open_orders"
    SHOW_CONTACTS = "show_contacts"
    SHOW_SUPPLIERS = "show_suppliers"
    NAVIGATE = "navigate"
    HELP = "help"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class Connection:
    """ERP backend credentials as stored by the proxy."""

    user_id: int
    url: str
    api_key: str = ""
    api_secret: str = ""
    is_active: bool = True
    id: Optional[int] = None
    last_connected: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.is_active and self.url)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Connection":
        return cls(
            id=payload.get("id"),
            user_id=int(payload.get("userId", 0)),
            url=str(payload.get("url") or ""),
            api_key=str(payload.get("apiKey") or ""),
            api_secret=str(payload.get("apiSecret") or ""),
            is_active=bool(payload.get("isActive", True)),
            last_connected=payload.get("lastConnected"),
        )


@dataclass(slots=True)
class VoiceSettings:
    """User-editable voice behaviour."""

    wake_word: str = "Hey ERP"
    sensitivity: int = 7
    voice_response: bool = True
    continuous_listening: bool = False
    voice_language: str = "en-US"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "VoiceSettings":
        defaults = cls()
        return cls(
            wake_word=str(payload.get("wakeWord") or defaults.wake_word),
            sensitivity=int(payload.get("sensitivity", defaults.sensitivity)),
            voice_response=bool(payload.get("voiceResponse", defaults.voice_response)),
            continuous_listening=bool(payload.get("continuousListening", defaults.continuous_listening)),
            voice_language=str(payload.get("voiceLanguage") or defaults.voice_language),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "wakeWord": self.wake_word,
            "sensitivity": self.sensitivity,
            "voiceResponse": self.voice_response,
            "continuousListening": self.continuous_listening,
            "voiceLanguage": self.voice_language,
        }


@dataclass(slots=True)
class CommandRecord:
    """One entry of the command history."""

    id: int
    user_id: int
    command: str
    status: CommandStatus
    response: Optional[str] = None
    timestamp: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CommandRecord":
        return cls(
            id=int(payload["id"]),
            user_id=int(payload.get("userId", 0)),
            command=str(payload.get("command", "")),
            status=payload.get("status") or "pending",
            response=payload.get("response"),
            timestamp=payload.get("timestamp"),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass(slots=True)
class QuickCommand:
    """Saved shortcut phrase."""

    id: int
    command_text: str
    icon: str = "command"
    sort_order: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "QuickCommand":
        return cls(
            id=int(payload["id"]),
            command_text=str(payload.get("commandText", "")),
            icon=str(payload.get("icon") or "command"),
            sort_order=int(payload.get("sortOrder") or 0),
        )


@dataclass(slots=True)
class TranscriptEvent:
    """Transcription event produced while listening."""

    text: str
    final: bool = False
    confidence: Optional[float] = None


@dataclass(slots=True)
class Reply:
    """Outcome of interpreting one command."""

    text: str
    intent: Intent = Intent.UNKNOWN
    status: CommandStatus = "success"
    slots: dict[str, str] = field(default_factory=dict)
    destination: Optional[str] = None

    def metadata(self) -> dict[str, Any]:
        """Payload stored alongside the history record."""
        payload: dict[str, Any] = {"intent": self.intent.value, "slots": dict(self.slots)}
        if self.destination:
            payload["destination"] = self.destination
        return payload
