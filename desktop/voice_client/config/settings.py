"""Local configuration models for the voice client."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ServerSettings:
    """Connection settings for the proxy server."""

    base_url: str = "http://127.0.0.1:8000"
    verify_ssl: bool = True
    timeout_seconds: float | None = None


@dataclass(slots=True)
class SessionSettings:
    """Identity and pacing of a voice session."""

    user_id: int = 1
    backend_name: str = "ERPNext"
    result_delay_seconds: float = 5.0


@dataclass(slots=True)
class SpeechSettings:
    """Microphone capture and synthesis tuning."""

    microphone_index: int | None = None
    ambient_noise_seconds: float = 0.5
    pause_threshold: float = 0.8
    listen_timeout_seconds: float = 6.0
    phrase_time_limit_seconds: float = 15.0
    tts_rate: int = 180


@dataclass(slots=True)
class AppSettings:
    """Full set of settings for the voice client."""

    server: ServerSettings = field(default_factory=ServerSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    speech: SpeechSettings = field(default_factory=SpeechSettings)
