"""Speech recognition and synthesis interface used by the voice session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..services.schemas import TranscriptEvent


class SpeechErrorCode(str, Enum):
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    UNSUPPORTED = "unsupported"
    NETWORK = "network"
    ABORTED = "aborted"


ERROR_MESSAGES: dict[SpeechErrorCode, str] = {
    SpeechErrorCode.NO_SPEECH: "No speech was detected. Please try again.",
    SpeechErrorCode.AUDIO_CAPTURE: "No microphone was found. Check that a microphone is connected.",
    SpeechErrorCode.NOT_ALLOWED: "Microphone permission was denied.",
    SpeechErrorCode.UNSUPPORTED: "Speech recognition is not supported on this system.",
    SpeechErrorCode.NETWORK: "The speech recognition service could not be reached.",
    SpeechErrorCode.ABORTED: "Speech recognition was aborted.",
}


@dataclass(slots=True)
class SpeechError:
    """Recognition failure reported by an adapter."""

    code: SpeechErrorCode
    detail: Optional[str] = None

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self.code]


TranscriptCallback = Callable[[TranscriptEvent], None]
EndCallback = Callable[[], None]
SpeechErrorCallback = Callable[[SpeechError], None]


class SpeechAdapter(ABC):
    """Platform speech services seen through a narrow surface.

    Callbacks are always invoked on the asyncio loop that owns the session.
    The transcript passed to ``on_transcript`` is the whole utterance heard
    since the last reset, not only the newest fragment.
    """

    def __init__(self) -> None:
        self._on_transcript: Optional[TranscriptCallback] = None
        self._on_end: Optional[EndCallback] = None
        self._on_error: Optional[SpeechErrorCallback] = None

    def bind(
        self,
        *,
        on_transcript: TranscriptCallback,
        on_end: EndCallback,
        on_error: SpeechErrorCallback,
    ) -> None:
        self._on_transcript = on_transcript
        self._on_end = on_end
        self._on_error = on_error

    def _emit_transcript(self, event: TranscriptEvent) -> None:
        if self._on_transcript is not None:
            self._on_transcript(event)

    def _emit_end(self) -> None:
        if self._on_end is not None:
            self._on_end()

    def _emit_error(self, error: SpeechError) -> None:
        if self._on_error is not None:
            self._on_error(error)

    @property
    @abstractmethod
    def is_listening(self) -> bool:
        """``True`` while the recognizer is capturing."""

    @abstractmethod
    def start(self, language: str = "en-US", *, continuous: bool = False) -> None:
        """Begin recognition. Results arrive through the bound callbacks."""

    @abstractmethod
    def stop(self) -> None:
        """Stop recognition; an end event follows once capture has stopped."""

    @abstractmethod
    def reset_transcript(self) -> None:
        """Forget the utterance heard so far."""

    @abstractmethod
    async def speak(self, text: str, language: str = "en-US") -> None:
        """Read ``text`` aloud."""
