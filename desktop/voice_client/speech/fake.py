"""Deterministic speech adapter driven by scripted events."""

from __future__ import annotations

from typing import Optional

from ..services.schemas import TranscriptEvent
from .base import SpeechAdapter, SpeechError, SpeechErrorCode


class ScriptedSpeechAdapter(SpeechAdapter):
    """Adapter whose transcripts, end and error events are pushed by the caller.

    Used by the test-suite and by ``erpvoice ask`` where no microphone is
    involved. Spoken text is kept in :attr:`spoken`.
    """

    def __init__(self) -> None:
        super().__init__()
        self._listening = False
        self._transcript = ""
        self.language: Optional[str] = None
        self.continuous = False
        self.starts = 0
        self.stops = 0
        self.spoken: list[str] = []

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def transcript(self) -> str:
        return self._transcript

    def start(self, language: str = "en-US", *, continuous: bool = False) -> None:
        self.language = language
        self.continuous = continuous
        self.starts += 1
        self._listening = True

    def stop(self) -> None:
        self.stops += 1
        self._listening = False

    def reset_transcript(self) -> None:
        self._transcript = ""

    async def speak(self, text: str, language: str = "en-US") -> None:
        self.spoken.append(text)

    # ------------------------------------------------------------------ #
    # Scripting helpers
    # ------------------------------------------------------------------ #
    def hear(self, text: str, *, final: bool = False, confidence: Optional[float] = None) -> None:
        """Replace the live transcript with ``text`` and notify the session."""
        self._transcript = text
        self._emit_transcript(TranscriptEvent(text=text, final=final, confidence=confidence))

    def finish(self) -> None:
        """Simulate the recognizer ending on its own."""
        self._listening = False
        self._emit_end()

    def fail(self, code: SpeechErrorCode | str, detail: Optional[str] = None) -> None:
        """Simulate a recognizer error followed by the end event."""
        self._listening = False
        self._emit_error(SpeechError(SpeechErrorCode(code), detail))
        self._emit_end()
