"""Speech adapter bound to the local microphone and TTS engine."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Optional

from ..config.settings import SpeechSettings
from ..services.schemas import TranscriptEvent
from .base import SpeechAdapter, SpeechError, SpeechErrorCode

LOGGER = logging.getLogger(__name__)


class SystemSpeechAdapter(SpeechAdapter):
    """Microphone recognition with ``speech_recognition`` and speech with ``pyttsx3``.

    Capture runs on a daemon thread; every event is handed back to the
    session loop with ``call_soon_threadsafe``.

    Only one worker holds the microphone at a time: a start issued while a
    stopped worker is still blocked in ``listen`` is deferred until it exits,
    and events from a superseded worker are dropped.
    """

    def __init__(
        self,
        settings: Optional[SpeechSettings] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        super().__init__()
        self.settings = settings or SpeechSettings()
        self._loop = loop
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._transcript = ""
        self._transcript_lock = threading.Lock()
        self._tts_engine: Any = None
        self._tts_lock = threading.Lock()
        self._pending_start: Optional[tuple[Any, str, bool]] = None

    @property
    def is_listening(self) -> bool:
        if self._pending_start is not None:
            return True
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self, language: str = "en-US", *, continuous: bool = False) -> None:
        if self.is_listening:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        try:
            import speech_recognition as sr
        except ImportError:
            self._emit_error(SpeechError(SpeechErrorCode.UNSUPPORTED, "speech_recognition is not installed"))
            self._emit_end()
            return
        # Events still posted by an earlier worker carry its old stop event and are dropped.
        self._stop_event = threading.Event()
        if self._thread is not None and self._thread.is_alive():
            # The stopped worker still holds the microphone; launch once it exits.
            LOGGER.debug("Deferring capture start until the previous worker exits")
            self._pending_start = (sr, language, continuous)
            return
        self._launch(sr, language, continuous)

    def stop(self) -> None:
        self._pending_start = None
        self._stop_event.set()

    def reset_transcript(self) -> None:
        with self._transcript_lock:
            self._transcript = ""

    async def speak(self, text: str, language: str = "en-US") -> None:
        await asyncio.to_thread(self._speak_blocking, text)

    def _launch(self, sr: Any, language: str, continuous: bool) -> None:
        self._thread = threading.Thread(
            target=self._listen_worker,
            args=(sr, language, continuous, self._stop_event),
            name="speech-capture",
            daemon=True,
        )
        self._thread.start()

    # ------------------------------------------------------------------ #
    # Loop side
    # ------------------------------------------------------------------ #
    def _deliver(self, stop_event: threading.Event, callback: Any, *args: Any) -> None:
        if stop_event is not self._stop_event:
            return
        callback(*args)

    def _deliver_transcript(self, stop_event: threading.Event, event: TranscriptEvent) -> None:
        if stop_event is not self._stop_event or stop_event.is_set():
            return
        self._emit_transcript(event)

    def _worker_exited(self, thread: threading.Thread, stop_event: threading.Event) -> None:
        if thread is not self._thread:
            return
        pending, self._pending_start = self._pending_start, None
        if pending is not None:
            self._launch(*pending)
        elif stop_event is not self._stop_event:
            # A deferred start was stopped before it launched; it ends now.
            self._emit_end()

    # ------------------------------------------------------------------ #
    # Worker side
    # ------------------------------------------------------------------ #
    def _call_on_loop(self, callback: Any, *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            LOGGER.debug("Session loop closed; dropping speech event")

    def _post(self, stop_event: threading.Event, callback: Any, *args: Any) -> None:
        self._call_on_loop(self._deliver, stop_event, callback, *args)

    def _listen_worker(self, sr: Any, language: str, continuous: bool, stop_event: threading.Event) -> None:
        try:
            self._capture(sr, language, continuous, stop_event)
        finally:
            stop_event.set()
            self._post(stop_event, self._emit_end)
            self._call_on_loop(self._worker_exited, threading.current_thread(), stop_event)

    def _capture(self, sr: Any, language: str, continuous: bool, stop_event: threading.Event) -> None:
        recognizer = sr.Recognizer()
        recognizer.pause_threshold = self.settings.pause_threshold
        recognizer.dynamic_energy_threshold = True
        try:
            microphone = sr.Microphone(device_index=self.settings.microphone_index)
        except AttributeError as exc:
            # speech_recognition raises AttributeError when PyAudio is missing.
            self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.UNSUPPORTED, str(exc)))
            return
        except OSError as exc:
            self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.AUDIO_CAPTURE, str(exc)))
            return

        try:
            with microphone as source:
                recognizer.adjust_for_ambient_noise(source, duration=self.settings.ambient_noise_seconds)
                while not stop_event.is_set():
                    try:
                        audio = recognizer.listen(
                            source,
                            timeout=self.settings.listen_timeout_seconds,
                            phrase_time_limit=self.settings.phrase_time_limit_seconds,
                        )
                    except sr.WaitTimeoutError:
                        if continuous or stop_event.is_set():
                            continue
                        self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.NO_SPEECH))
                        break
                    if stop_event.is_set():
                        break
                    try:
                        text = recognizer.recognize_google(audio, language=language)
                    except sr.UnknownValueError:
                        if continuous or stop_event.is_set():
                            continue
                        self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.NO_SPEECH))
                        break
                    except sr.RequestError as exc:
                        self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.NETWORK, str(exc)))
                        break
                    with self._transcript_lock:
                        self._transcript = f"{self._transcript} {text}".strip()
                        heard = self._transcript
                    LOGGER.debug("Recognized phrase (%d chars)", len(text))
                    self._call_on_loop(self._deliver_transcript, stop_event, TranscriptEvent(text=heard, final=True))
                    if not continuous:
                        break
        except OSError as exc:
            LOGGER.warning("Microphone capture failed: %s", exc)
            self._post(stop_event, self._emit_error, SpeechError(SpeechErrorCode.AUDIO_CAPTURE, str(exc)))

    def _speak_blocking(self, text: str) -> None:
        with self._tts_lock:
            if self._tts_engine is None:
                try:
                    import pyttsx3
                except ImportError:
                    LOGGER.warning("pyttsx3 is not installed; skipping speech output")
                    return
                self._tts_engine = pyttsx3.init()
                self._tts_engine.setProperty("rate", self.settings.tts_rate)
            self._tts_engine.say(text)
            self._tts_engine.runAndWait()
