"""Entry points running a voice session against the proxy server."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .config.settings import AppSettings
from .config.store import load_settings
from .runtime.controller import VoiceController
from .services.api import ProxyAPI
from .services.schemas import Reply, VoiceState
from .speech.base import SpeechAdapter, SpeechError, SpeechErrorCode
from .speech.fake import ScriptedSpeechAdapter
from .speech.system import SystemSpeechAdapter
from .state.app_state import AppState

LOGGER = logging.getLogger(__name__)

Echo = Callable[[str], None]

# Errors after which restarting the microphone cannot help.
FATAL_SPEECH_ERRORS = {
    SpeechErrorCode.UNSUPPORTED,
    SpeechErrorCode.AUDIO_CAPTURE,
    SpeechErrorCode.NOT_ALLOWED,
}


async def ask_once(text: str, settings: Optional[AppSettings] = None) -> Optional[Reply]:
    """Process one typed command and return the reply."""
    settings = settings or load_settings()
    api = ProxyAPI(settings)
    controller = VoiceController(AppState(settings=settings), api, ScriptedSpeechAdapter())
    try:
        await controller.load()
        controller.state.voice.voice_response = False
        return await controller.process_command(text)
    finally:
        await controller.aclose()
        await api.close()


async def run_session(
    settings: Optional[AppSettings] = None,
    *,
    speech: Optional[SpeechAdapter] = None,
    echo: Echo = print,
    once: bool = False,
) -> None:
    """Listen, answer and repeat until cancelled (or after one exchange with ``once``)."""
    settings = settings or load_settings()
    state = AppState(settings=settings)
    api = ProxyAPI(settings)
    idle = asyncio.Event()
    last_error: list[SpeechError] = []

    def on_state(new_state: VoiceState) -> None:
        echo(f"[{new_state.value}]")
        if new_state is VoiceState.INACTIVE:
            idle.set()

    def on_error(error: SpeechError) -> None:
        last_error.append(error)
        echo(error.message)

    controller = VoiceController(
        state,
        api,
        speech or SystemSpeechAdapter(settings.speech),
        on_state=on_state,
        on_transcript=lambda text: echo(f"> {text}"),
        on_result=lambda reply: echo(reply.text),
        on_navigate=lambda page: echo(f"(page {page})"),
        on_error=on_error,
    )
    try:
        await controller.load()
        if not state.connected:
            echo(f"No active {settings.session.backend_name} connection configured.")
        if state.voice.continuous_listening and not once:
            controller.listen_for_wake_word()
            echo(f"Say '{state.voice.wake_word}' to start.")
            await asyncio.Event().wait()
        while True:
            idle.clear()
            controller.start_listening()
            await idle.wait()
            if once or (last_error and last_error[-1].code in FATAL_SPEECH_ERRORS):
                break
    finally:
        await controller.aclose()
        await api.close()


def run() -> None:
    """Start a voice session on the system microphone."""
    try:
        asyncio.run(run_session())
    except KeyboardInterrupt:
        LOGGER.info("Voice session interrupted")
