"""Voice session: speech events in, interpreted commands and spoken replies out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..commands.handlers import interpret
from ..services.api import ProxyAPI, ProxyError
from ..services.erp import ErpClient
from ..services.schemas import CommandRecord, Reply, TranscriptEvent, VoiceSettings, VoiceState
from ..speech.base import SpeechAdapter, SpeechError
from ..state.app_state import AppState

LOGGER = logging.getLogger(__name__)

StateCallback = Callable[[VoiceState], None]
TranscriptCallback = Callable[[str], None]
ResultCallback = Callable[[Reply], None]
NavigateCallback = Callable[[str], None]
ErrorCallback = Callable[[SpeechError], None]


class HistoryWriter:
    """Records each command twice: ``pending`` on submission, terminal once done.

    Writes run as background tasks so the reply never waits on them.
    """

    def __init__(self, api: ProxyAPI, user_id: int) -> None:
        self.api = api
        self.user_id = user_id
        self._tasks: set[asyncio.Task[Any]] = set()

    def _track(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("History write failed", exc_info=exc)

    def begin(self, command: str) -> asyncio.Task[Optional[CommandRecord]]:
        return self._track(self._create_pending(command))

    def finish(
        self,
        pending: asyncio.Task[Optional[CommandRecord]],
        command: str,
        reply: Reply,
    ) -> asyncio.Task[Optional[CommandRecord]]:
        return self._track(self._complete(pending, command, reply))

    async def _create_pending(self, command: str) -> Optional[CommandRecord]:
        try:
            return await self.api.create_command(self.user_id, command)
        except ProxyError as exc:
            LOGGER.warning("Could not record pending command: %s", exc)
            return None
        except Exception:
            # The terminal write still runs and stores the outcome on its own.
            LOGGER.exception("Unexpected failure recording pending command")
            return None

    async def _complete(
        self,
        pending: asyncio.Task[Optional[CommandRecord]],
        command: str,
        reply: Reply,
    ) -> Optional[CommandRecord]:
        record = await pending
        try:
            if record is None:
                # No pending record to update; store the outcome on its own.
                return await self.api.create_command(
                    self.user_id,
                    command,
                    status=reply.status,
                    response=reply.text,
                    metadata=reply.metadata(),
                )
            return await self.api.complete_command(
                record.id,
                status=reply.status,
                response=reply.text,
                metadata=reply.metadata(),
            )
        except ProxyError as exc:
            LOGGER.warning("Could not record command outcome: %s", exc)
            return None

    async def drain(self) -> None:
        """Wait for outstanding writes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class VoiceController:
    """State machine driving one voice session.

    ``inactive -> listening -> processing -> result -> inactive`` (or back to
    ``listening`` when continuous listening is enabled). Only one command is
    processed at a time.
    """

    def __init__(
        self,
        state: AppState,
        api: ProxyAPI,
        speech: SpeechAdapter,
        *,
        on_state: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_result: Optional[ResultCallback] = None,
        on_navigate: Optional[NavigateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.state = state
        self.api = api
        self.speech = speech
        self.history = HistoryWriter(api, state.user_id)
        self._state_callback = on_state
        self._transcript_callback = on_transcript
        self._result_callback = on_result
        self._navigate_callback = on_navigate
        self._error_callback = on_error
        self._result_handle: Optional[asyncio.TimerHandle] = None
        self._in_flight = False
        self._generation = 0
        self._speech_tasks: set[asyncio.Task[Any]] = set()
        speech.bind(
            on_transcript=self._handle_transcript,
            on_end=self._handle_end,
            on_error=self._handle_error,
        )

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    async def load(self) -> None:
        """Fetch voice settings, connection and quick commands from the proxy."""
        user_id = self.state.user_id
        try:
            self.state.voice = await self.api.get_voice_settings(user_id)
        except ProxyError as exc:
            LOGGER.warning("Using default voice settings: %s", exc)
        await self.refresh_connection()
        try:
            self.state.quick_commands = await self.api.list_quick_commands(user_id)
        except ProxyError as exc:
            LOGGER.warning("Quick commands unavailable: %s", exc)

    async def refresh_connection(self) -> None:
        try:
            self.state.connection = await self.api.get_connection(self.state.user_id)
        except ProxyError as exc:
            LOGGER.warning("ERP connection unavailable: %s", exc)
            self.state.connection = None

    async def refresh_history(self, limit: Optional[int] = None) -> list[CommandRecord]:
        self.state.history = await self.api.list_commands(self.state.user_id, limit)
        return self.state.history

    async def update_voice_settings(self, changes: dict[str, Any]) -> VoiceSettings:
        """Apply a partial update (camelCase keys) and keep the new settings."""
        self.state.voice = await self.api.update_voice_settings(self.state.user_id, changes)
        return self.state.voice

    # ------------------------------------------------------------------ #
    # Session control
    # ------------------------------------------------------------------ #
    @property
    def voice_state(self) -> VoiceState:
        return self.state.voice_state

    @property
    def busy(self) -> bool:
        return self._in_flight

    def start_listening(self) -> bool:
        """Clear the previous exchange and listen for a command.

        Ignored while a command is processing, including one whose result
        was dismissed by ``stop_listening``.
        """
        if self._in_flight or self.state.voice_state is VoiceState.PROCESSING:
            LOGGER.debug("Start listening ignored while processing")
            return False
        self._cancel_result_timer()
        self.speech.reset_transcript()
        self.state.transcript = ""
        self.state.result_text = ""
        self.state.error_message = None
        self._set_state(VoiceState.LISTENING)
        if not self.speech.is_listening:
            voice = self.state.voice
            self.speech.start(voice.voice_language, continuous=voice.continuous_listening)
        return True

    def stop_listening(self) -> None:
        """Return to ``inactive`` from any state.

        A command already sent to the backend still completes and is recorded,
        but its result is not shown or spoken.
        """
        self._generation += 1
        self._cancel_result_timer()
        self.speech.stop()
        self._set_state(VoiceState.INACTIVE)

    def listen_for_wake_word(self) -> bool:
        """Keep the recognizer running while idle so the wake word can re-arm the session."""
        if not self.state.voice.continuous_listening:
            return False
        if self._in_flight or self.state.voice_state is VoiceState.PROCESSING:
            return False
        self._cancel_result_timer()
        self._set_state(VoiceState.INACTIVE)
        self.speech.reset_transcript()
        self.state.transcript = ""
        if not self.speech.is_listening:
            self.speech.start(self.state.voice.voice_language, continuous=True)
        return True

    def submit(self, text: str) -> Optional[asyncio.Task[Optional[Reply]]]:
        """Schedule ``text`` for processing; ``None`` when it was rejected."""
        command = text.strip()
        if not command or self._in_flight:
            return None
        generation = self._begin(command)
        return asyncio.get_running_loop().create_task(self._run(command, generation))

    async def process_command(self, text: str) -> Optional[Reply]:
        """Interpret ``text`` and return the reply, ``None`` when another command is in flight."""
        command = text.strip()
        if not command:
            return None
        if self._in_flight:
            LOGGER.info("Command rejected: another command is processing")
            return None
        generation = self._begin(command)
        return await self._run(command, generation)

    def run_quick_command(self, quick_command_id: int) -> Optional[asyncio.Task[Optional[Reply]]]:
        for quick in self.state.quick_commands:
            if quick.id == quick_command_id:
                return self.submit(quick.command_text)
        return None

    async def aclose(self) -> None:
        """Stop the session and flush pending history writes."""
        self.stop_listening()
        for task in list(self._speech_tasks):
            task.cancel()
        await self.history.drain()

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #
    def _begin(self, command: str) -> int:
        self._in_flight = True
        self._cancel_result_timer()
        if self.speech.is_listening:
            self.speech.stop()
        self.state.transcript = command
        self.state.result_text = ""
        self.state.error_message = None
        self._set_state(VoiceState.PROCESSING)
        return self._generation

    async def _run(self, command: str, generation: int) -> Reply:
        pending = self.history.begin(command)
        try:
            reply = await self._interpret(command)
        except Exception as exc:
            LOGGER.exception("Command processing failed")
            reply = Reply(f"Error: {exc}", status="error")
        self.history.finish(pending, command, reply)
        self._in_flight = False
        if generation == self._generation:
            self._show_result(reply)
        return reply

    async def _interpret(self, command: str) -> Reply:
        connection = self.state.connection
        erp = ErpClient(self.api, connection) if connection is not None and connection.usable else None
        return await interpret(
            command,
            connection,
            erp,
            backend_name=self.state.settings.session.backend_name,
        )

    def _show_result(self, reply: Reply) -> None:
        self.state.last_reply = reply
        self.state.result_text = reply.text
        self._set_state(VoiceState.RESULT)
        if self._result_callback is not None:
            self._result_callback(reply)
        if reply.destination:
            self.state.page = reply.destination
            if self._navigate_callback is not None:
                self._navigate_callback(reply.destination)
        if self.state.voice.voice_response:
            self._speak(reply.text)
        loop = asyncio.get_running_loop()
        self._result_handle = loop.call_later(
            self.state.settings.session.result_delay_seconds,
            self._after_result,
        )

    def _after_result(self) -> None:
        self._result_handle = None
        if self.state.voice_state is not VoiceState.RESULT:
            return
        if self.state.voice.continuous_listening:
            self.start_listening()
        else:
            self._set_state(VoiceState.INACTIVE)

    def _speak(self, text: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self.speech.speak(text, self.state.voice.voice_language)
        )
        self._speech_tasks.add(task)

        def _cleanup(done: asyncio.Task[Any]) -> None:
            self._speech_tasks.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                LOGGER.warning("Speech output failed: %s", exc)

        task.add_done_callback(_cleanup)

    # ------------------------------------------------------------------ #
    # Speech events
    # ------------------------------------------------------------------ #
    def _handle_transcript(self, event: TranscriptEvent) -> None:
        self.state.transcript = event.text
        if self._transcript_callback is not None:
            self._transcript_callback(event.text)
        voice = self.state.voice
        if (
            self.state.voice_state is VoiceState.INACTIVE
            and not self._in_flight
            and voice.continuous_listening
            and self.speech.is_listening
            and voice.wake_word
            and voice.wake_word.lower() in event.text.lower()
        ):
            self.speech.reset_transcript()
            self.state.transcript = ""
            self.state.result_text = ""
            self._set_state(VoiceState.LISTENING)
            return
        # A continuous recognizer never ends on its own; a final phrase closes the utterance.
        if self.state.voice_state is VoiceState.LISTENING and event.final and voice.continuous_listening:
            self._finish_utterance()

    def _handle_end(self) -> None:
        if self.state.voice_state is VoiceState.LISTENING:
            self._finish_utterance()

    def _handle_error(self, error: SpeechError) -> None:
        LOGGER.warning("Speech recognition error: %s", error.code.value)
        self.state.error_message = error.message
        if self._error_callback is not None:
            self._error_callback(error)
        self.stop_listening()

    def _finish_utterance(self) -> None:
        if self.submit(self.state.transcript) is None:
            self._set_state(VoiceState.INACTIVE)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _set_state(self, new_state: VoiceState) -> None:
        if self.state.voice_state is new_state:
            return
        LOGGER.debug("Voice state %s -> %s", self.state.voice_state.value, new_state.value)
        self.state.voice_state = new_state
        if self._state_callback is not None:
            self._state_callback(new_state)

    def _cancel_result_timer(self) -> None:
        if self._result_handle is not None:
            self._result_handle.cancel()
            self._result_handle = None
