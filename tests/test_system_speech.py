import asyncio
import queue
import sys
import threading
import types

import pytest

from desktop.voice_client.runtime.controller import VoiceController
from desktop.voice_client.services.schemas import VoiceState
from desktop.voice_client.speech.system import SystemSpeechAdapter
from desktop.voice_client.state.app_state import AppState


class _WaitTimeoutError(Exception):
    pass


class _UnknownValueError(Exception):
    pass


class _RequestError(Exception):
    pass


class FakeMicrophoneBank:
    """Scripted ``speech_recognition`` stand-in: ``listen`` blocks until a phrase is queued."""

    def __init__(self) -> None:
        self.phrases: queue.Queue = queue.Queue()
        self.opened = 0
        self.open_now = 0
        self.most_open = 0
        self._lock = threading.Lock()

    def module(self) -> types.ModuleType:
        bank = self

        class Microphone:
            def __init__(self, device_index=None) -> None:
                self.device_index = device_index

            def __enter__(self):
                with bank._lock:
                    bank.opened += 1
                    bank.open_now += 1
                    bank.most_open = max(bank.most_open, bank.open_now)
                return self

            def __exit__(self, *exc_info) -> None:
                with bank._lock:
                    bank.open_now -= 1

        class Recognizer:
            def adjust_for_ambient_noise(self, source, duration=None) -> None:
                pass

            def listen(self, source, timeout=None, phrase_time_limit=None):
                try:
                    phrase = bank.phrases.get(timeout=5.0)
                except queue.Empty:
                    raise _WaitTimeoutError() from None
                if phrase is None:
                    raise _WaitTimeoutError()
                return phrase

            def recognize_google(self, audio, language=None):
                return audio

        fake = types.ModuleType("speech_recognition")
        fake.Microphone = Microphone
        fake.Recognizer = Recognizer
        fake.WaitTimeoutError = _WaitTimeoutError
        fake.UnknownValueError = _UnknownValueError
        fake.RequestError = _RequestError
        return fake


@pytest.fixture
def microphones(monkeypatch) -> FakeMicrophoneBank:
    bank = FakeMicrophoneBank()
    monkeypatch.setitem(sys.modules, "speech_recognition", bank.module())
    return bank


async def _wait_for(predicate, attempts: int = 200) -> bool:
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.mark.asyncio
async def test_restart_waits_for_blocked_worker(api, proxy, client_settings, microphones) -> None:
    client_settings.session.result_delay_seconds = 0.05
    proxy.voice["continuousListening"] = True
    proxy.voice["voiceResponse"] = False
    states: list[VoiceState] = []
    speech = SystemSpeechAdapter(client_settings.speech)
    controller = VoiceController(AppState(settings=client_settings), api, speech, on_state=states.append)
    await controller.load()

    assert controller.start_listening() is True
    assert await _wait_for(lambda: microphones.opened == 1)

    # The first worker is still blocked in listen when the session re-arms.
    await controller.process_command("help")
    assert await _wait_for(lambda: controller.voice_state is VoiceState.LISTENING)
    assert speech.is_listening
    assert microphones.opened == 1

    microphones.phrases.put(None)
    assert await _wait_for(lambda: microphones.opened == 2)
    await asyncio.sleep(0.05)
    assert controller.voice_state is VoiceState.LISTENING
    assert microphones.most_open == 1

    microphones.phrases.put("show contacts")
    assert await _wait_for(lambda: len(proxy.history_writes()) == 4)
    await controller.aclose()
    microphones.phrases.put(None)

    assert states[:4] == [VoiceState.LISTENING, VoiceState.PROCESSING, VoiceState.RESULT, VoiceState.LISTENING]
    assert VoiceState.INACTIVE not in states[:5]
    assert [body["command"] for body in proxy.calls("POST", "/api/commands")] == ["help", "show contacts"]


@pytest.mark.asyncio
async def test_stop_cancels_deferred_start(microphones) -> None:
    ended: list[bool] = []
    speech = SystemSpeechAdapter()
    speech.bind(on_transcript=lambda event: None, on_end=lambda: ended.append(True), on_error=lambda error: None)

    speech.start(continuous=True)
    assert await _wait_for(lambda: microphones.opened == 1)
    speech.stop()
    speech.start(continuous=True)
    assert speech.is_listening
    speech.stop()
    assert not speech.is_listening

    microphones.phrases.put(None)
    await asyncio.sleep(0.1)
    assert microphones.opened == 1
    assert ended == [True]
