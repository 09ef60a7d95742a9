import asyncio

import pytest

from desktop.voice_client.runtime.controller import VoiceController
from desktop.voice_client.services.schemas import VoiceState
from desktop.voice_client.speech.fake import ScriptedSpeechAdapter
from desktop.voice_client.state.app_state import AppState


async def _controller(api, client_settings, **callbacks):
    speech = ScriptedSpeechAdapter()
    controller = VoiceController(AppState(settings=client_settings), api, speech, **callbacks)
    await controller.load()
    return controller, speech


@pytest.mark.asyncio
async def test_success_writes_pending_then_terminal(api, proxy, client_settings) -> None:
    proxy.erp_rows["Item"] = [{"name": "PLT-01", "item_name": "Plate"}]
    proxy.erp_rows["Bin"] = [{"actual_qty": 5}, {"actual_qty": 3}]
    controller, speech = await _controller(api, client_settings)

    reply = await controller.process_command("check inventory for product Plate")
    await controller.history.drain()

    assert reply is not None
    assert reply.text == "Product Plate has 8 units in stock."
    assert controller.voice_state is VoiceState.RESULT
    assert controller.state.result_text == reply.text
    assert speech.spoken == [reply.text]
    writes = proxy.history_writes()
    assert [method for method, _ in writes] == ["POST", "PATCH"]
    assert writes[0][1]["status"] == "pending"
    assert writes[1][1]["status"] == "success"
    assert writes[1][1]["response"] == reply.text
    assert writes[1][1]["metadata"] == {"intent": "check_inventory", "slots": {"product": "Plate"}}
    assert proxy.commands[1]["status"] == "success"


@pytest.mark.asyncio
async def test_backend_failure_records_error(api, proxy, client_settings) -> None:
    proxy.erp_failures["Sales Order"] = "down"
    controller, _ = await _controller(api, client_settings)

    reply = await controller.process_command("show open orders")
    await controller.history.drain()

    assert reply is not None and reply.status == "error"
    writes = proxy.history_writes()
    assert [body["status"] for _, body in writes] == ["pending", "error"]
    assert proxy.commands[1]["response"].startswith("Error fetching open orders")


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_error_reply(api, proxy, client_settings, monkeypatch) -> None:
    controller, _ = await _controller(api, client_settings)

    async def explode(command):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(controller, "_interpret", explode)
    reply = await controller.process_command("show open orders")
    await controller.history.drain()

    assert reply is not None
    assert reply.text == "Error: kaboom"
    assert [body["status"] for _, body in proxy.history_writes()] == ["pending", "error"]


@pytest.mark.asyncio
async def test_history_outage_does_not_block_reply(api, proxy, client_settings) -> None:
    controller, _ = await _controller(api, client_settings)
    proxy.history_down = True
    reply = await controller.process_command("help")
    await controller.history.drain()
    assert reply is not None and reply.status == "success"


@pytest.mark.asyncio
async def test_start_listening_ignored_while_processing(api, proxy, client_settings) -> None:
    proxy.gate = asyncio.Event()
    controller, speech = await _controller(api, client_settings)

    assert controller.start_listening() is True
    speech.hear("show open orders", final=True)
    speech.finish()
    assert controller.voice_state is VoiceState.PROCESSING

    assert controller.start_listening() is False
    assert controller.voice_state is VoiceState.PROCESSING
    assert controller.submit("show open orders") is None

    proxy.gate.set()
    for _ in range(50):
        if controller.voice_state is VoiceState.RESULT:
            break
        await asyncio.sleep(0.01)
    await controller.history.drain()

    assert controller.voice_state is VoiceState.RESULT
    assert controller.state.result_text == "No open orders found."
    assert len(proxy.calls("POST", "/api/commands")) == 1
    await controller.aclose()


@pytest.mark.asyncio
async def test_empty_utterance_returns_to_inactive(api, proxy, client_settings) -> None:
    controller, speech = await _controller(api, client_settings)
    controller.start_listening()
    assert speech.is_listening
    speech.finish()
    assert controller.voice_state is VoiceState.INACTIVE
    assert proxy.history_writes() == []


@pytest.mark.asyncio
async def test_result_times_out_to_inactive(api, proxy, client_settings) -> None:
    client_settings.session.result_delay_seconds = 0.05
    states: list[VoiceState] = []
    controller, speech = await _controller(api, client_settings, on_state=states.append)
    controller.start_listening()
    speech.hear("help", final=True)
    speech.finish()

    await asyncio.sleep(0.2)
    await controller.history.drain()

    assert states == [VoiceState.LISTENING, VoiceState.PROCESSING, VoiceState.RESULT, VoiceState.INACTIVE]


@pytest.mark.asyncio
async def test_continuous_listening_rearms_after_result(api, proxy, client_settings) -> None:
    client_settings.session.result_delay_seconds = 0.05
    proxy.voice["continuousListening"] = True
    controller, speech = await _controller(api, client_settings)

    await controller.process_command("help")
    await asyncio.sleep(0.2)
    await controller.history.drain()

    assert controller.voice_state is VoiceState.LISTENING
    assert speech.is_listening and speech.continuous
    await controller.aclose()


@pytest.mark.asyncio
async def test_wake_word_rearms_idle_session(api, proxy, client_settings) -> None:
    proxy.voice["continuousListening"] = True
    proxy.voice["wakeWord"] = "Hey ERP"
    controller, speech = await _controller(api, client_settings)

    assert controller.listen_for_wake_word() is True
    assert controller.voice_state is VoiceState.INACTIVE
    assert speech.is_listening

    speech.hear("hey erp check inventory")

    assert controller.voice_state is VoiceState.LISTENING
    assert controller.state.transcript == ""
    assert speech.transcript == ""
    assert proxy.history_writes() == []
    await controller.aclose()


@pytest.mark.asyncio
async def test_wake_word_ignored_without_continuous_listening(api, proxy, client_settings) -> None:
    controller, speech = await _controller(api, client_settings)
    assert controller.listen_for_wake_word() is False
    speech.start()
    speech.hear("hey erp")
    assert controller.voice_state is VoiceState.INACTIVE


@pytest.mark.asyncio
async def test_speech_error_forces_inactive(api, proxy, client_settings) -> None:
    errors = []
    controller, speech = await _controller(api, client_settings, on_error=errors.append)
    controller.start_listening()
    speech.fail("not-allowed")

    assert controller.voice_state is VoiceState.INACTIVE
    assert controller.state.error_message == "Microphone permission was denied."
    assert [e.code.value for e in errors] == ["not-allowed"]


@pytest.mark.asyncio
async def test_stop_during_processing_still_records(api, proxy, client_settings) -> None:
    proxy.gate = asyncio.Event()
    controller, speech = await _controller(api, client_settings)

    task = controller.submit("show open orders")
    assert task is not None
    await asyncio.sleep(0)
    controller.stop_listening()
    assert controller.voice_state is VoiceState.INACTIVE

    proxy.gate.set()
    reply = await task
    await controller.history.drain()

    assert reply.text == "No open orders found."
    assert controller.voice_state is VoiceState.INACTIVE
    assert controller.state.result_text == ""
    assert speech.spoken == []
    assert [body["status"] for _, body in proxy.history_writes()] == ["pending", "success"]


@pytest.mark.asyncio
async def test_navigation_reports_destination(api, proxy, client_settings) -> None:
    pages: list[str] = []
    controller, _ = await _controller(api, client_settings, on_navigate=pages.append)
    await controller.process_command("go to command history")
    await controller.aclose()
    assert pages == ["/history"]
    assert controller.state.page == "/history"


@pytest.mark.asyncio
async def test_missing_connection_never_calls_backend(api, proxy, client_settings) -> None:
    proxy.connection = None
    controller, _ = await _controller(api, client_settings)
    assert controller.state.connection is None

    reply = await controller.process_command("check inventory for product Plate")
    await controller.aclose()

    assert reply is not None
    assert reply.text.startswith("You need to connect to ERPNext first.")
    assert proxy.erp_queries() == []


@pytest.mark.asyncio
async def test_voice_settings_update(api, proxy, client_settings) -> None:
    controller, _ = await _controller(api, client_settings)
    updated = await controller.update_voice_settings({"voiceResponse": False})
    assert updated.voice_response is False
    assert controller.state.voice.voice_response is False


@pytest.mark.asyncio
async def test_quick_command_submits_its_text(api, proxy, client_settings) -> None:
    proxy.quick_commands = [{"id": 9, "commandText": "Show open orders", "icon": "shopping_cart", "sortOrder": 1}]
    controller, _ = await _controller(api, client_settings)
    task = controller.run_quick_command(9)
    assert task is not None
    reply = await task
    await controller.aclose()
    assert reply.text == "No open orders found."
    assert controller.run_quick_command(42) is None


@pytest.mark.asyncio
async def test_unreadable_pending_record_still_stores_outcome(api, proxy, client_settings) -> None:
    proxy.malformed_pending = True
    controller, _ = await _controller(api, client_settings)

    reply = await controller.process_command("help")
    await controller.history.drain()

    assert reply is not None and reply.status == "success"
    writes = proxy.history_writes()
    assert [method for method, _ in writes] == ["POST", "POST"]
    assert [body["status"] for _, body in writes] == ["pending", "success"]
    (stored,) = proxy.commands.values()
    assert stored["status"] == "success"
    assert stored["response"] == reply.text


@pytest.mark.asyncio
async def test_start_refused_until_stopped_command_settles(api, proxy, client_settings) -> None:
    proxy.gate = asyncio.Event()
    controller, speech = await _controller(api, client_settings)

    task = controller.submit("show open orders")
    assert task is not None
    await asyncio.sleep(0)
    controller.stop_listening()
    assert controller.voice_state is VoiceState.INACTIVE

    assert controller.start_listening() is False
    assert controller.voice_state is VoiceState.INACTIVE
    assert not speech.is_listening

    proxy.gate.set()
    await task

    assert controller.start_listening() is True
    speech.hear("help", final=True)
    speech.finish()
    assert controller.voice_state is VoiceState.PROCESSING
    for _ in range(50):
        if controller.voice_state is VoiceState.RESULT:
            break
        await asyncio.sleep(0.01)
    await controller.aclose()

    assert [body["command"] for body in proxy.calls("POST", "/api/commands")] == ["show open orders", "help"]
