from __future__ import annotations

import json

from typer.testing import CliRunner

from app import cli as cli_module
from desktop.voice_client.config.store import load_settings
from desktop.voice_client.services.api import ProxyError
from desktop.voice_client.services.schemas import CommandRecord, Intent, Reply


runner = CliRunner()


def test_cli_help():
    result = runner.invoke(cli_module.cli, ["--help"])
    assert result.exit_code == 0
    for name in ("serve", "ask", "listen", "history", "connect"):
        assert name in result.output


def test_cli_ask_prints_reply(monkeypatch):
    seen = {}

    async def fake_ask(text, settings):
        seen["text"] = text
        seen["base_url"] = settings.server.base_url
        return Reply("No open orders found.", Intent.SHOW_OPEN_ORDERS)

    monkeypatch.setattr(cli_module, "ask_once", fake_ask)
    result = runner.invoke(cli_module.cli, ["ask", "show open orders", "--base-url", "http://proxy.test"])
    assert result.exit_code == 0
    assert "No open orders found." in result.output
    assert seen == {"text": "show open orders", "base_url": "http://proxy.test"}


def test_cli_ask_error_exit_code(monkeypatch):
    async def fake_ask(text, settings):
        return Reply("Error: proxy down", status="error")

    monkeypatch.setattr(cli_module, "ask_once", fake_ask)
    result = runner.invoke(cli_module.cli, ["ask", "show open orders"])
    assert result.exit_code == 2
    assert "Error: proxy down" in result.output


def test_cli_history(monkeypatch):
    async def fake_fetch(base_url, limit):
        assert limit == 5
        return [
            CommandRecord(id=2, user_id=1, command="help", status="success", response="You can ask me...", timestamp="t2"),
            CommandRecord(id=1, user_id=1, command="show contacts", status="error", timestamp="t1"),
        ]

    monkeypatch.setattr(cli_module, "_fetch_history", fake_fetch)
    result = runner.invoke(cli_module.cli, ["history", "-n", "5"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == "t2 [success] help"
    assert lines[2] == "t1 [error] show contacts"

    result = runner.invoke(cli_module.cli, ["history", "-n", "5", "--json"])
    assert [r["id"] for r in json.loads(result.output)] == [2, 1]


def test_cli_history_proxy_down(monkeypatch):
    async def failing(base_url, limit):
        raise ProxyError("Cannot reach the proxy server")

    monkeypatch.setattr(cli_module, "_fetch_history", failing)
    result = runner.invoke(cli_module.cli, ["history"])
    assert result.exit_code == 1
    assert "Cannot load history" in result.output


def test_cli_config_client_persists():
    result = runner.invoke(cli_module.cli, ["config", "client", "--user-id", "3", "--result-delay", "2.5"])
    assert result.exit_code == 0
    assert json.loads(result.output)["session"] == {"user_id": 3, "result_delay_seconds": 2.5}
    settings = load_settings()
    assert settings.session.user_id == 3
    assert settings.session.result_delay_seconds == 2.5


def test_cli_config_print_reads_environment(monkeypatch):
    monkeypatch.setenv("ERP_TIMEOUT", "12.5")
    result = runner.invoke(cli_module.cli, ["config", "print"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["db_path"].endswith("erpvoice.db")
    assert data["erp_timeout"] == 12.5


def test_mask_secrets_hides_credentials():
    from app.core.logger import mask_secrets

    masked = mask_secrets({"url": "https://erp", "api_key": "k", "nested": [{"apiSecret": "s"}]})
    assert masked == {"url": "https://erp", "api_key": "***", "nested": [{"apiSecret": "***"}]}
