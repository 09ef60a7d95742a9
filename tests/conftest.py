from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio

from desktop.voice_client.config.settings import AppSettings
from desktop.voice_client.services.api import ProxyAPI


@pytest.fixture(autouse=True)
def _isolated_storage(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "erpvoice.db"))
    monkeypatch.setenv("ERPVOICE_CONFIG_DIR", str(tmp_path / "client"))


ErpRows = list[dict[str, Any]] | Callable[[dict[str, Any]], Any]


class FakeProxy:
    """In-memory stand-in for the proxy server routes used by the voice client."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, Any]] = []
        self.commands: dict[int, dict[str, Any]] = {}
        self.voice: dict[str, Any] = {
            "userId": 1,
            "wakeWord": "Hey ERP",
            "sensitivity": 7,
            "voiceResponse": True,
            "continuousListening": False,
            "voiceLanguage": "en-US",
        }
        self.connection: dict[str, Any] | None = {
            "id": 3,
            "userId": 1,
            "url": "https://erp.example.com",
            "apiKey": "key",
            "isActive": True,
            "lastConnected": None,
        }
        self.quick_commands: list[dict[str, Any]] = []
        self.erp_rows: dict[str, ErpRows] = {}
        self.erp_failures: dict[str, str] = {}
        self.created: list[dict[str, Any]] = []
        self.gate: asyncio.Event | None = None
        self.history_down = False
        self.malformed_pending = False

    # helpers -----------------------------------------------------------
    def calls(self, method: str, prefix: str) -> list[Any]:
        return [body for m, path, body in self.requests if m == method and path.startswith(prefix)]

    def erp_queries(self) -> list[dict[str, Any]]:
        return self.calls("POST", "/api/erp/query")

    def history_writes(self) -> list[tuple[str, Any]]:
        return [
            (m, body)
            for m, path, body in self.requests
            if path.startswith("/api/commands") and m in {"POST", "PATCH"}
        ]

    # transport ---------------------------------------------------------
    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))
        if self.history_down and path.startswith("/api/commands"):
            raise httpx.ConnectError("history store offline", request=request)

        if path == "/api/commands" and request.method == "POST":
            if self.malformed_pending and body.get("status", "pending") == "pending":
                return httpx.Response(201, json={"ok": True})
            record = {
                "id": len(self.commands) + 1,
                "userId": body["userId"],
                "command": body["command"],
                "status": body.get("status", "pending"),
                "response": body.get("response"),
                "metadata": body.get("metadata"),
                "timestamp": "2026-10-19T10:00:00Z",
            }
            self.commands[record["id"]] = record
            return httpx.Response(201, json=record)
        if path.startswith("/api/commands/") and request.method == "PATCH":
            record = self.commands[int(path.rsplit("/", 1)[1])]
            if record["status"] != "pending":
                return httpx.Response(409, json={"detail": {"error": {"code": "ERP_4009", "message": "not pending"}}})
            record.update(body)
            return httpx.Response(200, json=record)
        if path.startswith("/api/commands/") and request.method == "GET":
            return httpx.Response(200, json=sorted(self.commands.values(), key=lambda r: -r["id"]))
        if path.startswith("/api/settings/"):
            if request.method == "PATCH":
                self.voice.update(body)
            return httpx.Response(200, json=self.voice)
        if path.startswith("/api/connection/") and request.method == "GET":
            if self.connection is None:
                return httpx.Response(404, json={"detail": {"error": {"code": "ERP_4004", "message": "Connection not found"}}})
            return httpx.Response(200, json=self.connection)
        if path.startswith("/api/quickcommands/"):
            return httpx.Response(200, json=self.quick_commands)
        if path == "/api/erp/query":
            if self.gate is not None:
                await self.gate.wait()
            doctype = body["doctype"]
            if doctype in self.erp_failures:
                return httpx.Response(
                    502,
                    json={"success": False, "message": "ERPNext API error", "error": self.erp_failures[doctype]},
                )
            rows = self.erp_rows.get(doctype, [])
            data = rows(body) if callable(rows) else rows
            return httpx.Response(200, json={"success": True, "data": data})
        if path == "/api/erp/create":
            if body["doctype"] in self.erp_failures:
                return httpx.Response(
                    417,
                    json={"success": False, "message": "ERPNext API error", "error": self.erp_failures[body["doctype"]]},
                )
            self.created.append(body)
            doc = dict(body["doc"], name=f"ACC-SINV-{len(self.created):05d}")
            return httpx.Response(200, json={"success": True, "message": "created", "doc": doc})
        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def proxy() -> FakeProxy:
    return FakeProxy()


@pytest.fixture
def client_settings() -> AppSettings:
    settings = AppSettings()
    settings.server.base_url = "http://proxy.test"
    return settings


@pytest_asyncio.fixture
async def api(proxy: FakeProxy, client_settings: AppSettings):
    client = ProxyAPI(client_settings, transport=httpx.MockTransport(proxy.handler))
    yield client
    await client.close()
