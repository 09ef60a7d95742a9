"""HTTP client used to talk to the ERP voice proxy."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config.settings import AppSettings
from .schemas import CommandRecord, CommandStatus, Connection, QuickCommand, VoiceSettings

LOGGER = logging.getLogger(__name__)


class ProxyError(RuntimeError):
    """Transport or HTTP failure while talking to the proxy."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProxyAPI:
    """Async client for the proxy routes (history, settings, connection, ERP)."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        kwargs: dict[str, Any] = {}
        if settings.server.timeout_seconds is not None:
            kwargs["timeout"] = settings.server.timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=settings.server.base_url,
            verify=settings.server.verify_ssl,
            transport=transport,
            **kwargs,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        accept_error_body: bool = False,
        **kwargs: Any,
    ) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProxyError(f"Timeout while calling {path}") from exc
        except httpx.HTTPError as exc:
            raise ProxyError(f"Cannot reach the proxy server: {exc}") from exc
        if response.status_code == 204:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            if response.status_code >= 400:
                raise ProxyError(f"HTTP {response.status_code} from {path}", status_code=response.status_code) from exc
            raise ProxyError(f"Non-JSON response from {path}: {response.text[:200]}") from exc
        if response.status_code >= 400:
            if accept_error_body and isinstance(data, dict) and "success" in data:
                return data
            raise ProxyError(_error_message(data, response.status_code), status_code=response.status_code)
        return data

    # ------------------------------------------------------------------ #
    # Command history
    # ------------------------------------------------------------------ #
    async def create_command(
        self,
        user_id: int,
        command: str,
        *,
        status: CommandStatus = "pending",
        response: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CommandRecord:
        payload: dict[str, Any] = {"userId": user_id, "command": command, "status": status}
        if response is not None:
            payload["response"] = response
        if metadata is not None:
            payload["metadata"] = metadata
        data = await self._request("POST", "/api/commands", json=payload)
        return CommandRecord.from_payload(data)

    async def complete_command(
        self,
        command_id: int,
        *,
        status: CommandStatus,
        response: str,
        metadata: dict[str, Any] | None = None,
    ) -> CommandRecord:
        payload: dict[str, Any] = {"status": status, "response": response}
        if metadata is not None:
            payload["metadata"] = metadata
        data = await self._request("PATCH", f"/api/commands/{command_id}", json=payload)
        return CommandRecord.from_payload(data)

    async def list_commands(self, user_id: int, limit: int | None = None) -> list[CommandRecord]:
        params = {"limit": limit} if limit is not None else None
        data = await self._request("GET", f"/api/commands/{user_id}", params=params)
        return [CommandRecord.from_payload(item) for item in data or []]

    # ------------------------------------------------------------------ #
    # Voice settings
    # ------------------------------------------------------------------ #
    async def get_voice_settings(self, user_id: int) -> VoiceSettings:
        data = await self._request("GET", f"/api/settings/{user_id}")
        return VoiceSettings.from_payload(data)

    async def update_voice_settings(self, user_id: int, changes: dict[str, Any]) -> VoiceSettings:
        data = await self._request("PATCH", f"/api/settings/{user_id}", json=changes)
        return VoiceSettings.from_payload(data)

    # ------------------------------------------------------------------ #
    # Connection
    # ------------------------------------------------------------------ #
    async def get_connection(self, user_id: int) -> Connection | None:
        """Return the stored connection, ``None`` when the user has none."""
        try:
            data = await self._request("GET", f"/api/connection/{user_id}")
        except ProxyError as exc:
            if exc.status_code == 404:
                return None
            raise
        return Connection.from_payload(data)

    async def save_connection(
        self,
        user_id: int,
        *,
        url: str,
        api_key: str,
        api_secret: str,
        is_active: bool = True,
    ) -> Connection:
        data = await self._request(
            "POST",
            "/api/connection",
            json={
                "userId": user_id,
                "url": url,
                "apiKey": api_key,
                "apiSecret": api_secret,
                "isActive": is_active,
            },
        )
        return Connection.from_payload(data)

    async def test_connection(self, url: str, api_key: str, api_secret: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/connection/test",
            json={"url": url, "apiKey": api_key, "apiSecret": api_secret},
            accept_error_body=True,
        )

    # ------------------------------------------------------------------ #
    # ERP proxy
    # ------------------------------------------------------------------ #
    async def erp_query(self, payload: dict[str, Any]) -> Any:
        return await self._request("POST", "/api/erp/query", json=payload, accept_error_body=True)

    async def erp_create(self, payload: dict[str, Any]) -> Any:
        return await self._request("POST", "/api/erp/create", json=payload, accept_error_body=True)

    # ------------------------------------------------------------------ #
    # Quick commands
    # ------------------------------------------------------------------ #
    async def list_quick_commands(self, user_id: int) -> list[QuickCommand]:
        data = await self._request("GET", f"/api/quickcommands/{user_id}")
        return [QuickCommand.from_payload(item) for item in data or []]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        detail = data.get("detail")
        if isinstance(detail, dict):
            error = detail.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        if isinstance(detail, str):
            return detail
        if data.get("message"):
            return str(data["message"])
    return f"HTTP {status_code}"
