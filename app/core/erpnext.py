from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings
from app.core.logger import get_logger

logger = get_logger("erp")


class ErpNextError(Exception):
    """Upstream ERPNext failure (HTTP error, transport error or unexpected payload)."""

    def __init__(self, message: str, *, status_code: int = 502, details: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ErpNextClient:
    """Async client for the ERPNext REST API.

    - Resources: ``/api/resource/<doctype>`` (list, get, insert).
    - Identity check: ``/api/method/frappe.auth.get_logged_user``.
    Authentication uses the ``token <api_key>:<api_secret>`` header.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_secret: str,
        *,
        timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.erp_timeout if timeout is None else timeout,
            verify=settings.erp_verify_ssl if verify is None else verify,
            headers={
                "Accept": "application/json",
                "Authorization": f"token {api_key}:{api_secret}",
            },
            transport=transport,
        )

    async def __aenter__(self) -> "ErpNextClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ----- helpers -----
    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("ERPNext timeout", extra={"fields": {"path": path}})
            raise ErpNextError("Timeout while contacting ERPNext", status_code=504) from exc
        except httpx.HTTPError as exc:
            logger.warning("ERPNext unreachable", extra={"fields": {"path": path, "error": str(exc)}})
            raise ErpNextError(f"Cannot reach ERPNext: {exc}", status_code=502) from exc
        if response.status_code >= 400:
            details: Any
            try:
                details = response.json()
            except ValueError:
                details = response.text[:500]
            logger.warning(
                "ERPNext error response",
                extra={"fields": {"path": path, "status": response.status_code}},
            )
            raise ErpNextError(
                f"ERPNext answered HTTP {response.status_code}",
                status_code=response.status_code,
                details=details,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ErpNextError("ERPNext returned a non-JSON body", details=response.text[:200]) from exc
        if not isinstance(data, dict):
            raise ErpNextError("ERPNext returned an unexpected payload", details=data)
        return data

    # ----- resources -----
    async def get_list(
        self,
        doctype: str,
        *,
        filters: list[Any] | None = None,
        fields: list[str] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params: Dict[str, Any] = {}
        if filters:
            params["filters"] = json.dumps(filters)
        if fields:
            params["fields"] = json.dumps(fields)
        if order_by:
            params["order_by"] = order_by
        if limit is not None:
            params["limit_page_length"] = limit
        data = await self._request("GET", f"/api/resource/{doctype}", params=params)
        rows = data.get("data")
        if not isinstance(rows, list):
            raise ErpNextError("ERPNext list response has no data array", details=data)
        return [row for row in rows if isinstance(row, dict)]

    async def get_doc(self, doctype: str, name: str) -> dict[str, Any]:
        data = await self._request("GET", f"/api/resource/{doctype}/{name}")
        doc = data.get("data")
        if not isinstance(doc, dict):
            raise ErpNextError("ERPNext document response has no data object", details=data)
        return doc

    async def insert(self, doctype: str, doc: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", f"/api/resource/{doctype}", json=doc)
        created = data.get("data")
        if not isinstance(created, dict):
            raise ErpNextError("ERPNext insert response has no data object", details=data)
        logger.info("ERPNext document created", extra={"fields": {"doctype": doctype, "name": created.get("name")}})
        return created

    async def get_logged_user(self) -> str:
        data = await self._request("GET", "/api/method/frappe.auth.get_logged_user")
        user = data.get("message")
        if not user:
            raise ErpNextError("Invalid response from ERPNext API", status_code=400, details=data)
        return str(user)

    async def close(self) -> None:
        await self._client.aclose()
