"""Typed ERPNext access through the proxy server."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from .api import ProxyAPI, ProxyError
from .schemas import Connection

LOGGER = logging.getLogger(__name__)

OPEN_ORDER_EXCLUDED = ("Completed", "Cancelled", "Closed")


class BackendError(RuntimeError):
    """The backend could not be reached, refused the request or answered garbage."""


@dataclass(slots=True)
class ErpResult:
    """Normalized answer of a proxy ERP call."""

    success: bool
    message: str = ""
    data: Any = field(default_factory=list)


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ErpItem(_Row):
    name: str
    item_name: Optional[str] = None


class ErpBin(_Row):
    actual_qty: float = 0.0
    warehouse: Optional[str] = None
    item_code: Optional[str] = None


class ErpCustomer(_Row):
    name: str
    customer_name: Optional[str] = None


class SalesOrder(_Row):
    name: str
    customer: Optional[str] = None
    grand_total: Optional[float] = None
    status: Optional[str] = None
    transaction_date: Optional[str] = None


class SalesInvoice(_Row):
    name: str
    customer: Optional[str] = None


class ErpContact(_Row):
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.name


class ErpSupplier(_Row):
    name: str
    supplier_name: Optional[str] = None
    supplier_group: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.supplier_name or self.name


RowT = TypeVar("RowT", bound=_Row)


def _normalize(body: Any) -> ErpResult:
    """Fold the proxy's response shapes into one ``ErpResult``."""
    if not isinstance(body, dict):
        return ErpResult(False, "Unexpected response from the ERP proxy", [])
    success = bool(body.get("success", False))
    message = body.get("message") or ""
    if not success:
        error = body.get("error")
        if error and not message:
            message = str(error)
        elif error:
            message = f"{message}: {error}"
    if "data" in body:
        data = body["data"]
    elif "items" in body:
        data = body["items"]
    elif "doc" in body:
        data = body["doc"]
    else:
        data = []
    return ErpResult(success, str(message), data)


class ErpClient:
    """ERP operations for one connection, validated into typed rows."""

    def __init__(self, api: ProxyAPI, connection: Connection) -> None:
        self.api = api
        self.connection = connection

    def _base_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"userId": self.connection.user_id}
        if self.connection.id is not None:
            payload["connectionId"] = self.connection.id
        return payload

    async def query(
        self,
        doctype: str,
        *,
        filters: Optional[list[list[Any]]] = None,
        fields: Optional[list[str]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        method: str = "get_list",
        name: Optional[str] = None,
    ) -> ErpResult:
        payload = self._base_payload()
        payload.update({"method": method, "doctype": doctype})
        if name is not None:
            payload["name"] = name
        if filters is not None:
            payload["filters"] = filters
        if fields is not None:
            payload["fields"] = fields
        if order_by is not None:
            payload["orderBy"] = order_by
        if limit is not None:
            payload["limit"] = limit
        try:
            body = await self.api.erp_query(payload)
        except ProxyError as exc:
            LOGGER.warning("ERP query %s failed: %s", doctype, exc)
            return ErpResult(False, str(exc), [])
        return _normalize(body)

    async def create(self, doctype: str, doc: dict[str, Any]) -> ErpResult:
        payload = self._base_payload()
        payload.update({"doctype": doctype, "doc": doc})
        try:
            body = await self.api.erp_create(payload)
        except ProxyError as exc:
            LOGGER.warning("ERP create %s failed: %s", doctype, exc)
            return ErpResult(False, str(exc), {})
        return _normalize(body)

    # ------------------------------------------------------------------ #
    # Typed operations
    # ------------------------------------------------------------------ #
    @staticmethod
    def _rows(result: ErpResult, model: type[RowT]) -> list[RowT]:
        if not result.success:
            raise BackendError(result.message or "ERP request failed")
        if not isinstance(result.data, list):
            raise BackendError("Unexpected response shape: expected a list of rows")
        try:
            return [model.model_validate(row) for row in result.data]
        except ValidationError as exc:
            raise BackendError(f"Unexpected {model.__name__} data: {exc.error_count()} invalid field(s)") from exc

    async def find_items(self, text: str) -> list[ErpItem]:
        result = await self.query(
            "Item",
            filters=[["item_name", "like", f"%{text}%"]],
            fields=["name", "item_name"],
        )
        return self._rows(result, ErpItem)

    async def item_stock(self, item_code: str) -> list[ErpBin]:
        result = await self.query(
            "Bin",
            filters=[["item_code", "=", item_code]],
            fields=["item_code", "warehouse", "actual_qty"],
        )
        return self._rows(result, ErpBin)

    async def find_customers(self, text: str) -> list[ErpCustomer]:
        result = await self.query(
            "Customer",
            filters=[["customer_name", "like", f"%{text}%"]],
            fields=["name", "customer_name"],
        )
        return self._rows(result, ErpCustomer)

    async def first_item(self) -> ErpItem | None:
        result = await self.query(
            "Item",
            filters=[["disabled", "=", 0]],
            fields=["name", "item_name"],
            limit=1,
        )
        rows = self._rows(result, ErpItem)
        return rows[0] if rows else None

    async def create_sales_invoice(self, customer: str, item_code: str) -> SalesInvoice:
        """Create a draft invoice with a single placeholder line."""
        result = await self.create(
            "Sales Invoice",
            {
                "customer": customer,
                "is_pos": 0,
                "docstatus": 0,
                "items": [{"item_code": item_code, "qty": 1}],
            },
        )
        if not result.success:
            raise BackendError(result.message or "Invoice creation failed")
        try:
            return SalesInvoice.model_validate(result.data)
        except ValidationError as exc:
            raise BackendError("Unexpected Sales Invoice data") from exc

    async def open_orders(self) -> list[SalesOrder]:
        result = await self.query(
            "Sales Order",
            filters=[
                ["status", "not in", list(OPEN_ORDER_EXCLUDED)],
                ["docstatus", "=", 1],
            ],
            fields=["name", "customer", "grand_total", "status", "transaction_date"],
            order_by="transaction_date desc",
        )
        return self._rows(result, SalesOrder)

    async def contacts(self, limit: int = 20) -> list[ErpContact]:
        result = await self.query(
            "Contact",
            fields=["name", "first_name", "last_name", "email_id"],
            limit=limit,
        )
        return self._rows(result, ErpContact)

    async def suppliers(self, limit: int = 20) -> list[ErpSupplier]:
        result = await self.query(
            "Supplier",
            fields=["name", "supplier_name", "supplier_group"],
            limit=limit,
        )
        return self._rows(result, ErpSupplier)
