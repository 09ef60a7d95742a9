"""Intent handlers turning a command into a spoken reply."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ..services.erp import BackendError, ErpClient
from ..services.schemas import Connection, Intent, Reply
from .extract import extract_customer_name, extract_product_name
from .intents import bypasses_connection_check, classify, navigation_target

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
    "You can ask me to check inventory, create invoices, show open orders, show contacts, "
    "show suppliers, and navigate between pages. Try saying 'Check inventory for product XYZ' "
    "or 'Create invoice for customer ABC'."
)
UNKNOWN_TEXT = "I'm sorry, I didn't understand that command. Try saying 'Help' to see available commands."
PRODUCT_PROMPT = (
    "Please specify a product name for inventory check. For example, 'Check inventory for product XYZ'."
)
CUSTOMER_PROMPT = (
    "Please specify a customer name for the invoice. For example, 'Create invoice for customer ABC'."
)
NAVIGATION_REPLIES = {
    "/": "Navigating to dashboard.",
    "/history": "Navigating to command history.",
    "/settings": "Navigating to settings.",
}

Handler = Callable[[str, Optional[ErpClient], str], Awaitable[Reply]]


def not_connected_text(backend_name: str = "ERPNext") -> str:
    return f"You need to connect to {backend_name} first. Please go to Settings and set up your connection."


def format_quantity(value: float) -> str:
    """Render whole quantities without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


async def handle_inventory(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    if erp is None:
        return Reply(not_connected_text(backend_name), Intent.CHECK_INVENTORY)
    product = extract_product_name(command)
    if not product:
        return Reply(PRODUCT_PROMPT, Intent.CHECK_INVENTORY)
    slots = {"product": product}
    try:
        items = await erp.find_items(product)
        if not items:
            return Reply(f"No inventory found for product {product}.", Intent.CHECK_INVENTORY, slots=slots)
        sentences = []
        for item in items:
            bins = await erp.item_stock(item.name)
            total = sum(entry.actual_qty for entry in bins)
            sentences.append(
                f"Product {item.item_name or product} has {format_quantity(total)} units in stock."
            )
    except BackendError as exc:
        return Reply(f"Error checking inventory: {exc}", Intent.CHECK_INVENTORY, "error", slots)
    return Reply(" ".join(sentences), Intent.CHECK_INVENTORY, slots=slots)


async def handle_invoice(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    if erp is None:
        return Reply(not_connected_text(backend_name), Intent.CREATE_INVOICE)
    customer_name = extract_customer_name(command)
    if not customer_name:
        return Reply(CUSTOMER_PROMPT, Intent.CREATE_INVOICE)
    slots = {"customer": customer_name}
    try:
        customers = await erp.find_customers(customer_name)
        if not customers:
            return Reply(
                f"Customer {customer_name} was not found. Please check the name and try again.",
                Intent.CREATE_INVOICE,
                slots=slots,
            )
        customer = customers[0]
        item = await erp.first_item()
        if item is None:
            return Reply(
                "No items are available to add to the invoice.",
                Intent.CREATE_INVOICE,
                slots=slots,
            )
        invoice = await erp.create_sales_invoice(customer.name, item.name)
    except BackendError as exc:
        return Reply(f"Error creating invoice: {exc}", Intent.CREATE_INVOICE, "error", slots)
    label = customer.customer_name or customer_name
    return Reply(f"Sales invoice {invoice.name} created for customer {label}.", Intent.CREATE_INVOICE, slots=slots)


async def handle_open_orders(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    if erp is None:
        return Reply(not_connected_text(backend_name), Intent.SHOW_OPEN_ORDERS)
    try:
        orders = await erp.open_orders()
    except BackendError as exc:
        return Reply(f"Error fetching open orders: {exc}", Intent.SHOW_OPEN_ORDERS, "error")
    if not orders:
        return Reply("No open orders found.", Intent.SHOW_OPEN_ORDERS)
    latest = orders[0]
    return Reply(
        f"Found {len(orders)} open orders. "
        f"The most recent is {latest.name} for customer {latest.customer or 'unknown'}.",
        Intent.SHOW_OPEN_ORDERS,
    )


async def handle_contacts(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    if erp is None:
        return Reply(not_connected_text(backend_name), Intent.SHOW_CONTACTS)
    try:
        contacts = await erp.contacts()
    except BackendError as exc:
        return Reply(f"Error fetching contacts: {exc}", Intent.SHOW_CONTACTS, "error")
    if not contacts:
        return Reply("No contacts found.", Intent.SHOW_CONTACTS)
    summary = ", ".join(
        f"{contact.display_name} ({contact.email_id})" if contact.email_id else contact.display_name
        for contact in contacts
    )
    return Reply(f"Found {len(contacts)} contacts: {summary}.", Intent.SHOW_CONTACTS)


async def handle_suppliers(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    if erp is None:
        return Reply(not_connected_text(backend_name), Intent.SHOW_SUPPLIERS)
    try:
        suppliers = await erp.suppliers()
    except BackendError as exc:
        return Reply(f"Error fetching suppliers: {exc}", Intent.SHOW_SUPPLIERS, "error")
    if not suppliers:
        return Reply("No suppliers found.", Intent.SHOW_SUPPLIERS)
    summary = ", ".join(
        f"{supplier.display_name} ({supplier.supplier_group})" if supplier.supplier_group else supplier.display_name
        for supplier in suppliers
    )
    return Reply(f"Found {len(suppliers)} suppliers: {summary}.", Intent.SHOW_SUPPLIERS)


async def handle_navigation(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    destination = navigation_target(command)
    if destination is None:
        return Reply(UNKNOWN_TEXT, Intent.UNKNOWN)
    return Reply(NAVIGATION_REPLIES[destination], Intent.NAVIGATE, destination=destination)


async def handle_help(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    return Reply(HELP_TEXT, Intent.HELP)


async def handle_unknown(command: str, erp: Optional[ErpClient], backend_name: str) -> Reply:
    return Reply(UNKNOWN_TEXT, Intent.UNKNOWN)


HANDLERS: dict[Intent, Handler] = {
    Intent.CHECK_INVENTORY: handle_inventory,
    Intent.CREATE_INVOICE: handle_invoice,
    Intent.SHOW_OPEN_ORDERS: handle_open_orders,
    Intent.SHOW_CONTACTS: handle_contacts,
    Intent.SHOW_SUPPLIERS: handle_suppliers,
    Intent.NAVIGATE: handle_navigation,
    Intent.HELP: handle_help,
    Intent.UNKNOWN: handle_unknown,
}


async def interpret(
    command: str,
    connection: Optional[Connection],
    erp: Optional[ErpClient],
    *,
    backend_name: str = "ERPNext",
) -> Reply:
    """Classify ``command`` and run its handler.

    Without a usable connection every command except help and settings
    requests gets the not-connected reply and no backend call is made.
    """
    intent = classify(command)
    connected = connection is not None and connection.usable and erp is not None
    if not connected and not bypasses_connection_check(command):
        return Reply(not_connected_text(backend_name), intent)
    LOGGER.debug("Command classified as %s", intent.value)
    return await HANDLERS[intent](command, erp if connected else None, backend_name)
