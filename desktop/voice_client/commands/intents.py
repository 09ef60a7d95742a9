"""Keyword based intent classification."""

from __future__ import annotations

from typing import Optional

from ..services.schemas import Intent

INVENTORY_PHRASES = ("check inventory", "inventory check", "stock level")
INVOICE_PHRASES = ("create invoice", "make invoice", "new invoice", "generate invoice")
ORDER_PHRASES = ("open orders", "show orders", "pending orders", "list orders")
CONTACT_PHRASES = ("contacts", "contact list", "show contacts", "list contacts")
NAVIGATION_PHRASES = ("go to", "navigate to", "open")
HELP_PHRASES = ("help", "what can you do", "available commands")

# Checked in order; the first destination whose keywords appear wins.
DESTINATIONS = (
    ("/", ("dashboard", "home")),
    ("/history", ("history", "command history")),
    ("/settings", ("settings", "configuration")),
)


def _has_any(text: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def normalize(command: str) -> str:
    return command.lower()


def navigation_target(command: str) -> Optional[str]:
    """Destination path for a navigation command, ``None`` when it names none."""
    text = normalize(command)
    if not _has_any(text, NAVIGATION_PHRASES):
        return None
    for path, keywords in DESTINATIONS:
        if _has_any(text, keywords):
            return path
    return None


def classify(command: str) -> Intent:
    """Map a command to an intent. Rules are tried in a fixed order."""
    text = normalize(command)
    if _has_any(text, INVENTORY_PHRASES) or ("how many" in text and "stock" in text):
        return Intent.CHECK_INVENTORY
    if _has_any(text, INVOICE_PHRASES):
        return Intent.CREATE_INVOICE
    if _has_any(text, ORDER_PHRASES):
        return Intent.SHOW_OPEN_ORDERS
    if _has_any(text, CONTACT_PHRASES):
        return Intent.SHOW_CONTACTS
    if "supplier" in text:
        return Intent.SHOW_SUPPLIERS
    if navigation_target(text) is not None:
        return Intent.NAVIGATE
    if _has_any(text, HELP_PHRASES):
        return Intent.HELP
    return Intent.UNKNOWN


def bypasses_connection_check(command: str) -> bool:
    """Commands about help or settings are answered without a backend."""
    text = normalize(command)
    return "help" in text or "settings" in text
