"""Slot extraction for spoken commands."""

from __future__ import annotations

import re
from typing import Optional, Sequence

# First match wins. The capture stops at the end of the text, a whitespace run or a period.
_PRODUCT_PATTERNS = (
    re.compile(r"for product\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
    re.compile(r"of product\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
    re.compile(r"product\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
)

_CUSTOMER_PATTERNS = (
    re.compile(r"for customer\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
    re.compile(r"of customer\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
    re.compile(r"customer\s+([a-zA-Z0-9\s]+)(?:$|\s|\.)", re.IGNORECASE),
)


def _first_capture(patterns: Sequence[re.Pattern[str]], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_product_name(text: str) -> Optional[str]:
    """Return the product named in ``text`` or ``None``."""
    return _first_capture(_PRODUCT_PATTERNS, text)


def extract_customer_name(text: str) -> Optional[str]:
    """Return the customer named in ``text`` or ``None``."""
    return _first_capture(_CUSTOMER_PATTERNS, text)
