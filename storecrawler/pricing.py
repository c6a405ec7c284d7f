"""
Price Text
==========
Cleaning and numeric normalization of scraped price strings.

Decimal convention
------------------
All supported storefronts price in Chilean pesos and print amounts the
Chilean way: ``.`` groups thousands and ``,`` separates decimals.

    "$ 1.234"      -> Decimal("1234")
    "$12.990"      -> Decimal("12990")
    "$1.234,50"    -> Decimal("1234.50")

The two sentinels (``PRICE_NOT_FOUND`` and ``PRICE_UNAVAILABLE``) are display
values only; they normalize to ``None``, never to a number.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from .models import StockStatus
from .utils import first_line

logger = logging.getLogger(__name__)

PRICE_NOT_FOUND = "$0"
PRICE_UNAVAILABLE = "No disponible (Agotado)"

LABEL_PREFIXES = ("Precio web:", "Precio:")

# Currency amount as it appears in page text
AMOUNT_RE = re.compile(r"\$\s*[0-9.,]+")

_SYMBOL_GAP_RE = re.compile(r"\$\s+")
_NUMBER_RE = re.compile(r"[0-9][0-9.,]*")


def clean_price(raw: Optional[str]) -> str:
    """
    Normalize a raw price string for display.

    First line only, known labels stripped, ``$`` prefixed when missing and
    glued to the amount. Idempotent: ``clean_price(clean_price(x)) ==
    clean_price(x)``.
    """
    if not raw or not raw.strip():
        return ""
    cleaned = first_line(raw)
    for label in LABEL_PREFIXES:
        cleaned = cleaned.replace(label, "")
    cleaned = cleaned.strip()
    if "$" not in cleaned:
        cleaned = "$" + cleaned
    return _SYMBOL_GAP_RE.sub("$", cleaned)


def normalize_price(price: Optional[str]) -> Optional[Decimal]:
    """
    Numeric value of a cleaned price string, or ``None`` when the price is
    missing, a sentinel, or carries no digits.
    """
    if not price or price in (PRICE_NOT_FOUND, PRICE_UNAVAILABLE):
        return None
    match = _NUMBER_RE.search(price)
    if not match:
        return None
    digits = match.group(0).rstrip(".,").replace(".", "").replace(",", ".")
    try:
        value = Decimal(digits)
    except InvalidOperation:
        logger.debug(f"[EXTRACT] Unparseable price '{price}'")
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def apply_unavailable(price: str, stock: StockStatus) -> str:
    """Replace the not-found sentinel with the unavailable marker for sold-out items."""
    if price == PRICE_NOT_FOUND and stock is StockStatus.OUT_OF_STOCK:
        return PRICE_UNAVAILABLE
    return price
