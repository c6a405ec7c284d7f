"""
Stock Status
============
Availability phrase tables and the stock reading taken from a product page.

Resolution order (first definite answer wins):

1. platform override element (e.g. a labelled stock block)
2. first matching stock-selector element: its text, then its
   ``out-of-stock`` class
3. page text: sold-out phrases, then in-stock phrases
4. disabled purchase control -> out of stock
5. ``unknown``

Sold-out text always beats in-stock text, and any explicit in-stock text beats
a disabled button. A quantity is only kept when the item is not sold out.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .inspector import PageInspector
from .models import StockStatus

logger = logging.getLogger(__name__)

OUT_OF_STOCK_PHRASES = (
    "agotado",
    "out of stock",
    "sin stock",
    "no disponible",
    "sold out",
)

IN_STOCK_PHRASES = (
    "en stock",
    "disponible",
    "in stock",
    "disponibilidad:",
)

PURCHASE_CONTROL_SELECTOR = (
    '.single_add_to_cart_button, .add_to_cart_button, [name="add-to-cart"], '
    '#add-to-cart, .btn-add-to-cart'
)

MAX_QUANTITY = 10000

_QUANTITY_RE = re.compile(r"\b\d{1,4}\b")

_STATUS_LABELS = {
    StockStatus.IN_STOCK: "En stock",
    StockStatus.OUT_OF_STOCK: "Agotado",
    StockStatus.UNKNOWN: "Desconocido",
}


@dataclass
class StockReading:
    status: StockStatus = StockStatus.UNKNOWN
    text: str = _STATUS_LABELS[StockStatus.UNKNOWN]
    quantity: Optional[int] = None

    @classmethod
    def of(cls, status: StockStatus, text: str = "", quantity: Optional[int] = None) -> "StockReading":
        if status is StockStatus.OUT_OF_STOCK:
            quantity = None
        return cls(status=status, text=text or _STATUS_LABELS[status], quantity=quantity)


def classify_stock_text(text: str) -> StockStatus:
    """Map availability text to a status. Sold-out phrases are checked first."""
    lowered = (text or "").lower()
    if any(phrase in lowered for phrase in OUT_OF_STOCK_PHRASES):
        return StockStatus.OUT_OF_STOCK
    if any(phrase in lowered for phrase in IN_STOCK_PHRASES):
        return StockStatus.IN_STOCK
    return StockStatus.UNKNOWN


def parse_quantity(text: str) -> Optional[int]:
    """First standalone 1-4 digit number in *text*, if within ``[0, 10000)``."""
    match = _QUANTITY_RE.search(text or "")
    if not match:
        return None
    value = int(match.group(0))
    return value if 0 <= value < MAX_QUANTITY else None


def _line_with(text: str, phrases: Iterable[str]) -> Optional[str]:
    for line in text.split("\n"):
        lowered = line.lower()
        if any(phrase in lowered for phrase in phrases):
            return line.strip()
    return None


async def read_stock(
    inspector: PageInspector,
    stock_selectors: Sequence[str],
    override_selectors: Sequence[str] = (),
) -> StockReading:
    """Resolve the stock reading of the loaded page."""
    for selector in override_selectors:
        el = await inspector.query(selector)
        if el is None:
            continue
        text = await el.text()
        status = classify_stock_text(text)
        if status is not StockStatus.UNKNOWN:
            return StockReading.of(status, text, parse_quantity(text))

    fallback_quantity = None
    for selector in stock_selectors:
        el = await inspector.query(selector)
        if el is None:
            continue
        text = await el.text()
        status = classify_stock_text(text)
        if status is StockStatus.UNKNOWN:
            css_class = (await el.attribute("class") or "").lower()
            if "out-of-stock" in css_class:
                status = StockStatus.OUT_OF_STOCK
            elif "in-stock" in css_class:
                status = StockStatus.IN_STOCK
        if status is not StockStatus.UNKNOWN:
            return StockReading.of(status, text, parse_quantity(text))
        fallback_quantity = parse_quantity(text)
        break

    page_text = await inspector.body_text()
    sold_out_line = _line_with(page_text, OUT_OF_STOCK_PHRASES)
    if sold_out_line is not None:
        return StockReading.of(StockStatus.OUT_OF_STOCK)
    available_line = _line_with(page_text, IN_STOCK_PHRASES)
    if available_line is not None:
        quantity = parse_quantity(available_line)
        if quantity is None:
            quantity = fallback_quantity
        return StockReading.of(StockStatus.IN_STOCK, quantity=quantity)

    control = await inspector.query(PURCHASE_CONTROL_SELECTOR)
    if control is not None and await control.is_disabled():
        logger.debug(f"[EXTRACT] Disabled purchase control on {inspector.url}")
        return StockReading.of(StockStatus.OUT_OF_STOCK)

    return StockReading.of(StockStatus.UNKNOWN, quantity=fallback_quantity)
