"""
Selector Tables
===============
Per-site CSS selector tables consumed by the field extractors.

Tables are looked up by ``(platform, site)``; a miss falls back to the
platform default and then to the generic default. Adding a storefront is a
``SelectorRegistry.register`` call, never a new code branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from .models import Platform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteSelectors:
    """
    Selector table for one storefront.

    ``priority_price`` selectors are tried before ``price``; with
    ``split_currency_symbol`` set, a ``currencySymbol`` selector reads the
    amount from the neighbouring node (WooCommerce themes that render the
    ``$`` and the number as siblings).
    """
    title: str = ".product_title, .entry-title, h1"
    image: str = ".woocommerce-product-gallery img, .product-images img, img.wp-post-image"
    price: Tuple[str, ...] = (
        ".woocommerce-Price-amount",
        "p.price",
        ".price",
        ".product-price",
    )
    stock: Tuple[str, ...] = (
        ".stock",
        ".availability",
        ".product-stock",
        ".inventory_status",
    )
    description: Tuple[str, ...] = (
        ".woocommerce-product-details__short-description",
        ".description",
        "#tab-description",
        ".product-description",
    )
    spec_tables: Tuple[str, ...] = (
        ".woocommerce-product-attributes",
        ".shop_attributes",
        ".specifications-table",
    )
    spec_lists: Tuple[str, ...] = (
        ".specifications li",
        ".product-attributes li",
    )
    priority_price: Tuple[str, ...] = ()
    split_currency_symbol: bool = False
    stock_override: Tuple[str, ...] = ()
    sku: Optional[str] = None
    brand: Optional[str] = None
    title_fallbacks: Tuple[str, ...] = ("h1",)
    title_suffix: str = ""


GENERIC_SELECTORS = SiteSelectors()

WOOCOMMERCE_SELECTORS = replace(
    GENERIC_SELECTORS,
    sku=".product_meta .sku",
)

JUMPSELLER_SELECTORS = SiteSelectors(
    title="h1.page-header, h1.text-left, div.brand, .form-group h1",
    image=".product-image img, .product-information img, .carousel-inner img",
    price=(
        "span.product-form-price",
        ".product-form-price",
        "#product-form-price",
        ".form-price_desktop",
        ".form-price_desktop span",
        ".price",
        "[id*='product-form-price']",
        ".form-price",
        "[class*='price']",
    ),
    stock=(
        "#stock",
        ".stock",
        ".form-control-label",
        ".availability",
        "[for='stock']",
        "[id*='stock']",
        "[class*='stock']",
        ".product-stock",
        ".product-out-stock",
        ".product-unavailable",
        "div.form-group.product-stock",
    ),
    description=(
        ".form-group.description",
        "#description",
        ".product-description",
        ".description",
        "[id*='description']",
        "div.form-group.description",
    ),
    spec_tables=(
        ".product-specs table",
        ".specs-table",
        ".specifications table",
        "table.specs",
    ),
    spec_lists=(
        ".product-specs li",
        ".specifications li",
        ".product-details li",
        ".specs li",
    ),
    stock_override=(".form-group.product-stock .form-control-label",),
    sku="#product-sku, .product-sku, [id*='sku'], div.sku",
    brand=".brand",
    title_fallbacks=("h1", ".page-header", ".brand"),
)


class SelectorRegistry:
    """
    ``(platform, site)`` → ``SiteSelectors`` lookup with defaults.

    Usage::

        registry = SelectorRegistry()
        registry.register(Platform.WOOCOMMERCE, "ortotek", ortotek_table)
        table = registry.resolve(Platform.WOOCOMMERCE, "ortotek")
    """

    def __init__(self, default: SiteSelectors = GENERIC_SELECTORS):
        self._default = default
        self._tables: Dict[Tuple[Optional[Platform], Optional[str]], SiteSelectors] = {
            (Platform.WOOCOMMERCE, None): WOOCOMMERCE_SELECTORS,
            (Platform.JUMPSELLER, None): JUMPSELLER_SELECTORS,
        }

    def register(self, platform: Platform, site: Optional[str], table: SiteSelectors) -> None:
        """Register *table* for *site*; ``site=None`` sets the platform default."""
        key = (platform, site)
        if key in self._tables and site is not None:
            logger.debug(f"[EXTRACT] Replacing selector table for {platform.value}/{site}")
        self._tables[key] = table

    def resolve(self, platform: Platform, site: str) -> SiteSelectors:
        for key in ((platform, site), (platform, None)):
            table = self._tables.get(key)
            if table is not None:
                return table
        return self._default

    def sites(self) -> List[str]:
        return sorted(site for (_, site) in self._tables if site is not None)
