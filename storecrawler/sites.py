"""
Storefronts
===========
The dental-supply storefronts crawled by default: their sitemaps and their
selector tables.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from .models import Platform, SitemapSource
from .selectors import JUMPSELLER_SELECTORS, WOOCOMMERCE_SELECTORS, SelectorRegistry

SITEMAP_SOURCES: List[SitemapSource] = [
    SitemapSource("https://www.ortotek.cl/product-sitemap.xml", "ortotek", Platform.WOOCOMMERCE),
    SitemapSource("https://www.denteeth.cl/wp-sitemap.xml", "denteeth", Platform.WOOCOMMERCE),
    SitemapSource("https://gacchile.cl/wp-sitemap-posts-product-1.xml", "gacchile", Platform.WOOCOMMERCE),
    SitemapSource("https://www.damus.cl/sitemap_1.xml", "damus", Platform.JUMPSELLER),
]

# WooCommerce themes that render the amount inside <bdi>
_WOO_BDI_PRICE = "p.price span.woocommerce-Price-amount.amount bdi"

ORTOTEK = replace(
    WOOCOMMERCE_SELECTORS,
    priority_price=(_WOO_BDI_PRICE,),
    split_currency_symbol=True,
    price=(
        "p.price span.woocommerce-Price-amount.amount bdi",
        "span.woocommerce-Price-amount.amount bdi",
        ".woocommerce-Price-amount.amount bdi",
        "span.woocommerce-Price-currencySymbol",
        "span.woocommerce-Price-currencySymbol + span",
        "span.woocommerce-Price-amount.amount > bdi > span",
        "span.woocommerce-Price-amount.amount > span",
        "span.woocommerce-Price-amount.amount",
        ".product-grid-item span.woocommerce-Price-amount bdi span",
        ".product-grid-item span.woocommerce-Price-amount bdi",
        ".product-grid-item span.woocommerce-Price-amount",
        "p.price",
        ".price",
        ".woocommerce-Price-amount",
    ),
)

DENTEETH = replace(
    WOOCOMMERCE_SELECTORS,
    title=".product_title, h1.entry-title",
    price=(
        "p.price .woocommerce-Price-amount bdi",
        "p.price .woocommerce-Price-amount",
        ".woocommerce-Price-amount bdi",
        ".woocommerce-Price-amount",
        ".price bdi",
        "p.price",
        ".price",
    ),
)

GACCHILE = replace(
    WOOCOMMERCE_SELECTORS,
    title=".product_title, h1.entry-title, .product-name h1, h1.product_title",
    priority_price=(_WOO_BDI_PRICE,),
    split_currency_symbol=True,
    price=(
        "p.price span.woocommerce-Price-amount.amount bdi",
        "span.woocommerce-Price-amount.amount bdi",
        ".woocommerce-Price-amount.amount bdi",
        "span.woocommerce-Price-currencySymbol",
        "p.price",
        ".price",
        ".woocommerce-Price-amount",
        ".summary .price .woocommerce-Price-amount",
        ".summary p.price",
        ".product-content .woocommerce-Price-amount",
        ".single-product-info-wrapper .woocommerce-Price-amount",
    ),
)

DAMUS = replace(
    JUMPSELLER_SELECTORS,
    priority_price=(".product-form-price, #product-form-price, .form-price_desktop",),
    title_suffix=" - Damus",
)

SITE_TABLES = {
    (Platform.WOOCOMMERCE, "ortotek"): ORTOTEK,
    (Platform.WOOCOMMERCE, "denteeth"): DENTEETH,
    (Platform.WOOCOMMERCE, "gacchile"): GACCHILE,
    (Platform.JUMPSELLER, "damus"): DAMUS,
}


def build_registry(extra: Optional[dict] = None) -> SelectorRegistry:
    """Registry preloaded with the shipped storefront tables."""
    registry = SelectorRegistry()
    tables = dict(SITE_TABLES)
    tables.update(extra or {})
    for (platform, site), table in tables.items():
        registry.register(platform, site, table)
    return registry


def select_sources(sites: Optional[Iterable[str]] = None) -> List[SitemapSource]:
    """Default sitemap sources, optionally restricted to *sites* (order kept)."""
    if not sites:
        return list(SITEMAP_SOURCES)
    wanted = set(sites)
    unknown = wanted - {s.site for s in SITEMAP_SOURCES}
    if unknown:
        raise ValueError(f"Unknown site(s): {', '.join(sorted(unknown))}")
    return [s for s in SITEMAP_SOURCES if s.site in wanted]
