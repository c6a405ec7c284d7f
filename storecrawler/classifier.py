"""
Product Page Classifier
=======================
Decides whether a loaded page is a sellable product page.

A page is reduced to a vector of named boolean signals; the score is the sum
of the weights of the signals that are present, and the page is a product
page iff ``score >= threshold``. Weights are non-negative, so adding a signal
can never lower the score.

All tunables live in one versioned ``ClassifierRules`` object. Bump
``version`` whenever a weight, selector or phrase changes so logged verdicts
can be traced back to the rule set that produced them.

The threshold is deliberately low: a false positive costs one wasted
extraction, a false negative silently drops a real product.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .inspector import PageInspector
from .models import Platform

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------

DEFAULT_WEIGHTS: Dict[str, int] = {
    "purchase_action": 2,
    "price_element": 2,
    "title": 1,
    "gallery": 1,
    "product_form_marker": 2,
    "jumpseller_markers": 2,
    "woocommerce_markers": 2,
    "stock_indicator": 1,
    "purchase_phrases": 1,
    "sku": 2,
    "url_product_pattern": 2,
    "stock_comment": 2,
    "checkout_post_form": 3,
    "strong_url_indicator": 3,
}

# Signals detected by the presence of a CSS selector
DEFAULT_SELECTOR_SIGNALS: Dict[str, str] = {
    "purchase_action": (
        'button[name="add-to-cart"], .single_add_to_cart_button, .add_to_cart_button, '
        '#add-to-cart, .btn-add_to_cart, [id*="add-to-cart"], [class*="add-to-cart"], '
        'form[action*="/cart/add/"]'
    ),
    "price_element": (
        '.price, .woocommerce-Price-amount, .product-price, .product-form-price, '
        '[class*="price"], [id*="price"], span.product-form-price, .form-price_desktop'
    ),
    "title": (
        '.product_title, h1.entry-title, .product-name, h1.page-header, '
        '[class*="product-title"], [class*="product-name"]'
    ),
    "gallery": (
        '.woocommerce-product-gallery, .product-images, .product-gallery, .carousel-inner, '
        '[class*="product-gallery"], [class*="product-image"]'
    ),
    "product_form_marker": 'form[id*="product-form"], form[action*="/cart/add/"]',
    "jumpseller_markers": (
        'form[id*="product-form"], form[action*="/cart/add/"], div[id*="product-sku"], '
        '.form-group.description'
    ),
    "woocommerce_markers": (
        '.woocommerce-product-gallery, .product_meta, .woocommerce-tabs, .related.products'
    ),
    "stock_indicator": (
        '.stock, [class*="stock"], [id*="stock"], .product-stock, .product-out-stock, '
        '.product-unavailable'
    ),
    "sku": '#product-sku, .product-sku, [id*="sku"]',
    "checkout_post_form": 'form[method="post"][action*="/cart/add/"]',
}

DEFAULT_PURCHASE_PHRASES: Tuple[str, ...] = (
    "añadir al carrito",
    "add to cart",
    "agregar al carrito",
    "comprar ahora",
    "buy now",
    "out of stock",
    "agotado",
    "sin stock",
    "no disponible",
)

DEFAULT_STOCK_COMMENTS: Tuple[str, ...] = (
    "<!-- Out of Stock -->",
    "<!-- Not Available -->",
)

DEFAULT_URL_PATTERNS: Tuple[str, ...] = (
    r"/product/",
    r"/producto/",
    r"/[a-z0-9-]+/[a-z0-9-]+/?$",
)

# platform -> (required path fragment, any-of keywords)
DEFAULT_STRONG_URL_RULES: Dict[Platform, Tuple[str, Tuple[str, ...]]] = {
    Platform.WOOCOMMERCE: ("/product/", ("bracket", "kit", "ortodoncia")),
}


@dataclass
class ClassifierRules:
    """Versioned, named-weight rule set for the product-page classifier."""

    version: str = "2024.1"
    threshold: int = 3
    weights: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    selector_signals: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SELECTOR_SIGNALS))
    purchase_phrases: Tuple[str, ...] = DEFAULT_PURCHASE_PHRASES
    stock_comments: Tuple[str, ...] = DEFAULT_STOCK_COMMENTS
    url_patterns: Tuple[str, ...] = DEFAULT_URL_PATTERNS
    strong_url_rules: Dict[Platform, Tuple[str, Tuple[str, ...]]] = field(
        default_factory=lambda: dict(DEFAULT_STRONG_URL_RULES)
    )

    _url_res: List[re.Pattern] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self):
        negative = [name for name, w in self.weights.items() if w < 0]
        if negative:
            raise ValueError(f"Classifier weights must be non-negative: {negative}")
        self._url_res = [re.compile(p) for p in self.url_patterns]

    @property
    def signal_names(self) -> List[str]:
        return list(self.weights)

    def url_matches(self, path: str) -> bool:
        return any(rx.search(path) for rx in self._url_res)

    def strong_url(self, url: str, platform: Platform) -> bool:
        rule = self.strong_url_rules.get(platform)
        if rule is None:
            return False
        fragment, keywords = rule
        return fragment in url and any(k in url for k in keywords)


DEFAULT_RULES = ClassifierRules()


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class ProductClassifier:
    """
    Heuristic product-page gate.

    Usage::

        classifier = ProductClassifier()
        if await classifier.is_product_page(inspector, Platform.WOOCOMMERCE):
            ...

    Errors raised by the inspector (navigation gone, evaluation failure)
    propagate to the caller, which treats them as retryable.
    """

    def __init__(self, rules: Optional[ClassifierRules] = None):
        self.rules = rules or DEFAULT_RULES

    async def collect_signals(self, inspector: PageInspector, platform: Platform) -> Dict[str, bool]:
        rules = self.rules
        signals: Dict[str, bool] = {}

        for name, selector in rules.selector_signals.items():
            signals[name] = await inspector.exists(selector)

        page_text = (await inspector.body_text()).lower()
        signals["purchase_phrases"] = any(p in page_text for p in rules.purchase_phrases) or (
            "stock" in page_text and ("precio" in page_text or "price" in page_text)
        )

        html = await inspector.html()
        signals["stock_comment"] = any(c in html for c in rules.stock_comments)

        url = inspector.url
        signals["url_product_pattern"] = rules.url_matches(urlparse(url).path)
        signals["strong_url_indicator"] = rules.strong_url(url, platform)
        return signals

    def score(self, signals: Mapping[str, bool]) -> int:
        """Sum of the weights of present signals. Unknown signal names weigh 0."""
        weights = self.rules.weights
        return sum(weights.get(name, 0) for name, present in signals.items() if present)

    def verdict(self, signals: Mapping[str, bool]) -> bool:
        return self.score(signals) >= self.rules.threshold

    async def is_product_page(self, inspector: PageInspector, platform: Platform) -> bool:
        signals = await self.collect_signals(inspector, platform)
        is_product = self.verdict(signals)
        logger.debug(f"[CLASSIFY] {inspector.url}: {self.explain(signals)}")
        return is_product

    def explain(self, signals: Mapping[str, bool]) -> str:
        """One-line account of a verdict, for debug logs."""
        present = [name for name, on in signals.items() if on]
        score = self.score(signals)
        verdict = "product" if score >= self.rules.threshold else "not a product"
        return (
            f"score {score}/{self.rules.threshold} ({verdict}, rules v{self.rules.version}) "
            f"signals: {', '.join(present) or 'none'}"
        )


def score_signals(signals: Mapping[str, bool], rules: ClassifierRules = DEFAULT_RULES) -> int:
    """Pure scoring function over a fixed signal vector."""
    return ProductClassifier(rules).score(signals)


def signal_vector(present: Sequence[str], rules: ClassifierRules = DEFAULT_RULES) -> Dict[str, bool]:
    """Full signal vector with only *present* switched on."""
    unknown = set(present) - set(rules.weights)
    if unknown:
        raise KeyError(f"Unknown classifier signals: {sorted(unknown)}")
    return {name: name in present for name in rules.signal_names}
