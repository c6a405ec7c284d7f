"""
URL Rules
=========
Static URL-shape rules shared by the sitemap resolver and the domain sessions.

- ``is_denied(url)``             : path hits a non-product storefront section
  (cart, checkout, account, search, blog, ...) or is the storefront root
- ``looks_like_product_path(url)``: positive heuristic used for marketplace
  sitemaps that list categories and products side by side
- ``UrlRules``                    : compiled rule set; the module functions use
  the default instance

Deny entries match whole path segments: ``/cart`` rejects ``/cart`` and
``/cart/view`` but not ``/cartucho-azul``.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------
# Deny-lists
# -----------------------------------------------------------------------

DEFAULT_DENY_SECTIONS = (
    "tienda",
    "cart",
    "checkout",
    "account",
    "my-account",
    "login",
    "register",
    "search",
    "wishlist",
    "contact",
    "about",
    "blog",
)

# Marketplace storefronts also publish collection and CMS pages
MARKETPLACE_DENY_SECTIONS = DEFAULT_DENY_SECTIONS + (
    "collections",
    "pages",
)

_DIGIT_RE = re.compile(r"\d")


def url_path(url: str) -> str:
    """
    Return the canonical path of *url*: decoded, dot-segments resolved,
    lower-cased, trailing slash stripped (root stays ``/``).
    """
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return "/"
    raw_path = unquote(parsed.path or "/")
    raw_path = posixpath.normpath(raw_path)
    if not raw_path.startswith("/"):
        raw_path = "/" + raw_path
    if raw_path != "/" and raw_path.endswith("/"):
        raw_path = raw_path.rstrip("/")
    return raw_path.lower()


def path_segments(url: str) -> List[str]:
    return [s for s in url_path(url).split("/") if s]


@dataclass
class UrlRules:
    """
    Compiled deny-list.

    Parameters
    ----------
    deny_sections : list[str]
        Path segments that mark a non-product section.
    deny_root : bool
        Reject the storefront root (``/``).
    extra_patterns : list[str]
        Additional regexes searched against the canonical path.
    """

    deny_sections: List[str] = field(default_factory=lambda: list(DEFAULT_DENY_SECTIONS))
    deny_root: bool = True
    extra_patterns: List[str] = field(default_factory=list)

    _compiled: List[re.Pattern] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self):
        self._compiled = []
        if self.deny_sections:
            alternation = "|".join(re.escape(s.strip("/").lower()) for s in self.deny_sections)
            self._compiled.append(re.compile(rf"/(?:{alternation})(?:/|$)"))
        for pat in self.extra_patterns:
            try:
                self._compiled.append(re.compile(pat, re.IGNORECASE))
            except re.error as exc:
                logger.warning(f"[RULES] Invalid deny-pattern '{pat}': {exc}")

    def denied_reason(self, url: str) -> Optional[str]:
        """Return why *url* is denied, or ``None`` when it is allowed."""
        path = url_path(url)
        if self.deny_root and path == "/":
            return "storefront root"
        for rx in self._compiled:
            m = rx.search(path)
            if m:
                return f"non-product section '{m.group(0).strip('/')}'"
        return None

    def is_denied(self, url: str) -> bool:
        return self.denied_reason(url) is not None


DEFAULT_RULES = UrlRules()
MARKETPLACE_RULES = UrlRules(deny_sections=list(MARKETPLACE_DENY_SECTIONS))


def is_denied(url: str) -> bool:
    """True if *url* belongs to a static non-product section."""
    return DEFAULT_RULES.is_denied(url)


def looks_like_product_path(url: str) -> bool:
    """
    Marketplace heuristic: a product slug has at least two path segments,
    a hyphen, or a digit. A bare single-segment alphabetic path
    (``/acero``) is a category page.
    """
    path = url_path(url)
    if len(path_segments(url)) >= 2:
        return True
    return "-" in path or bool(_DIGIT_RE.search(path))
