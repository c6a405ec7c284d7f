"""
Tests for url_rules.py.

Covers:
  1. Path canonicalisation (decoding, dot-segments, trailing slash, case)
  2. Whole-segment deny-list matching (/cart ≠ /cartucho)
  3. Marketplace deny-list and product-path heuristic
"""

import pytest

from storecrawler.url_rules import (
    MARKETPLACE_RULES,
    UrlRules,
    is_denied,
    looks_like_product_path,
    path_segments,
    url_path,
)


# ====================================================================
# 1. Canonical path
# ====================================================================

class TestUrlPath:

    def test_root_variants(self):
        assert url_path("https://shop.cl") == "/"
        assert url_path("https://shop.cl/") == "/"

    def test_trailing_slash_and_case(self):
        assert url_path("https://shop.cl/Producto/Bracket-Roth/") == "/producto/bracket-roth"

    def test_percent_decoding(self):
        assert url_path("https://shop.cl/producto/f%C3%B3rceps") == "/producto/fórceps"

    def test_dot_segments_resolved(self):
        assert url_path("https://shop.cl/a/b/../c") == "/a/c"

    def test_segments(self):
        assert path_segments("https://shop.cl/producto/kit-1/") == ["producto", "kit-1"]


# ====================================================================
# 2. Deny-list
# ====================================================================

class TestDenyList:

    @pytest.mark.parametrize("url", [
        "https://shop.cl/",
        "https://shop.cl/cart",
        "https://shop.cl/cart/view",
        "https://shop.cl/checkout/",
        "https://shop.cl/my-account/orders/",
        "https://shop.cl/blog/nuevo-post",
        "https://shop.cl/tienda/",
        "https://shop.cl/CART/",
    ])
    def test_denied(self, url):
        assert is_denied(url)

    @pytest.mark.parametrize("url", [
        "https://shop.cl/cartucho-azul",
        "https://shop.cl/producto/brackets-roth",
        "https://shop.cl/product/kit-ortodoncia/",
        "https://shop.cl/blogger-kit",
    ])
    def test_allowed(self, url):
        assert not is_denied(url)

    def test_dot_segments_cannot_hide_a_section(self):
        assert is_denied("https://shop.cl/producto/../cart")

    def test_denied_reason_names_the_section(self):
        rules = UrlRules()
        assert rules.denied_reason("https://shop.cl/") == "storefront root"
        assert "checkout" in rules.denied_reason("https://shop.cl/checkout/pay")
        assert rules.denied_reason("https://shop.cl/producto/x") is None

    def test_root_allowed_when_configured(self):
        assert not UrlRules(deny_root=False).is_denied("https://shop.cl/")

    def test_extra_patterns(self):
        rules = UrlRules(extra_patterns=[r"\.pdf$"])
        assert rules.is_denied("https://shop.cl/docs/catalogo.PDF")
        assert not rules.is_denied("https://shop.cl/producto/catalogo")

    def test_invalid_extra_pattern_is_ignored(self):
        rules = UrlRules(extra_patterns=["("])
        assert not rules.is_denied("https://shop.cl/producto/x")


# ====================================================================
# 3. Marketplace rules
# ====================================================================

class TestMarketplace:

    def test_collections_and_pages_denied(self):
        assert MARKETPLACE_RULES.is_denied("https://www.damus.cl/collections/ofertas")
        assert MARKETPLACE_RULES.is_denied("https://www.damus.cl/pages/envios")
        assert not is_denied("https://www.damus.cl/collections/ofertas")

    @pytest.mark.parametrize("url,expected", [
        ("https://www.damus.cl/acero", False),
        ("https://www.damus.cl/alginato-kromopan", True),
        ("https://www.damus.cl/item123", True),
        ("https://www.damus.cl/ortodoncia/bracket", True),
    ])
    def test_product_path_heuristic(self, url, expected):
        assert looks_like_product_path(url) is expected
