"""
Tests for pricing.py: display cleaning and Chilean-convention normalization.
"""

from decimal import Decimal

import pytest

from storecrawler.models import StockStatus
from storecrawler.pricing import (
    PRICE_NOT_FOUND,
    PRICE_UNAVAILABLE,
    apply_unavailable,
    clean_price,
    normalize_price,
)


# ====================================================================
# 1. clean_price
# ====================================================================

class TestCleanPrice:

    @pytest.mark.parametrize("raw,expected", [
        ("$12.990", "$12.990"),
        ("$ 12.990", "$12.990"),
        ("12.990", "$12.990"),
        ("Precio: $ 12.990", "$12.990"),
        ("Precio web: $9.990", "$9.990"),
        ("$7.490\nIVA incluido", "$7.490"),
        ("\n  $5.000  \n", "$5.000"),
    ])
    def test_cleaning(self, raw, expected):
        assert clean_price(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty(self, raw):
        assert clean_price(raw) == ""

    @pytest.mark.parametrize("raw", [
        "Precio: $ 12.990",
        "12.990",
        "$1.234,50",
        "$12.990 – $15.990",
        "Desde $ 3.500\nNormal $4.000",
    ])
    def test_idempotent(self, raw):
        once = clean_price(raw)
        assert clean_price(once) == once


# ====================================================================
# 2. normalize_price
# ====================================================================

class TestNormalizePrice:

    @pytest.mark.parametrize("price,expected", [
        ("$ 1.234", Decimal("1234")),
        ("$12.990", Decimal("12990")),
        ("$1.234,50", Decimal("1234.50")),
        ("$990", Decimal("990")),
        ("$12.990 – $15.990", Decimal("12990")),
        ("$1.000.000", Decimal("1000000")),
    ])
    def test_values(self, price, expected):
        assert normalize_price(price) == expected

    @pytest.mark.parametrize("price", [PRICE_NOT_FOUND, PRICE_UNAVAILABLE, "", None, "$", "Consultar"])
    def test_no_value(self, price):
        assert normalize_price(price) is None

    def test_cleaned_and_raw_agree(self):
        raw = "Precio: $ 12.990"
        assert normalize_price(clean_price(raw)) == normalize_price(raw) == Decimal("12990")


# ====================================================================
# 3. Sold-out marker
# ====================================================================

class TestApplyUnavailable:

    def test_missing_price_on_sold_out_item(self):
        assert apply_unavailable(PRICE_NOT_FOUND, StockStatus.OUT_OF_STOCK) == PRICE_UNAVAILABLE

    @pytest.mark.parametrize("price,stock", [
        (PRICE_NOT_FOUND, StockStatus.IN_STOCK),
        (PRICE_NOT_FOUND, StockStatus.UNKNOWN),
        ("$12.990", StockStatus.OUT_OF_STOCK),
    ])
    def test_left_alone(self, price, stock):
        assert apply_unavailable(price, stock) == price
