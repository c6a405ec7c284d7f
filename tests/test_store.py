"""
Tests for store.py: idempotent upserts, price history and category links.
"""

from decimal import Decimal

import pytest

from storecrawler.categories import CategoryClassifier, category_tree
from storecrawler.errors import StoreError
from storecrawler.models import ExtractionTask, Platform, ProductRecord, ScrapeLogEntry
from storecrawler.store import MemoryProductStore, persist_product, product_row


def record(price_value=Decimal("12990"), name="Bracket Roth 022", url="https://o.cl/product/bracket/"):
    return ProductRecord(
        name=name,
        link=url,
        site="ortotek",
        platform=Platform.WOOCOMMERCE,
        price=f"${price_value}" if price_value is not None else "$0",
        price_value=price_value,
    )


@pytest.fixture
def store():
    s = MemoryProductStore()
    s.ensure_categories(category_tree())
    return s


@pytest.fixture
def categorizer():
    return CategoryClassifier()


# ====================================================================
# 1. Upserts
# ====================================================================

class TestUpsert:

    def test_same_record_twice_is_one_row(self, store, categorizer):
        first_id, _ = persist_product(store, record(), categorizer)
        second_id, _ = persist_product(store, record(), categorizer)

        assert first_id == second_id
        assert len(store.products) == 1
        assert len(store.history_for(first_id)) == 1

    def test_distinct_urls_are_distinct_rows(self, store, categorizer):
        persist_product(store, record(url="https://o.cl/product/a/"), categorizer)
        persist_product(store, record(url="https://o.cl/product/b/"), categorizer)
        assert len(store.products) == 2

    def test_update_overwrites_fields(self, store, categorizer):
        product_id, _ = persist_product(store, record(name="Viejo"), categorizer)
        persist_product(store, record(name="Nuevo"), categorizer)
        assert store.products[product_id]['name'] == "Nuevo"

    def test_non_product_records_rejected(self, store, categorizer):
        task = ExtractionTask("https://o.cl/cart/", "ortotek", Platform.WOOCOMMERCE)
        with pytest.raises(StoreError):
            persist_product(store, ProductRecord.not_product(task), categorizer)

    def test_row_mapping(self):
        row = product_row(record())
        assert row['site_id'] == "ortotek"
        assert row['url'] == "https://o.cl/product/bracket/"
        assert row['current_price'] == Decimal("12990")
        assert row['stock_status'] == "unknown"


# ====================================================================
# 2. Price history
# ====================================================================

class TestPriceHistory:

    def test_price_change_appends_one_entry(self, store, categorizer):
        product_id, _ = persist_product(store, record(Decimal("12990")), categorizer)
        persist_product(store, record(Decimal("11990")), categorizer)

        prices = [h.price for h in store.history_for(product_id)]
        assert prices == [Decimal("12990"), Decimal("11990")]
        assert store.products[product_id]['current_price'] == Decimal("11990")

    def test_no_history_without_price(self, store, categorizer):
        product_id, _ = persist_product(store, record(None), categorizer)
        assert store.history_for(product_id) == []

    def test_missing_new_price_does_not_append(self, store, categorizer):
        product_id, _ = persist_product(store, record(Decimal("5000")), categorizer)
        persist_product(store, record(None), categorizer)
        assert len(store.history_for(product_id)) == 1

    def test_first_price_after_missing_one_is_recorded(self, store, categorizer):
        product_id, _ = persist_product(store, record(None), categorizer)
        persist_product(store, record(Decimal("5000")), categorizer)
        assert [h.price for h in store.history_for(product_id)] == [Decimal("5000")]


# ====================================================================
# 3. Categories and failures
# ====================================================================

class TestCategoriesAndFailures:

    def test_categories_linked(self, store, categorizer):
        product_id, slugs = persist_product(store, record(), categorizer)
        assert slugs == ["orthodontics-brackets", "orthodontics"]
        assert store.product_categories[product_id] == slugs

    def test_unknown_slugs_ignored(self, categorizer):
        bare = MemoryProductStore()
        product_id, _ = persist_product(bare, record(), categorizer)
        assert product_id not in bare.product_categories

    def test_ensure_categories_is_idempotent(self, store):
        before = dict(store.categories)
        store.ensure_categories(category_tree())
        assert store.categories == before

    def test_backend_failure_wrapped(self, categorizer):
        class BrokenStore(MemoryProductStore):
            def upsert(self, record):
                raise RuntimeError("connection lost")

        with pytest.raises(StoreError, match="connection lost"):
            persist_product(BrokenStore(), record(), categorizer)

    def test_scrape_log(self, store):
        store.append_scrape_log(ScrapeLogEntry(site="ortotek", status="completed", products_processed=3))
        assert store.scrape_logs[0].to_dict()['products_processed'] == 3
