"""
Product Store
=============
Persistence contract for scraped products, and an in-process implementation.

The real database (products, categories, price_history, scraping_logs) is
owned outside this package; anything implementing ``ProductStore`` can be
plugged into the engine. ``MemoryProductStore`` backs dry runs and tests.

``persist_product`` is the single write path for a product record:

1. look the product up by ``(site, url)``
2. insert or update the row
3. append price history (insert: when a price exists; update: when the price
   changed and the new price exists)
4. assign the detected categories
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .categories import CategoryClassifier
from .errors import StoreError
from .models import ProductRecord, ScrapeLogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredProduct:
    id: int
    current_price: Optional[Decimal]


@dataclass(frozen=True)
class PriceHistoryEntry:
    product_id: int
    price: Decimal
    recorded_at: datetime


def product_row(record: ProductRecord) -> Dict[str, Any]:
    """Column mapping of a product record for the products table."""
    return {
        'site_id': record.site,
        'url': record.link,
        'name': record.name,
        'current_price': record.price_value,
        'price_text': record.price,
        'stock_status': record.stock.value,
        'stock_quantity': record.quantity,
        'image_url': record.image,
        'platform': record.platform.value,
        'sku': record.sku,
        'brand': record.brand,
        'presentation': record.presentation,
        'description': record.description,
        'specifications': record.specifications,
        'last_scraped_at': record.timestamp,
    }


class ProductStore(ABC):
    """Write contract consumed by the engine."""

    @abstractmethod
    def find_by_key(self, site: str, url: str) -> Optional[StoredProduct]:
        ...

    @abstractmethod
    def upsert(self, record: ProductRecord) -> int:
        """Insert or update the product keyed by ``(site, url)``; return its id."""

    @abstractmethod
    def append_price_history(self, product_id: int, price: Decimal) -> None:
        ...

    @abstractmethod
    def assign_categories(self, product_id: int, slugs: Iterable[str]) -> None:
        ...

    @abstractmethod
    def append_scrape_log(self, entry: ScrapeLogEntry) -> None:
        ...

    @abstractmethod
    def ensure_categories(self, rows: Iterable[Tuple[str, str, Optional[str]]]) -> None:
        """Create any missing ``(slug, name, parent_slug)`` category rows."""


class MemoryProductStore(ProductStore):
    """Dict-backed store. Not shared across processes."""

    def __init__(self):
        self.products: Dict[int, Dict[str, Any]] = {}
        self.price_history: List[PriceHistoryEntry] = []
        self.product_categories: Dict[int, List[str]] = {}
        self.categories: Dict[str, Tuple[str, Optional[str]]] = {}
        self.scrape_logs: List[ScrapeLogEntry] = []
        self._keys: Dict[Tuple[str, str], int] = {}
        self._ids = itertools.count(1)

    def find_by_key(self, site: str, url: str) -> Optional[StoredProduct]:
        product_id = self._keys.get((site, url))
        if product_id is None:
            return None
        return StoredProduct(product_id, self.products[product_id]['current_price'])

    def upsert(self, record: ProductRecord) -> int:
        if not record.is_product:
            raise StoreError(f"Refusing to store {record.outcome.value} record for {record.link}")
        row = product_row(record)
        product_id = self._keys.get(record.key)
        if product_id is None:
            product_id = next(self._ids)
            self._keys[record.key] = product_id
        self.products[product_id] = row
        return product_id

    def append_price_history(self, product_id: int, price: Decimal) -> None:
        if product_id not in self.products:
            raise StoreError(f"Unknown product id {product_id}")
        self.price_history.append(PriceHistoryEntry(product_id, price, datetime.now(timezone.utc)))

    def assign_categories(self, product_id: int, slugs: Iterable[str]) -> None:
        known = [s for s in slugs if s in self.categories]
        if known:
            self.product_categories[product_id] = known

    def append_scrape_log(self, entry: ScrapeLogEntry) -> None:
        self.scrape_logs.append(entry)

    def ensure_categories(self, rows: Iterable[Tuple[str, str, Optional[str]]]) -> None:
        for slug, name, parent in rows:
            self.categories.setdefault(slug, (name, parent))

    def history_for(self, product_id: int) -> List[PriceHistoryEntry]:
        return [h for h in self.price_history if h.product_id == product_id]


def persist_product(
    store: ProductStore,
    record: ProductRecord,
    categorizer: CategoryClassifier,
) -> Tuple[int, List[str]]:
    """
    Write one product record; return ``(product_id, category_slugs)``.

    Raises ``StoreError`` if the store rejects any step.
    """
    try:
        existing = store.find_by_key(record.site, record.link)
        product_id = store.upsert(record)
        new_price = record.price_value
        if existing is None:
            if new_price is not None:
                store.append_price_history(product_id, new_price)
        elif new_price is not None and new_price != existing.current_price:
            logger.info(
                f"[STORE] Price change for {record.link}: {existing.current_price} -> {new_price}"
            )
            store.append_price_history(product_id, new_price)

        slugs = categorizer.slugs(record)
        store.assign_categories(product_id, slugs)
    except StoreError:
        raise
    except Exception as exc:
        raise StoreError(f"{record.link}: {exc}") from exc
    return product_id, slugs
