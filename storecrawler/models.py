"""
Data Model
==========
Plain dataclasses passed between the resolver, the domain sessions, the
extractors and the store.

Lifecycle::

    SitemapSource ──resolve──▶ SitemapEntry ──filter──▶ ExtractionTask
        ──DomainSession──▶ ProductRecord ──persist──▶ store rows
                                            └──────▶ ScrapeLogEntry (per domain)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Platform(str, Enum):
    """Storefront backend families the extractors know about."""
    WOOCOMMERCE = "woocommerce"
    JUMPSELLER = "jumpseller"


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    UNKNOWN = "unknown"


class RecordOutcome(str, Enum):
    PRODUCT = "product"
    NOT_PRODUCT = "not_product"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SitemapSource:
    """Descriptor of one sitemap to resolve."""
    url: str
    site: str
    platform: Platform


@dataclass(frozen=True)
class SitemapEntry:
    """A candidate URL listed by a sitemap."""
    url: str
    site: str
    platform: Platform
    lastmod: Optional[str] = None


@dataclass
class ExtractionTask:
    """One URL to visit, consumed by exactly one DomainSession attempt sequence."""
    url: str
    site: str
    platform: Platform
    retry_count: int = 0

    @classmethod
    def from_entry(cls, entry: SitemapEntry) -> "ExtractionTask":
        return cls(url=entry.url, site=entry.site, platform=entry.platform)


# ---------------------------------------------------------------------------
# Extraction output
# ---------------------------------------------------------------------------

NOT_PRODUCT_NAME = "No es una página de producto"
NOT_PRODUCT_REASON = "URL no corresponde a una página de producto"
FAILED_NAME = "Error al extraer datos"


@dataclass
class ProductRecord:
    """
    Normalized result for a single URL.

    ``price`` keeps the cleaned display text (``"$12.990"``); ``price_value``
    is the numeric reading of it, or ``None`` when the price is unavailable.
    Exactly one record is produced per ExtractionTask, whatever the outcome.
    """
    name: str
    link: str
    site: str
    platform: Platform
    price: str = ""
    price_value: Optional[Decimal] = None
    stock: StockStatus = StockStatus.UNKNOWN
    stock_text: str = ""
    quantity: Optional[int] = None
    image: str = ""
    sku: Optional[str] = None
    brand: Optional[str] = None
    presentation: Optional[str] = None
    description: str = ""
    specifications: Optional[Dict[str, str]] = None
    timestamp: str = field(default_factory=utc_now_iso)
    error: Optional[str] = None
    outcome: RecordOutcome = RecordOutcome.PRODUCT

    @property
    def key(self) -> Tuple[str, str]:
        """Store identity: (site id, url)."""
        return (self.site, self.link)

    @property
    def is_product(self) -> bool:
        return self.outcome is RecordOutcome.PRODUCT

    @classmethod
    def not_product(cls, task: ExtractionTask, reason: str = NOT_PRODUCT_REASON) -> "ProductRecord":
        return cls(
            name=NOT_PRODUCT_NAME,
            link=task.url,
            site=task.site,
            platform=task.platform,
            stock_text="N/A",
            error=reason,
            outcome=RecordOutcome.NOT_PRODUCT,
        )

    @classmethod
    def failed(cls, task: ExtractionTask, message: str) -> "ProductRecord":
        return cls(
            name=FAILED_NAME,
            link=task.url,
            site=task.site,
            platform=task.platform,
            stock_text="Error",
            error=message,
            outcome=RecordOutcome.ERROR,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation (run output files)."""
        return {
            'name': self.name,
            'price': self.price,
            'price_value': str(self.price_value) if self.price_value is not None else None,
            'stock': self.stock.value,
            'stock_text': self.stock_text,
            'quantity': self.quantity,
            'link': self.link,
            'url': self.link,
            'image': self.image,
            'site': self.site,
            'platform': self.platform.value,
            'sku': self.sku,
            'brand': self.brand,
            'presentation': self.presentation,
            'description': self.description,
            'specifications': self.specifications,
            'timestamp': self.timestamp,
            'error': self.error,
            'outcome': self.outcome.value,
        }


@dataclass(frozen=True)
class CategoryAssignment:
    slug: str
    score: int


# ---------------------------------------------------------------------------
# Run bookkeeping
# ---------------------------------------------------------------------------

@dataclass
class ScrapeLogEntry:
    """One per domain per run."""
    site: str
    status: str                      # completed | failed
    products_processed: int = 0
    errors_count: int = 0
    error_details: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def duration_ms(self) -> int:
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'site_id': self.site,
            'status': self.status,
            'products_processed': self.products_processed,
            'errors_count': self.errors_count,
            'error_details': self.error_details,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration': self.duration_ms,
        }


@dataclass
class RunResult:
    """Everything one engine run produced."""
    records: List[ProductRecord] = field(default_factory=list)
    logs: List[ScrapeLogEntry] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
