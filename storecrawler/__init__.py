"""
Store Crawler Package
Sitemap-driven product scraper for WooCommerce and Jumpseller storefronts.

CLI Usage:
    python -m storecrawler [options]

    Options:
        --site          Restrict the run to one storefront (repeatable)
        --test-mode     Sample TEST_PRODUCT_LIMIT URLs per site
        --limit         Per-site sample size (implies --test-mode)
        --output-dir    Directory for the JSON result files
        --no-export     Skip writing result files
        --every         Repeat the run every N seconds
        --headed        Show the browser windows
        --verbose       Debug logging
"""

from .categories import CategoryClassifier, category_tree
from .classifier import ClassifierRules, ProductClassifier
from .concurrency import ConcurrencyGovernor, ResourceProbe, TaskQueue
from .engine import ScrapeEngine
from .errors import DomainSessionError, ExtractionError, ScraperError, SitemapError, StoreError
from .extractor import FieldExtractor, JumpsellerExtractor, WooCommerceExtractor, extractor_for
from .inspector import HtmlInspector, PageInspector, PlaywrightInspector
from .models import (
    CategoryAssignment,
    ExtractionTask,
    Platform,
    ProductRecord,
    RunResult,
    ScrapeLogEntry,
    SitemapEntry,
    SitemapSource,
    StockStatus,
)
from .run_config import ScrapeRunConfig
from .session import BrowserSession, DomainSession, PlaywrightSession
from .sitemap import SitemapResolver
from .store import MemoryProductStore, ProductStore, persist_product

__all__ = [
    'ScrapeEngine',
    'ScrapeRunConfig',
    # Discovery
    'SitemapResolver',
    'SitemapSource',
    'SitemapEntry',
    # Scheduling
    'ConcurrencyGovernor',
    'ResourceProbe',
    'TaskQueue',
    # Sessions
    'BrowserSession',
    'PlaywrightSession',
    'DomainSession',
    'ExtractionTask',
    # Page analysis
    'PageInspector',
    'HtmlInspector',
    'PlaywrightInspector',
    'ClassifierRules',
    'ProductClassifier',
    'FieldExtractor',
    'WooCommerceExtractor',
    'JumpsellerExtractor',
    'extractor_for',
    'CategoryClassifier',
    'category_tree',
    # Records / persistence
    'Platform',
    'StockStatus',
    'ProductRecord',
    'CategoryAssignment',
    'ScrapeLogEntry',
    'RunResult',
    'ProductStore',
    'MemoryProductStore',
    'persist_product',
    # Errors
    'ScraperError',
    'SitemapError',
    'ExtractionError',
    'DomainSessionError',
    'StoreError',
]

__version__ = '1.0.0'
