"""
Scraper Errors
==============
Exception hierarchy shared by every storecrawler component.

Only ``ExtractionError`` is retried (per URL, by ``DomainSession``).
``DomainSessionError`` aborts a single domain batch, ``StoreError`` a single
product write; sitemap problems never escape the resolver.
"""


class ScraperError(Exception):
    """Base class for all storecrawler errors."""


class SitemapError(ScraperError):
    """A sitemap (or sub-sitemap) could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(ScraperError):
    """Navigation, timeout or DOM evaluation failure for a single URL."""


class DomainSessionError(ScraperError):
    """The browser session for a whole domain could not be established."""

    def __init__(self, domain: str, reason: str):
        super().__init__(f"{domain}: {reason}")
        self.domain = domain
        self.reason = reason


class StoreError(ScraperError):
    """The product store rejected a write."""
