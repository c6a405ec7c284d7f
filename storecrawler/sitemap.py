"""
Sitemap Resolver
================
Turns sitemap descriptors into candidate product URLs.

Three strategies, chosen from the descriptor:

1. **Index**: a ``<sitemapindex>`` (or a WordPress ``wp-sitemap.xml`` root):
   every sub-sitemap whose URL mentions ``product`` is fetched and its leaf
   ``<url>`` entries are collected as-is.
2. **Direct**: a ``<urlset>``: leaf entries minus the static deny-list.
3. **Marketplace**: a Jumpseller ``<urlset>``: the wider marketplace
   deny-list plus the product-path heuristic from ``url_rules``.

A fetch or parse failure is logged and contributes zero URLs; it never
aborts the run.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from .errors import SitemapError
from .models import Platform, SitemapEntry, SitemapSource
from .url_rules import DEFAULT_RULES, MARKETPLACE_RULES, looks_like_product_path

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

# Nested indexes deeper than this are ignored
_MAX_INDEX_DEPTH = 3


class SitemapResolver:
    """
    Fetches and parses XML sitemaps into ``SitemapEntry`` lists.

    Usage::

        resolver = SitemapResolver()
        entries = resolver.resolve(SitemapSource(url, "ortotek", Platform.WOOCOMMERCE))
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/xml,text/xml;q=0.9,*/*;q=0.8',
        })

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_all(self, sources: Iterable[SitemapSource]) -> List[SitemapEntry]:
        """Resolve every source, concatenating results in source order."""
        entries: List[SitemapEntry] = []
        for source in sources:
            found = self.resolve(source)
            logger.info(f"[SITEMAP] {source.site}: {len(found)} candidate URLs")
            entries.extend(found)
        logger.info(f"[SITEMAP] Total candidate URLs: {len(entries)}")
        return entries

    def resolve(self, source: SitemapSource) -> List[SitemapEntry]:
        """Resolve one sitemap descriptor. Never raises."""
        logger.info(f"[SITEMAP] Processing {source.site}: {source.url}")
        try:
            soup = self._fetch(source.url)
        except SitemapError as exc:
            logger.error(f"[SITEMAP] Failed to load sitemap {exc}")
            return []

        if self._is_index(source, soup):
            logger.info(f"[SITEMAP] {source.site}: index sitemap")
            return self._resolve_index(soup, source, depth=0)
        if source.platform is Platform.JUMPSELLER:
            return self._resolve_marketplace(soup, source)
        return self._resolve_direct(soup, source)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _resolve_index(self, soup: BeautifulSoup, source: SitemapSource, depth: int) -> List[SitemapEntry]:
        sub_urls = [
            loc for loc in self._sitemap_locs(soup)
            if "product" in loc.lower()
        ]
        entries: List[SitemapEntry] = []
        for sub_url in sub_urls:
            logger.info(f"[SITEMAP] Sub-sitemap: {sub_url}")
            try:
                sub_soup = self._fetch(sub_url)
            except SitemapError as exc:
                logger.error(f"[SITEMAP] Failed to load sub-sitemap {exc}")
                continue
            if sub_soup.find("sitemapindex") is not None:
                if depth + 1 >= _MAX_INDEX_DEPTH:
                    logger.warning(f"[SITEMAP] Index nesting too deep, skipping {sub_url}")
                    continue
                entries.extend(self._resolve_index(sub_soup, source, depth + 1))
                continue
            entries.extend(self._leaf_entries(sub_soup, source))
        return entries

    def _resolve_direct(self, soup: BeautifulSoup, source: SitemapSource) -> List[SitemapEntry]:
        kept = []
        for entry in self._leaf_entries(soup, source):
            reason = DEFAULT_RULES.denied_reason(entry.url)
            if reason:
                logger.debug(f"[SITEMAP] Skipping {entry.url} ({reason})")
                continue
            kept.append(entry)
        return kept

    def _resolve_marketplace(self, soup: BeautifulSoup, source: SitemapSource) -> List[SitemapEntry]:
        kept = []
        skipped = Counter()
        for entry in self._leaf_entries(soup, source):
            reason = MARKETPLACE_RULES.denied_reason(entry.url)
            if reason:
                skipped['denied'] += 1
                logger.debug(f"[SITEMAP] Skipping {entry.url} ({reason})")
                continue
            if not looks_like_product_path(entry.url):
                skipped['heuristic'] += 1
                logger.debug(f"[SITEMAP] Skipping likely non-product URL: {entry.url}")
                continue
            kept.append(entry)
        logger.info(
            f"[SITEMAP] {source.site} (marketplace): kept {len(kept)}, "
            f"denied {skipped['denied']}, heuristic-dropped {skipped['heuristic']}"
        )
        return kept

    # ------------------------------------------------------------------
    # XML helpers
    # ------------------------------------------------------------------

    def _fetch(self, url: str) -> BeautifulSoup:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SitemapError(url, str(exc)) from exc

        soup = BeautifulSoup(response.content, "xml")
        if soup.find("urlset") is None and soup.find("sitemapindex") is None:
            raise SitemapError(url, "not a sitemap document")
        return soup

    @staticmethod
    def _is_index(source: SitemapSource, soup: BeautifulSoup) -> bool:
        url = source.url.lower()
        if "wp-sitemap.xml" in url and "product" not in url:
            return True
        return soup.find("sitemapindex") is not None

    @staticmethod
    def _sitemap_locs(soup: BeautifulSoup) -> List[str]:
        locs = []
        for node in soup.find_all("sitemap"):
            loc = node.find("loc", recursive=False)
            if loc and loc.get_text(strip=True):
                locs.append(loc.get_text(strip=True))
        return locs

    @staticmethod
    def _leaf_entries(soup: BeautifulSoup, source: SitemapSource) -> List[SitemapEntry]:
        entries = []
        for node in soup.find_all("url"):
            loc = node.find("loc", recursive=False)
            if not loc or not loc.get_text(strip=True):
                continue
            lastmod = node.find("lastmod", recursive=False)
            entries.append(SitemapEntry(
                url=loc.get_text(strip=True),
                site=source.site,
                platform=source.platform,
                lastmod=lastmod.get_text(strip=True) if lastmod else None,
            ))
        return entries


def limit_per_site(entries: Iterable[SitemapEntry], limit: int) -> List[SitemapEntry]:
    """Keep the first *limit* entries of every site (test-mode sampling)."""
    taken: Counter = Counter()
    sampled = []
    for entry in entries:
        if taken[entry.site] >= limit:
            continue
        taken[entry.site] += 1
        sampled.append(entry)
    return sampled
