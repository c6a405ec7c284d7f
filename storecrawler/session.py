"""
Domain Sessions
===============
One browser session per storefront domain, processing that domain's URLs
strictly in order.

Per URL:

1. politeness delay (every URL but the first)
2. deny-listed URL → non-product record, no navigation
3. up to ``max_retries + 1`` attempts of navigate → settle → classify →
   extract; a non-product verdict is final, a raised error is retried after
   ``retry_backoff_ms × retry_count``
4. exhausted retries → terminal error record carrying the last message

Exactly one record is produced per task. The browser is closed when the
batch ends, whatever happened to individual URLs.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .classifier import ProductClassifier
from .errors import DomainSessionError, ExtractionError
from .extractor import FieldExtractor, extractor_for
from .inspector import PageInspector, PlaywrightInspector
from .models import ExtractionTask, Platform, ProductRecord
from .run_config import ScrapeRunConfig
from .url_rules import DEFAULT_RULES, UrlRules

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Browser sessions
# ---------------------------------------------------------------------------

class BrowserSession(ABC):
    """A single-page browser session scoped to one domain."""

    @abstractmethod
    async def open(self) -> None:
        ...

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int) -> PageInspector:
        """Navigate and return an inspector over the loaded page."""

    @abstractmethod
    async def settle(self, ms: int) -> None:
        """Give client-side rendering time to finish."""

    @abstractmethod
    async def close(self) -> None:
        ...


class PlaywrightSession(BrowserSession):
    """
    Chromium browser + context + page, launched from a shared Playwright
    driver. Nothing is shared with sessions for other domains.
    """

    def __init__(self, playwright: Playwright, config: ScrapeRunConfig):
        self._playwright = playwright
        self._config = config
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def open(self) -> None:
        width, height = self._config.viewport
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
            args=[
                '--disable-gpu',
                '--no-sandbox',
                '--disable-dev-shm-usage',
            ],
        )
        self._context = await self._browser.new_context(
            user_agent=self._config.user_agent,
            viewport={'width': width, 'height': height},
        )
        self._page = await self._context.new_page()

    async def goto(self, url: str, timeout_ms: int) -> PageInspector:
        if self._page is None:
            raise ExtractionError(f"Session not open: {url}")
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise ExtractionError(f"Timeout after {timeout_ms} ms loading {url}") from exc
        except PlaywrightError as exc:
            raise ExtractionError(f"Navigation failed for {url}: {exc.message}") from exc
        return PlaywrightInspector(self._page)

    async def settle(self, ms: int) -> None:
        if self._page is not None and ms > 0:
            await self._page.wait_for_timeout(ms)

    async def close(self) -> None:
        if self._context:
            try:
                await self._context.close()
            except PlaywrightError as exc:
                logger.debug(f"[SESSION] Context close failed: {exc}")
            self._context = None
            self._page = None
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                logger.debug(f"[SESSION] Browser close failed: {exc}")
            self._browser = None


# ---------------------------------------------------------------------------
# Domain batch
# ---------------------------------------------------------------------------

SessionFactory = Callable[[], BrowserSession]
Sleeper = Callable[[float], Awaitable[None]]


class DomainSession:
    """
    Sequential, politeness-delayed processing of one domain's URL batch.

    Usage::

        session = DomainSession("www.ortotek.cl", tasks, config, factory)
        records = await session.run()     # len(records) == len(tasks)

    Raises ``DomainSessionError`` only when the browser session itself cannot
    be opened; per-URL failures become error records.
    """

    def __init__(
        self,
        domain: str,
        tasks: Sequence[ExtractionTask],
        config: ScrapeRunConfig,
        session_factory: SessionFactory,
        classifier: Optional[ProductClassifier] = None,
        extractors: Optional[Mapping[Platform, FieldExtractor]] = None,
        monitor=None,
        deny_rules: UrlRules = DEFAULT_RULES,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.domain = domain
        self.tasks = list(tasks)
        self.config = config
        self.retries = 0
        self._session_factory = session_factory
        self._classifier = classifier or ProductClassifier()
        self._extractors: Dict[Platform, FieldExtractor] = dict(extractors or {})
        self._monitor = monitor
        self._deny_rules = deny_rules
        self._sleep = sleep

    async def run(self) -> List[ProductRecord]:
        session = self._session_factory()
        try:
            await session.open()
        except Exception as exc:
            await self._close(session)
            raise DomainSessionError(self.domain, f"browser session failed to open: {exc}") from exc

        logger.info(f"[SESSION] {self.domain}: opened browser for {len(self.tasks)} URLs")
        records: List[ProductRecord] = []
        try:
            for index, task in enumerate(self.tasks):
                if index > 0 and self.config.request_delay_ms > 0:
                    await self._sleep(self.config.request_delay_ms / 1000)
                logger.info(f"[SESSION] [{index + 1}/{len(self.tasks)}] {task.site}: {task.url}")
                record = await self._process(session, task)
                records.append(record)
                if self._monitor is not None:
                    await self._monitor.record_outcome(self.domain, record.outcome)
        finally:
            await self._close(session)
        return records

    async def _process(self, session: BrowserSession, task: ExtractionTask) -> ProductRecord:
        reason = self._deny_rules.denied_reason(task.url)
        if reason:
            logger.warning(f"[SESSION] Skipping non-product URL {task.url} ({reason})")
            return ProductRecord.not_product(task)

        max_attempts = self.config.max_retries + 1
        last_error: Optional[BaseException] = None
        while task.retry_count < max_attempts:
            try:
                inspector = await session.goto(task.url, self.config.page_timeout_ms)
                await session.settle(self.config.settle_ms)
                if not await self._classifier.is_product_page(inspector, task.platform):
                    logger.warning(f"[CLASSIFY] {task.url} does not look like a product page")
                    return ProductRecord.not_product(task)
                return await self._extractor(task.platform).extract(inspector, task)
            except Exception as exc:
                last_error = exc
                task.retry_count += 1
                logger.warning(
                    f"[SESSION] Attempt {task.retry_count}/{max_attempts} failed for {task.url}: {exc}"
                )
                if task.retry_count >= max_attempts:
                    break
                self.retries += 1
                if self._monitor is not None:
                    await self._monitor.record_retry(self.domain)
                await self._sleep(self.config.retry_backoff_ms * task.retry_count / 1000)

        logger.error(f"[SESSION] All attempts failed for {task.url}")
        return ProductRecord.failed(task, str(last_error) if last_error else "unknown error")

    def _extractor(self, platform: Platform) -> FieldExtractor:
        extractor = self._extractors.get(platform)
        if extractor is None:
            extractor = extractor_for(platform)
            self._extractors[platform] = extractor
        return extractor

    async def _close(self, session: BrowserSession) -> None:
        try:
            await session.close()
        except Exception as exc:
            logger.debug(f"[SESSION] {self.domain}: close failed: {exc}")
        else:
            logger.info(f"[SESSION] {self.domain}: browser closed")
