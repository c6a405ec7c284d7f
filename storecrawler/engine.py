"""
Scrape Engine
=============
Runs one full scrape: sitemaps → domain batches → records → store.

Pipeline::

    SitemapResolver.resolve_all          (worker thread, requests)
        → optional test-mode sampling
        → group tasks by hostname         (first-seen order kept)
        → one TaskQueue-admitted DomainSession per domain
        → persist_product per product record
        → one ScrapeLogEntry per domain
        → RunMonitor summary

Domains run concurrently up to the governor's bound; URLs inside a domain
run sequentially. No single failure aborts the run: a domain whose browser
cannot start is logged as failed and every other domain continues.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from playwright.async_api import async_playwright

from .categories import CategoryClassifier, category_tree
from .classifier import ProductClassifier
from .concurrency import ConcurrencyGovernor, TaskQueue
from .errors import DomainSessionError, StoreError
from .extractor import FieldExtractor, extractor_for
from .models import ExtractionTask, Platform, ProductRecord, RecordOutcome, RunResult, ScrapeLogEntry, SitemapSource
from .monitor import RunMonitor
from .run_config import ScrapeRunConfig
from .selectors import SelectorRegistry
from .session import DomainSession, PlaywrightSession, SessionFactory
from .sitemap import SitemapResolver, limit_per_site
from .sites import SITEMAP_SOURCES, build_registry
from .store import MemoryProductStore, ProductStore, persist_product
from .utils import group_by_domain

logger = logging.getLogger(__name__)


class ScrapeEngine:
    """
    Usage::

        engine = ScrapeEngine(ScrapeRunConfig.from_env(), store=my_store)
        result = engine.run_sync()
        for log in result.logs:
            print(log.site, log.status, log.products_processed)

    ``session_factory`` replaces the Playwright browser (tests, alternative
    drivers); when omitted one Playwright driver is started per run and each
    domain launches its own browser from it.
    """

    def __init__(
        self,
        config: Optional[ScrapeRunConfig] = None,
        store: Optional[ProductStore] = None,
        sources: Optional[Sequence[SitemapSource]] = None,
        resolver: Optional[SitemapResolver] = None,
        session_factory: Optional[SessionFactory] = None,
        classifier: Optional[ProductClassifier] = None,
        categorizer: Optional[CategoryClassifier] = None,
        registry: Optional[SelectorRegistry] = None,
        governor: Optional[ConcurrencyGovernor] = None,
        sleep=asyncio.sleep,
    ):
        self.config = config or ScrapeRunConfig()
        self.store = store if store is not None else MemoryProductStore()
        self.sources = list(sources) if sources is not None else list(SITEMAP_SOURCES)
        self.resolver = resolver or SitemapResolver(
            timeout=self.config.sitemap_timeout_s,
            user_agent=self.config.user_agent,
        )
        self.classifier = classifier or ProductClassifier()
        self.categorizer = categorizer or CategoryClassifier()
        self.governor = governor or ConcurrencyGovernor(
            initial=self.config.max_concurrent,
            floor=self.config.concurrency_floor,
            ceiling=self.config.concurrency_ceiling,
            window_s=self.config.adjust_window_s,
        )
        self.monitor = RunMonitor()
        self._session_factory = session_factory
        self._sleep = sleep
        registry = registry or build_registry()
        self._extractors: Dict[Platform, FieldExtractor] = {
            platform: extractor_for(platform, registry) for platform in Platform
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_sync(self) -> RunResult:
        return asyncio.run(self.run())

    async def run(self) -> RunResult:
        start = time.monotonic()
        logger.info("=" * 65)
        logger.info(f"[RUN] Scrape started at {datetime.now(timezone.utc).isoformat()}")
        logger.info("=" * 65)

        try:
            self.store.ensure_categories(category_tree())
        except StoreError as exc:
            logger.error(f"[STORE] Could not seed categories: {exc}")

        entries = await asyncio.to_thread(self.resolver.resolve_all, self.sources)
        if self.config.test_mode:
            entries = limit_per_site(entries, self.config.test_product_limit)
            logger.info(
                f"[RUN] Test mode: {len(entries)} URLs "
                f"(max {self.config.test_product_limit} per site)"
            )

        tasks = [ExtractionTask.from_entry(e) for e in entries]
        groups = group_by_domain(tasks)
        logger.info(f"[RUN] {len(tasks)} URLs across {len(groups)} domains")

        outcomes = await self._run_batches(groups)

        result = RunResult()
        for records, log in outcomes:
            result.records.extend(records)
            result.logs.append(log)

        domains = await self.monitor.snapshot()
        logger.info("\n" + self.monitor.format_summary(domains))
        result.stats = self._stats(result, time.monotonic() - start)
        return result

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _run_batches(
        self, groups: Dict[str, List[ExtractionTask]]
    ) -> List[Tuple[List[ProductRecord], ScrapeLogEntry]]:
        if not groups:
            return []
        if self._session_factory is not None:
            return await self._schedule(groups, self._session_factory)

        try:
            playwright = await async_playwright().start()
        except Exception as exc:
            logger.error(f"[RUN] Could not start the browser driver: {exc}")
            return [
                await self._domain_failed(domain, tasks, datetime.now(timezone.utc), str(exc))
                for domain, tasks in groups.items()
            ]
        try:
            return await self._schedule(groups, lambda: PlaywrightSession(playwright, self.config))
        finally:
            await playwright.stop()

    async def _schedule(
        self, groups: Dict[str, List[ExtractionTask]], factory: SessionFactory
    ) -> List[Tuple[List[ProductRecord], ScrapeLogEntry]]:
        queue = TaskQueue(self.governor)
        return list(await asyncio.gather(*(
            self._run_domain(queue, domain, tasks, factory)
            for domain, tasks in groups.items()
        )))

    async def _run_domain(
        self,
        queue: TaskQueue,
        domain: str,
        tasks: List[ExtractionTask],
        factory: SessionFactory,
    ) -> Tuple[List[ProductRecord], ScrapeLogEntry]:
        started_at = datetime.now(timezone.utc)
        await self.monitor.domain_started(domain, len(tasks))
        session = DomainSession(
            domain,
            tasks,
            self.config,
            factory,
            classifier=self.classifier,
            extractors=self._extractors,
            monitor=self.monitor,
            sleep=self._sleep,
        )
        try:
            records = await queue.run(session.run)
        except DomainSessionError as exc:
            logger.error(f"[SESSION] {exc}")
            return await self._domain_failed(domain, tasks, started_at, str(exc))

        log = self._persist(domain, tasks[0].site, records, started_at)
        await self.monitor.domain_finished(domain, log.status)
        return records, log

    async def _domain_failed(
        self, domain: str, tasks: List[ExtractionTask], started_at: datetime, message: str
    ) -> Tuple[List[ProductRecord], ScrapeLogEntry]:
        records = [ProductRecord.failed(t, message) for t in tasks]
        log = ScrapeLogEntry(
            site=tasks[0].site,
            status="failed",
            products_processed=0,
            errors_count=len(tasks),
            error_details={'domain': domain, 'message': message},
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        self._append_log(log)
        await self.monitor.domain_finished(domain, "failed")
        return records, log

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(
        self, domain: str, site: str, records: List[ProductRecord], started_at: datetime
    ) -> ScrapeLogEntry:
        stored = 0
        errors: List[Dict[str, str]] = []
        for record in records:
            if record.outcome is RecordOutcome.ERROR:
                errors.append({'url': record.link, 'error': record.error or ""})
                continue
            if not record.is_product:
                continue
            try:
                persist_product(self.store, record, self.categorizer)
                stored += 1
            except StoreError as exc:
                logger.error(f"[STORE] {exc}")
                errors.append({'url': record.link, 'error': str(exc)})

        log = ScrapeLogEntry(
            site=site,
            status="completed",
            products_processed=stored,
            errors_count=len(errors),
            error_details={'domain': domain, 'errors': errors} if errors else None,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(f"[STORE] {domain}: stored {stored} products, {len(errors)} errors")
        self._append_log(log)
        return log

    def _append_log(self, log: ScrapeLogEntry) -> None:
        try:
            self.store.append_scrape_log(log)
        except StoreError as exc:
            logger.error(f"[STORE] Could not record scrape log for {log.site}: {exc}")

    def _stats(self, result: RunResult, elapsed: float) -> Dict[str, object]:
        counts = {outcome: 0 for outcome in RecordOutcome}
        for record in result.records:
            counts[record.outcome] += 1
        return {
            'urls': len(result.records),
            'products': counts[RecordOutcome.PRODUCT],
            'not_product': counts[RecordOutcome.NOT_PRODUCT],
            'errors': counts[RecordOutcome.ERROR],
            'domains': len(result.logs),
            'failed_domains': sum(1 for log in result.logs if log.status == "failed"),
            'concurrency_bound': self.governor.bound,
            'elapsed_time': round(elapsed, 2),
        }
