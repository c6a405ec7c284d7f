"""
Run Monitor
===========
Per-domain progress counters for a scrape run.

Tracks, for every domain batch:
- URLs processed, products, non-product pages, failures
- Retries
- Elapsed time and final status

Async-safe: all mutators take an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Dict, List

from .models import RecordOutcome

logger = logging.getLogger(__name__)


@dataclass
class DomainStats:
    """Counters for one domain batch."""
    domain: str
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    not_product: int = 0
    failed: int = 0
    retries: int = 0
    status: str = "running"      # running | completed | failed
    started: float = 0.0
    finished: float = 0.0

    @property
    def elapsed_sec(self) -> float:
        end = self.finished or time.monotonic()
        return end - self.started if self.started else 0.0


class RunMonitor:
    """
    Usage::

        monitor = RunMonitor()
        await monitor.domain_started("www.damus.cl", total=120)
        await monitor.record_outcome("www.damus.cl", RecordOutcome.PRODUCT)
        await monitor.domain_finished("www.damus.cl", "completed")
        logger.info(monitor.format_summary(await monitor.snapshot()))
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._domains: Dict[str, DomainStats] = {}
        self._start_time = time.monotonic()

    async def domain_started(self, domain: str, total: int) -> None:
        async with self._lock:
            self._domains[domain] = DomainStats(domain=domain, total=total, started=time.monotonic())

    async def record_outcome(self, domain: str, outcome: RecordOutcome) -> None:
        async with self._lock:
            stats = self._stats(domain)
            stats.processed += 1
            if outcome is RecordOutcome.PRODUCT:
                stats.succeeded += 1
            elif outcome is RecordOutcome.NOT_PRODUCT:
                stats.not_product += 1
            else:
                stats.failed += 1

    async def record_retry(self, domain: str) -> None:
        async with self._lock:
            self._stats(domain).retries += 1

    async def domain_finished(self, domain: str, status: str) -> None:
        async with self._lock:
            stats = self._stats(domain)
            stats.status = status
            stats.finished = time.monotonic()
            if status == "failed":
                # Unprocessed URLs of an aborted batch count as failures
                stats.failed += stats.total - stats.processed
                stats.processed = stats.total
        logger.info(
            f"[RUN] {domain} {status}: {stats.succeeded} products, "
            f"{stats.not_product} non-product, {stats.failed} failed"
        )

    async def snapshot(self) -> List[DomainStats]:
        async with self._lock:
            return [replace(s) for s in self._domains.values()]

    @property
    def elapsed_sec(self) -> float:
        return time.monotonic() - self._start_time

    def _stats(self, domain: str) -> DomainStats:
        stats = self._domains.get(domain)
        if stats is None:
            stats = self._domains[domain] = DomainStats(domain=domain, started=time.monotonic())
        return stats

    def format_summary(self, domains: List[DomainStats]) -> str:
        """Format a human-readable per-domain summary table."""
        lines = [
            "=" * 65,
            "  SCRAPE RUN SUMMARY",
            "=" * 65,
            f"  {'Domain':<24}{'Proc':>6}{'OK':>6}{'NonP':>6}{'Fail':>6}{'Retry':>7}{'Secs':>8}",
            "-" * 65,
        ]
        for s in domains:
            lines.append(
                f"  {s.domain[:23]:<24}{s.processed:>6}{s.succeeded:>6}{s.not_product:>6}"
                f"{s.failed:>6}{s.retries:>7}{s.elapsed_sec:>8.1f}"
            )
        lines += [
            "-" * 65,
            f"  Products:            {sum(s.succeeded for s in domains)}",
            f"  Non-product pages:   {sum(s.not_product for s in domains)}",
            f"  Failed:              {sum(s.failed for s in domains)}",
            f"  Failed domains:      {sum(1 for s in domains if s.status == 'failed')}",
            f"  Elapsed time:        {self.elapsed_sec:.1f} s",
            "=" * 65,
        ]
        return "\n".join(lines)
