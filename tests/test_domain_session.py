"""
Tests for session.py: sequential domain batches over a scripted browser.

Covers:
  1. One record per task, in order, with deny-listed URLs never visited
  2. Politeness delay and retry backoff
  3. Retry exhaustion and final non-product verdicts
  4. Session open failures and guaranteed close
"""

import asyncio

import pytest

from storecrawler.errors import DomainSessionError, ExtractionError
from storecrawler.models import ExtractionTask, Platform, RecordOutcome
from storecrawler.monitor import RunMonitor
from storecrawler.run_config import ScrapeRunConfig
from storecrawler.session import DomainSession

from fakes import ABOUT_PAGE_HTML, WOO_PRODUCT_HTML, FakeBrowserSession

DOMAIN = "www.ortotek.cl"
PRODUCT_1 = "https://www.ortotek.cl/product/bracket-roth-022/"
CART = "https://www.ortotek.cl/cart/"
PRODUCT_2 = "https://www.ortotek.cl/product/kit-ortodoncia/"


def tasks_for(*urls):
    return [ExtractionTask(url=u, site="ortotek", platform=Platform.WOOCOMMERCE) for u in urls]


def run_session(browser, tasks, sleeper, config=None, monitor=None):
    session = DomainSession(
        DOMAIN,
        tasks,
        config or ScrapeRunConfig(),
        lambda: browser,
        monitor=monitor,
        sleep=sleeper,
    )
    return session, asyncio.run(session.run())


# ====================================================================
# 1. Batch shape
# ====================================================================

class TestBatch:

    def test_denied_url_in_the_middle(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: WOO_PRODUCT_HTML, PRODUCT_2: WOO_PRODUCT_HTML})

        _, records = run_session(browser, tasks_for(PRODUCT_1, CART, PRODUCT_2), sleeper)

        assert [r.outcome for r in records] == [
            RecordOutcome.PRODUCT, RecordOutcome.NOT_PRODUCT, RecordOutcome.PRODUCT
        ]
        assert [r.link for r in records] == [PRODUCT_1, CART, PRODUCT_2]
        assert browser.visited == [PRODUCT_1, PRODUCT_2]
        assert records[0].name == "Bracket Roth 022"
        assert browser.closed

    def test_settle_after_each_navigation(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: WOO_PRODUCT_HTML})
        run_session(browser, tasks_for(PRODUCT_1), sleeper, ScrapeRunConfig(settle_ms=1500))
        assert browser.settled == [1500]

    def test_monitor_counts_outcomes(self, sleeper):
        async def scenario():
            monitor = RunMonitor()
            await monitor.domain_started(DOMAIN, 3)
            browser = FakeBrowserSession({PRODUCT_1: WOO_PRODUCT_HTML, PRODUCT_2: WOO_PRODUCT_HTML})
            session = DomainSession(
                DOMAIN, tasks_for(PRODUCT_1, CART, PRODUCT_2), ScrapeRunConfig(),
                lambda: browser, monitor=monitor, sleep=sleeper,
            )
            await session.run()
            return (await monitor.snapshot())[0]

        stats = asyncio.run(scenario())
        assert (stats.processed, stats.succeeded, stats.not_product, stats.failed) == (3, 2, 1, 0)


# ====================================================================
# 2. Pacing
# ====================================================================

class TestPacing:

    def test_delay_between_urls_not_before_first(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: WOO_PRODUCT_HTML, PRODUCT_2: WOO_PRODUCT_HTML})
        run_session(browser, tasks_for(PRODUCT_1, CART, PRODUCT_2), sleeper,
                    ScrapeRunConfig(request_delay_ms=1000))
        assert sleeper.calls == [1.0, 1.0]

    def test_no_delay_when_disabled(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: WOO_PRODUCT_HTML, PRODUCT_2: WOO_PRODUCT_HTML})
        run_session(browser, tasks_for(PRODUCT_1, PRODUCT_2), sleeper, ScrapeRunConfig(request_delay_ms=0))
        assert sleeper.calls == []


# ====================================================================
# 3. Retries
# ====================================================================

class TestRetries:

    def test_recovers_after_transient_errors(self, sleeper):
        browser = FakeBrowserSession({
            PRODUCT_1: [ExtractionError("timeout"), ExtractionError("timeout"), WOO_PRODUCT_HTML],
        })
        config = ScrapeRunConfig(request_delay_ms=0, retry_backoff_ms=2000)

        session, records = run_session(browser, tasks_for(PRODUCT_1), sleeper, config)

        assert records[0].outcome is RecordOutcome.PRODUCT
        assert session.retries == 2
        assert sleeper.calls == [2.0, 4.0]

    def test_exhausted_retries_give_an_error_record(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: ExtractionError("boom")})
        config = ScrapeRunConfig(request_delay_ms=0, retry_backoff_ms=2000, max_retries=3)

        session, records = run_session(browser, tasks_for(PRODUCT_1), sleeper, config)

        assert len(records) == 1
        assert records[0].outcome is RecordOutcome.ERROR
        assert records[0].error == "boom"
        assert browser.visited == [PRODUCT_1] * 4
        assert session.retries == 3
        assert sleeper.calls == [2.0, 4.0, 6.0]

    def test_failed_url_does_not_stop_the_batch(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: RuntimeError("crash"), PRODUCT_2: WOO_PRODUCT_HTML})
        config = ScrapeRunConfig(request_delay_ms=0, retry_backoff_ms=0, max_retries=1)

        _, records = run_session(browser, tasks_for(PRODUCT_1, PRODUCT_2), sleeper, config)

        assert [r.outcome for r in records] == [RecordOutcome.ERROR, RecordOutcome.PRODUCT]

    def test_non_product_verdict_is_final(self, sleeper):
        about = "https://www.ortotek.cl/nosotros"
        browser = FakeBrowserSession({about: ABOUT_PAGE_HTML})

        session, records = run_session(browser, tasks_for(about), sleeper)

        assert records[0].outcome is RecordOutcome.NOT_PRODUCT
        assert browser.visited == [about]
        assert session.retries == 0


# ====================================================================
# 4. Session lifecycle
# ====================================================================

class TestLifecycle:

    def test_open_failure_raises_and_closes(self, sleeper):
        browser = FakeBrowserSession({}, fail_open=True)

        session = DomainSession(DOMAIN, tasks_for(PRODUCT_1), ScrapeRunConfig(), lambda: browser, sleep=sleeper)
        with pytest.raises(DomainSessionError) as excinfo:
            asyncio.run(session.run())

        assert excinfo.value.domain == DOMAIN
        assert browser.closed
        assert browser.visited == []

    def test_closed_after_all_urls_fail(self, sleeper):
        browser = FakeBrowserSession({PRODUCT_1: ExtractionError("down")})
        config = ScrapeRunConfig(request_delay_ms=0, retry_backoff_ms=0, max_retries=0)

        _, records = run_session(browser, tasks_for(PRODUCT_1), sleeper, config)

        assert records[0].outcome is RecordOutcome.ERROR
        assert browser.closed
