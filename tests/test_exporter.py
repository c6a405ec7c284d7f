"""
Tests for exporter.py and the monitor summary.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal

from storecrawler.exporter import export_results, file_timestamp
from storecrawler.models import ExtractionTask, Platform, ProductRecord, RecordOutcome
from storecrawler.monitor import RunMonitor

MOMENT = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def records():
    return [
        ProductRecord(
            name="Bracket Roth 022", link="https://o.cl/product/a/", site="ortotek",
            platform=Platform.WOOCOMMERCE, price="$12.990", price_value=Decimal("12990"),
        ),
        ProductRecord(
            name="Alginato", link="https://www.damus.cl/alginato", site="damus",
            platform=Platform.JUMPSELLER, price="$7.490", price_value=Decimal("7490"),
        ),
        ProductRecord.failed(ExtractionTask("https://o.cl/product/b/", "ortotek", Platform.WOOCOMMERCE), "boom"),
    ]


# ====================================================================
# 1. Files
# ====================================================================

class TestExport:

    def test_timestamp_is_file_safe(self):
        assert file_timestamp(MOMENT) == "2024-01-02T03-04-05-678000+00-00"

    def test_combined_and_per_site_files(self, tmp_path):
        paths = export_results(records(), str(tmp_path / "out"), moment=MOMENT)

        ts = file_timestamp(MOMENT)
        names = sorted(p.split("/")[-1] for p in paths)
        assert names == sorted([
            f"all_products_{ts}.json",
            f"ortotek_products_{ts}.json",
            f"damus_products_{ts}.json",
        ])

        combined = json.loads((tmp_path / "out" / f"all_products_{ts}.json").read_text(encoding="utf-8"))
        assert len(combined) == 3
        assert combined[0]["price_value"] == "12990"
        assert combined[0]["url"] == combined[0]["link"]
        assert combined[2]["outcome"] == "error"

        ortotek = json.loads((tmp_path / "out" / f"ortotek_products_{ts}.json").read_text(encoding="utf-8"))
        assert [r["name"] for r in ortotek] == ["Bracket Roth 022", "Error al extraer datos"]


# ====================================================================
# 2. Monitor
# ====================================================================

class TestMonitor:

    def test_failed_domain_counts_unprocessed_urls(self):
        async def scenario():
            monitor = RunMonitor()
            await monitor.domain_started("www.damus.cl", 5)
            await monitor.record_outcome("www.damus.cl", RecordOutcome.PRODUCT)
            await monitor.record_retry("www.damus.cl")
            await monitor.domain_finished("www.damus.cl", "failed")
            return monitor, await monitor.snapshot()

        monitor, domains = asyncio.run(scenario())
        stats = domains[0]
        assert (stats.processed, stats.succeeded, stats.failed, stats.retries) == (5, 1, 4, 1)

        summary = monitor.format_summary(domains)
        assert "SCRAPE RUN SUMMARY" in summary
        assert "www.damus.cl" in summary
        assert "Failed domains:      1" in summary
