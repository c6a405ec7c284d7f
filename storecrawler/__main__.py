#!/usr/bin/env python3
"""
Store Crawler CLI
=================
Runs the product scraper once, or on a fixed interval with ``--every``.

All configuration flows through ``ScrapeRunConfig``: defaults, then the
environment (``.env`` is loaded first), then these flags.

Run with: python -m storecrawler
"""

import argparse
import logging
import sys
import time

from .engine import ScrapeEngine
from .exporter import export_results
from .run_config import ScrapeRunConfig
from .sites import SITEMAP_SOURCES, select_sources
from .store import MemoryProductStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Store Crawler - sitemap-driven product scraper',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m storecrawler                          # All storefronts, once
  python -m storecrawler --site damus --limit 5   # Quick sample of one store
  python -m storecrawler --every 21600            # Every 6 hours
        """
    )
    site_names = [s.site for s in SITEMAP_SOURCES]
    parser.add_argument('--site', action='append', choices=site_names,
                        help='Storefront to scrape (repeatable, default: all)')
    parser.add_argument('--test-mode', action='store_true',
                        help='Only scrape the first TEST_PRODUCT_LIMIT URLs of each site')
    parser.add_argument('--limit', type=int, help='Per-site URL limit (implies --test-mode)')
    parser.add_argument('--output-dir', type=str, help='Directory for JSON results (default: scraper_results)')
    parser.add_argument('--no-export', action='store_true', help='Do not write JSON result files')
    parser.add_argument('--every', type=int, metavar='SECONDS',
                        help='Repeat the run on this interval (runs once immediately)')
    parser.add_argument('--headed', action='store_true', help='Show browser windows')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def run_once(cfg: ScrapeRunConfig, store: MemoryProductStore) -> None:
    engine = ScrapeEngine(cfg, store=store, sources=select_sources(cfg.sites))
    result = engine.run_sync()
    if cfg.export and result.records:
        export_results(result.records, cfg.output_dir)
    elif not result.records:
        logger.warning("[RUN] No records produced, skipping export")
    logger.info(
        f"[RUN] Done: {result.stats.get('products', 0)} products, "
        f"{result.stats.get('not_product', 0)} non-product, "
        f"{result.stats.get('errors', 0)} errors in {result.stats.get('elapsed_time', 0)}s"
    )


def run_cli_with_args(argv=None) -> int:
    """Parse argv, build ScrapeRunConfig, run."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    cfg = ScrapeRunConfig.from_cli_args(args)
    cfg.log_summary()
    store = MemoryProductStore()

    if args.every is None:
        run_once(cfg, store)
        return 0

    logger.info(f"[RUN] Scheduled every {cfg.scraping_interval_s}s")
    try:
        while True:
            try:
                run_once(cfg, store)
            except Exception as exc:
                logger.error(f"[RUN] Scheduled run failed: {exc}", exc_info=True)
            logger.info(f"[RUN] Next run in {cfg.scraping_interval_s}s")
            time.sleep(cfg.scraping_interval_s)
    except KeyboardInterrupt:
        logger.info("[RUN] Scheduler stopped")
    return 0


if __name__ == '__main__':
    sys.exit(run_cli_with_args())
