"""
Unified Run Configuration
=========================
Single source of truth for every scraper default and runtime limit.

Values are layered: ``_DEFAULTS`` → process environment (after ``.env`` is
loaded) → CLI flags. The engine, the domain sessions and the governor all
read from one ``ScrapeRunConfig``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "max_concurrent": 4,             # initial governor bound
    "concurrency_floor": 2,
    "concurrency_ceiling": 8,
    "adjust_window_s": 30.0,
    "request_delay_ms": 1000,        # between URLs of one domain
    "page_timeout_ms": 30000,
    "settle_ms": 2000,               # wait after DOMContentLoaded
    "max_retries": 3,                # extra attempts after the first
    "retry_backoff_ms": 2000,        # multiplied by the retry count
    "test_mode": False,
    "test_product_limit": 10,        # per site, test mode only
    "scraping_interval_s": 6 * 60 * 60,
    "output_dir": "scraper_results",
    "headless": True,
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
    ),
    "viewport": (1280, 800),
    "sitemap_timeout_s": 30.0,
}

# env var -> (field, parser)
_ENV_VARS = {
    "MAX_CONCURRENT_SCRAPES": ("max_concurrent", int),
    "REQUEST_DELAY": ("request_delay_ms", int),
    "TEST_MODE": ("test_mode", lambda v: v.strip().lower() == "true"),
    "TEST_PRODUCT_LIMIT": ("test_product_limit", int),
    "SCRAPING_INTERVAL": ("scraping_interval_s", int),
    "SCRAPER_OUTPUT_DIR": ("output_dir", str),
}


@dataclass
class ScrapeRunConfig:
    """
    Configuration consumed by every scraper subsystem.

    Populate via:
      - ``ScrapeRunConfig()``                 → all defaults
      - ``ScrapeRunConfig.from_env()``        → defaults + environment / ``.env``
      - ``ScrapeRunConfig.from_cli_args(ns)`` → environment + argparse overrides
    """

    # ---- Concurrency ----
    max_concurrent: int = _DEFAULTS["max_concurrent"]
    concurrency_floor: int = _DEFAULTS["concurrency_floor"]
    concurrency_ceiling: int = _DEFAULTS["concurrency_ceiling"]
    adjust_window_s: float = _DEFAULTS["adjust_window_s"]

    # ---- Per-domain pacing ----
    request_delay_ms: int = _DEFAULTS["request_delay_ms"]
    page_timeout_ms: int = _DEFAULTS["page_timeout_ms"]
    settle_ms: int = _DEFAULTS["settle_ms"]
    max_retries: int = _DEFAULTS["max_retries"]
    retry_backoff_ms: int = _DEFAULTS["retry_backoff_ms"]

    # ---- Sampling / scheduling ----
    test_mode: bool = _DEFAULTS["test_mode"]
    test_product_limit: int = _DEFAULTS["test_product_limit"]
    scraping_interval_s: int = _DEFAULTS["scraping_interval_s"]

    # ---- Output ----
    output_dir: str = _DEFAULTS["output_dir"]
    export: bool = True

    # ---- Browser ----
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]
    viewport: Tuple[int, int] = _DEFAULTS["viewport"]
    sitemap_timeout_s: float = _DEFAULTS["sitemap_timeout_s"]

    # ---- Site selection (empty = all shipped storefronts) ----
    sites: List[str] = field(default_factory=list)

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> "ScrapeRunConfig":
        """Build config from the process environment, loading ``.env`` first."""
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ
        overrides = {}
        for var, (name, parse) in _ENV_VARS.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                overrides[name] = parse(raw)
            except ValueError:
                logger.warning(f"[RUN] Ignoring invalid {var}={raw!r}")
        return cls(**overrides)

    @classmethod
    def from_cli_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "ScrapeRunConfig":
        """Build config from an argparse Namespace (``__main__.py``) over the environment."""
        cfg = cls.from_env(environ)
        overrides = {}
        if getattr(args, "site", None):
            overrides["sites"] = list(args.site)
        if getattr(args, "test_mode", False):
            overrides["test_mode"] = True
        if getattr(args, "limit", None) is not None:
            overrides["test_product_limit"] = args.limit
            overrides["test_mode"] = True
        if getattr(args, "output_dir", None):
            overrides["output_dir"] = args.output_dir
        if getattr(args, "no_export", False):
            overrides["export"] = False
        if getattr(args, "every", None) is not None:
            overrides["scraping_interval_s"] = args.every
        if getattr(args, "headed", False):
            overrides["headless"] = False
        return replace(cfg, **overrides)

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 65)
        logger.info("SCRAPE RUN CONFIG")
        logger.info("=" * 65)
        logger.info(f"  Sites:            {', '.join(self.sites) if self.sites else 'all'}")
        logger.info(
            f"  Concurrency:      {self.max_concurrent} "
            f"(floor {self.concurrency_floor}, ceiling {self.concurrency_ceiling})"
        )
        logger.info(f"  Request Delay:    {self.request_delay_ms} ms between URLs")
        logger.info(f"  Page Timeout:     {self.page_timeout_ms} ms")
        logger.info(f"  Max Retries:      {self.max_retries} (backoff {self.retry_backoff_ms} ms x attempt)")
        if self.test_mode:
            logger.info(f"  Test Mode:        {self.test_product_limit} URLs per site")
        logger.info(f"  Headless:         {self.headless}")
        logger.info(f"  Output:           {self.output_dir if self.export else 'disabled'}")
        logger.info("=" * 65)
