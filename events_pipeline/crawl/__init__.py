"""Seed crawling: frontier, budgets and per-host politeness."""

from events_pipeline.crawl.scheduler import (
    CrawlConfig,
    CrawlResult,
    CrawlScheduler,
    HostThrottle,
    SeedResult,
)

__all__ = ["CrawlConfig", "CrawlResult", "CrawlScheduler", "HostThrottle", "SeedResult"]
