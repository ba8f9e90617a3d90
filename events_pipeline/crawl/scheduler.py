"""Bounded, polite crawl over seed URLs.

Each seed gets its own FIFO frontier and visited set; seeds run concurrently
under a small worker pool and hand back one immutable batch each, merged
once at the end of the run.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from events_pipeline import config
from events_pipeline.extractors.base import parse_document
from events_pipeline.extractors.pipeline import enrich_from_detail, extract_page
from events_pipeline.models import CanonicalEvent

console = Console()


@dataclass
class CrawlConfig:
    """Budgets, delays and extraction mode for a crawl run."""

    max_pages: int = config.MAX_PAGES_PER_SEED
    max_total_pages: int = config.MAX_PAGES_PER_RUN  # 0 = unbounded
    workers: int = config.CRAWL_WORKERS
    follow_links: bool = True
    mode: str = "auto"
    source: str = "crawler"

    page_delay: float = config.PAGE_DELAY
    detail_delay: float = config.DETAIL_DELAY
    pagination_delay: float = config.PAGINATION_DELAY
    detail_limit: int = config.DETAIL_LIMIT
    pagination_limit: int = config.PAGINATION_LIMIT


class HostThrottle:
    """Minimum interval between requests to the same host."""

    def __init__(self, min_interval: float = config.PAGE_DELAY):
        self.min_interval = min_interval
        self._locks: dict[str, asyncio.Lock] = {}
        self._last: dict[str, float] = {}

    async def wait(self, url: str, interval: Optional[float] = None) -> None:
        host = urlparse(url).hostname or ""
        interval = self.min_interval if interval is None else interval
        lock = self._locks.setdefault(host, asyncio.Lock())
        async with lock:
            last = self._last.get(host)
            if last is not None:
                remaining = interval - (time.monotonic() - last)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last[host] = time.monotonic()


@dataclass(frozen=True)
class SeedResult:
    """What one seed's crawl produced."""

    seed: str
    records: tuple[CanonicalEvent, ...] = ()
    visited: frozenset[str] = frozenset()
    failures: dict[str, str] = field(default_factory=dict)


@dataclass
class CrawlResult:
    """Merged output of a crawl run."""

    seeds: list[SeedResult] = field(default_factory=list)

    @property
    def records(self) -> list[CanonicalEvent]:
        """Records across all seeds, deduplicated by (title, date), first wins."""
        out = []
        seen: set[tuple[str, str]] = set()
        for batch in self.seeds:
            for event in batch.records:
                if event.dedup_key in seen:
                    continue
                seen.add(event.dedup_key)
                out.append(event)
        return out

    @property
    def failures(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for batch in self.seeds:
            merged.update(batch.failures)
        return merged

    @property
    def pages_visited(self) -> int:
        return sum(len(batch.visited) for batch in self.seeds)


class CrawlScheduler:
    """Crawls seeds with a shared fetcher and per-seed frontiers."""

    def __init__(
        self,
        fetcher,
        crawl_config: Optional[CrawlConfig] = None,
        now: Optional[datetime] = None,
    ):
        self.fetcher = fetcher
        self.config = crawl_config or CrawlConfig()
        self.now = now
        self.throttle = HostThrottle(self.config.page_delay)
        self._pages_fetched = 0

    def _run_budget_spent(self) -> bool:
        budget = self.config.max_total_pages
        return budget > 0 and self._pages_fetched >= budget

    async def crawl_seed(self, seed: str) -> SeedResult:
        """Breadth-first crawl of one seed within its page budget."""
        cfg = self.config
        queue = deque([seed])
        queued = {seed}
        visited: set[str] = set()
        pagination_urls: set[str] = set()
        detail_done: set[str] = set()
        records: list[CanonicalEvent] = []
        failures: dict[str, str] = {}

        def enqueue(link: str) -> bool:
            if link in visited or link in queued:
                return False
            if len(queue) + len(visited) >= cfg.max_pages:
                return False
            queue.append(link)
            queued.add(link)
            return True

        while queue and len(visited) < cfg.max_pages:
            if self._run_budget_spent():
                console.print(f"[yellow]Run page budget reached, stopping {seed}[/yellow]")
                break

            url = queue.popleft()
            if url in visited:
                continue
            visited.add(url)
            self._pages_fetched += 1

            delay = cfg.pagination_delay if url in pagination_urls else cfg.page_delay
            await self.throttle.wait(url, delay)
            result = await self.fetcher.fetch(url)
            if not result.ok:
                failures[url] = str(result.error)
                continue

            try:
                page = await extract_page(
                    parse_document(result.html, url),
                    fetcher=self.fetcher,
                    mode=cfg.mode,
                    source=cfg.source,
                    now=self.now,
                )
            except Exception as e:
                console.print(f"[yellow]Extraction failed for {url}: {e}[/yellow]")
                failures[url] = f"exception:{type(e).__name__}"
                continue
            records.extend(page.records)

            if cfg.follow_links:
                for link in page.outlinks:
                    enqueue(link)

            for link in page.pagination_links:
                if len(pagination_urls) >= cfg.pagination_limit:
                    break
                if enqueue(link):
                    pagination_urls.add(link)

            for link in page.detail_links:
                if len(detail_done) >= cfg.detail_limit:
                    break
                if link in detail_done or link in queued:
                    continue
                detail_done.add(link)
                await self.throttle.wait(link, cfg.detail_delay)
                event = await enrich_from_detail(link, self.fetcher, cfg.source, self.now)
                if event:
                    records.append(event)

        console.print(
            f"[dim]{seed}: {len(visited)} pages, {len(records)} records, "
            f"{len(failures)} failures[/dim]"
        )
        return SeedResult(
            seed=seed,
            records=tuple(records),
            visited=frozenset(visited),
            failures=failures,
        )

    async def crawl(self, seeds: list[str]) -> CrawlResult:
        """Crawl every seed; a failing seed yields an empty batch."""
        semaphore = asyncio.Semaphore(max(1, self.config.workers))

        async def run(seed: str) -> SeedResult:
            async with semaphore:
                try:
                    return await self.crawl_seed(seed)
                except Exception as e:
                    console.print(f"[red]Error crawling {seed}: {e}[/red]")
                    return SeedResult(seed=seed, failures={seed: f"exception:{type(e).__name__}"})

        batches: list[SeedResult] = []
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Crawling seeds...", total=len(seeds))
            for coro in asyncio.as_completed([run(seed) for seed in seeds]):
                batches.append(await coro)
                progress.advance(task)

        # Merge in seed order so "first wins" dedup is deterministic
        order = {seed: i for i, seed in reversed(list(enumerate(seeds)))}
        batches.sort(key=lambda batch: order.get(batch.seed, len(seeds)))
        return CrawlResult(seeds=batches)
