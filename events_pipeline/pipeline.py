"""Main pipeline orchestration."""

from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.table import Table

from events_pipeline import config
from events_pipeline.consolidator import (
    ConsolidationResult,
    consolidate,
    load_records,
    merge_record_sets,
    write_records,
)
from events_pipeline.crawl import CrawlConfig, CrawlScheduler
from events_pipeline.extractors.fetch import Fetcher
from events_pipeline.models import CanonicalEvent
from events_pipeline.normalizers import resolve_datetime

console = Console()


def filter_window(
    events: list[CanonicalEvent],
    days: int,
    now: Optional[datetime] = None,
) -> list[CanonicalEvent]:
    """Keep events starting between yesterday and ``days`` from now."""
    now = now or datetime.now()
    earliest = now - timedelta(days=1)
    latest = now + timedelta(days=days)
    kept = []
    for event in events:
        when = resolve_datetime(event.date_info, event.time_start or None, now)
        if when is not None and earliest <= when <= latest:
            kept.append(event)
    return kept


async def run_crawl(
    seeds: list[str],
    crawl_config: Optional[CrawlConfig] = None,
    *,
    out_path: Union[str, Path] = config.RUN_OUTPUT_PATH,
    days: int = 0,
    fetcher: Optional[Fetcher] = None,
    now: Optional[datetime] = None,
) -> list[CanonicalEvent]:
    """Crawl seeds and write the per-run record file.

    1. Crawl every seed within its budgets
    2. Optionally keep only the next ``days`` days
    3. Write the run output

    Returns:
        The records written.
    """
    console.print(f"\n[bold cyan]Crawling {len(seeds)} seeds[/bold cyan]\n")

    if fetcher is None:
        async with Fetcher() as owned:
            result = await CrawlScheduler(owned, crawl_config, now).crawl(seeds)
    else:
        result = await CrawlScheduler(fetcher, crawl_config, now).crawl(seeds)

    records = result.records
    console.print(
        f"[dim]Pages visited: {result.pages_visited}, failures: {len(result.failures)}[/dim]"
    )

    if days > 0:
        before = len(records)
        records = filter_window(records, days, now)
        console.print(f"[dim]Next {days} days: {len(records)} (removed {before - len(records)})[/dim]")

    write_records(out_path, records)
    console.print(f"[green]Extracted {len(records)} events -> {out_path}[/green]\n")
    return records


def build_dataset(
    inputs: list[Union[str, Path]],
    out_path: Union[str, Path] = config.DATASET_PATH,
    *,
    now: Optional[datetime] = None,
    city_placeholder: str = config.CITY_PLACEHOLDER,
) -> ConsolidationResult:
    """Load, merge and consolidate record files into the canonical dataset."""
    console.print(f"[cyan]Consolidating {len(inputs)} record files...[/cyan]")
    record_sets = [load_records(path) for path in inputs]
    merged = merge_record_sets(*record_sets)
    console.print(f"[dim]Merged {sum(map(len, record_sets))} -> {len(merged)} records[/dim]")

    result = consolidate(merged, now=now, city_placeholder=city_placeholder)
    write_records(out_path, result.events)
    console.print(f"[green]Wrote {len(result.events)} events -> {out_path}[/green]")
    return result


def print_event_summary(events: list[CanonicalEvent], limit: int = 10) -> None:
    """Print a summary table of the soonest events."""
    table = Table(title=f"Event Summary (showing {min(len(events), limit)} of {len(events)})")
    table.add_column("Title", style="cyan", max_width=35)
    table.add_column("When", style="magenta")
    table.add_column("Where", style="green", max_width=25)
    table.add_column("Source", style="yellow")

    for event in events[:limit]:
        when = (event.resolved_timestamp or event.date_info or "?")[:16]
        source = event.provenance.extraction_method if event.provenance else "-"
        table.add_row(event.title[:35], when, event.location[:25] or "?", source or "-")

    console.print(table)


def print_stats(result: ConsolidationResult) -> None:
    """Print statistics about a consolidation run."""
    console.print("\n[bold]Statistics[/bold]")
    console.print(f"  Kept: {len(result.events)}, rejected: {result.total_rejected}")
    if result.rejected:
        console.print(f"  Rejections: {dict(result.rejected.most_common())}")

    methods = Counter(
        e.provenance.extraction_method if e.provenance else "unknown" for e in result.events
    )
    console.print(f"  By method: {dict(methods.most_common(5))}")

    with_coords = sum(1 for e in result.events if e.latitude is not None)
    console.print(f"  With coordinates: {with_coords}")
