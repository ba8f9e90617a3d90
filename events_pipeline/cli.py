"""CLI for the events pipeline."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

# Settings in events_pipeline.config are read at import time
load_dotenv()

from rich.console import Console  # noqa: E402

from events_pipeline import config  # noqa: E402
from events_pipeline.consolidator import load_records, merge_record_sets, write_records  # noqa: E402
from events_pipeline.crawl import CrawlConfig  # noqa: E402
from events_pipeline.enrichers import GeocodeCache, Geocoder, VenueTable, enrich_coordinates, geocoder_client  # noqa: E402
from events_pipeline.errors import DatasetQualityFailure  # noqa: E402
from events_pipeline.extractors.pipeline import MODES  # noqa: E402
from events_pipeline.normalizers import normalize_record  # noqa: E402
from events_pipeline.pipeline import build_dataset, print_event_summary, print_stats, run_crawl  # noqa: E402
from events_pipeline.seeds import expand_seeds, load_seeds, write_seeds  # noqa: E402
from events_pipeline.validators import domain_metrics, enforce_quality_gate, validate_dataset  # noqa: E402

app = typer.Typer(
    name="events-pipeline",
    help="Event discovery and consolidation pipeline",
    add_completion=False,
)
console = Console()


def _crawl_config(
    max_pages: int,
    max_run_pages: int,
    follow: bool,
    mode: str,
    workers: int,
) -> CrawlConfig:
    if mode not in MODES:
        console.print(f"[red]Unknown mode {mode!r}, expected one of: {', '.join(MODES)}[/red]")
        raise typer.Exit(1)
    return CrawlConfig(
        max_pages=max(1, max_pages),
        max_total_pages=max(0, max_run_pages),
        follow_links=follow,
        mode=mode,
        workers=workers,
    )


def _seeds_or_exit(seeds_path: Path, expand: bool) -> list[str]:
    try:
        seeds = load_seeds(seeds_path)
    except OSError as e:
        console.print(f"[red]Error reading seeds: {e}[/red]")
        raise typer.Exit(1)
    if not seeds:
        console.print("[yellow]No seeds to crawl[/yellow]")
        raise typer.Exit(0)
    return expand_seeds(seeds) if expand else seeds


@app.command()
def crawl(
    seeds_path: Path = typer.Option(..., "--seeds", "-s", help="Seed file, one URL per line"),
    out: Path = typer.Option(config.RUN_OUTPUT_PATH, "--out", "-o", help="Per-run output file"),
    days: int = typer.Option(0, "--days", help="Keep only the next N days (0 = no window)"),
    max_pages: int = typer.Option(config.MAX_PAGES_PER_SEED, "--max-pages", help="Page budget per seed"),
    max_run_pages: int = typer.Option(config.MAX_PAGES_PER_RUN, "--max-run-pages", help="Page budget per run (0 = unbounded)"),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Follow same-host event links"),
    mode: str = typer.Option("auto", "--mode", "-m", help="structured, auto or general"),
    workers: int = typer.Option(config.CRAWL_WORKERS, "--workers", "-w", help="Seeds crawled concurrently"),
    expand: bool = typer.Option(False, "--expand/--no-expand", help="Expand known pagination patterns"),
):
    """Crawl seed URLs and write the per-run record file."""
    seeds = _seeds_or_exit(seeds_path, expand)
    crawl_config = _crawl_config(max_pages, max_run_pages, follow, mode, workers)
    records = asyncio.run(run_crawl(seeds, crawl_config, out_path=out, days=days))
    print_event_summary(records)


@app.command()
def merge(
    inputs: list[Path] = typer.Argument(..., help="Record files to merge"),
    out: Path = typer.Option(..., "--out", "-o", help="Merged output file"),
):
    """Concatenate record files, dropping exact repeats."""
    record_sets = [load_records(path) for path in inputs]
    merged = merge_record_sets(*record_sets)
    write_records(out, merged)
    console.print(f"[green]Merged {sum(map(len, record_sets))} -> {len(merged)} into {out}[/green]")


@app.command()
def consolidate(
    inputs: Optional[list[Path]] = typer.Argument(None, help="Record files (default: run output + dataset)"),
    out: Path = typer.Option(config.DATASET_PATH, "--out", "-o", help="Canonical dataset file"),
    show_summary: bool = typer.Option(True, "--summary/--no-summary", help="Show summary table"),
    show_stats: bool = typer.Option(True, "--stats/--no-stats", help="Show statistics"),
):
    """Consolidate record files into the canonical dataset."""
    paths = inputs or [p for p in (config.RUN_OUTPUT_PATH, config.DATASET_PATH) if p.exists()]
    if not paths:
        console.print("[yellow]No record files to consolidate[/yellow]")
        raise typer.Exit(0)

    result = build_dataset(paths, out)
    if show_summary:
        print_event_summary(result.events, limit=20)
    if show_stats:
        print_stats(result)


@app.command()
def validate(
    path: Path = typer.Argument(config.DATASET_PATH, help="Dataset file"),
    threshold: float = typer.Option(config.QUALITY_THRESHOLD, "--threshold", "-t", help="Minimum valid fraction"),
):
    """Report dataset validity; exit 1 below the threshold."""
    report = validate_dataset(path)
    console.print_json(data=report.model_dump())
    try:
        enforce_quality_gate(report, threshold)
    except DatasetQualityFailure:
        raise typer.Exit(1)


@app.command()
def metrics(
    path: Path = typer.Argument(config.DATASET_PATH, help="Dataset file"),
    limit: int = typer.Option(100, "--limit", "-l", help="Number of sources to show"),
):
    """Per-source validity report."""
    records = load_records(path)
    rows = domain_metrics(records, limit=limit)
    console.print_json(data={
        "file": str(path),
        "total": len(records),
        "sources": [row.model_dump() for row in rows],
    })


@app.command()
def geocode(
    path: Path = typer.Argument(config.DATASET_PATH, help="Dataset file, updated in place"),
    cache_path: Path = typer.Option(config.GEOCODE_CACHE_PATH, "--cache", help="Geocode cache file"),
    venues_path: Path = typer.Option(config.VENUES_PATH, "--venues", help="Venue coordinates table"),
    max_lookups: int = typer.Option(config.GEOCODER_MAX_LOOKUPS, "--max-lookups", help="Geocoder queries per run"),
):
    """Fill event coordinates from the venue table and Nominatim."""
    events = [e for e in (normalize_record(r) for r in load_records(path)) if e]
    if not events:
        console.print("[yellow]No events to geocode[/yellow]")
        raise typer.Exit(0)

    cache = GeocodeCache(cache_path)
    venues = VenueTable.from_file(venues_path)

    async def run():
        async with geocoder_client() as client:
            return await enrich_coordinates(events, Geocoder(cache, client), venues, max_lookups)

    enriched, _ = asyncio.run(run())
    write_records(path, enriched)
    cache.save()
    console.print(f"[dim]Cache size: {len(cache)}[/dim]")


@app.command("expand-seeds")
def expand_seeds_command(
    in_path: Path = typer.Argument(..., help="Seed file"),
    out_path: Path = typer.Argument(..., help="Expanded seed file"),
):
    """Expand seeds with known pagination patterns."""
    seeds = load_seeds(in_path)
    expanded = expand_seeds(seeds)
    write_seeds(out_path, expanded)
    console.print(f"[green]Expanded seeds {len(seeds)} -> {len(expanded)} -> {out_path}[/green]")


@app.command()
def build(
    seeds_path: Path = typer.Option(..., "--seeds", "-s", help="Seed file, one URL per line"),
    days: int = typer.Option(0, "--days", help="Keep only the next N days (0 = no window)"),
    max_pages: int = typer.Option(config.MAX_PAGES_PER_SEED, "--max-pages", help="Page budget per seed"),
    max_run_pages: int = typer.Option(config.MAX_PAGES_PER_RUN, "--max-run-pages", help="Page budget per run (0 = unbounded)"),
    mode: str = typer.Option("auto", "--mode", "-m", help="structured, auto or general"),
    workers: int = typer.Option(config.CRAWL_WORKERS, "--workers", "-w", help="Seeds crawled concurrently"),
    expand: bool = typer.Option(True, "--expand/--no-expand", help="Expand known pagination patterns"),
):
    """Crawl, consolidate with the existing dataset, then validate."""
    seeds = _seeds_or_exit(seeds_path, expand)
    crawl_config = _crawl_config(max_pages, max_run_pages, True, mode, workers)
    asyncio.run(run_crawl(seeds, crawl_config, out_path=config.RUN_OUTPUT_PATH, days=days))

    inputs = [p for p in (config.RUN_OUTPUT_PATH, config.DATASET_PATH) if p.exists()]
    result = build_dataset(inputs, config.DATASET_PATH)
    print_event_summary(result.events, limit=20)
    print_stats(result)

    report = validate_dataset(config.DATASET_PATH)
    console.print_json(data=report.model_dump())
    try:
        enforce_quality_gate(report)
    except DatasetQualityFailure:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
