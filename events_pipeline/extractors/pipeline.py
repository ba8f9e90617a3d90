"""Page extraction orchestrator.

Combines the extraction strategies for one fetched page:
1. Structured data (JSON-LD, microdata, linked iCalendar files)
2. HTML heuristics (containers, tables, list items, event links)

and reports the links the crawler may follow next.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import urldefrag, urlparse

from rich.console import Console

from events_pipeline.extractors.base import Document, Extractor, parse_document, resolve_url
from events_pipeline.extractors.calendar import CalendarExtractor
from events_pipeline.extractors.heuristics import (
    HeuristicExtractor,
    find_pagination_links,
    parse_detail_page,
    passes_heuristic_gate,
)
from events_pipeline.extractors.structured import JsonLdExtractor, MicrodataExtractor
from events_pipeline.models import CanonicalEvent, RawCandidate
from events_pipeline.normalizers import normalize_candidate

console = Console()

MODES = ("structured", "auto", "general")

EVENT_PATH = re.compile(
    r"event|show|concert|performance|festival|opennight|exhibit|game|match|\be\b|/e/"
)
PAGINATION_HINTS = (
    'a[rel="next"], a:-soup-contains("Next"), a:-soup-contains("More"), a:-soup-contains("Older")'
)


@dataclass
class PageExtraction:
    """Everything one page yielded."""

    url: str
    records: list[CanonicalEvent] = field(default_factory=list)
    detail_links: list[str] = field(default_factory=list)
    pagination_links: list[str] = field(default_factory=list)
    outlinks: list[str] = field(default_factory=list)


def structured_extractors(fetcher=None) -> list[Extractor]:
    extractors: list[Extractor] = [JsonLdExtractor(), MicrodataExtractor()]
    if fetcher is not None:
        extractors.append(CalendarExtractor(fetcher))
    return extractors


def collect_candidate_links(doc: Document) -> list[str]:
    """Same-host links worth crawling: event-shaped paths and next-page hints."""
    host = urlparse(doc.url).hostname
    links: dict[str, None] = {}

    def add(href) -> None:
        url = resolve_url(doc.url, href)
        if not url:
            return
        url, _ = urldefrag(url)
        if urlparse(url).hostname == host and url != doc.url:
            links[url] = None

    for anchor in doc.soup.find_all("a", href=True):
        url = resolve_url(doc.url, anchor["href"])
        if url and EVENT_PATH.search(urlparse(url).path.lower()):
            add(url)
    for anchor in doc.soup.select(PAGINATION_HINTS):
        add(anchor.get("href"))
    return list(links)


def _normalize_all(
    candidates: list[RawCandidate], source: str
) -> list[CanonicalEvent]:
    """Normalize and dedupe by (title, date) within the page, first wins."""
    records = []
    seen: set[tuple[str, str]] = set()
    for candidate in candidates:
        event = normalize_candidate(candidate, source=source)
        if event is None or event.dedup_key in seen:
            continue
        seen.add(event.dedup_key)
        records.append(event)
    return records


async def extract_page(
    doc: Document,
    *,
    fetcher=None,
    mode: str = "auto",
    source: str = "crawler",
    now: Optional[datetime] = None,
) -> PageExtraction:
    """Run the extraction strategies for ``mode`` over one document.

    Args:
        doc: Parsed page
        fetcher: Used for linked calendar files; None skips them
        mode: "structured" (linked data only), "auto" (heuristics only when
            linked data found nothing) or "general" (always both)
        source: Provenance source tag
        now: Reference time for date plausibility
    """
    if mode not in MODES:
        raise ValueError(f"Unknown extraction mode: {mode}")
    now = now or datetime.now()

    candidates: list[RawCandidate] = []
    for extractor in structured_extractors(fetcher):
        candidates.extend(await extractor.extract(doc))

    detail_links: list[str] = []
    if mode == "general" or (mode == "auto" and not candidates):
        heuristic = await HeuristicExtractor(now).extract(doc)
        detail_links = list(dict.fromkeys(
            c.url for c in heuristic
            if c.method == "heuristic:link" and c.url and c.url != doc.url
        ))
        candidates.extend(c for c in heuristic if passes_heuristic_gate(c, now))

    return PageExtraction(
        url=doc.url,
        records=_normalize_all(candidates, source),
        detail_links=detail_links,
        pagination_links=find_pagination_links(doc),
        outlinks=collect_candidate_links(doc),
    )


async def enrich_from_detail(
    url: str,
    fetcher,
    source: str = "crawler",
    now: Optional[datetime] = None,
) -> Optional[CanonicalEvent]:
    """Fetch an event's own page and extract the single event it describes."""
    result = await fetcher.fetch(url)
    if not result.ok:
        return None
    candidate = parse_detail_page(parse_document(result.html, url), now)
    if candidate is None or not passes_heuristic_gate(candidate, now):
        return None
    return normalize_candidate(candidate, source=source)
