"""Page → event extraction.

This package provides:
1. A polite async fetcher (retries, backoff, typed failures)
2. Extraction strategies behind one interface:
   - Schema.org JSON-LD / microdata
   - Linked iCalendar files
   - HTML heuristics (cards, tables, lists, event links)
3. A page-level orchestrator that normalizes and reports follow-up links
"""

from events_pipeline.extractors.base import Document, Extractor, parse_document, resolve_url
from events_pipeline.extractors.calendar import CalendarExtractor, parse_calendar
from events_pipeline.extractors.fetch import Fetcher, FetchResult, fetch_url
from events_pipeline.extractors.heuristics import HeuristicExtractor, passes_heuristic_gate
from events_pipeline.extractors.pipeline import PageExtraction, enrich_from_detail, extract_page
from events_pipeline.extractors.structured import JsonLdExtractor, MicrodataExtractor

__all__ = [
    "CalendarExtractor",
    "Document",
    "Extractor",
    "FetchResult",
    "Fetcher",
    "HeuristicExtractor",
    "JsonLdExtractor",
    "MicrodataExtractor",
    "PageExtraction",
    "enrich_from_detail",
    "extract_page",
    "fetch_url",
    "parse_calendar",
    "parse_document",
    "passes_heuristic_gate",
    "resolve_url",
]
