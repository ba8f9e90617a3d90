"""Shared test fixtures and configuration."""

from datetime import datetime
from typing import Callable, Optional

import pytest

from events_pipeline.errors import HttpStatusError
from events_pipeline.extractors.base import Document, parse_document
from events_pipeline.extractors.fetch import FetchResult

NOW = datetime(2024, 12, 1, 12, 0)


class FakeFetcher:
    """In-memory stand-in for Fetcher: url -> html, everything else 404s."""

    def __init__(self, pages: dict[str, str], raise_for: Optional[set[str]] = None):
        self.pages = pages
        self.raise_for = raise_for or set()
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if url in self.raise_for:
            raise RuntimeError(f"boom: {url}")
        if url in self.pages:
            return FetchResult(url, html=self.pages[url], status=200)
        return FetchResult(url, status=404, error=HttpStatusError(url, 404))


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for date logic."""
    return NOW


@pytest.fixture
def fake_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def make_doc() -> Callable[[str, str], Document]:
    def _make(html: str, url: str = "https://venue.test/events") -> Document:
        return parse_document(html, url)
    return _make


@pytest.fixture
def make_record() -> Callable[..., dict]:
    """Factory for a dataset record that passes every admission rule."""
    def _make(**overrides) -> dict:
        record = {
            "title": "Jazz Night",
            "date_info": "Jan 5, 2025",
            "time_start": "8:00 PM",
            "location": "The Green Mill",
            "description": "Live jazz trio playing standards all night long.",
            "event_url": "https://greenmill.test/events/jazz-night",
            "source": "test",
        }
        record.update(overrides)
        return record
    return _make


JSON_LD_PAGE = """
<html><head>
<script type="application/ld+json">
{
  "@context": "https://schema.org",
  "@graph": [
    {"@type": "Organization", "name": "Metro"},
    {
      "@type": "MusicEvent",
      "name": "Indie Rock Showcase",
      "description": "Four local bands on one stage.",
      "startDate": "2025-01-18T20:00",
      "location": {"@type": "Place", "name": "Metro Chicago",
                   "address": {"streetAddress": "3730 N Clark St"}},
      "url": "/events/indie-rock-showcase",
      "offers": [{"@type": "Offer", "price": "25"}]
    }
  ]
}
</script>
<script type="application/ld+json">{ not json </script>
</head><body><h1>Upcoming</h1></body></html>
"""

CARD_PAGE = """
<html><body><main>
  <div class="event-card">
    <h3><a href="/events/jazz-night">Jazz Night</a></h3>
    <p>An evening of live jazz with the house trio.</p>
    <span class="date">January 5, 2025</span>
    <span class="time">7:30 PM</span>
    <span class="venue">The Green Mill</span>
    <span class="price">$15</span>
  </div>
  <div class="event-card">
    <h3><a href="/events/comedy-hour">Comedy Hour</a></h3>
    <p>Stand-up showcase featuring new voices.</p>
    <span class="date">January 12, 2025</span>
    <span class="venue">Laugh Factory</span>
  </div>
</main></body></html>
"""

TABLE_PAGE = """
<html><body>
<table>
  <tr><th>Date</th><th>Event</th><th>Venue</th></tr>
  <tr><td>Feb 14, 2025</td><td><a href="/events/valentine-dance">Valentine Dance</a></td><td>Navy Pier Ballroom</td></tr>
  <tr><td>Feb 20, 2025</td><td>Poetry Slam</td><td>Green Room</td></tr>
</table>
</body></html>
"""

DETAIL_PAGE = """
<html><head>
<title>Improv Night | Second City</title>
<meta name="description" content="Sketch and improv from the touring company.">
</head><body>
<h1>Improv Night</h1>
<div class="event-date">March 8, 2025 8:00 PM</div>
<div class="venue">Second City Mainstage</div>
<p>Doors open at 7.</p>
</body></html>
"""


@pytest.fixture
def json_ld_page() -> str:
    return JSON_LD_PAGE


@pytest.fixture
def card_page() -> str:
    return CARD_PAGE


@pytest.fixture
def table_page() -> str:
    return TABLE_PAGE


@pytest.fixture
def detail_page() -> str:
    return DETAIL_PAGE
