"""Extract events from linked iCalendar (.ics) resources."""

from ics import Calendar
from rich.console import Console

from events_pipeline.errors import ParseError
from events_pipeline.extractors.base import Document, Extractor, resolve_url
from events_pipeline.models import RawCandidate

console = Console()

CALENDAR_LINK_SELECTORS = [
    'a[href$=".ics"]',
    'link[href$=".ics"]',
    'link[type="text/calendar"]',
    'a[href^="webcal://"]',
]


def find_calendar_links(doc: Document, limit: int = 5) -> list[str]:
    """Calendar resources linked from the page, in document order."""
    links: list[str] = []
    for selector in CALENDAR_LINK_SELECTORS:
        for el in doc.soup.select(selector):
            href = str(el.get("href") or "").strip()
            if href.startswith("webcal://"):
                href = "https://" + href[len("webcal://"):]
            url = resolve_url(doc.url, href)
            if url and url not in links:
                links.append(url)
    return links[:limit]


def parse_calendar(text: str, page_url: str) -> list[RawCandidate]:
    """Parse an iCalendar document into raw candidates, one per VEVENT."""
    try:
        calendar = Calendar(text)
    except Exception as e:
        raise ParseError(f"invalid calendar: {e}") from e

    events = sorted(calendar.events, key=lambda ev: (str(ev.begin or ""), ev.name or ""))
    return [
        RawCandidate(
            title=ev.name,
            description=ev.description or "",
            date_text=ev.begin.isoformat() if ev.begin else "",
            location=ev.location or "",
            url=resolve_url(page_url, ev.url) or page_url,
            source_url=page_url,
            method="ical",
        )
        for ev in events
    ]


class CalendarExtractor(Extractor):
    """Fetches linked calendar files and reads their events."""

    name = "ical"

    def __init__(self, fetcher, max_links: int = 5):
        self.fetcher = fetcher
        self.max_links = max_links

    async def extract(self, doc: Document) -> list[RawCandidate]:
        events = []
        for link in find_calendar_links(doc, limit=self.max_links):
            result = await self.fetcher.fetch(link)
            if not result.ok:
                continue
            try:
                events.extend(parse_calendar(result.html, doc.url))
            except ParseError as e:
                console.print(f"[dim]Skipping calendar {link}: {e}[/dim]")
        return events
