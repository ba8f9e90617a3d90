"""HTML heuristics for event extraction.

When a page carries no explicit event semantics, fall back to scanning
card-like containers, tables, list items and event-shaped links.

Field extraction is ordered pattern matching: each ``*_PATTERNS`` list is
tried top to bottom and the first acceptable match wins.
"""

import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from bs4 import Tag

from events_pipeline.extractors.base import Document, Extractor, resolve_url
from events_pipeline.models import RawCandidate
from events_pipeline.normalizers.dates import is_plausible_date, resolve_datetime, within_retention

MONTH = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)"
)
WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"

# Most specific first: a full date beats a year-less one beats a relative word
DATE_PATTERNS = [
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(rf"\b({MONTH}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}})\b", re.I),
    re.compile(rf"\b(\d{{1,2}}\s+{MONTH}\.?,?\s+\d{{4}})\b", re.I),
    re.compile(r"\b(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\b"),
    re.compile(rf"\b({MONTH}\.?\s+\d{{1,2}})(?:st|nd|rd|th)?\b(?!,?\s+\d{{4}})", re.I),
    re.compile(rf"\b(today|tomorrow|this\s+(?:week|weekend|{WEEKDAY})|next\s+(?:week|{WEEKDAY}))\b", re.I),
]
MAX_MATCHES_PER_PATTERN = 5

TIME_PATTERNS = [
    re.compile(r"\b\d{1,2}:\d{2}\s*(?:am|pm)\b", re.I),
    re.compile(r"\b\d{1,2}\s*(?:am|pm)\b", re.I),
    re.compile(r"\b\d{1,2}:\d{2}\b"),
    re.compile(r"(?:\bat|@)\s*\d{1,2}(?::\d{2})?\s*(?:am|pm)?\b", re.I),
]

VENUE_SUFFIX = (
    r"(?:St|Street|Ave|Avenue|Blvd|Boulevard|Rd|Road|Park|Theater|Theatre|Center|Centre|Hall"
    r"|Arena|Stadium|Museum|Zoo|Pier|Beach|Plaza|Square|Library|University|College|School"
    r"|Church|Temple|Mosque|Synagogue)"
)
LOCATION_PATTERNS = [
    re.compile(rf"(?i:\bat|@|location:)[ \t]*([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*[ \t]+{VENUE_SUFFIX})\b"),
    re.compile(rf"\b([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*[ \t]+{VENUE_SUFFIX})\b"),
    re.compile(r"(?i:venue|location):[ \t]*([^,\n]{3,100})"),
    re.compile(r"@[ \t]*([A-Z][a-zA-Z \t]{2,50})"),
    re.compile(
        r"\b(\d{3,5}[ \t]+[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*[ \t]+(?:St|Street|Ave|Avenue|Blvd|Boulevard|Rd|Road))\b",
        re.I,
    ),
]

PRICE_PATTERN = re.compile(r"\$\d+(?:\.\d{2})?|\bfree\b|\bdonation\b|\bpay\s+what\s+you\s+can\b", re.I)

CONTAINER_SELECTORS = [
    '[class*="event"]', '[class*="Event"]', '[id*="event"]', '[id*="Event"]',
    '[class*="card"]', '[class*="item"]', '[class*="listing"]', '[class*="post"]',
    '[class*="entry"]', '[class*="program"]', '[class*="activity"]',
    'article', '[role="article"]',
    '[data-event-id]', '[data-event]', '[data-event-url]',
    '[class*="calendar"]', '[class*="Calendar"]',
]
CONTAINER_TEXT_WINDOW = (15, 3000)
LIST_ITEM_TEXT_WINDOW = (20, 1000)

TITLE_SELECTORS = [
    "h1, h2, h3, h4, h5, h6",
    "a",
    'strong, b, .title, [class*="title"]',
]
LOCATION_SELECTORS = '[class*="location"], [class*="venue"], [class*="address"], address'
DESCRIPTION_SELECTORS = 'p, .description, [class*="desc"]'

EVENT_LINK_PATHS = [
    "/event", "/events/", "/calendar", "/show", "/program", "/activity", "/happening",
    "/concert", "/performance", "/exhibition", "/workshop", "/class", "/seminar",
    "/festival", "/fair", "/market",
]

PAGINATION_SELECTORS = [
    'a[href*="page"]', 'a[href*="p="]', 'a[href*="offset"]', 'a[href*="start="]',
    'a[class*="next"]', 'a[class*="pagination"]', 'a[aria-label*="next" i]',
    'a[title*="next" i]', '[class*="pagination"] a', '[class*="pager"] a',
    'a[class*="load-more"]', 'a[rel="next"]',
]
PAGINATION_URL = re.compile(r"page|offset|p=", re.I)

DETAIL_DATE = re.compile(
    rf"({MONTH}[a-z]*\.?\s+\d{{1,2}},?\s+\d{{4}})|(\d{{1,2}}[/-]\d{{1,2}}[/-]\d{{2,4}})", re.I
)

_ABSOLUTE_HTTP = re.compile(r"^https?://[^\s/]+", re.I)


# ---------------------------------------------------------------------------
# Field extraction (pure functions)
# ---------------------------------------------------------------------------

def extract_date_from_text(text: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """First plausible date in ``text`` as ``YYYY-MM-DD``, following DATE_PATTERNS order."""
    if not text:
        return None
    now = now or datetime.now()
    for pattern in DATE_PATTERNS:
        for match in list(pattern.finditer(text))[:MAX_MATCHES_PER_PATTERN]:
            resolved = resolve_datetime(match.group(1), None, now)
            if resolved and within_retention(resolved, now):
                return resolved.strftime("%Y-%m-%d")
    return None


def extract_time_from_text(text: Optional[str]) -> str:
    if not text:
        return ""
    for pattern in TIME_PATTERNS:
        match = pattern.search(text)
        if match:
            time = re.sub(r"^(?:at|@)\s*", "", match.group(0), flags=re.I).strip()
            return time[:20]
    return ""


def extract_location_from_text(text: Optional[str]) -> str:
    if not text:
        return ""
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            location = match.group(1).strip()
            if 3 < len(location) < 200:
                return location
    return ""


def extract_price_from_text(text: Optional[str]) -> str:
    match = PRICE_PATTERN.search(text or "")
    return match.group(0)[:50] if match else ""


def strip_dates(text: str) -> str:
    """``text`` with every date-looking span removed."""
    for pattern in DATE_PATTERNS:
        text = pattern.sub("", text)
    return text


def _lines(el: Tag) -> list[str]:
    return [line for line in el.get_text("\n", strip=True).split("\n") if line]


def _text(el: Optional[Tag]) -> str:
    return el.get_text(" ", strip=True) if el is not None else ""


def _humanize_path(href: str) -> str:
    segment = urlparse(href).path.rstrip("/").split("/")[-1]
    return re.sub(r"[-_]+", " ", segment).strip()


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------

def _container_title(el: Tag, lines: list[str]) -> str:
    for selector in TITLE_SELECTORS:
        title = _text(el.select_one(selector))
        if title:
            return title
    for attr in ("title", "data-title"):
        if el.get(attr):
            return str(el[attr]).strip()
    return lines[0][:150] if lines else ""


def _container_link(el: Tag, base_url: str) -> str:
    anchor = el.find("a", href=True)
    href = anchor["href"] if anchor else (el.get("href") or el.get("data-url") or el.get("data-event-url"))
    return resolve_url(base_url, href) or base_url


def scan_containers(doc: Document, now: Optional[datetime] = None) -> list[RawCandidate]:
    """Elements whose class/id/role suggests an event card."""
    events = []
    seen: set[tuple[str, str]] = set()
    processed: set[int] = set()
    low, high = CONTAINER_TEXT_WINDOW

    for selector in CONTAINER_SELECTORS:
        for el in doc.soup.select(selector):
            if id(el) in processed:
                continue
            processed.add(id(el))

            lines = _lines(el)
            block = "\n".join(lines)
            if not low <= len(block) <= high:
                continue

            date = extract_date_from_text(block, now)
            if not date:
                continue

            title = _container_title(el, lines)
            if not title or len(title) < 3 or len(title) > 200:
                continue

            key = (title.lower().strip(), date)
            if key in seen:
                continue
            seen.add(key)

            description = _text(el.select_one(DESCRIPTION_SELECTORS)) or " ".join(lines[1:4])
            events.append(RawCandidate(
                title=title,
                date_text=date,
                time_text=extract_time_from_text(block) or _text(el.select_one('[class*="time"]'))[:20],
                location=extract_location_from_text(block) or _text(el.select_one(LOCATION_SELECTORS)),
                description=description[:500],
                url=_container_link(el, doc.url),
                source_url=doc.url,
                price=extract_price_from_text(block),
                method="heuristic:container",
            ))
    return events


def scan_tables(doc: Document, now: Optional[datetime] = None) -> list[RawCandidate]:
    """Table rows with at least two cells and a plausible date."""
    events = []
    seen: set[tuple[str, str]] = set()

    for table in doc.soup.find_all("table"):
        rows = table.find_all("tr")
        if len(rows) < 2:
            continue
        for row in rows:
            cells = row.find_all(["td", "th"])
            if len(cells) < 2:
                continue
            text = _text(row)
            date = extract_date_from_text(text, now)
            if not date:
                continue

            substantial = [
                c for c in cells
                if 3 < len(_text(c)) < 200 and len(strip_dates(_text(c)).strip(" ,-|")) >= 3
            ]
            if not substantial:
                continue
            linked = next((c for c in substantial if c.find("a", href=True)), None)
            if linked is not None:
                anchor = linked.find("a", href=True)
                title = _text(anchor) or _text(linked)
                url = resolve_url(doc.url, anchor["href"]) or doc.url
            else:
                title = _text(substantial[0])
                url = doc.url
            if len(title) < 3:
                continue

            key = (title.lower().strip(), date)
            if key in seen:
                continue
            seen.add(key)

            location = next(
                (loc for loc in (extract_location_from_text(_text(c)) for c in cells) if loc), ""
            )
            events.append(RawCandidate(
                title=title[:200],
                date_text=date,
                time_text=extract_time_from_text(text),
                location=location,
                description=text[:500],
                url=url,
                source_url=doc.url,
                method="heuristic:table",
            ))
    return events


def scan_list_items(doc: Document, now: Optional[datetime] = None) -> list[RawCandidate]:
    """``<li>`` and list-role elements of plausible size with a date."""
    events = []
    seen: set[tuple[str, str]] = set()
    low, high = LIST_ITEM_TEXT_WINDOW

    for li in doc.soup.select('li, [role="listitem"]'):
        lines = _lines(li)
        block = "\n".join(lines)
        if not low <= len(block) <= high:
            continue
        date = extract_date_from_text(block, now)
        if not date:
            continue

        title = _text(li.find("a")) or _text(li.find(["strong", "b"])) or lines[0][:150]
        if len(title) < 3:
            continue

        key = (title.lower().strip(), date)
        if key in seen:
            continue
        seen.add(key)

        anchor = li.find("a", href=True)
        events.append(RawCandidate(
            title=title[:200],
            date_text=date,
            time_text=extract_time_from_text(block),
            location=extract_location_from_text(block),
            description=" ".join(lines)[:500],
            url=(resolve_url(doc.url, anchor["href"]) if anchor else None) or doc.url,
            source_url=doc.url,
            method="heuristic:list",
        ))
    return events


def scan_links(doc: Document, now: Optional[datetime] = None) -> list[RawCandidate]:
    """Anchors whose href looks like an event page, dated or not."""
    events = []
    seen: set[tuple[str, str]] = set()
    selector = ", ".join(f'a[href*="{path}"]' for path in EVENT_LINK_PATHS)

    for anchor in doc.soup.select(selector):
        url = resolve_url(doc.url, anchor.get("href"))
        if not url:
            continue
        link_text = _text(anchor)

        # Parent text unless the parent holds nothing but the link
        context_el = anchor.parent
        if context_el is not None and len(_text(context_el)) <= len(link_text) and context_el.parent:
            context_el = context_el.parent
        context = "\n".join(_lines(context_el)) if isinstance(context_el, Tag) else link_text

        date = extract_date_from_text(context, now)
        if not date and len(link_text) < 5:
            continue

        title = link_text or _humanize_path(url)
        if len(title) < 3:
            continue

        key = (title.lower(), date or "")
        if key in seen:
            continue
        seen.add(key)

        events.append(RawCandidate(
            title=title[:200],
            date_text=date or "",
            time_text=extract_time_from_text(context),
            location=extract_location_from_text(context),
            description=" ".join(context.split("\n"))[:500],
            url=url,
            source_url=doc.url,
            method="heuristic:link",
        ))
    return events


def find_pagination_links(doc: Document, limit: int = 10) -> list[str]:
    """Next/page/offset links pointing at more listing pages."""
    links: list[str] = []
    for selector in PAGINATION_SELECTORS:
        for el in doc.soup.select(selector):
            url = resolve_url(doc.url, el.get("href"))
            if not url or url == doc.url or "#" in url or url in links:
                continue
            if PAGINATION_URL.search(url):
                links.append(url)
    return links[:limit]


def _meta(doc: Document, **attrs) -> str:
    el = doc.soup.find("meta", attrs=attrs)
    return str(el.get("content") or "").strip() if el else ""


def parse_detail_page(doc: Document, now: Optional[datetime] = None) -> Optional[RawCandidate]:
    """Single event page: re-extract title, description, location and date."""
    soup = doc.soup
    title = _text(soup.find("h1"))
    if not title and soup.title:
        title = soup.title.get_text().split("|")[0].strip()
    title = title or _meta(doc, property="og:title")
    if not title or len(title) <= 3:
        return None

    description = (
        _meta(doc, name="description")
        or _meta(doc, property="og:description")
        or _text(soup.find("p"))
    )
    location = _text(soup.select_one(LOCATION_SELECTORS))

    date_block = _text(soup.select_one('[class*="date"], [class*="time"]'))
    match = DETAIL_DATE.search(date_block)
    date = match.group(0) if match else (extract_date_from_text(date_block, now) or date_block[:50])

    return RawCandidate(
        title=title[:200],
        date_text=date,
        time_text=extract_time_from_text(date_block),
        location=location[:200],
        description=description[:500],
        url=doc.url,
        source_url=doc.url,
        method="heuristic:detail",
    )


def passes_heuristic_gate(candidate: RawCandidate, now: Optional[datetime] = None) -> bool:
    """Shared admission gate for heuristic output."""
    title = (candidate.title or "").strip()
    if not 3 < len(title) <= 200:
        return False
    if not _ABSOLUTE_HTTP.match(candidate.url or ""):
        return False
    return is_plausible_date(candidate.date_text, now)


class HeuristicExtractor(Extractor):
    """Container, table, list-item and link scans."""

    name = "heuristic"

    def __init__(self, now: Optional[datetime] = None):
        self.now = now

    async def extract(self, doc: Document) -> list[RawCandidate]:
        return [
            *scan_containers(doc, self.now),
            *scan_tables(doc, self.now),
            *scan_list_items(doc, self.now),
            *scan_links(doc, self.now),
        ]
