"""Extract events from embedded structured data (Schema.org JSON-LD, microdata)."""

import json
from typing import Any, Optional

from bs4 import Tag
from pydantic import ValidationError
from rich.console import Console

from events_pipeline.errors import ParseError
from events_pipeline.extractors.base import Document, Extractor, resolve_url
from events_pipeline.models import RawCandidate

console = Console()


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _is_event_type(node_type: Any) -> bool:
    return any(isinstance(t, str) and "Event" in t for t in _as_list(node_type))


def load_json_ld_block(raw: str) -> list[dict]:
    """Parse one JSON-LD block into a flat list of nodes (lists and @graph unrolled)."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"invalid JSON-LD block: {e}") from e

    nodes = []
    stack = _as_list(data)
    while stack:
        node = stack.pop(0)
        if not isinstance(node, dict):
            continue
        if "@graph" in node:
            stack.extend(_as_list(node["@graph"]))
        nodes.append(node)
    return nodes


def _scalar(value: Any) -> Optional[str]:
    """Schema.org property value as text: lists give their first item, objects their @value or name."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("@value", value.get("name"))
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _location_text(location: Any) -> str:
    """Schema.org location as a single line."""
    if isinstance(location, list):
        location = location[0] if location else None
    if isinstance(location, str):
        return location
    if not isinstance(location, dict):
        return ""
    if location.get("name"):
        return _scalar(location["name"]) or ""
    address = location.get("address")
    if isinstance(address, str):
        return address
    if isinstance(address, dict):
        parts = [address.get("streetAddress"), address.get("addressLocality")]
        return ", ".join(p for p in parts if isinstance(p, str) and p)
    return ""


def _price(offers: Any) -> Optional[str]:
    for offer in _as_list(offers):
        if isinstance(offer, dict) and offer.get("price") not in (None, ""):
            return str(offer["price"])
    return None


def _category(node_type: Any) -> Optional[str]:
    specific = [t for t in _as_list(node_type) if isinstance(t, str) and t != "Event"]
    return specific[0] if specific else None


def event_from_json_ld(node: dict, page_url: str) -> RawCandidate:
    """Map a Schema.org Event node onto a raw candidate."""
    return RawCandidate(
        title=_scalar(node.get("name")),
        description=_scalar(node.get("description")),
        date_text=_scalar(node.get("startDate")),
        time_text=_scalar(node.get("startTime")),
        location=_location_text(node.get("location")),
        url=resolve_url(page_url, _scalar(node.get("url"))) or page_url,
        source_url=page_url,
        category=_category(node.get("@type")),
        price=_price(node.get("offers")),
        method="json-ld",
    )


class JsonLdExtractor(Extractor):
    """Schema.org Event nodes from ``<script type="application/ld+json">``."""

    name = "json-ld"

    async def extract(self, doc: Document) -> list[RawCandidate]:
        events = []
        for script in doc.soup.find_all("script", type="application/ld+json"):
            try:
                nodes = load_json_ld_block(script.string or script.get_text())
            except ParseError as e:
                console.print(f"[dim]Skipping JSON-LD block on {doc.url}: {e}[/dim]")
                continue
            for node in nodes:
                if not _is_event_type(node.get("@type")):
                    continue
                try:
                    events.append(event_from_json_ld(node, doc.url))
                except ValidationError as e:
                    console.print(f"[dim]Skipping malformed event node on {doc.url}: {e.error_count()} errors[/dim]")
        return events


def _owner_scope(el: Tag) -> Optional[Tag]:
    """Closest ancestor carrying ``itemscope``."""
    for parent in el.parents:
        if isinstance(parent, Tag) and parent.has_attr("itemscope"):
            return parent
    return None


def _own_props(root: Tag, prop: str) -> list[Tag]:
    """Elements with ``itemprop=prop`` that belong to ``root`` itself, not a nested item."""
    return [
        el for el in root.find_all(attrs={"itemprop": prop})
        if _owner_scope(el) is root or not root.has_attr("itemscope")
    ]


def _prop_value(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    for attr in ("content", "datetime", "href", "src"):
        if el.get(attr):
            return str(el[attr]).strip()
    return el.get_text(" ", strip=True)


def event_from_microdata(root: Tag, page_url: str) -> RawCandidate:
    def get(prop: str) -> str:
        found = _own_props(root, prop)
        return _prop_value(found[0]) if found else ""

    location = ""
    location_els = _own_props(root, "location")
    if location_els:
        place = location_els[0]
        name = place.find(attrs={"itemprop": "name"})
        location = _prop_value(name) if name else place.get_text(" ", strip=True)

    return RawCandidate(
        title=get("name"),
        description=get("description"),
        date_text=get("startDate"),
        location=location,
        url=resolve_url(page_url, get("url")) or page_url,
        source_url=page_url,
        category=get("eventType") or None,
        method="microdata",
    )


class MicrodataExtractor(Extractor):
    """Elements with an ``itemtype`` containing "Event"."""

    name = "microdata"

    async def extract(self, doc: Document) -> list[RawCandidate]:
        return [
            event_from_microdata(root, doc.url)
            for root in doc.soup.select('[itemtype*="Event"]')
        ]
