"""Map raw heterogeneous event fields onto the canonical record shape."""

import hashlib
import html
import re
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError

from events_pipeline.models import CanonicalEvent, Provenance, RawCandidate

TITLE_MAX = 200
TIME_MAX = 20
LOCATION_MAX = 200
DESCRIPTION_MAX = 500
PRICE_MAX = 50
TEXT_MAX = 2000

_TAG = re.compile(r"<[^>]*>")
_STYLE_RULE = re.compile(r"\{[^}]*\}")
_HASH_TOKEN = re.compile(r"#[a-z0-9_-]{5,}\b", re.I)
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(value: Any) -> str:
    """Strip markup and style residue, collapse whitespace."""
    if value is None:
        return ""
    text = str(value)
    unescaped = html.unescape(text)
    while unescaped != text:
        text, unescaped = unescaped, html.unescape(unescaped)
    text = _WHITESPACE.sub(" ", text)
    text = _TAG.sub("", text)
    text = _STYLE_RULE.sub("", text)
    text = _HASH_TOKEN.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:TEXT_MAX]


def normalize_key(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def fingerprint(title: str, date_info: str, location: str) -> str:
    """Stable dedup key from normalized title, date text and location."""
    src = "|".join(normalize_key(v) for v in (title, date_info, location))
    return hashlib.md5(src.encode("utf-8")).hexdigest()[:16]


def _build(
    *,
    title: str,
    date_info: str,
    time_start: str,
    location: str,
    description: str,
    event_url: str,
    category: str,
    price: str,
    provenance: Optional[Provenance],
    resolved_timestamp: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Optional[CanonicalEvent]:
    title = title[:TITLE_MAX].strip()
    if not title:
        return None
    location = location[:LOCATION_MAX]
    return CanonicalEvent(
        id=fingerprint(title, date_info, location),
        title=title,
        date_info=date_info,
        time_start=time_start[:TIME_MAX],
        location=location,
        description=description[:DESCRIPTION_MAX],
        event_url=event_url,
        category=category,
        price=price[:PRICE_MAX],
        resolved_timestamp=resolved_timestamp,
        provenance=provenance,
        latitude=latitude,
        longitude=longitude,
    )


def normalize_candidate(
    candidate: RawCandidate,
    *,
    source: str,
    scraped_at: Optional[str] = None,
) -> Optional[CanonicalEvent]:
    """Turn extractor output into a canonical record.

    Returns None when no usable title survives cleaning. Titles longer than
    TITLE_MAX are rejected rather than cut, as the listing heuristics do.
    The event URL falls back to the page the candidate was found on.
    """
    title = sanitize_text(candidate.title)
    if len(title) > TITLE_MAX:
        return None
    return _build(
        title=title,
        date_info=sanitize_text(candidate.date_text),
        time_start=sanitize_text(candidate.time_text),
        location=sanitize_text(candidate.location),
        description=sanitize_text(candidate.description),
        event_url=(candidate.url or candidate.source_url).strip(),
        category=sanitize_text(candidate.category),
        price=sanitize_text(candidate.price),
        provenance=Provenance(
            source=source,
            source_url=candidate.source_url,
            scraped_at=scraped_at or datetime.now().isoformat(),
            extraction_method=candidate.method,
        ),
    )


def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _location_text(record: dict) -> Any:
    location = record.get("location")
    if isinstance(location, dict):
        address = location.get("address")
        if isinstance(address, dict):
            address = address.get("streetAddress")
        return location.get("name") or address or ""
    return _first(record, "location", "venue", "place")


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _coordinate(value: Any) -> Optional[float]:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _provenance(record: dict) -> Optional[Provenance]:
    """Nested or flat provenance fields, as text. Unusable provenance is dropped."""
    nested = record.get("provenance")
    fields = nested if isinstance(nested, dict) and nested.get("source") else record
    if not fields.get("source"):
        return None
    try:
        return Provenance(**{
            key: _optional_str(fields.get(key))
            for key in ("source", "source_url", "scraped_at", "extraction_method")
        })
    except ValidationError:
        return None


def normalize_record(
    record: dict,
    cleaner: Callable[[Any], str] = sanitize_text,
) -> Optional[CanonicalEvent]:
    """Coerce a dataset record of any known shape into a CanonicalEvent.

    Accepts both this pipeline's own output and older flat shapes
    (``url``/``link`` aliases, ``_ts``, top-level provenance fields).
    ``cleaner`` is applied to location and description.
    """
    if not isinstance(record, dict):
        return None

    return _build(
        title=sanitize_text(_first(record, "title", "name")),
        date_info=sanitize_text(_first(record, "date_info", "startDate", "start", "date")),
        time_start=sanitize_text(_first(record, "time_start", "startTime")),
        location=cleaner(_location_text(record)),
        description=cleaner(record.get("description")),
        event_url=str(_first(record, "event_url", "url", "link", "source_url") or "").strip(),
        category=sanitize_text(_first(record, "category", "type")),
        price=sanitize_text(record.get("price")),
        provenance=_provenance(record),
        resolved_timestamp=_optional_str(_first(record, "resolved_timestamp", "_ts")),
        latitude=_coordinate(record.get("latitude")),
        longitude=_coordinate(record.get("longitude")),
    )
