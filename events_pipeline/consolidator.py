"""Merge record sets from every source into the canonical dataset.

Stages run in a fixed order:
1. Map alias fields onto the canonical shape
2. Clean location / description, dropping junk
3. Trusted-source location fallback
4. Admission filter
5. Timestamp derivation and retention window
6. Dedup on (title, date text)
7. Soonest-first sort
"""

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlparse

from pydantic import ValidationError
from rich.console import Console

from events_pipeline import config
from events_pipeline.errors import AdmissionRejected
from events_pipeline.models import CanonicalEvent
from events_pipeline.normalizers import (
    fingerprint,
    has_plausible_date,
    normalize_record,
    resolve_datetime,
    resolve_timestamp,
    sanitize_text,
    within_retention,
)
from events_pipeline.normalizers.event import TEXT_MAX

console = Console()

TRUSTED_SOURCES = [
    "do312.com",
    "timeout.com",
    "choosechicago.com",
    "chicago.gov",
    "chicagomag.com",
    "blockclubchicago.org",
    "eventbrite.com",
    "navypier.org",
]

# Administrative / legal pages that scrapers mistake for events
BANNED_TITLE_FRAGMENTS = [
    "permit", "application", "foia", "request", "guide", "inspection", "framework", "faq",
    "templates", "homepage", "view all news", "press", "program agreement", "ordinance",
    "executed", "amendment", "contract", "agreement", "notice", "policy", "standards",
]
_BANNED_TITLE = re.compile(
    r"\b(?:" + "|".join(re.escape(f) for f in BANNED_TITLE_FRAGMENTS) + ")", re.I
)

JUNK_CONTENT = re.compile(
    r"#cds-separator|console\.log\(|function\s*\(|\bvar\s+\w+\s*=|\d+px;|!important", re.I
)
_WORD = re.compile(r"[A-Za-z]{3,}")

MIN_TITLE = 3
MIN_LOCATION = 4
MIN_DESCRIPTION = 11
MIN_TIME = 3


@dataclass
class ConsolidationResult:
    """Canonical events plus rejection counts by reason."""

    events: list[CanonicalEvent] = field(default_factory=list)
    rejected: Counter = field(default_factory=Counter)

    @property
    def total_rejected(self) -> int:
        return sum(self.rejected.values())


def clean_field(value: Any) -> str:
    """Sanitize a free-text field, or drop it entirely when it is junk."""
    if value is None:
        return ""
    raw = str(value)
    if len(raw) > TEXT_MAX:
        return ""
    cleaned = sanitize_text(raw)
    if JUNK_CONTENT.search(raw) or JUNK_CONTENT.search(cleaned):
        return ""
    return cleaned


def is_trusted_source(url: Optional[str]) -> bool:
    host = (urlparse(url or "").hostname or "").lower()
    return any(host == domain or host.endswith("." + domain) for domain in TRUSTED_SOURCES)


def _is_absolute_http(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def admit(event: CanonicalEvent, now: Optional[datetime] = None) -> None:
    """Raise AdmissionRejected unless the record looks like a real event."""
    title = event.title.strip()
    if len(title) < MIN_TITLE:
        raise AdmissionRejected("short_title")
    if not _is_absolute_http(event.event_url):
        raise AdmissionRejected("bad_url")
    if len(event.location.strip()) < MIN_LOCATION and not is_trusted_source(event.event_url):
        raise AdmissionRejected("no_location")
    if len(event.description) < MIN_DESCRIPTION or not _WORD.search(event.description):
        raise AdmissionRejected("thin_description")
    if _BANNED_TITLE.search(title):
        raise AdmissionRejected("banned_title")

    plausible = (
        has_plausible_date(event.date_info, now)
        or len(event.time_start) >= MIN_TIME
        or resolve_datetime(f"{title} {event.date_info}", None, now) is not None
    )
    if not plausible:
        raise AdmissionRejected("implausible_date")


def _sort_key(event: CanonicalEvent) -> tuple:
    if event.resolved_timestamp:
        return (0, event.resolved_timestamp, "")
    return (1, "", event.title)


def consolidate(
    records: Iterable[Union[dict, CanonicalEvent]],
    *,
    now: Optional[datetime] = None,
    city_placeholder: str = config.CITY_PLACEHOLDER,
) -> ConsolidationResult:
    """Turn the union of source record sets into the canonical dataset.

    Running it again on its own output returns the same events.
    """
    now = now or datetime.now()
    result = ConsolidationResult()
    seen: set[tuple[str, str]] = set()
    admitted: list[CanonicalEvent] = []

    for record in records:
        if isinstance(record, CanonicalEvent):
            record = record.to_record()

        try:
            event = normalize_record(record, cleaner=clean_field)
        except ValidationError:
            result.rejected["malformed"] += 1
            continue
        if event is None:
            result.rejected["no_title"] += 1
            continue

        if len(event.location.strip()) < MIN_LOCATION and is_trusted_source(event.event_url):
            event = event.model_copy(update={"location": city_placeholder})

        try:
            admit(event, now)
        except AdmissionRejected as e:
            result.rejected[e.reason] += 1
            continue

        timestamp = resolve_timestamp(event.date_info, event.time_start or None, now)
        if timestamp is None or not within_retention(datetime.fromisoformat(timestamp), now):
            result.rejected["outside_window"] += 1
            continue

        if event.dedup_key in seen:
            result.rejected["duplicate"] += 1
            continue
        seen.add(event.dedup_key)

        admitted.append(event.model_copy(update={
            "resolved_timestamp": timestamp,
            "id": fingerprint(event.title, event.date_info, event.location),
        }))

    result.events = sorted(admitted, key=_sort_key)
    return result


def merge_record_sets(*record_sets: list[dict]) -> list[dict]:
    """Concatenate record sets, dropping exact (title, date, location) repeats."""
    merged = []
    seen: set[tuple[str, str, str]] = set()
    for records in record_sets:
        for record in records:
            key = tuple(
                str(record.get(k) or "").lower().strip()
                for k in ("title", "date_info", "location")
            )
            if key in seen:
                continue
            seen.add(key)
            merged.append(record)
    return merged


def load_records(path: Union[str, Path]) -> list[dict]:
    """Read a dataset file: a JSON array or ``{"events": [...]}``."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[yellow]Could not read {path}: {e}[/yellow]")
        return []

    if isinstance(data, dict):
        data = data.get("events", [])
    if not isinstance(data, list):
        return []
    return [record for record in data if isinstance(record, dict)]


def write_records(path: Union[str, Path], events: Iterable[Union[dict, CanonicalEvent]]) -> int:
    """Write records as a JSON array. Returns the count written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [e.to_record() if isinstance(e, CanonicalEvent) else e for e in events]
    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    return len(data)
