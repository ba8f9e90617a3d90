"""Fill event coordinates from a venue table and OSM Nominatim.

Nominatim's usage policy allows one request per second, so lookups are
spaced by ``min_interval`` and every answer is cached by query.
"""

import asyncio
import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import httpx
from rich.console import Console

from events_pipeline import config
from events_pipeline.models import CanonicalEvent

console = Console()

MIN_QUERY_LENGTH = 6

_ADDRESS = re.compile(
    r"\b\d{3,5}\s+[A-Za-z][A-Za-z.'-]*(?:\s+[A-Za-z][A-Za-z.'-]*){0,4}\s+"
    r"(?:St|Street|Ave|Avenue|Blvd|Boulevard|Rd|Road|Dr|Drive|Ct|Court|Ln|Lane|Way"
    r"|Pkwy|Parkway|Pl|Place)\b",
    re.I,
)


def geocode_query(location: Optional[str]) -> str:
    """The street address inside a location string, else the whole string."""
    match = _ADDRESS.search(location or "")
    return match.group(0) if match else (location or "").strip()


def cache_key(query: str) -> str:
    return query.lower().strip()


class GeocodeCache:
    """File-backed query -> {lat, lon} mapping. Existing keys are never replaced."""

    def __init__(self, path: Union[str, Path, None] = config.GEOCODE_CACHE_PATH):
        self.path = Path(path) if path else None
        self._entries: dict[str, dict] = {}
        self.load()

    def load(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[yellow]Ignoring unreadable geocode cache {self.path}: {e}[/yellow]")
            return
        if isinstance(data, dict):
            self._entries.update(data)

    def get(self, query: str) -> Optional[dict]:
        return self._entries.get(cache_key(query))

    def put(self, query: str, lat: float, lon: float) -> None:
        self._entries.setdefault(cache_key(query), {"lat": lat, "lon": lon})

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._entries, f, indent=2)

    def __len__(self) -> int:
        return len(self._entries)


class VenueTable:
    """Known venues with fixed coordinates, matched by name substring."""

    def __init__(self, venues: Optional[list[tuple[str, float, float]]] = None):
        self.venues = venues or []

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "VenueTable":
        """Load ``[{"name": ..., "coordinates": [lat, lon]}, ...]``. Missing file -> empty."""
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[yellow]Ignoring unreadable venue table {path}: {e}[/yellow]")
            return cls()

        venues = []
        for entry in data if isinstance(data, list) else []:
            if not isinstance(entry, dict):
                continue
            coords = entry.get("coordinates")
            if entry.get("name") and isinstance(coords, list) and len(coords) == 2:
                venues.append((str(entry["name"]).lower(), float(coords[0]), float(coords[1])))
        return cls(venues)

    def lookup(self, text: Optional[str]) -> Optional[tuple[float, float]]:
        lowered = (text or "").lower()
        if not lowered:
            return None
        for name, lat, lon in self.venues:
            if name in lowered:
                return lat, lon
        return None


class Geocoder:
    """Nominatim search behind a cache and a minimum request interval."""

    def __init__(
        self,
        cache: GeocodeCache,
        client: httpx.AsyncClient,
        min_interval: float = config.GEOCODER_MIN_INTERVAL,
        city_suffix: str = config.GEOCODER_CITY_SUFFIX,
        url: str = config.GEOCODER_URL,
    ):
        self.cache = cache
        self.client = client
        self.min_interval = min_interval
        self.city_suffix = city_suffix
        self.url = url
        self.requests = 0
        self._last_request: Optional[float] = None

    async def _wait_turn(self) -> None:
        if self._last_request is not None:
            remaining = self.min_interval - (time.monotonic() - self._last_request)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_request = time.monotonic()

    async def geocode(self, query: str) -> Optional[tuple[float, float]]:
        """Coordinates for ``query`` or None. Never raises."""
        cached = self.cache.get(query)
        if cached:
            return cached["lat"], cached["lon"]

        await self._wait_turn()
        self.requests += 1
        params = {
            "q": f"{query}, {self.city_suffix}" if self.city_suffix else query,
            "format": "json",
            "limit": 1,
            "addressdetails": 1,
        }
        try:
            resp = await self.client.get(self.url, params=params)
            if resp.status_code != 200:
                return None
            data = resp.json()
            if data and data[0].get("lat") and data[0].get("lon"):
                lat, lon = float(data[0]["lat"]), float(data[0]["lon"])
                self.cache.put(query, lat, lon)
                return lat, lon
        except Exception as e:
            console.print(f"[dim]Nominatim error for {query!r}: {e}[/dim]")
        return None


def geocoder_client(timeout: float = 10.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": config.GEOCODER_USER_AGENT},
    )


@dataclass
class GeocodeStats:
    updated: int = 0
    lookups: int = 0
    from_venues: int = 0


async def enrich_coordinates(
    events: list[CanonicalEvent],
    geocoder: Optional[Geocoder],
    venues: Optional[VenueTable] = None,
    max_lookups: int = config.GEOCODER_MAX_LOOKUPS,
) -> tuple[list[CanonicalEvent], GeocodeStats]:
    """Return copies of ``events`` with coordinates filled where found.

    The venue table is tried first; remaining locations go to the geocoder
    until ``max_lookups`` queries have been made.
    """
    venues = venues or VenueTable()
    stats = GeocodeStats()
    out = []

    for event in events:
        if event.latitude is not None and event.longitude is not None:
            out.append(event)
            continue

        coords = venues.lookup(event.location)
        if coords:
            stats.from_venues += 1
        elif geocoder is not None and stats.lookups < max_lookups:
            query = geocode_query(event.location)
            if len(query) >= MIN_QUERY_LENGTH:
                coords = await geocoder.geocode(query)
                stats.lookups += 1

        if coords:
            stats.updated += 1
            event = event.model_copy(update={"latitude": coords[0], "longitude": coords[1]})
        out.append(event)

    console.print(
        f"[green]Geocoded {stats.updated} events[/green] "
        f"[dim](venues: {stats.from_venues}, lookups: {stats.lookups})[/dim]"
    )
    return out, stats
