"""Post-consolidation enrichment."""

from events_pipeline.enrichers.geocode import (
    GeocodeCache,
    Geocoder,
    GeocodeStats,
    VenueTable,
    enrich_coordinates,
    geocoder_client,
    geocode_query,
)

__all__ = [
    "GeocodeCache",
    "GeocodeStats",
    "Geocoder",
    "VenueTable",
    "enrich_coordinates",
    "geocoder_client",
    "geocode_query",
]
