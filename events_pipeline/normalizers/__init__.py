"""Normalizers: canonical record shape, identity and temporal resolution."""

from events_pipeline.normalizers.dates import (
    has_plausible_date,
    is_plausible_date,
    resolve_datetime,
    resolve_timestamp,
    within_retention,
)
from events_pipeline.normalizers.event import (
    fingerprint,
    normalize_candidate,
    normalize_key,
    normalize_record,
    sanitize_text,
)

__all__ = [
    "fingerprint",
    "has_plausible_date",
    "is_plausible_date",
    "normalize_candidate",
    "normalize_key",
    "normalize_record",
    "resolve_datetime",
    "resolve_timestamp",
    "sanitize_text",
    "within_retention",
]
