"""Data models for the events pipeline."""

from events_pipeline.models.event import CanonicalEvent, Provenance, RawCandidate

__all__ = [
    "CanonicalEvent",
    "Provenance",
    "RawCandidate",
]
