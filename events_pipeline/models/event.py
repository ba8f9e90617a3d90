"""Data models for the events pipeline."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RawCandidate(BaseModel):
    """Untrusted extractor output, before normalization."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    date_text: Optional[str] = None
    time_text: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None  # Event link as found on the page
    source_url: str  # Page the candidate was extracted from
    category: Optional[str] = None
    price: Optional[str] = None

    method: str = "unknown"  # json-ld, microdata, ical, heuristic:*


class Provenance(BaseModel):
    """Where a record came from. Set once at creation."""

    model_config = ConfigDict(frozen=True)

    source: str
    source_url: Optional[str] = None
    scraped_at: Optional[str] = None  # ISO timestamp
    extraction_method: Optional[str] = None


class CanonicalEvent(BaseModel):
    """The unit persisted to the dataset and served to the map UI."""

    # Identity
    id: str  # fingerprint(title, date_info, location)
    title: str = Field(min_length=1, max_length=200)

    # When
    date_info: str = ""  # Source-original date text
    time_start: str = Field(default="", max_length=20)
    resolved_timestamp: Optional[str] = None  # ISO instant, set by the consolidator

    # Where / what
    location: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=500)
    event_url: str
    category: str = ""
    price: str = ""

    provenance: Optional[Provenance] = None

    # Filled by the geocoding collaborator only
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def dedup_key(self) -> tuple[str, str]:
        """(normalized title, normalized date text)."""
        return (
            " ".join(self.title.lower().split()),
            " ".join(self.date_info.lower().split()),
        )

    def to_record(self) -> dict:
        """Convert to the JSON shape written to dataset files."""
        record = {
            "id": self.id,
            "title": self.title,
            "date_info": self.date_info,
            "time_start": self.time_start,
            "location": self.location,
            "description": self.description,
            "event_url": self.event_url,
            "category": self.category,
            "price": self.price,
            "resolved_timestamp": self.resolved_timestamp,
        }
        if self.provenance:
            record["provenance"] = self.provenance.model_dump()
        if self.latitude is not None and self.longitude is not None:
            record["latitude"] = self.latitude
            record["longitude"] = self.longitude
        return record
