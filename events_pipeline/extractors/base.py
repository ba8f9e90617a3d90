"""Common extractor interface.

Every strategy turns a parsed document into zero or more raw candidates, so
strategies can be added or removed without touching normalization or
consolidation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from events_pipeline.models import RawCandidate


@dataclass
class Document:
    """A fetched page, parsed once and shared by every extractor."""

    url: str
    html: str
    soup: BeautifulSoup


def parse_document(html: str, url: str) -> Document:
    return Document(url=url, html=html, soup=BeautifulSoup(html, "lxml"))


def resolve_url(base: str, href: Optional[str]) -> Optional[str]:
    """Absolute http(s) URL for ``href`` relative to ``base``, or None."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
        return None
    try:
        absolute = urljoin(base, href)
    except ValueError:
        return None
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


class Extractor(ABC):
    """Produce raw candidates from a document."""

    name: str = "extractor"

    @abstractmethod
    async def extract(self, doc: Document) -> list[RawCandidate]:
        ...
