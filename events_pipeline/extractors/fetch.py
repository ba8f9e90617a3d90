"""Polite HTTP fetcher with retries and exponential backoff.

One shared ``httpx.AsyncClient`` per crawl run, a stable browser-like header
set, and a typed failure instead of an exception: a URL that cannot be
fetched is simply unavailable for this run.
"""

import asyncio
from typing import Optional
from urllib.parse import urlparse

import httpx
from rich.console import Console

from events_pipeline import config
from events_pipeline.errors import FetchError, FetchTimeout, HttpStatusError, NetworkError

console = Console()

BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class FetchResult:
    """Result of a fetch: document text or a typed error."""

    def __init__(
        self,
        url: str,
        html: Optional[str] = None,
        status: Optional[int] = None,
        error: Optional[FetchError] = None,
    ):
        self.url = url
        self.html = html
        self.status = status
        self.error = error

    @property
    def ok(self) -> bool:
        return self.html is not None and self.error is None


class Fetcher:
    """Async fetcher. Use as ``async with Fetcher() as fetcher``."""

    def __init__(
        self,
        timeout: float = config.FETCH_TIMEOUT,
        retries: int = config.FETCH_RETRIES,
        backoff: float = config.FETCH_BACKOFF,
        user_agent: str = config.USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self.headers = {"User-Agent": user_agent, **BASE_HEADERS}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "Fetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResult:
        """Fetch ``url`` with retries. Never raises for network problems."""
        if self._client is None:
            raise RuntimeError("Fetcher used outside of 'async with'")

        error: Optional[FetchError] = None
        status: Optional[int] = None
        for attempt in range(self.retries):
            try:
                response = await self._client.get(url, headers={"Referer": origin_of(url)})
                status = response.status_code
                response.raise_for_status()
                return FetchResult(url, html=response.text, status=status)
            except httpx.TimeoutException:
                error = FetchTimeout(url)
            except httpx.HTTPStatusError as e:
                error = HttpStatusError(url, e.response.status_code)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                error = NetworkError(url, type(e).__name__)

            if attempt < self.retries - 1:
                await asyncio.sleep(self.backoff * (2 ** attempt))

        console.print(f"[dim]Fetch failed for {url}: {error}[/dim]")
        return FetchResult(url, status=status, error=error)


async def fetch_url(url: str, **kwargs) -> FetchResult:
    """One-off fetch with a throwaway client."""
    async with Fetcher(**kwargs) as fetcher:
        return await fetcher.fetch(url)
