"""Seed list loading and pagination-pattern expansion."""

from pathlib import Path
from typing import Callable, NamedTuple, Union
from urllib.parse import urlparse

from rich.console import Console

console = Console()


class PaginationRule(NamedTuple):
    """Listing pages on ``host`` whose path contains ``path_hint`` paginate as ``style``."""

    host: str
    path_hint: str  # "" matches any path
    style: str  # "query", "query_underscore" or "path"
    first: int
    last: int


PAGINATION_RULES = [
    PaginationRule("do312.com", "/events", "query", 2, 20),
    PaginationRule("timeout.com", "/events", "query", 2, 20),
    PaginationRule("choosechicago.com", "/events", "path", 2, 30),
    PaginationRule("chicagomag.com", "things-to-do", "query_underscore", 2, 20),
    PaginationRule("chicagoparkdistrict.com", "/events", "query", 2, 30),
    PaginationRule("chipublib.org", "/events", "query", 2, 20),
    PaginationRule("lpzoo.org", "/events", "path", 2, 10),
    PaginationRule("navypier.org", "/events", "path", 2, 12),
    PaginationRule("uchicago.edu", "", "query", 2, 20),
    PaginationRule("planitpurple.northwestern.edu", "", "query", 2, 20),
    PaginationRule("events.depaul.edu", "", "query", 2, 20),
    PaginationRule("uic.edu", "/events", "query", 2, 20),
]

_BUILDERS: dict[str, Callable[[str, str, int], str]] = {
    "query": lambda origin, path, i: f"{origin}{path}?page={i}",
    "query_underscore": lambda origin, path, i: f"{origin}{path}?_page={i}",
    "path": lambda origin, path, i: f"{origin}{path.rstrip('/')}/page/{i}/",
}


def load_seeds(path: Union[str, Path]) -> list[str]:
    """One URL per line; blanks skipped, duplicates dropped, order kept."""
    with open(path) as f:
        lines = [line.strip() for line in f]
    return list(dict.fromkeys(line for line in lines if line))


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def expand_seed(url: str) -> list[str]:
    """The seed itself plus its known pagination pages."""
    out = [url]
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return out

    origin = f"{parsed.scheme}://{parsed.netloc}"
    for rule in PAGINATION_RULES:
        if not _host_matches(parsed.hostname, rule.host) or rule.path_hint not in parsed.path:
            continue
        build = _BUILDERS[rule.style]
        out.extend(build(origin, parsed.path, i) for i in range(rule.first, rule.last + 1))
        break
    return list(dict.fromkeys(out))


def expand_seeds(urls: list[str]) -> list[str]:
    expanded = list(dict.fromkeys(u for url in urls for u in expand_seed(url)))
    console.print(f"[dim]Expanded seeds {len(urls)} -> {len(expanded)}[/dim]")
    return expanded


def write_seeds(path: Union[str, Path], urls: list[str]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(urls) + "\n")
