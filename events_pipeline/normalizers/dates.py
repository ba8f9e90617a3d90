"""Temporal resolution: free-text dates to comparable timestamps.

Two stages:
1. General natural-language parse (dateparser) against ``now``.
2. Regex rescue when the parse fails or lands more than two years away from
   ``now`` (usually a stray number read as a year).

Year-less month/day dates that land more than a day in the past are rolled
forward one year, so "Sep 21" published in December means next September.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

import dateparser

MAX_YEAR_DRIFT = 2
ROLLOVER_GRACE = timedelta(days=1)
STALE_AFTER = timedelta(days=365)
FUTURE_HORIZON = timedelta(days=730)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_NAME_DAY = re.compile(
    r"\b(january|february|march|april|may|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec)\.?\s*([0-3]?\d)(?:st|nd|rd|th)?\b",
    re.I,
)
_NUMERIC_MONTH_DAY = re.compile(r"\b([01]?\d)[/-]([0-3]?\d)\b")
_ISO_DATE = re.compile(r"\b20\d{2}-[01]?\d-[0-3]?\d\b")
_NUMERIC_DATE = re.compile(r"\b[01]?\d/[0-3]?\d(?:/20\d{2})?\b")
_EXPLICIT_YEAR = re.compile(r"\b(?:19|20)\d{2}\b|\b\d{1,2}[/-]\d{1,2}[/-]\d{2}\b")

_PARSER_SETTINGS = {
    "PREFER_DAY_OF_MONTH": "first",
    "DATE_ORDER": "MDY",
}


def _general_parse(text: str, now: datetime) -> Optional[datetime]:
    """Natural-language parse with ``now`` as the reference date."""
    try:
        parsed = dateparser.parse(
            text[:200],
            languages=["en"],
            settings={**_PARSER_SETTINGS, "RELATIVE_BASE": now},
        )
    except (ValueError, OverflowError):
        return None
    if parsed is None:
        return None
    # Keep the wall-clock time the listing published
    return parsed.replace(tzinfo=None)


def _roll_forward(value: datetime, now: datetime) -> datetime:
    if value < now - ROLLOVER_GRACE:
        try:
            return value.replace(year=value.year + 1)
        except ValueError:  # Feb 29
            return value
    return value


def _regex_rescue(text: str, now: datetime) -> Optional[datetime]:
    """Month-name or numeric month/day scan, assuming the current year."""
    month = day = None

    numeric = _NUMERIC_MONTH_DAY.search(text)
    if numeric:
        month, day = int(numeric.group(1)), int(numeric.group(2))

    named = _MONTH_NAME_DAY.search(text)
    if named:
        month = MONTHS.get(named.group(1).lower()[:3], month)
        day = int(named.group(2)) or day

    if not month or not day:
        return None
    try:
        candidate = datetime(now.year, month, day)
    except ValueError:
        return None
    return _roll_forward(candidate, now)


def resolve_datetime(
    date_text: Optional[str],
    time_text: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Resolve free-text date (and optional time) to a datetime, or None."""
    now = now or datetime.now()
    date_text = (date_text or "").strip()
    if not date_text:
        return None

    base = f"{date_text} {time_text}".strip() if time_text else date_text
    parsed = _general_parse(base, now)

    if parsed is None or abs(parsed.year - now.year) > MAX_YEAR_DRIFT:
        return _regex_rescue(date_text, now)

    has_month_day = _MONTH_NAME_DAY.search(date_text) or _NUMERIC_MONTH_DAY.search(date_text)
    if has_month_day and not _EXPLICIT_YEAR.search(date_text):
        parsed = _roll_forward(parsed, now)
    return parsed


def resolve_timestamp(
    date_text: Optional[str],
    time_text: Optional[str] = None,
    now: Optional[datetime] = None,
    discard_stale: bool = True,
) -> Optional[str]:
    """Resolve to an ISO timestamp string.

    With ``discard_stale`` (the consolidation path), dates more than a year
    in the past resolve to None.
    """
    now = now or datetime.now()
    resolved = resolve_datetime(date_text, time_text, now)
    if resolved is None:
        return None
    if discard_stale and resolved < now - STALE_AFTER:
        return None
    return resolved.isoformat()


def within_retention(value: datetime, now: Optional[datetime] = None) -> bool:
    """One year past to two years future."""
    now = now or datetime.now()
    return now - STALE_AFTER <= value <= now + FUTURE_HORIZON


def is_plausible_date(text: Optional[str], now: Optional[datetime] = None) -> bool:
    """Text resolves to a date inside the retention window."""
    now = now or datetime.now()
    resolved = resolve_datetime(text, None, now)
    return resolved is not None and within_retention(resolved, now)


def has_plausible_date(text: Optional[str], now: Optional[datetime] = None) -> bool:
    """Looser check: looks like a date, or resolves at all."""
    text = text or ""
    if _MONTH_NAME_DAY.search(text) or _ISO_DATE.search(text) or _NUMERIC_DATE.search(text):
        return True
    return resolve_datetime(text, None, now) is not None
