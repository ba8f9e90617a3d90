"""Dataset quality report and the build quality gate."""

from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel
from rich.console import Console

from events_pipeline import config
from events_pipeline.consolidator import load_records
from events_pipeline.errors import DatasetQualityFailure
from events_pipeline.normalizers import resolve_datetime

console = Console()


class DatasetReport(BaseModel):
    """Aggregate validity of one dataset file."""

    file: str
    total: int = 0
    valid: int = 0
    pct_valid: int = 0  # Rounded percentage, for display
    missing_time: int = 0
    missing_place: int = 0
    missing_desc: int = 0


class DomainStats(BaseModel):
    domain: str
    total: int = 0
    valid: int = 0
    missing_desc: int = 0
    pct_valid: int = 0


def _text(record: dict, key: str) -> str:
    value = record.get(key)
    return value if isinstance(value, str) else ""


def is_valid_record(
    record: dict,
    now: Optional[datetime] = None,
    strict_date: bool = True,
) -> bool:
    """Title, link, place, description and date all present and well-formed.

    With ``strict_date`` the date text must resolve; otherwise any date text
    or resolved timestamp counts.
    """
    url = _text(record, "event_url")
    if len(_text(record, "title")) <= 3:
        return False
    if not url.startswith(("http://", "https://")):
        return False
    if len(_text(record, "location")) <= 3:
        return False
    if len(_text(record, "description")) <= 10:
        return False
    if strict_date:
        return resolve_datetime(_text(record, "date_info"), None, now) is not None
    return bool(record.get("resolved_timestamp") or record.get("_ts") or record.get("date_info"))


def validate_records(
    records: list[dict],
    file: str = "",
    now: Optional[datetime] = None,
) -> DatasetReport:
    report = DatasetReport(file=file, total=len(records))
    for record in records:
        if not record.get("time_start"):
            report.missing_time += 1
        if not record.get("location"):
            report.missing_place += 1
        if not record.get("description"):
            report.missing_desc += 1
        if is_valid_record(record, now):
            report.valid += 1
    report.pct_valid = round(report.valid / report.total * 100) if report.total else 0
    return report


def validate_dataset(path: Union[str, Path], now: Optional[datetime] = None) -> DatasetReport:
    """Validate a dataset file on disk."""
    return validate_records(load_records(path), file=str(path), now=now)


def enforce_quality_gate(
    report: DatasetReport,
    threshold: float = config.QUALITY_THRESHOLD,
) -> DatasetReport:
    """Raise DatasetQualityFailure when too few records are valid.

    An empty dataset always fails.
    """
    if report.total == 0 or report.valid / report.total < threshold:
        console.print(f"[red]Quality gate failed: {report.valid}/{report.total} valid[/red]")
        raise DatasetQualityFailure(report)
    console.print(f"[green]Quality gate passed: {report.pct_valid}% valid[/green]")
    return report


def _domain_of(url: str) -> str:
    try:
        return urlparse(url).hostname or "invalid"
    except ValueError:
        return "invalid"


def domain_metrics(records: list[dict], limit: int = 100) -> list[DomainStats]:
    """Per-host validity, largest sources first."""
    by_domain: dict[str, DomainStats] = defaultdict(lambda: DomainStats(domain=""))
    for record in records:
        domain = _domain_of(_text(record, "event_url"))
        stats = by_domain[domain]
        stats.domain = domain
        stats.total += 1
        if is_valid_record(record, strict_date=False):
            stats.valid += 1
        if not record.get("description"):
            stats.missing_desc += 1

    rows = list(by_domain.values())
    for stats in rows:
        stats.pct_valid = round(stats.valid / stats.total * 100) if stats.total else 0
    rows.sort(key=lambda s: s.total, reverse=True)
    return rows[:limit]
