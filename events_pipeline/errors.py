"""Error taxonomy for the events pipeline.

Only ``DatasetQualityFailure`` is allowed to fail a build. Everything else is
recovered where it happens: a bad URL is skipped, a bad block is skipped,
a bad record is dropped.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class FetchError(PipelineError):
    """A URL could not be retrieved for this run."""

    reason = "error"

    def __init__(self, url: str, detail: Optional[str] = None):
        self.url = url
        self.detail = detail
        super().__init__(f"{self.reason}: {url}" + (f" ({detail})" if detail else ""))


class FetchTimeout(FetchError):
    reason = "timeout"


class HttpStatusError(FetchError):
    reason = "http_status"

    def __init__(self, url: str, status: int):
        self.status = status
        super().__init__(url, str(status))


class NetworkError(FetchError):
    reason = "network"


class ParseError(PipelineError):
    """Malformed structured-data block or calendar resource."""


class AdmissionRejected(PipelineError):
    """A record failed the canonical-quality gate."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DatasetQualityFailure(PipelineError):
    """Aggregate validity of a dataset fell below the threshold."""

    def __init__(self, report):
        self.report = report
        super().__init__(
            f"{report.valid}/{report.total} records valid ({report.pct_valid}%)"
        )
