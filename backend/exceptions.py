"""Error types raised by the analyte series pipeline.

Only hard failures are exceptions. Empty or non-numeric data is reported
through ``backend.schemas.series.Outcome`` instead.
"""


class AnalyteSeriesError(Exception):
    """Base exception for the series pipeline."""


class SourceUnavailableError(AnalyteSeriesError):
    """Raised when no configured row source could be reached."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class SummarizationUnavailableError(AnalyteSeriesError):
    """Raised by the completion client; the summarization gateway catches it."""
