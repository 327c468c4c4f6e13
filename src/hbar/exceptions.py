"""Custom exceptions for the HBAR price chart pipeline.

Every error raised by the collection, storage, merge and publish layers
lives here to avoid circular imports between modules. Per-item errors
(FetchError, RateValidationError) are counted and skipped by the stage that
hits them; the remaining ones abort the run.
"""


class PipelineError(Exception):
    """Base exception for all pipeline errors."""


class FetchError(PipelineError):
    """Raised when a remote query fails: network, timeout, HTTP status or body."""


class RateValidationError(PipelineError):
    """Raised when a rate payload is well-formed but unusable."""


class InvalidRateError(RateValidationError):
    """Raised when a rate has a zero denominator or non-numeric fields."""


class RateWindowMismatchError(RateValidationError):
    """Raised when a rate window does not cover the requested timestamp."""

    def __init__(self, target: int, current_start: int, next_start: int) -> None:
        super().__init__(
            f"target {target} not found in window "
            f"(current: {current_start}, next: {next_start})"
        )
        self.target = target
        self.current_start = current_start
        self.next_start = next_start


class DatasetError(PipelineError):
    """Base class for dataset store failures. Always fatal."""


class DatasetNotFoundError(DatasetError):
    """Raised when a required dataset file does not exist."""


class DatasetFormatError(DatasetError):
    """Raised when a dataset file has an unexpected header or unparseable rows."""


class NoDataToMergeError(PipelineError):
    """Raised when the series merge has nothing to produce."""


class PublishError(PipelineError):
    """Raised when the chart page cannot be generated."""
