"""Typed errors for the embedding pipeline and the ranking path.

TransientExternalError is the only retryable failure: the embedding workers
requeue on it and the ranking orchestrator falls back on it. Everything else
either fails a job immediately (MalformedInputError) or is reported to the
caller as-is.
"""


class RankingError(Exception):
    """Base class for every error raised by this package."""


class TransientExternalError(RankingError):
    """An external dependency timed out, rate-limited us, or was unreachable."""

    def __init__(self, message: str, *, operation: str = "", status_code: int | None = None):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class MalformedInputError(RankingError):
    """Input the embedding provider can never accept (empty text, bad request, wrong dimension)."""


class ValidationError(RankingError):
    """A ranking request was rejected before any work was done."""


class ConfigurationError(RankingError):
    """A tenant setting could not be honoured; callers log it and use the default."""


class PartialDataError(RankingError):
    """A candidate is missing data (usually its embedding) needed for vector scoring."""

    def __init__(self, message: str, *, candidate_id: str):
        super().__init__(message)
        self.candidate_id = candidate_id


class RankingTimeoutError(RankingError):
    """The request deadline expired at an external call boundary."""

    def __init__(self, operation: str):
        super().__init__(f"Deadline exceeded during {operation}")
        self.operation = operation
