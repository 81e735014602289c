"""Immutable embedding job records."""

import enum
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

DEFAULT_MAX_RETRIES = 3


class JobSource(str, enum.Enum):
    """What caused a candidate to be queued for (re-)embedding."""

    IMPORT = "import"
    PROFILE_UPDATE = "profile_update"
    BACKFILL = "backfill"
    MANUAL = "manual"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class EmbeddingJob:
    """One request to (re-)generate a candidate's profile embedding.

    A retry never mutates a job: ``job.retry(error)`` returns a new record with
    ``retry_count`` incremented and the failure recorded in ``last_error``.
    ``snapshot_at`` is when ``profile_text`` was read and survives retries; it
    is stored as the embedding's generated-at time so an edit made while the
    job is in flight still marks the candidate stale.
    """

    candidate_id: str
    profile_text: str
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    queued_at: datetime = field(default_factory=_utcnow)
    snapshot_at: datetime = field(default_factory=_utcnow)
    source: JobSource = JobSource.MANUAL
    last_error: str | None = None

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def retry(self, error: str) -> "EmbeddingJob":
        return replace(
            self,
            retry_count=self.retry_count + 1,
            queued_at=_utcnow(),
            last_error=error,
        )


@dataclass(frozen=True)
class DeadLetter:
    """A job that will not be retried, kept for manual inspection."""

    job: EmbeddingJob
    reason: str
    failed_at: datetime = field(default_factory=_utcnow)
