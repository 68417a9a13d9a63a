"""Domain entity for ingested queue items and their state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ...exceptions import InvalidTransitionError


class EnrichmentStatus(str, Enum):
    """Progress of language-model enrichment for one item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReviewStatus(str, Enum):
    """Progress of human review for one item."""

    NOT_READY = "not_ready"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Statuses from which the processing lease may be granted
LEASABLE_STATUSES = (EnrichmentStatus.PENDING, EnrichmentStatus.FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class QueueItem:
    """A raw word or phrase awaiting enrichment into one or more notes.

    The transition methods below are the only sanctioned way to change the
    two status fields. ``review_status`` stays NOT_READY until enrichment
    has completed.
    """

    raw_content: str
    source: str
    params: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    review_status: ReviewStatus = ReviewStatus.NOT_READY
    last_error: str | None = None
    attempts: int = 0
    created_at: datetime = field(default_factory=utcnow)
    enrichment_started_at: datetime | None = None
    enrichment_completed_at: datetime | None = None
    reviewed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.raw_content or not self.raw_content.strip():
            raise ValueError("Queue item content cannot be empty")
        self.enrichment_status = EnrichmentStatus(self.enrichment_status)
        self.review_status = ReviewStatus(self.review_status)

    @property
    def action(self) -> str | None:
        value = self.params.get("action")
        return str(value) if value else None

    @property
    def is_terminal(self) -> bool:
        return self.enrichment_status == EnrichmentStatus.FAILED or self.review_status in (
            ReviewStatus.ACCEPTED,
            ReviewStatus.REJECTED,
        )

    def _guard(self, transition: str, allowed: bool, current: str) -> None:
        if not allowed:
            raise InvalidTransitionError(self.id, transition, current)

    # Enrichment transitions

    def begin_processing(self, now: datetime | None = None) -> None:
        self._guard(
            "begin processing",
            self.enrichment_status in LEASABLE_STATUSES,
            self.enrichment_status.value,
        )
        self.enrichment_status = EnrichmentStatus.PROCESSING
        self.enrichment_started_at = now or utcnow()
        self.enrichment_completed_at = None
        self.last_error = None
        self.attempts = 0

    def complete(self, now: datetime | None = None) -> None:
        self._guard(
            "complete",
            self.enrichment_status == EnrichmentStatus.PROCESSING,
            self.enrichment_status.value,
        )
        self.enrichment_status = EnrichmentStatus.COMPLETED
        self.enrichment_completed_at = now or utcnow()

    def fail(self, error: str, now: datetime | None = None) -> None:
        self._guard(
            "fail",
            self.enrichment_status == EnrichmentStatus.PROCESSING,
            self.enrichment_status.value,
        )
        self.enrichment_status = EnrichmentStatus.FAILED
        self.enrichment_completed_at = now or utcnow()
        self.last_error = error

    def retry(self) -> None:
        """Operator retry of a failed item."""
        self._guard(
            "retry",
            self.enrichment_status == EnrichmentStatus.FAILED,
            self.enrichment_status.value,
        )
        self.enrichment_status = EnrichmentStatus.PENDING
        self.enrichment_started_at = None
        self.enrichment_completed_at = None

    def release(self) -> None:
        """Return an abandoned processing lease to the queue."""
        self._guard(
            "release",
            self.enrichment_status == EnrichmentStatus.PROCESSING,
            self.enrichment_status.value,
        )
        self.enrichment_status = EnrichmentStatus.PENDING
        self.enrichment_started_at = None

    # Review transitions

    def mark_ready_for_review(self, draft_count: int) -> None:
        self._guard(
            "mark ready for review",
            self.enrichment_status == EnrichmentStatus.COMPLETED
            and self.review_status == ReviewStatus.NOT_READY
            and draft_count > 0,
            f"{self.enrichment_status.value}/{self.review_status.value}",
        )
        self.review_status = ReviewStatus.PENDING

    def accept(self, now: datetime | None = None) -> None:
        self._guard(
            "accept",
            self.review_status == ReviewStatus.PENDING,
            self.review_status.value,
        )
        self.review_status = ReviewStatus.ACCEPTED
        self.reviewed_at = now or utcnow()

    def reject(self, now: datetime | None = None) -> None:
        self._guard(
            "reject",
            self.review_status == ReviewStatus.PENDING,
            self.review_status.value,
        )
        self.review_status = ReviewStatus.REJECTED
        self.reviewed_at = now or utcnow()
