"""Invocation surface of the vocabulary pipeline.

``VocabularyPipeline`` is what the CLI (and any other caller) talks to. It
owns no logic of its own beyond dispatch: enrichment goes through the
orchestrator, reviewer actions through the lifecycle manager, and sync
through the reconciliation engine.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Any, Literal

from vocab_anki_sync.domain.entities.note import NoteState, VocabularyNote
from vocab_anki_sync.domain.entities.queue_item import (
    EnrichmentStatus,
    QueueItem,
    ReviewStatus,
    utcnow,
)
from vocab_anki_sync.domain.interfaces.vocabulary_repository import (
    IVocabularyRepository,
)
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import StateError, ValidationFailure
from vocab_anki_sync.models.data import ProcessOutcome, SyncResult
from vocab_anki_sync.sync.reconciler import ReconciliationEngine
from vocab_anki_sync.utils.cancellation import CancellationToken
from vocab_anki_sync.utils.logging import get_logger

from .lifecycle import NoteLifecycleManager
from .orchestrator import EnrichmentOrchestrator

logger = get_logger(__name__)


class VocabularyPipeline:
    """Entry point for enqueueing, enrichment, review and sync."""

    def __init__(
        self,
        repository: IVocabularyRepository,
        orchestrator: EnrichmentOrchestrator,
        lifecycle: NoteLifecycleManager,
        reconciler: ReconciliationEngine,
        max_workers: int = 4,
        stale_processing_minutes: int = 30,
        token: CancellationToken | None = None,
        clock: Callable[[], datetime] = utcnow,
        resources: list[Any] | None = None,
    ):
        """
        Args:
            repository: Queue and note store
            orchestrator: Enrichment orchestrator
            lifecycle: Reviewer action handler
            reconciler: Anki reconciliation engine
            max_workers: Default worker count for ``process_pending``
            stale_processing_minutes: Age after which a processing lease is
                considered abandoned
            token: Cancellation token shared by workers
            clock: Source of the current time
            resources: Objects with a ``close()`` method released by ``close``
        """
        self.repository = repository
        self.orchestrator = orchestrator
        self.lifecycle = lifecycle
        self.reconciler = reconciler
        self.max_workers = max_workers
        self.stale_processing_minutes = stale_processing_minutes
        self.token = token or CancellationToken()
        self._clock = clock
        self._resources = list(resources or [])

    # Queue

    def enqueue(
        self,
        raw_content: str,
        source: str = "manual",
        params: dict[str, Any] | None = None,
    ) -> QueueItem:
        """Add a raw word or phrase to the queue as pending."""
        try:
            item = QueueItem(
                raw_content=raw_content.strip(),
                source=source,
                params=dict(params or {}),
                created_at=self._clock(),
            )
        except ValueError as e:
            raise ValidationFailure(
                str(e), error_code=ErrorCode.ENR_VALIDATION.value
            ) from e

        item = self.repository.add_queue_item(item)
        logger.info(
            "queue_item_enqueued",
            item_id=item.id,
            source=source,
            action=item.action,
        )
        return item

    def get_item(self, item_id: int) -> QueueItem:
        item = self.repository.get_queue_item(item_id)
        if item is None:
            msg = f"Queue item {item_id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)
        return item

    def list_items(
        self,
        enrichment_status: EnrichmentStatus | None = None,
        review_status: ReviewStatus | None = None,
        limit: int | None = None,
    ) -> list[QueueItem]:
        return self.repository.list_queue_items(enrichment_status, review_status, limit)

    def item_notes(self, item_id: int) -> list[VocabularyNote]:
        self.get_item(item_id)
        return self.repository.get_item_notes(item_id)

    def list_notes(self, state: NoteState | None = None) -> list[VocabularyNote]:
        return self.repository.list_notes(state)

    # Enrichment

    def process_next(self) -> ProcessOutcome | None:
        """Enrich the oldest pending item.

        Returns:
            The outcome, or None when nothing is pending
        """
        while True:
            item_id = self.repository.next_pending_item_id()
            if item_id is None:
                return None
            outcome = self.orchestrator.process(item_id)
            if outcome.status != "lease_denied":
                return outcome

    def process_item(self, item_id: int) -> ProcessOutcome:
        """Enrich one specific item (pending or failed)."""
        self.get_item(item_id)
        return self.orchestrator.process(item_id)

    def process_pending(
        self, max_workers: int | None = None, limit: int | None = None
    ) -> list[ProcessOutcome]:
        """Enrich pending items on a thread pool.

        Each worker checks the cancellation token before it starts an item,
        so cancelling lets in-flight items finish and skips the rest.
        Items another worker leased first are left out of the result.
        """
        item_ids = [
            item.id
            for item in self.repository.list_queue_items(
                enrichment_status=EnrichmentStatus.PENDING, limit=limit
            )
            if item.id is not None
        ]
        if not item_ids:
            return []

        workers = min(max_workers or self.max_workers, len(item_ids))
        logger.debug("process_pending_started", items=len(item_ids), workers=workers)

        outcomes: list[ProcessOutcome] = []
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="enrich"
        ) as executor:
            futures = {
                executor.submit(self._process_unless_cancelled, item_id): item_id
                for item_id in item_ids
            }
            for future in as_completed(futures):
                item_id = futures[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(
                        "process_item_crashed",
                        item_id=item_id,
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                    outcome = ProcessOutcome(
                        item_id=item_id,
                        status="failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                if outcome is not None and outcome.status != "lease_denied":
                    outcomes.append(outcome)

        outcomes.sort(key=lambda outcome: item_ids.index(outcome.item_id))
        if self.token.cancelled:
            logger.warning(
                "process_pending_cancelled",
                processed=len(outcomes),
                skipped=len(item_ids) - len(outcomes),
            )
        return outcomes

    def _process_unless_cancelled(self, item_id: int) -> ProcessOutcome | None:
        if self.token.cancelled:
            return None
        return self.orchestrator.process(item_id)

    def retry(self, item_id: int) -> QueueItem:
        """Return a failed item to pending."""
        item = self.get_item(item_id)
        item.retry()
        self.repository.save_queue_item(item)
        logger.info("queue_item_retried", item_id=item_id)
        return item

    def recover_stale(self, older_than_minutes: int | None = None) -> list[int]:
        """Release processing leases abandoned by crashed workers."""
        minutes = older_than_minutes or self.stale_processing_minutes
        cutoff = self._clock() - timedelta(minutes=minutes)
        released = self.repository.release_stale_processing(cutoff)
        if released:
            logger.info(
                "stale_processing_recovered", items=released, older_than_minutes=minutes
            )
        return released

    # Review

    def accept(self, item_id: int) -> QueueItem:
        return self.lifecycle.accept(item_id)

    def reject(self, item_id: int) -> QueueItem:
        return self.lifecycle.reject(item_id)

    def edit_note(self, note_id: int, fields: dict[str, Any]) -> VocabularyNote:
        return self.lifecycle.edit(note_id, fields)

    def delete_note(self, note_id: int) -> Literal["removed", "tombstoned"]:
        return self.lifecycle.delete(note_id)

    def set_sync_enabled(self, note_id: int, enabled: bool) -> VocabularyNote:
        return self.lifecycle.set_sync_enabled(note_id, enabled)

    # Sync

    def reconcile(self, deck_name: str | None = None) -> SyncResult:
        return self.reconciler.reconcile(deck_name, token=self.token)

    def pop_sync_result(self, session_id: str) -> SyncResult | None:
        """Read a stored sync report once; None if unknown or expired."""
        return self.repository.pop_sync_result(session_id, self._clock())

    # Housekeeping

    def status(self) -> dict[str, int]:
        """Queue counts per status plus note counts."""
        counts = dict(self.repository.queue_counts())
        notes = self.repository.list_notes()
        counts["notes.draft"] = sum(1 for note in notes if note.is_draft)
        counts["notes.permanent"] = sum(
            1 for note in notes if not note.is_draft and not note.is_tombstoned
        )
        counts["notes.synced"] = sum(
            1 for note in notes if note.is_synced and not note.is_tombstoned
        )
        counts["notes.pending_delete"] = sum(1 for note in notes if note.is_tombstoned)
        return counts

    def check_connections(self) -> dict[str, bool]:
        """Reachability of AnkiConnect and the enrichment service."""
        return {
            "anki": self.reconciler.anki.check_connection(),
            "llm": self.orchestrator.enrichment_client.check_connection(),
        }

    def close(self) -> None:
        for resource in self._resources:
            resource.close()
        self._resources.clear()

    def __enter__(self) -> "VocabularyPipeline":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
