"""Interface for queue, note and sync-report persistence."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ...models.data import SyncResult
from ..entities.note import NoteState, VocabularyNote
from ..entities.queue_item import EnrichmentStatus, QueueItem, ReviewStatus


class IVocabularyRepository(ABC):
    """Interface for vocabulary state persistence.

    Multi-row state changes (completing enrichment, accepting or rejecting
    an item) are single transactions: either every row changes or none.
    """

    # Queue items

    @abstractmethod
    def add_queue_item(self, item: QueueItem) -> QueueItem:
        """Insert a new queue item and return it with its id set."""

    @abstractmethod
    def get_queue_item(self, item_id: int) -> QueueItem | None:
        """Get a queue item by id."""

    @abstractmethod
    def list_queue_items(
        self,
        enrichment_status: EnrichmentStatus | None = None,
        review_status: ReviewStatus | None = None,
        limit: int | None = None,
    ) -> list[QueueItem]:
        """List queue items, oldest first, optionally filtered by status."""

    @abstractmethod
    def next_pending_item_id(self) -> int | None:
        """Get the oldest item whose enrichment is pending."""

    @abstractmethod
    def try_begin_processing(self, item_id: int, now: datetime) -> bool:
        """Atomically move an item from pending or failed to processing.

        Returns:
            True if this caller obtained the lease, False otherwise
        """

    @abstractmethod
    def complete_enrichment(
        self,
        item_id: int,
        drafts: list[VocabularyNote],
        attempts: int,
        now: datetime,
    ) -> list[int]:
        """Store drafts, link them in order, and mark the item completed.

        Review moves to pending in the same transaction.

        Returns:
            Ids of the inserted drafts, in link order
        """

    @abstractmethod
    def fail_enrichment(
        self, item_id: int, error: str, attempts: int, now: datetime
    ) -> bool:
        """Mark a processing item failed with its last error.

        Returns:
            False if the item was no longer processing
        """

    @abstractmethod
    def save_queue_item(self, item: QueueItem) -> None:
        """Persist status and timestamp fields of an existing item."""

    @abstractmethod
    def release_stale_processing(self, older_than: datetime) -> list[int]:
        """Return items processing since before ``older_than`` to pending.

        Returns:
            Ids of the released items
        """

    @abstractmethod
    def queue_counts(self) -> dict[str, int]:
        """Count items per enrichment and review status."""

    # Notes

    @abstractmethod
    def get_note(self, note_id: int) -> VocabularyNote | None:
        """Get a note by id."""

    @abstractmethod
    def list_notes(self, state: NoteState | None = None) -> list[VocabularyNote]:
        """List notes, optionally filtered by state, oldest first."""

    @abstractmethod
    def get_item_notes(self, item_id: int) -> list[VocabularyNote]:
        """Get the notes linked to an item, in fan-out order."""

    @abstractmethod
    def accept_item(self, item_id: int, now: datetime) -> bool:
        """Promote linked drafts to permanent and mark review accepted.

        Returns:
            False if the item was no longer pending review
        """

    @abstractmethod
    def reject_item(self, item_id: int, now: datetime) -> list[str] | None:
        """Delete linked drafts and mark review rejected.

        Returns:
            Attachment references of the deleted drafts, or None if the item
            was no longer pending review (nothing was deleted)
        """

    @abstractmethod
    def update_note_fields(self, note_id: int, fields: dict[str, Any], now: datetime) -> None:
        """Change content fields of a permanent, non-deleted note.

        ``local_modified_at`` becomes ``now``, or one microsecond after its
        stored value when that is not earlier. Sync columns (remote id,
        baselines) are left untouched.

        Raises:
            StateError: If the note is missing, a draft or deleted
        """

    @abstractmethod
    def set_note_sync_enabled(self, note_id: int, enabled: bool) -> None:
        """Include or exclude a note from reconciliation."""

    @abstractmethod
    def delete_unsynced_note(self, note_id: int) -> bool:
        """Remove a permanent note that has no remote id.

        Returns:
            False if the note has a remote id by now (or does not exist)
        """

    @abstractmethod
    def tombstone_note(self, note_id: int, now: datetime) -> None:
        """Mark a permanent note deleted and drop its attachment references."""

    @abstractmethod
    def delete_note(self, note_id: int) -> None:
        """Remove a note and its links."""

    @abstractmethod
    def list_sync_candidates(self) -> list[VocabularyNote]:
        """Permanent, sync-enabled, non-deleted notes."""

    @abstractmethod
    def list_tombstones(self) -> list[VocabularyNote]:
        """Permanent notes marked deleted that still have a remote id."""

    @abstractmethod
    def mark_synced(
        self,
        note_id: int,
        remote_id: int,
        remote_modified_at: datetime,
        local_synced_at: datetime | None,
        remote_fingerprint: str,
    ) -> None:
        """Record the remote id and both sync baselines after a write.

        Args:
            note_id: Local note id
            remote_id: Anki note id
            remote_modified_at: Anki ``mod`` read back after the write
            local_synced_at: The ``local_modified_at`` value that was written
            remote_fingerprint: Fingerprint of the Anki fields after the write
        """

    @abstractmethod
    def apply_remote_fields(
        self,
        note_id: int,
        fields: dict[str, str | None],
        remote_modified_at: datetime,
        remote_fingerprint: str,
        now: datetime,
        expected_local_modified_at: datetime | None,
    ) -> bool:
        """Overwrite local fields with remote values pulled from Anki.

        Only applies while ``local_modified_at`` still equals
        ``expected_local_modified_at``; a local edit made since the plan was
        built is never overwritten.

        Returns:
            False if the note changed locally (or was deleted) meanwhile
        """

    # Sync coordination

    @abstractmethod
    def acquire_sync_lease(self, owner: str, ttl_seconds: int, now: datetime) -> bool:
        """Take the global sync lease unless another unexpired owner holds it."""

    @abstractmethod
    def release_sync_lease(self, owner: str) -> None:
        """Release the sync lease if ``owner`` holds it."""

    @abstractmethod
    def save_sync_result(self, result: SyncResult) -> None:
        """Store a sync report until it expires or is read."""

    @abstractmethod
    def pop_sync_result(self, session_id: str, now: datetime) -> SyncResult | None:
        """Read and delete a sync report; None if missing or expired at ``now``."""

    @abstractmethod
    def purge_expired_sync_results(self, now: datetime) -> int:
        """Delete expired sync reports.

        Returns:
            Number of reports deleted
        """
