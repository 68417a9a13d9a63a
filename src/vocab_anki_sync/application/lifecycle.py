"""Reviewer actions on queue items and notes."""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from vocab_anki_sync.domain.entities.note import (
    EDITABLE_FIELDS,
    PartOfSpeech,
    VocabularyNote,
)
from vocab_anki_sync.domain.entities.queue_item import QueueItem, ReviewStatus, utcnow
from vocab_anki_sync.domain.interfaces.attachment_store import IAttachmentStore
from vocab_anki_sync.domain.interfaces.vocabulary_repository import (
    IVocabularyRepository,
)
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import (
    InvalidTransitionError,
    StateError,
    ValidationFailure,
)
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)

_REQUIRED_TEXT_FIELDS = ("content", "translation", "part_of_speech")


class NoteLifecycleManager:
    """Accept, reject, edit and delete vocabulary notes.

    ``accept`` and ``reject`` are idempotent: repeating the action that
    already decided an item is a no-op. Any other transition out of a
    non-pending review state raises ``InvalidTransitionError``.
    """

    def __init__(
        self,
        repository: IVocabularyRepository,
        attachment_store: IAttachmentStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.attachment_store = attachment_store
        self._clock = clock

    def _get_item(self, item_id: int) -> QueueItem:
        item = self.repository.get_queue_item(item_id)
        if item is None:
            msg = f"Queue item {item_id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)
        return item

    def _get_note(self, note_id: int) -> VocabularyNote:
        note = self.repository.get_note(note_id)
        if note is None:
            msg = f"Note {note_id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)
        return note

    def _settle(self, item_id: int, target: ReviewStatus, transition: str) -> QueueItem:
        """Re-read an item whose conditional update lost a race."""
        item = self._get_item(item_id)
        if item.review_status != target:
            raise InvalidTransitionError(item_id, transition, item.review_status.value)
        return item

    def accept(self, item_id: int) -> QueueItem:
        """Promote an item's drafts to permanent notes."""
        item = self._get_item(item_id)
        if item.review_status == ReviewStatus.ACCEPTED:
            return item

        now = self._clock()
        item.accept(now)
        if not self.repository.accept_item(item_id, now):
            return self._settle(item_id, ReviewStatus.ACCEPTED, "accept")

        logger.info("review_accepted", item_id=item_id)
        return item

    def reject(self, item_id: int) -> QueueItem:
        """Discard an item's drafts and their attachments."""
        item = self._get_item(item_id)
        if item.review_status == ReviewStatus.REJECTED:
            return item

        now = self._clock()
        item.reject(now)
        refs = self.repository.reject_item(item_id, now)
        if refs is None:
            return self._settle(item_id, ReviewStatus.REJECTED, "reject")
        if refs:
            self.attachment_store.delete(refs)

        logger.info("review_rejected", item_id=item_id, attachments=len(refs))
        return item

    def edit(self, note_id: int, fields: dict[str, Any]) -> VocabularyNote:
        """Change fields of a permanent note.

        Raises:
            ValidationFailure: For drafts, deleted notes, unknown fields or
                invalid values
        """
        note = self._get_note(note_id)
        if note.is_draft:
            msg = f"Note {note_id} is a draft; accept its queue item first"
            raise ValidationFailure(msg, error_code=ErrorCode.ENR_VALIDATION.value)
        if note.is_tombstoned:
            msg = f"Note {note_id} is deleted"
            raise ValidationFailure(msg, error_code=ErrorCode.ENR_VALIDATION.value)

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be edited: {', '.join(sorted(unknown))}"
            raise ValidationFailure(
                msg,
                suggestion=f"Editable fields: {', '.join(sorted(EDITABLE_FIELDS))}",
                error_code=ErrorCode.ENR_VALIDATION.value,
            )

        for name in _REQUIRED_TEXT_FIELDS:
            if name in fields and not str(fields[name] or "").strip():
                msg = f"Field {name} cannot be empty"
                raise ValidationFailure(msg, error_code=ErrorCode.ENR_VALIDATION.value)
        if "part_of_speech" in fields:
            fields = {**fields, "part_of_speech": str(fields["part_of_speech"]).lower()}
            if fields["part_of_speech"] not in {pos.value for pos in PartOfSpeech}:
                msg = f"Unknown part of speech: {fields['part_of_speech']}"
                raise ValidationFailure(msg, error_code=ErrorCode.ENR_VALIDATION.value)

        changes = {
            name: (value or None) if name == "gender" else value
            for name, value in fields.items()
        }

        self.repository.update_note_fields(note_id, changes, self._clock())
        logger.debug("note_edited", note_id=note_id, fields=sorted(changes))
        return self._get_note(note_id)

    def delete(self, note_id: int) -> Literal["removed", "tombstoned"]:
        """Delete a permanent note.

        An unsynced note is removed at once. A synced note is kept as a
        tombstone until the next reconciliation deletes it from Anki. A note
        that gains a remote id while this runs is tombstoned, never removed.
        """
        note = self._get_note(note_id)
        if note.is_draft:
            msg = f"Note {note_id} is a draft; reject its queue item instead"
            raise ValidationFailure(msg, error_code=ErrorCode.ENR_VALIDATION.value)
        if note.is_tombstoned:
            return "tombstoned"

        if not note.is_synced and self.repository.delete_unsynced_note(note_id):
            if note.audio_refs:
                self.attachment_store.delete(note.audio_refs)
            logger.info("note_deleted", note_id=note_id, remote=False)
            return "removed"

        self.repository.tombstone_note(note_id, self._clock())
        if note.audio_refs:
            self.attachment_store.delete(note.audio_refs)
        logger.info("note_deleted", note_id=note_id, remote=True)
        return "tombstoned"

    def set_sync_enabled(self, note_id: int, enabled: bool) -> VocabularyNote:
        note = self._get_note(note_id)
        if note.sync_enabled == enabled:
            return note
        self.repository.set_note_sync_enabled(note_id, enabled)
        logger.debug("note_sync_toggled", note_id=note_id, enabled=enabled)
        return self._get_note(note_id)
