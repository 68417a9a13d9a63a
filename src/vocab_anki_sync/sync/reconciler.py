"""Reconciliation between local permanent notes and an Anki deck.

A run plans every note first, then applies creates, updates (push and
pull) and remote deletes. Each note is applied independently: a failure
is recorded in the result and leaves that note's local state unchanged.
"""

import threading
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from vocab_anki_sync.anki.field_mapper import (
    NOTE_TYPE_CSS,
    NOTE_TYPE_FIELDS,
    NOTE_TYPE_TEMPLATES,
    build_note_spec,
    differing_fields,
    fields_fingerprint,
    from_anki_fields,
    to_anki_fields,
)
from vocab_anki_sync.domain.entities.note import NoteState, VocabularyNote
from vocab_anki_sync.domain.entities.queue_item import utcnow
from vocab_anki_sync.domain.interfaces.anki_client import IAnkiClient
from vocab_anki_sync.domain.interfaces.vocabulary_repository import (
    IVocabularyRepository,
)
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import (
    RemoteRejected,
    SyncInProgressError,
    VocabSyncError,
)
from vocab_anki_sync.models.data import (
    NoteSyncError,
    RemoteNote,
    SyncConflict,
    SyncResult,
)
from vocab_anki_sync.sync.planner import SyncAction, SyncPlan, plan_sync
from vocab_anki_sync.utils.cancellation import CancellationToken
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)

# notesInfo batch size
FETCH_BATCH_SIZE = 100


class _Cancelled(Exception):
    pass


class ReconciliationEngine:
    """Keeps local permanent notes and the remote deck consistent.

    Only one run is active at a time: an in-process lock guards against
    concurrent callers sharing this engine, and a lease in the store guards
    against other processes sharing the database.
    """

    def __init__(
        self,
        repository: IVocabularyRepository,
        anki_client: IAnkiClient,
        deck_name: str,
        note_type: str,
        tags: list[str] | None = None,
        lease_ttl_seconds: int = 600,
        result_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            repository: Note store
            anki_client: AnkiConnect client
            deck_name: Default deck to reconcile
            note_type: Anki note type used for created notes
            tags: Tags added to created notes
            lease_ttl_seconds: Expiry of the store-level sync lease
            result_ttl_seconds: How long a stored result can be read back
            clock: Source of the current time
        """
        self.repository = repository
        self.anki = anki_client
        self.deck_name = deck_name
        self.note_type = note_type
        self.tags = list(tags or [])
        self.lease_ttl_seconds = lease_ttl_seconds
        self.result_ttl_seconds = result_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()

    def reconcile(
        self,
        deck_name: str | None = None,
        token: CancellationToken | None = None,
    ) -> SyncResult:
        """Run one reconciliation.

        Raises:
            SyncInProgressError: If another run holds the sync lock
            AnkiConnectError: If the deck cannot be prepared or listed
        """
        deck = deck_name or self.deck_name
        session_id = uuid.uuid4().hex

        if not self._lock.acquire(blocking=False):
            msg = "A reconciliation is already running in this process"
            raise SyncInProgressError(msg, error_code=ErrorCode.SYN_IN_PROGRESS.value)
        try:
            now = self._clock()
            if not self.repository.acquire_sync_lease(
                session_id, self.lease_ttl_seconds, now
            ):
                msg = "Another process holds the sync lease"
                raise SyncInProgressError(
                    msg,
                    suggestion="Wait for the other run to finish or for its lease to expire",
                    error_code=ErrorCode.SYN_IN_PROGRESS.value,
                )
            try:
                return self._run(session_id, deck, token)
            finally:
                self.repository.release_sync_lease(session_id)
        finally:
            self._lock.release()

    def _run(
        self, session_id: str, deck: str, token: CancellationToken | None
    ) -> SyncResult:
        start_time = time.time()
        started_at = self._clock()
        logger.info("reconcile_started", deck=deck, session_id=session_id)

        purged = self.repository.purge_expired_sync_results(started_at)
        if purged:
            logger.debug("sync_results_purged", count=purged)

        self._ensure_deck(deck)
        self._ensure_note_type()

        candidates = self.repository.list_sync_candidates()
        tombstones = self.repository.list_tombstones()
        known = [
            note.remote_id
            for note in self.repository.list_notes(NoteState.PERMANENT)
            if note.remote_id is not None and not note.sync_enabled
        ]
        remote_notes = self._fetch_remote(deck)

        plan = plan_sync(candidates, tombstones, remote_notes, known)
        result = SyncResult(
            session_id=session_id,
            deck_name=deck,
            orphans=plan.orphans,
            skipped=len(plan.of_type("skip")),
            created_at=started_at,
        )
        for action in plan.of_type("missing"):
            result.errors.append(
                NoteSyncError(
                    note_id=action.note.id,
                    remote_id=action.note.remote_id,
                    operation="fetch",
                    error_type="RemoteNotFound",
                    message=f"[{ErrorCode.SYN_REMOTE_MISSING.value}] "
                    f"Note {action.note.remote_id} not found in deck {deck}",
                )
            )
        if plan.orphans:
            logger.warning("reconcile_orphans_found", deck=deck, count=len(plan.orphans))

        try:
            self._apply_creates(plan, deck, result, token)
            self._apply_updates(plan, result, token)
            self._apply_deletes(plan, result, token)
        except _Cancelled:
            result.cancelled = True
            logger.warning(
                "reconcile_cancelled",
                session_id=session_id,
                reason=token.reason if token else None,
            )

        result.expires_at = result.created_at + timedelta(
            seconds=self.result_ttl_seconds
        )
        self.repository.save_sync_result(result)

        logger.info(
            "reconcile_completed",
            deck=deck,
            session_id=session_id,
            duration=round(time.time() - start_time, 2),
            created=result.created,
            updated=result.updated,
            pulled=result.pulled,
            deleted=result.deleted,
            skipped=result.skipped,
            conflicts=len(result.conflicts),
            orphans=len(result.orphans),
            errors=result.error_count,
            cancelled=result.cancelled,
        )
        return result

    # Preparation

    def _ensure_deck(self, deck: str) -> None:
        if deck not in self.anki.list_decks():
            self.anki.create_deck(deck)
            logger.info("anki_deck_created", deck=deck)

    def _ensure_note_type(self) -> None:
        if self.note_type not in self.anki.list_models():
            self.anki.create_model(
                self.note_type, NOTE_TYPE_FIELDS, NOTE_TYPE_TEMPLATES, NOTE_TYPE_CSS
            )
            logger.info("anki_note_type_created", note_type=self.note_type)

    def _fetch_remote(self, deck: str) -> dict[int, RemoteNote]:
        note_ids = self.anki.find_note_ids(f'"deck:{deck}"')
        remote: dict[int, RemoteNote] = {}
        for start in range(0, len(note_ids), FETCH_BATCH_SIZE):
            batch = note_ids[start : start + FETCH_BATCH_SIZE]
            for note in self.anki.fetch_notes(batch):
                remote[note.remote_id] = note
        logger.debug("anki_state_fetched", deck=deck, notes=len(remote))
        return remote

    # Application

    @staticmethod
    def _check(token: CancellationToken | None) -> None:
        if token is not None and token.cancelled:
            raise _Cancelled

    @staticmethod
    def _record_error(
        result: SyncResult,
        note: VocabularyNote,
        operation: str,
        error: VocabSyncError,
    ) -> None:
        result.errors.append(
            NoteSyncError(
                note_id=note.id,
                remote_id=note.remote_id,
                operation=operation,  # type: ignore[arg-type]
                error_type=type(error).__name__,
                message=str(error),
            )
        )
        logger.warning(
            "reconcile_note_failed",
            note_id=note.id,
            remote_id=note.remote_id,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )

    def _apply_creates(
        self,
        plan: SyncPlan,
        deck: str,
        result: SyncResult,
        token: CancellationToken | None,
    ) -> None:
        done: list[tuple[VocabularyNote, int]] = []
        try:
            for action in plan.of_type("create"):
                self._check(token)
                note = action.note
                spec = build_note_spec(note, deck, self.note_type, self.tags)
                try:
                    remote_id = self.anki.create_notes([spec])[0]
                    if remote_id is None:
                        msg = f"AnkiConnect did not create note {note.id} ({note.content!r})"
                        raise RemoteRejected(
                            msg,
                            action="addNotes",
                            error_code=ErrorCode.ANK_CREATE_FAILED.value,
                        )
                except VocabSyncError as e:
                    self._record_error(result, note, "create", e)
                    continue
                done.append((note, remote_id))
        finally:
            self._record_baselines(done)
            result.created += len(done)

    def _apply_updates(
        self, plan: SyncPlan, result: SyncResult, token: CancellationToken | None
    ) -> None:
        pushed: list[tuple[VocabularyNote, int]] = []
        try:
            for action in plan.of_type("push", "conflict", "pull"):
                self._check(token)
                if action.type == "pull":
                    self._pull(action, result)
                elif self._push(action, result) and action.remote is not None:
                    pushed.append((action.note, action.remote.remote_id))
        finally:
            self._record_baselines(pushed)
            result.updated += len(pushed)

    def _push(self, action: SyncAction, result: SyncResult) -> bool:
        note = action.note
        assert note.remote_id is not None and action.remote is not None
        try:
            self.anki.update_note_fields(note.remote_id, to_anki_fields(note))
        except VocabSyncError as e:
            self._record_error(result, note, "update", e)
            return False

        if action.type == "conflict":
            conflict = SyncConflict(
                note_id=note.id or 0,
                remote_id=note.remote_id,
                local_modified_at=note.local_modified_at or action.remote.modified_at,
                remote_modified_at=action.remote.modified_at,
                baseline=note.remote_modified_at,
                overwritten_fields=differing_fields(note, action.remote.fields),
            )
            result.conflicts.append(conflict)
            logger.info(
                "reconcile_conflict_recorded",
                note_id=note.id,
                remote_id=note.remote_id,
                resolution=conflict.resolution,
                fields=sorted(conflict.overwritten_fields),
            )
        return True

    def _pull(self, action: SyncAction, result: SyncResult) -> None:
        note = action.note
        assert note.id is not None and action.remote is not None
        fields = from_anki_fields(action.remote.fields)
        try:
            applied = self.repository.apply_remote_fields(
                note.id,
                fields,
                action.remote.modified_at,
                fields_fingerprint(action.remote.fields),
                self._clock(),
                note.local_modified_at,
            )
        except VocabSyncError as e:
            self._record_error(result, note, "pull", e)
            return
        if not applied:
            # Edited or deleted locally after planning; the next run pushes it
            logger.info(
                "note_pull_skipped",
                note_id=note.id,
                remote_id=note.remote_id,
                reason="local_changed",
            )
            return
        result.pulled += 1
        result.updated += 1
        logger.debug("note_pulled", note_id=note.id, remote_id=note.remote_id)

    def _apply_deletes(
        self, plan: SyncPlan, result: SyncResult, token: CancellationToken | None
    ) -> None:
        for action in plan.of_type("delete"):
            self._check(token)
            note = action.note
            assert note.id is not None and note.remote_id is not None
            try:
                if action.remote is not None:
                    self.anki.delete_notes([note.remote_id])
            except VocabSyncError as e:
                self._record_error(result, note, "delete", e)
                continue
            self.repository.delete_note(note.id)
            result.deleted += 1
            logger.debug("note_deleted_remotely", note_id=note.id, remote_id=note.remote_id)

    def _record_baselines(self, written: list[tuple[VocabularyNote, int]]) -> None:
        """Store the remote id and both baselines of freshly written notes.

        The remote baseline is the ``mod`` and field fingerprint Anki reports
        after the write. When that read fails, the current time truncated to
        whole seconds and the fingerprint of the pushed fields stand in. The
        local baseline is the ``local_modified_at`` that was pushed, so an
        edit made while the write was in flight still counts as unsynced.
        """
        if not written:
            return

        refreshed: dict[int, RemoteNote] = {}
        try:
            for remote in self.anki.fetch_notes([remote_id for _, remote_id in written]):
                refreshed[remote.remote_id] = remote
        except VocabSyncError as e:
            logger.warning("baseline_refresh_failed", notes=len(written), error=str(e))
        fallback = self._clock().replace(microsecond=0)

        for note, remote_id in written:
            assert note.id is not None
            remote = refreshed.get(remote_id)
            if remote is not None:
                modified_at = remote.modified_at
                fingerprint = fields_fingerprint(remote.fields)
            else:
                modified_at = fallback
                fingerprint = fields_fingerprint(to_anki_fields(note))
            self.repository.mark_synced(
                note.id, remote_id, modified_at, note.local_modified_at, fingerprint
            )
