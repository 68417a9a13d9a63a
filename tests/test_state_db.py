"""Tests for the SQLite state database."""

import sqlite3
import threading
from datetime import timedelta

import pytest

from vocab_anki_sync.domain.entities.note import NoteState, VocabularyNote
from vocab_anki_sync.domain.entities.queue_item import (
    EnrichmentStatus,
    QueueItem,
    ReviewStatus,
)
from vocab_anki_sync.exceptions import StateError
from vocab_anki_sync.infrastructure.state_db import VocabularyStateDB
from vocab_anki_sync.models.data import SyncResult


def _draft(content: str, **kwargs) -> VocabularyNote:
    return VocabularyNote(
        content=content, translation=f"{content} (en)", part_of_speech="noun", **kwargs
    )


def _completed_item(db: VocabularyStateDB, clock, *contents: str) -> tuple[int, list[int]]:
    item = db.add_queue_item(QueueItem(raw_content=" ".join(contents), source="test"))
    assert db.try_begin_processing(item.id, clock())
    note_ids = db.complete_enrichment(
        item.id, [_draft(content) for content in contents], 1, clock()
    )
    return item.id, note_ids


class TestQueueItems:
    """Test queue item persistence and leasing."""

    def test_add_and_get(self, state_db, clock) -> None:
        item = state_db.add_queue_item(
            QueueItem(
                raw_content="casa",
                source="cli",
                params={"action": "enrich_word"},
                created_at=clock(),
            )
        )

        loaded = state_db.get_queue_item(item.id)

        assert loaded is not None
        assert loaded.raw_content == "casa"
        assert loaded.params == {"action": "enrich_word"}
        assert loaded.enrichment_status == EnrichmentStatus.PENDING
        assert loaded.review_status == ReviewStatus.NOT_READY
        assert loaded.created_at == clock()

    def test_get_unknown_returns_none(self, state_db) -> None:
        assert state_db.get_queue_item(999) is None

    def test_next_pending_is_oldest(self, state_db, clock) -> None:
        first = state_db.add_queue_item(
            QueueItem(raw_content="um", source="t", created_at=clock())
        )
        clock.advance(1)
        state_db.add_queue_item(QueueItem(raw_content="dois", source="t", created_at=clock()))

        assert state_db.next_pending_item_id() == first.id

    def test_lease_is_granted_once(self, state_db, clock) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))

        assert state_db.try_begin_processing(item.id, clock())
        assert not state_db.try_begin_processing(item.id, clock())

    def test_lease_is_granted_on_failed_item(self, state_db, clock) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))
        state_db.try_begin_processing(item.id, clock())
        state_db.fail_enrichment(item.id, "boom", 3, clock())

        assert state_db.try_begin_processing(item.id, clock())
        loaded = state_db.get_queue_item(item.id)
        assert loaded.last_error is None
        assert loaded.attempts == 0

    def test_concurrent_lease_has_one_winner(self, state_db, clock) -> None:
        """Several threads racing for the same item: exactly one wins."""
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))
        workers = 8
        barrier = threading.Barrier(workers)
        results: list[bool] = []
        results_lock = threading.Lock()

        def _race() -> None:
            barrier.wait()
            won = state_db.try_begin_processing(item.id, clock())
            with results_lock:
                results.append(won)

        threads = [threading.Thread(target=_race) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert len(results) == workers

    def test_complete_enrichment_links_drafts_in_order(self, state_db, clock) -> None:
        item_id, note_ids = _completed_item(state_db, clock, "o", "livro")

        item = state_db.get_queue_item(item_id)
        notes = state_db.get_item_notes(item_id)

        assert item.enrichment_status == EnrichmentStatus.COMPLETED
        assert item.review_status == ReviewStatus.PENDING
        assert item.attempts == 1
        assert [note.id for note in notes] == note_ids
        assert [note.content for note in notes] == ["o", "livro"]
        assert all(note.state == NoteState.DRAFT for note in notes)

    def test_complete_enrichment_requires_processing(self, state_db, clock) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))

        with pytest.raises(StateError):
            state_db.complete_enrichment(item.id, [_draft("casa")], 1, clock())

        assert state_db.list_notes() == []

    def test_complete_enrichment_requires_drafts(self, state_db, clock) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))
        state_db.try_begin_processing(item.id, clock())

        with pytest.raises(StateError):
            state_db.complete_enrichment(item.id, [], 1, clock())

    def test_review_invariant_is_enforced_by_schema(self, state_db) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="t"))
        conn = state_db._get_connection()

        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "UPDATE queue_items SET review_status = 'pending' WHERE id = ?",
                (item.id,),
            )

    def test_release_stale_processing(self, state_db, clock) -> None:
        stale = state_db.add_queue_item(QueueItem(raw_content="velho", source="t"))
        state_db.try_begin_processing(stale.id, clock())
        clock.advance(3600)
        fresh = state_db.add_queue_item(QueueItem(raw_content="novo", source="t"))
        state_db.try_begin_processing(fresh.id, clock())

        released = state_db.release_stale_processing(clock() - timedelta(minutes=30))

        assert released == [stale.id]
        assert state_db.get_queue_item(stale.id).enrichment_status == EnrichmentStatus.PENDING
        assert (
            state_db.get_queue_item(fresh.id).enrichment_status
            == EnrichmentStatus.PROCESSING
        )

    def test_queue_counts(self, state_db, clock) -> None:
        _completed_item(state_db, clock, "casa")
        state_db.add_queue_item(QueueItem(raw_content="mesa", source="t"))

        counts = state_db.queue_counts()

        assert counts["enrichment.completed"] == 1
        assert counts["enrichment.pending"] == 1
        assert counts["review.pending"] == 1
        assert counts["review.not_ready"] == 1


class TestReview:
    """Test accept and reject transactions."""

    def test_accept_promotes_drafts(self, state_db, clock) -> None:
        item_id, note_ids = _completed_item(state_db, clock, "o", "livro")

        assert state_db.accept_item(item_id, clock())

        notes = [state_db.get_note(note_id) for note_id in note_ids]
        assert all(note.state == NoteState.PERMANENT for note in notes)
        assert all(note.local_modified_at == clock() for note in notes)
        assert state_db.get_queue_item(item_id).review_status == ReviewStatus.ACCEPTED

    def test_accept_twice_is_refused_by_store(self, state_db, clock) -> None:
        item_id, _ = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())

        assert not state_db.accept_item(item_id, clock())

    def test_reject_deletes_drafts(self, state_db, clock) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="o livro", source="test"))
        assert state_db.try_begin_processing(item.id, clock())
        note_ids = state_db.complete_enrichment(
            item.id,
            [_draft("o", audio_refs=["o.mp3"]), _draft("livro")],
            1,
            clock(),
        )
        item_id = item.id

        refs = state_db.reject_item(item_id, clock())

        assert refs == ["o.mp3"]
        assert all(state_db.get_note(note_id) is None for note_id in note_ids)
        assert state_db.get_item_notes(item_id) == []
        assert state_db.get_queue_item(item_id).review_status == ReviewStatus.REJECTED

    def test_reject_after_accept_deletes_nothing(self, state_db, clock) -> None:
        item_id, note_ids = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())

        assert state_db.reject_item(item_id, clock()) is None
        assert state_db.get_note(note_ids[0]).state == NoteState.PERMANENT


class TestNotes:
    """Test note persistence and sync bookkeeping."""

    def test_sync_candidates_and_tombstones(self, state_db, clock) -> None:
        item_id, (first, second, third) = _completed_item(
            state_db, clock, "um", "dois", "tres"
        )
        state_db.accept_item(item_id, clock())
        state_db.mark_synced(second, 1001, clock(), clock(), "fp")
        state_db.mark_synced(third, 1002, clock(), clock(), "fp")

        state_db.set_note_sync_enabled(first, False)
        state_db.tombstone_note(third, clock())

        assert [note.id for note in state_db.list_sync_candidates()] == [second]
        assert [note.id for note in state_db.list_tombstones()] == [third]

    def test_mark_synced(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())

        state_db.mark_synced(
            note_id, 4242, clock() + timedelta(seconds=5), clock(), "abc123"
        )

        note = state_db.get_note(note_id)
        assert note.remote_id == 4242
        assert note.remote_modified_at == clock() + timedelta(seconds=5)
        assert note.local_synced_at == clock()
        assert note.remote_fingerprint == "abc123"
        assert not note.has_local_changes()

    def test_update_note_fields_keeps_sync_columns(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())
        stale = state_db.get_note(note_id)
        state_db.mark_synced(note_id, 4242, clock(), clock(), "abc123")

        edited_at = clock.advance(1)
        state_db.update_note_fields(note_id, {"translation": "home"}, edited_at)

        note = state_db.get_note(note_id)
        assert stale.remote_id is None
        assert note.translation == "home"
        assert note.remote_id == 4242
        assert note.remote_fingerprint == "abc123"
        assert note.local_modified_at == edited_at
        assert note.has_local_changes()

    def test_update_note_fields_refuses_drafts(self, state_db, clock) -> None:
        _, (note_id,) = _completed_item(state_db, clock, "casa")

        with pytest.raises(StateError):
            state_db.update_note_fields(note_id, {"translation": "home"}, clock())

    def test_update_unknown_note_raises(self, state_db, clock) -> None:
        with pytest.raises(StateError):
            state_db.update_note_fields(999, {"translation": "home"}, clock())

    def test_set_sync_enabled_unknown_note_raises(self, state_db) -> None:
        with pytest.raises(StateError):
            state_db.set_note_sync_enabled(999, False)

    def test_delete_unsynced_note_refuses_synced(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())
        state_db.mark_synced(note_id, 4242, clock(), clock(), "abc123")

        assert not state_db.delete_unsynced_note(note_id)
        assert state_db.get_note(note_id) is not None

    def test_tombstone_keeps_first_deletion_time(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())
        first = clock()

        state_db.tombstone_note(note_id, first)
        state_db.tombstone_note(note_id, clock.advance(5))

        note = state_db.get_note(note_id)
        assert note.deleted_at == first
        assert note.audio_refs == []

    def test_apply_remote_fields(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())
        expected = state_db.get_note(note_id).local_modified_at
        remote_time = clock.advance(10)

        applied = state_db.apply_remote_fields(
            note_id,
            {"translation": "home", "gender": None},
            remote_time,
            "abc123",
            remote_time,
            expected,
        )

        note = state_db.get_note(note_id)
        assert applied
        assert note.translation == "home"
        assert note.gender is None
        assert note.local_modified_at == remote_time
        assert note.remote_modified_at == remote_time
        assert note.remote_fingerprint == "abc123"
        assert not note.has_local_changes()

    def test_apply_remote_fields_skips_locally_changed_note(self, state_db, clock) -> None:
        item_id, (note_id,) = _completed_item(state_db, clock, "casa")
        state_db.accept_item(item_id, clock())
        planned = state_db.get_note(note_id).local_modified_at
        state_db.update_note_fields(note_id, {"translation": "house"}, clock.advance(1))

        applied = state_db.apply_remote_fields(
            note_id, {"translation": "home"}, clock(), "abc123", clock(), planned
        )

        assert not applied
        assert state_db.get_note(note_id).translation == "house"

    def test_apply_remote_fields_rejects_unknown_columns(self, state_db, clock) -> None:
        with pytest.raises(StateError):
            state_db.apply_remote_fields(
                1, {"state": "draft"}, clock(), "abc123", clock(), None
            )

    def test_old_schema_gains_sync_columns(self, tmp_path) -> None:
        path = tmp_path / "old.db"
        VocabularyStateDB(path).close()
        with sqlite3.connect(path) as conn:
            conn.execute("ALTER TABLE notes DROP COLUMN local_synced_at")
            conn.execute("ALTER TABLE notes DROP COLUMN remote_fingerprint")

        VocabularyStateDB(path).close()

        with sqlite3.connect(path) as conn:
            columns = {row[1] for row in conn.execute("PRAGMA table_info(notes)")}
        assert {"local_synced_at", "remote_fingerprint"} <= columns


class TestSyncCoordination:
    """Test the sync lease and stored reports."""

    def test_lease_is_exclusive_until_released(self, state_db, clock) -> None:
        assert state_db.acquire_sync_lease("a", 600, clock())
        assert not state_db.acquire_sync_lease("b", 600, clock())

        state_db.release_sync_lease("a")

        assert state_db.acquire_sync_lease("b", 600, clock())

    def test_expired_lease_can_be_taken_over(self, state_db, clock) -> None:
        assert state_db.acquire_sync_lease("a", 60, clock())

        assert state_db.acquire_sync_lease("b", 60, clock() + timedelta(seconds=61))

    def test_release_by_non_owner_is_ignored(self, state_db, clock) -> None:
        state_db.acquire_sync_lease("a", 600, clock())
        state_db.release_sync_lease("b")

        assert not state_db.acquire_sync_lease("b", 600, clock())

    def test_sync_result_is_read_once(self, state_db, clock) -> None:
        result = SyncResult(
            session_id="s1",
            deck_name="Vocabulary",
            created=2,
            created_at=clock(),
            expires_at=clock() + timedelta(hours=1),
        )
        state_db.save_sync_result(result)

        loaded = state_db.pop_sync_result("s1", clock())

        assert loaded is not None
        assert loaded.created == 2
        assert state_db.pop_sync_result("s1", clock()) is None

    def test_expired_sync_result_is_not_returned(self, state_db, clock) -> None:
        past = clock() - timedelta(hours=2)
        state_db.save_sync_result(
            SyncResult(
                session_id="old",
                deck_name="Vocabulary",
                created_at=past,
                expires_at=past + timedelta(hours=1),
            )
        )

        assert state_db.pop_sync_result("old", clock()) is None

    def test_sync_result_expiry_uses_given_time(self, state_db, clock) -> None:
        state_db.save_sync_result(
            SyncResult(
                session_id="s1",
                deck_name="Vocabulary",
                created_at=clock(),
                expires_at=clock() + timedelta(seconds=10),
            )
        )

        assert state_db.pop_sync_result("s1", clock() + timedelta(seconds=11)) is None

    def test_purge_expired(self, state_db, clock) -> None:
        state_db.save_sync_result(
            SyncResult(
                session_id="s1",
                deck_name="Vocabulary",
                created_at=clock(),
                expires_at=clock() + timedelta(seconds=10),
            )
        )

        assert state_db.purge_expired_sync_results(clock()) == 0
        assert state_db.purge_expired_sync_results(clock() + timedelta(seconds=10)) == 1
