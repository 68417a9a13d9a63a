"""Tests for reviewer actions: accept, reject, edit, delete."""

from datetime import timedelta

import pytest

from vocab_anki_sync.domain.entities.note import NoteState, VocabularyNote
from vocab_anki_sync.domain.entities.queue_item import QueueItem, ReviewStatus
from vocab_anki_sync.exceptions import (
    InvalidTransitionError,
    StateError,
    ValidationFailure,
)


def _reviewable(state_db, clock, *words: str, audio: bool = False) -> tuple[int, list[int]]:
    item = state_db.add_queue_item(QueueItem(raw_content=" ".join(words), source="test"))
    state_db.try_begin_processing(item.id, clock())
    drafts = [
        VocabularyNote(
            content=word,
            translation=f"{word} (en)",
            part_of_speech="noun",
            audio_refs=[f"{word}.mp3"] if audio else [],
        )
        for word in words
    ]
    return item.id, state_db.complete_enrichment(item.id, drafts, 1, clock())


def _permanent(state_db, lifecycle, clock, word: str = "casa") -> int:
    item_id, (note_id,) = _reviewable(state_db, clock, word)
    lifecycle.accept(item_id)
    return note_id


class TestAcceptReject:
    """Test review decisions."""

    def test_accept_makes_drafts_permanent(self, state_db, lifecycle, clock) -> None:
        item_id, note_ids = _reviewable(state_db, clock, "o", "livro")

        item = lifecycle.accept(item_id)

        assert item.review_status == ReviewStatus.ACCEPTED
        assert all(
            state_db.get_note(note_id).state == NoteState.PERMANENT for note_id in note_ids
        )

    def test_accept_is_idempotent(self, state_db, lifecycle, clock) -> None:
        item_id, (note_id,) = _reviewable(state_db, clock, "casa")
        lifecycle.accept(item_id)
        first = state_db.get_note(note_id)
        clock.advance(5)

        item = lifecycle.accept(item_id)

        assert item.review_status == ReviewStatus.ACCEPTED
        assert state_db.get_note(note_id) == first

    def test_reject_after_accept_is_invalid(self, state_db, lifecycle, clock) -> None:
        item_id, _ = _reviewable(state_db, clock, "casa")
        lifecycle.accept(item_id)

        with pytest.raises(InvalidTransitionError):
            lifecycle.reject(item_id)

    def test_accept_before_enrichment_is_invalid(self, state_db, lifecycle) -> None:
        item = state_db.add_queue_item(QueueItem(raw_content="casa", source="test"))

        with pytest.raises(InvalidTransitionError):
            lifecycle.accept(item.id)

    def test_accept_unknown_item(self, lifecycle) -> None:
        with pytest.raises(StateError):
            lifecycle.accept(404)

    def test_reject_deletes_drafts_and_attachments(
        self, state_db, lifecycle, attachment_store, clock
    ) -> None:
        item_id, note_ids = _reviewable(state_db, clock, "o", "livro", audio=True)

        item = lifecycle.reject(item_id)

        assert item.review_status == ReviewStatus.REJECTED
        assert all(state_db.get_note(note_id) is None for note_id in note_ids)
        assert attachment_store.deleted == ["o.mp3", "livro.mp3"]

    def test_reject_is_idempotent(self, state_db, lifecycle, attachment_store, clock) -> None:
        item_id, _ = _reviewable(state_db, clock, "casa", audio=True)
        lifecycle.reject(item_id)

        lifecycle.reject(item_id)

        assert attachment_store.deleted == ["casa.mp3"]

    def test_reject_losing_to_accept_keeps_attachments(
        self, state_db, lifecycle, attachment_store, clock, monkeypatch
    ) -> None:
        """An accept that commits first wins; its audio must survive."""
        item_id, (note_id,) = _reviewable(state_db, clock, "casa", audio=True)
        original_reject = state_db.reject_item

        def _accept_first(target_id, now):
            state_db.accept_item(target_id, now)
            return original_reject(target_id, now)

        monkeypatch.setattr(state_db, "reject_item", _accept_first)

        with pytest.raises(InvalidTransitionError):
            lifecycle.reject(item_id)

        assert attachment_store.deleted == []
        stored = state_db.get_note(note_id)
        assert stored.state == NoteState.PERMANENT
        assert stored.audio_refs == ["casa.mp3"]


class TestEdit:
    """Test editing permanent notes."""

    def test_edit_updates_fields_and_timestamp(self, state_db, lifecycle, clock) -> None:
        note_id = _permanent(state_db, lifecycle, clock)
        edited_at = clock.advance(10)

        note = lifecycle.edit(note_id, {"translation": "home", "gender": "feminine"})

        stored = state_db.get_note(note_id)
        assert note.translation == stored.translation == "home"
        assert stored.gender == "feminine"
        assert stored.local_modified_at == edited_at

    def test_edit_normalizes_part_of_speech(self, state_db, lifecycle, clock) -> None:
        note_id = _permanent(state_db, lifecycle, clock)

        lifecycle.edit(note_id, {"part_of_speech": "Verb"})

        assert state_db.get_note(note_id).part_of_speech == "verb"

    def test_empty_gender_becomes_none(self, state_db, lifecycle, clock) -> None:
        note_id = _permanent(state_db, lifecycle, clock)
        lifecycle.edit(note_id, {"gender": "feminine"})

        lifecycle.edit(note_id, {"gender": ""})

        assert state_db.get_note(note_id).gender is None

    def test_edit_registers_after_last_sync(self, state_db, lifecycle, clock) -> None:
        """An edit in the same instant as the last sync still counts as a change."""
        note_id = _permanent(state_db, lifecycle, clock)
        state_db.mark_synced(note_id, 1001, clock(), clock(), "fp")

        lifecycle.edit(note_id, {"translation": "home"})

        stored = state_db.get_note(note_id)
        assert stored.local_modified_at == clock() + timedelta(microseconds=1)
        assert stored.has_local_changes()

    @pytest.mark.parametrize(
        "fields",
        [
            {"content": "  "},
            {"translation": ""},
            {"part_of_speech": "gerund"},
            {"state": "draft"},
            {"remote_id": 5},
        ],
    )
    def test_invalid_edits_are_rejected(self, state_db, lifecycle, clock, fields) -> None:
        note_id = _permanent(state_db, lifecycle, clock)
        before = state_db.get_note(note_id)

        with pytest.raises(ValidationFailure):
            lifecycle.edit(note_id, fields)

        assert state_db.get_note(note_id) == before

    def test_drafts_cannot_be_edited(self, state_db, lifecycle, clock) -> None:
        _, (note_id,) = _reviewable(state_db, clock, "casa")

        with pytest.raises(ValidationFailure, match="draft"):
            lifecycle.edit(note_id, {"translation": "home"})

    def test_edit_unknown_note(self, lifecycle) -> None:
        with pytest.raises(StateError):
            lifecycle.edit(404, {"translation": "home"})


class TestDelete:
    """Test deleting permanent notes."""

    def test_unsynced_note_is_removed(self, state_db, lifecycle, clock) -> None:
        note_id = _permanent(state_db, lifecycle, clock)

        assert lifecycle.delete(note_id) == "removed"
        assert state_db.get_note(note_id) is None

    def test_synced_note_is_tombstoned(self, state_db, lifecycle, clock) -> None:
        note_id = _permanent(state_db, lifecycle, clock)
        state_db.mark_synced(note_id, 1001, clock(), clock(), "fp")

        assert lifecycle.delete(note_id) == "tombstoned"

        stored = state_db.get_note(note_id)
        assert stored.deleted_at == clock()
        assert [note.id for note in state_db.list_tombstones()] == [note_id]
        assert state_db.list_sync_candidates() == []
        assert lifecycle.delete(note_id) == "tombstoned"

    def test_delete_removes_attachments(
        self, state_db, lifecycle, attachment_store, clock
    ) -> None:
        item_id, (note_id,) = _reviewable(state_db, clock, "casa", audio=True)
        lifecycle.accept(item_id)

        lifecycle.delete(note_id)

        assert attachment_store.deleted == ["casa.mp3"]

    def test_drafts_cannot_be_deleted(self, state_db, lifecycle, clock) -> None:
        _, (note_id,) = _reviewable(state_db, clock, "casa")

        with pytest.raises(ValidationFailure, match="reject"):
            lifecycle.delete(note_id)


def test_set_sync_enabled(state_db, lifecycle, clock) -> None:
    """Disabling sync drops the note from the sync candidates."""
    note_id = _permanent(state_db, lifecycle, clock)

    lifecycle.set_sync_enabled(note_id, False)
    assert state_db.list_sync_candidates() == []

    lifecycle.set_sync_enabled(note_id, True)
    assert [note.id for note in state_db.list_sync_candidates()] == [note_id]


class TestConcurrentReconcile:
    """Reviewer actions racing a reconciliation never lose its remote id."""

    @pytest.fixture
    def reconcile_after_read(self, state_db, reconciler, monkeypatch):
        """Run one reconciliation right after the lifecycle reads the note."""
        original_get_note = state_db.get_note
        runs = []

        def _get_note(note_id):
            note = original_get_note(note_id)
            if not runs:
                runs.append(reconciler.reconcile())
            return note

        monkeypatch.setattr(state_db, "get_note", _get_note)
        return runs

    def test_edit_keeps_remote_id(
        self, state_db, lifecycle, reconciler, mock_anki_client, clock, reconcile_after_read
    ) -> None:
        note_id = _permanent(state_db, lifecycle, clock)

        lifecycle.edit(note_id, {"translation": "home"})

        stored = state_db.get_note(note_id)
        assert reconcile_after_read[0].created == 1
        assert stored.remote_id is not None
        assert stored.translation == "home"
        assert stored.has_local_changes()

        result = reconciler.reconcile()
        assert result.created == 0
        assert result.updated == 1
        assert len(mock_anki_client.notes) == 1
        assert mock_anki_client.notes[stored.remote_id]["fields"]["Translation"] == "home"

    def test_delete_tombstones_note_synced_meanwhile(
        self, state_db, lifecycle, reconciler, mock_anki_client, clock, reconcile_after_read
    ) -> None:
        note_id = _permanent(state_db, lifecycle, clock)

        assert lifecycle.delete(note_id) == "tombstoned"
        assert [note.id for note in state_db.list_tombstones()] == [note_id]

        result = reconciler.reconcile()
        assert result.deleted == 1
        assert mock_anki_client.notes == {}
        assert result.orphans == []

    def test_set_sync_enabled_keeps_remote_id(
        self, state_db, lifecycle, reconciler, mock_anki_client, clock, reconcile_after_read
    ) -> None:
        note_id = _permanent(state_db, lifecycle, clock)

        lifecycle.set_sync_enabled(note_id, False)
        lifecycle.set_sync_enabled(note_id, True)

        assert state_db.get_note(note_id).remote_id is not None
        assert reconciler.reconcile().created == 0
        assert len(mock_anki_client.notes) == 1
