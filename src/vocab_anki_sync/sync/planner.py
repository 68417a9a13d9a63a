"""Sync planning: decide what to do with each note before touching Anki.

Planning is a pure function of local notes and the fetched remote state,
so the same inputs always produce the same plan.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from vocab_anki_sync.anki.field_mapper import fields_fingerprint
from vocab_anki_sync.domain.entities.note import VocabularyNote
from vocab_anki_sync.models.data import RemoteNote
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)

ActionType = Literal["create", "push", "pull", "conflict", "skip", "missing", "delete"]


@dataclass
class SyncAction:
    """An action to be performed during reconciliation."""

    type: ActionType
    note: VocabularyNote
    remote: RemoteNote | None = None
    reason: str | None = None


@dataclass
class SyncPlan:
    actions: list[SyncAction] = field(default_factory=list)
    orphans: list[int] = field(default_factory=list)

    def of_type(self, *types: ActionType) -> list[SyncAction]:
        return [action for action in self.actions if action.type in types]

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for action in self.actions:
            counts[action.type] = counts.get(action.type, 0) + 1
        return counts


def remote_changed(note: VocabularyNote, remote: RemoteNote) -> bool:
    """Check whether Anki modified the note after the last sync.

    ``mod`` only has whole seconds, so an edit in the same second as the
    sync is caught by the field fingerprint instead.
    """
    if note.remote_modified_at is None:
        return True
    if remote.modified_at > note.remote_modified_at:
        return True
    if note.remote_fingerprint is None:
        return False
    return fields_fingerprint(remote.fields) != note.remote_fingerprint


def classify(note: VocabularyNote, remote: RemoteNote | None) -> SyncAction:
    """Decide the action for one sync-enabled permanent note."""
    if not note.is_synced:
        return SyncAction("create", note, reason="Not yet in Anki")
    if remote is None:
        return SyncAction("missing", note, reason="Synced note no longer in Anki")

    local = note.has_local_changes()
    theirs = remote_changed(note, remote)
    if local and theirs:
        return SyncAction("conflict", note, remote, "Changed on both sides")
    if local:
        return SyncAction("push", note, remote, "Changed locally")
    if theirs:
        return SyncAction("pull", note, remote, "Changed in Anki")
    return SyncAction("skip", note, remote, "No changes detected")


def plan_sync(
    candidates: Iterable[VocabularyNote],
    tombstones: Iterable[VocabularyNote],
    remote_notes: dict[int, RemoteNote],
    known_remote_ids: Iterable[int] = (),
) -> SyncPlan:
    """Build the reconciliation plan.

    Args:
        candidates: Permanent, sync-enabled, non-deleted notes
        tombstones: Deleted notes still present in Anki
        remote_notes: Notes of the deck keyed by remote id
        known_remote_ids: Remote ids owned by local notes outside the
            candidates (sync disabled), which are never orphans

    Returns:
        The plan, with orphan remote ids in ascending order
    """
    plan = SyncPlan()
    claimed: set[int] = set(known_remote_ids)

    for note in candidates:
        remote = remote_notes.get(note.remote_id) if note.remote_id else None
        plan.actions.append(classify(note, remote))
        if note.remote_id is not None:
            claimed.add(note.remote_id)

    for note in tombstones:
        if note.remote_id is None:
            continue
        claimed.add(note.remote_id)
        remote = remote_notes.get(note.remote_id)
        reason = "Deleted locally" if remote else "Deleted locally, already gone from Anki"
        plan.actions.append(SyncAction("delete", note, remote, reason))

    plan.orphans = sorted(set(remote_notes) - claimed)

    logger.debug("sync_plan_built", actions=plan.counts(), orphans=len(plan.orphans))
    return plan
