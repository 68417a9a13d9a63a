"""Domain entity for vocabulary notes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .queue_item import utcnow


class NoteState(str, Enum):
    """Review state of a note."""

    DRAFT = "draft"
    PERMANENT = "permanent"


class PartOfSpeech(str, Enum):
    """Parts of speech accepted for enriched notes."""

    NOUN = "noun"
    VERB = "verb"
    ADJECTIVE = "adjective"
    ADVERB = "adverb"
    PRONOUN = "pronoun"
    PREPOSITION = "preposition"
    CONJUNCTION = "conjunction"
    ARTICLE = "article"
    NUMERAL = "numeral"
    INTERJECTION = "interjection"
    PHRASE = "phrase"


# Fields a reviewer may change on a permanent note
EDITABLE_FIELDS = frozenset(
    {"content", "translation", "part_of_speech", "gender", "example", "explanation"}
)


@dataclass
class VocabularyNote:
    """A vocabulary flashcard, either an unreviewed draft or a permanent note.

    Drafts never carry a ``remote_id``. Sync state is tracked per side:

    - ``local_synced_at`` is the ``local_modified_at`` value that was last
      written to Anki, so a later local edit is newer than it.
    - ``remote_modified_at`` is Anki's own ``mod`` (whole seconds) and
      ``remote_fingerprint`` a hash of the Anki fields, both as read back
      after the last sync. A remote edit changes the fingerprint even when
      it lands in the same second.
    """

    content: str
    translation: str
    part_of_speech: str
    gender: str | None = None
    example: str = ""
    explanation: str = ""
    id: int | None = None
    state: NoteState = NoteState.DRAFT
    remote_id: int | None = None
    local_modified_at: datetime | None = None
    remote_modified_at: datetime | None = None
    local_synced_at: datetime | None = None
    remote_fingerprint: str | None = None
    audio_refs: list[str] = field(default_factory=list)
    sync_enabled: bool = True
    deleted_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.state = NoteState(self.state)
        if self.state == NoteState.DRAFT and self.remote_id is not None:
            raise ValueError("Draft notes cannot have a remote id")

    @property
    def is_draft(self) -> bool:
        return self.state == NoteState.DRAFT

    @property
    def is_synced(self) -> bool:
        return self.remote_id is not None

    @property
    def is_tombstoned(self) -> bool:
        return self.deleted_at is not None

    def has_local_changes(self) -> bool:
        """Check whether the note changed locally after its last sync."""
        if self.local_modified_at is None:
            return False
        if self.local_synced_at is None:
            return True
        return self.local_modified_at > self.local_synced_at

    def field_values(self) -> dict[str, str | None]:
        return {
            "content": self.content,
            "translation": self.translation,
            "part_of_speech": self.part_of_speech,
            "gender": self.gender,
            "example": self.example,
            "explanation": self.explanation,
        }
