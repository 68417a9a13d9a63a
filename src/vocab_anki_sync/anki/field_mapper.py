"""Mapping between vocabulary notes and Anki note fields."""

import hashlib
import json

from vocab_anki_sync.domain.entities.note import VocabularyNote
from vocab_anki_sync.models.data import NoteSpec

# Local attribute -> Anki field name, in note type field order
FIELD_MAP: dict[str, str] = {
    "content": "Word",
    "translation": "Translation",
    "part_of_speech": "PartOfSpeech",
    "gender": "Gender",
    "example": "Example",
    "explanation": "Explanation",
}

NOTE_TYPE_FIELDS: list[str] = list(FIELD_MAP.values())

NOTE_TYPE_CSS = """\
.card {
  font-family: arial;
  font-size: 22px;
  text-align: center;
  color: black;
  background-color: white;
}
.pos { font-size: 14px; color: #888; }
.example { font-style: italic; margin-top: 12px; }
.explanation { font-size: 16px; margin-top: 8px; }
"""

NOTE_TYPE_TEMPLATES: list[dict[str, str]] = [
    {
        "Name": "Recognition",
        "Front": "{{Word}}<div class=pos>{{PartOfSpeech}} {{Gender}}</div>",
        "Back": (
            "{{FrontSide}}<hr id=answer>{{Translation}}"
            "<div class=example>{{Example}}</div>"
            "<div class=explanation>{{Explanation}}</div>"
        ),
    },
    {
        "Name": "Recall",
        "Front": "{{Translation}}",
        "Back": (
            "{{FrontSide}}<hr id=answer>{{Word}}"
            "<div class=pos>{{PartOfSpeech}} {{Gender}}</div>"
            "<div class=example>{{Example}}</div>"
        ),
    },
]


def to_anki_fields(note: VocabularyNote) -> dict[str, str]:
    """Render a note as Anki field values."""
    values = note.field_values()
    return {anki: values[local] or "" for local, anki in FIELD_MAP.items()}


def from_anki_fields(fields: dict[str, str]) -> dict[str, str | None]:
    """Read local field values from Anki fields.

    Fields missing from the remote note are left out, so a pull never
    blanks a local value the note type does not carry.
    """
    values: dict[str, str | None] = {}
    for local, anki in FIELD_MAP.items():
        if anki not in fields:
            continue
        value = fields[anki].strip()
        values[local] = value or None if local == "gender" else value
    return values


def build_note_spec(
    note: VocabularyNote, deck_name: str, note_type: str, tags: list[str]
) -> NoteSpec:
    return NoteSpec(
        deck_name=deck_name,
        model_name=note_type,
        fields=to_anki_fields(note),
        tags=tags,
    )


def differing_fields(note: VocabularyNote, remote_fields: dict[str, str]) -> dict[str, str]:
    """Remote field values that differ from what the note would push."""
    local = to_anki_fields(note)
    return {
        name: value
        for name, value in remote_fields.items()
        if name in local and local[name] != value
    }


def fields_fingerprint(fields: dict[str, str]) -> str:
    """Hash of the note type fields, used to spot remote edits.

    Fields outside the note type are ignored and missing ones count as
    empty, so the hash of what was pushed matches what Anki reads back.
    """
    payload = json.dumps(
        {name: fields.get(name, "") for name in NOTE_TYPE_FIELDS},
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
