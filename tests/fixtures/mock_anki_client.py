"""In-memory implementation of IAnkiClient for testing."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from vocab_anki_sync.domain.entities.queue_item import utcnow
from vocab_anki_sync.domain.interfaces.anki_client import IAnkiClient
from vocab_anki_sync.exceptions import RemoteNotFound
from vocab_anki_sync.models.data import NoteSpec, RemoteNote


class MockAnkiClient(IAnkiClient):
    """Mock Anki collection for testing.

    Every write sets the note's ``mod`` to the current clock second, the
    way Anki does. Failures can be injected per action or per note id.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.decks: dict[str, int] = {"Default": 1}
        self.models: dict[str, list[str]] = {"Basic": ["Front", "Back"]}
        self.notes: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.available = True
        # action name -> exception raised on every call of that action
        self.fail_actions: dict[str, Exception] = {}
        # remote id -> exception raised when that note is updated or deleted
        self.fail_notes: dict[int, Exception] = {}
        # values of the first field that addNotes refuses (returns None for)
        self.refuse: set[str] = set()
        self._next_id = 1_700_000_000_000

    def _mod(self) -> int:
        return int(self.clock().timestamp())

    def _call(self, action: str, arg: Any = None) -> None:
        self.calls.append((action, arg))
        if action in self.fail_actions:
            raise self.fail_actions[action]

    def calls_to(self, action: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == action]

    # Test helpers

    def add_remote_note(
        self,
        fields: dict[str, str],
        deck: str = "Vocabulary",
        model: str = "Vocabulary (vocab-anki-sync)",
    ) -> int:
        """Create a note as if a user added it in Anki."""
        self._next_id += 1
        self.decks.setdefault(deck, len(self.decks) + 1)
        self.notes[self._next_id] = {
            "deck": deck,
            "model": model,
            "fields": dict(fields),
            "tags": [],
            "mod": self._mod(),
        }
        return self._next_id

    def edit_remote(self, remote_id: int, **fields: str) -> None:
        """Change fields as if a user edited the note in Anki."""
        self.notes[remote_id]["fields"].update(fields)
        self.notes[remote_id]["mod"] = self._mod()

    # IAnkiClient

    def check_connection(self) -> bool:
        return self.available

    def version(self) -> int:
        self._call("version")
        return 6

    def list_decks(self) -> list[str]:
        self._call("deckNames")
        return sorted(self.decks)

    def create_deck(self, name: str) -> int:
        self._call("createDeck", name)
        return self.decks.setdefault(name, len(self.decks) + 1)

    def list_models(self) -> list[str]:
        self._call("modelNames")
        return sorted(self.models)

    def create_model(
        self,
        name: str,
        fields: list[str],
        templates: list[dict[str, str]],
        css: str = "",
    ) -> None:
        self._call("createModel", name)
        self.models[name] = list(fields)

    def find_note_ids(self, query: str) -> list[int]:
        self._call("findNotes", query)
        deck = query.strip('"').removeprefix("deck:")
        return sorted(rid for rid, note in self.notes.items() if note["deck"] == deck)

    def fetch_notes(self, note_ids: list[int]) -> list[RemoteNote]:
        self._call("notesInfo", list(note_ids))
        return [
            RemoteNote(
                remote_id=rid,
                model_name=self.notes[rid]["model"],
                fields=dict(self.notes[rid]["fields"]),
                tags=list(self.notes[rid]["tags"]),
                modified_at=datetime.fromtimestamp(
                    self.notes[rid]["mod"], tz=self.clock().tzinfo
                ),
            )
            for rid in note_ids
            if rid in self.notes
        ]

    def create_notes(self, specs: list[NoteSpec]) -> list[int | None]:
        self._call("addNotes", list(specs))
        ids: list[int | None] = []
        for spec in specs:
            first = next(iter(spec.fields.values()), "")
            if first in self.refuse:
                ids.append(None)
                continue
            self._next_id += 1
            self.notes[self._next_id] = {
                "deck": spec.deck_name,
                "model": spec.model_name,
                "fields": dict(spec.fields),
                "tags": list(spec.tags),
                "mod": self._mod(),
            }
            ids.append(self._next_id)
        return ids

    def update_note_fields(self, note_id: int, fields: dict[str, str]) -> None:
        self._call("updateNoteFields", (note_id, dict(fields)))
        if note_id in self.fail_notes:
            raise self.fail_notes[note_id]
        if note_id not in self.notes:
            msg = f"Note was not found: {note_id}"
            raise RemoteNotFound(msg, action="updateNoteFields")
        self.notes[note_id]["fields"].update(fields)
        self.notes[note_id]["mod"] = self._mod()

    def delete_notes(self, note_ids: list[int]) -> None:
        self._call("deleteNotes", list(note_ids))
        for note_id in note_ids:
            if note_id in self.fail_notes:
                raise self.fail_notes[note_id]
        for note_id in note_ids:
            self.notes.pop(note_id, None)
