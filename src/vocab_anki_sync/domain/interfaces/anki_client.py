"""Interface for Anki client operations."""

from abc import ABC, abstractmethod

from ...models.data import NoteSpec, RemoteNote


class IAnkiClient(ABC):
    """Interface for Anki connectivity and note operations.

    This interface defines the contract for communicating with Anki
    through the AnkiConnect API. Implementations perform exactly one
    round trip per call and never retry; failures are raised as the
    typed ``AnkiConnectError`` subclasses.
    """

    @abstractmethod
    def check_connection(self) -> bool:
        """Check if AnkiConnect is available and responsive.

        Returns:
            True if connection is successful, False otherwise
        """

    @abstractmethod
    def version(self) -> int:
        """Get the AnkiConnect API version."""

    @abstractmethod
    def list_decks(self) -> list[str]:
        """Get list of available deck names."""

    @abstractmethod
    def create_deck(self, name: str) -> int:
        """Create a deck if it does not exist.

        Returns:
            Deck ID
        """

    @abstractmethod
    def list_models(self) -> list[str]:
        """Get list of available note type names."""

    @abstractmethod
    def create_model(
        self,
        name: str,
        fields: list[str],
        templates: list[dict[str, str]],
        css: str = "",
    ) -> None:
        """Create a note type.

        Args:
            name: Note type name
            fields: Ordered field names
            templates: Card templates with Name, Front and Back keys
            css: Styling shared by the templates
        """

    @abstractmethod
    def find_note_ids(self, query: str) -> list[int]:
        """Find notes matching an Anki search query.

        Args:
            query: Anki query string

        Returns:
            List of note IDs
        """

    @abstractmethod
    def fetch_notes(self, note_ids: list[int]) -> list[RemoteNote]:
        """Get notes by ID. IDs that no longer exist are left out.

        Args:
            note_ids: List of note IDs

        Returns:
            Remote notes with fields, tags and modification time
        """

    @abstractmethod
    def create_notes(self, specs: list[NoteSpec]) -> list[int | None]:
        """Create notes in Anki.

        Args:
            specs: Notes to create

        Returns:
            Remote ID per spec, in order, or None where Anki refused the note
        """

    @abstractmethod
    def update_note_fields(self, note_id: int, fields: dict[str, str]) -> None:
        """Update fields of an existing note.

        Args:
            note_id: ID of the note to update
            fields: Field name -> new value mapping
        """

    @abstractmethod
    def delete_notes(self, note_ids: list[int]) -> None:
        """Delete notes from Anki.

        Args:
            note_ids: List of note IDs to delete
        """
