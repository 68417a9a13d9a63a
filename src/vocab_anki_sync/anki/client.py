"""AnkiConnect HTTP API client."""

import contextlib
from datetime import datetime, timezone
from types import TracebackType
from typing import Any, Literal, cast

import httpx

from vocab_anki_sync.anki.errors import classify_anki_error
from vocab_anki_sync.domain.interfaces.anki_client import IAnkiClient
from vocab_anki_sync.exceptions import AnkiConnectError
from vocab_anki_sync.models.data import NoteSpec, RemoteNote
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)

ANKI_CONNECT_VERSION = 6


class AnkiClient(IAnkiClient):
    """Client for AnkiConnect HTTP API.

    Every method is a single POST with a bounded timeout. Nothing is
    retried here; callers decide what to do with a ``ConnectionFailure``.
    The client is synchronous and safe to share between threads.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize client.

        Args:
            url: AnkiConnect URL
            timeout: Request timeout in seconds
            api_key: Optional AnkiConnect API key sent with every request
            transport: Optional httpx transport (used by tests)
        """
        self.url = url
        self._api_key = api_key
        self.session = httpx.Client(
            timeout=timeout,
            limits=httpx.Limits(
                max_keepalive_connections=5, max_connections=10, keepalive_expiry=30.0
            ),
            transport=transport,
        )
        logger.debug("anki_client_initialized", url=url, timeout=timeout)

    def invoke(self, action: str, params: dict[str, Any] | None = None) -> Any:
        """
        Invoke AnkiConnect action.

        Args:
            action: Action name
            params: Action parameters

        Returns:
            Action result

        Raises:
            AnkiConnectError: Typed subclass describing the failure
        """
        payload: dict[str, Any] = {
            "action": action,
            "version": ANKI_CONNECT_VERSION,
            "params": params or {},
        }
        if self._api_key:
            payload["key"] = self._api_key

        logger.debug("anki_invoke", action=action)

        try:
            response = self.session.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise classify_anki_error(action=action, transport_error=e) from e

        if response.status_code != 200:
            raise classify_anki_error(action=action, status_code=response.status_code)

        try:
            result = response.json()
        except ValueError as e:
            msg = f"Invalid JSON response: {e}"
            raise classify_anki_error(msg, action=action) from e

        if not isinstance(result, dict) or (
            "error" not in result and "result" not in result
        ):
            msg = f"Malformed response: {result!r}"
            raise classify_anki_error(msg, action=action)

        if result.get("error") is not None:
            raise classify_anki_error(str(result["error"]), action=action)

        return result.get("result")

    def check_connection(self) -> bool:
        """Check if AnkiConnect is accessible."""
        try:
            self.version()
        except AnkiConnectError as e:
            logger.warning("anki_connection_check_failed", url=self.url, error=str(e))
            return False
        return True

    def version(self) -> int:
        return cast("int", self.invoke("version"))

    def list_decks(self) -> list[str]:
        return cast("list[str]", self.invoke("deckNames"))

    def create_deck(self, name: str) -> int:
        """
        Create a deck. AnkiConnect returns the existing id if it already exists.

        Args:
            name: Deck name

        Returns:
            Deck ID
        """
        deck_id = cast("int", self.invoke("createDeck", {"deck": name}))
        logger.info("deck_created", deck=name, deck_id=deck_id)
        return deck_id

    def list_models(self) -> list[str]:
        return cast("list[str]", self.invoke("modelNames"))

    def create_model(
        self,
        name: str,
        fields: list[str],
        templates: list[dict[str, str]],
        css: str = "",
    ) -> None:
        self.invoke(
            "createModel",
            {
                "modelName": name,
                "inOrderFields": fields,
                "css": css,
                "cardTemplates": templates,
            },
        )
        logger.info("note_type_created", note_type=name, fields=len(fields))

    def find_note_ids(self, query: str) -> list[int]:
        """
        Find notes matching query.

        Args:
            query: Anki search query

        Returns:
            List of note IDs
        """
        return cast("list[int]", self.invoke("findNotes", {"query": query}))

    def fetch_notes(self, note_ids: list[int]) -> list[RemoteNote]:
        """
        Get information about notes.

        AnkiConnect answers unknown IDs with empty objects, which are dropped.

        Args:
            note_ids: List of note IDs

        Returns:
            Remote notes in the order Anki returned them
        """
        if not note_ids:
            return []
        raw = cast(
            "list[dict[str, Any]]", self.invoke("notesInfo", {"notes": note_ids})
        )
        return [_to_remote_note(info) for info in raw if info and info.get("noteId")]

    def create_notes(self, specs: list[NoteSpec]) -> list[int | None]:
        """
        Add multiple notes in a single batch operation.

        Args:
            specs: Notes to create

        Returns:
            List of note IDs (or None for refused notes)
        """
        if not specs:
            return []

        result = cast(
            "list[int | None]",
            self.invoke("addNotes", {"notes": [spec.to_payload() for spec in specs]}),
        )

        successful = sum(1 for note_id in result if note_id is not None)
        logger.debug(
            "notes_added_batch",
            total=len(specs),
            successful=successful,
            failed=len(result) - successful,
        )
        return result

    def update_note_fields(self, note_id: int, fields: dict[str, str]) -> None:
        """
        Update note fields.

        Args:
            note_id: Note ID
            fields: New field values
        """
        self.invoke("updateNoteFields", {"note": {"id": note_id, "fields": fields}})
        logger.debug("note_updated", note_id=note_id)

    def delete_notes(self, note_ids: list[int]) -> None:
        """
        Delete notes.

        Args:
            note_ids: List of note IDs to delete
        """
        if not note_ids:
            return
        self.invoke("deleteNotes", {"notes": note_ids})
        logger.debug("notes_deleted", note_ids=note_ids)

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
        logger.debug("anki_client_closed", url=self.url)

    def __enter__(self) -> "AnkiClient":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        """Context manager exit with cleanup."""
        self.close()
        return False

    def __del__(self) -> None:
        """Cleanup on deletion."""
        with contextlib.suppress(Exception):
            if hasattr(self, "session") and self.session:
                self.session.close()


def _to_remote_note(info: dict[str, Any]) -> RemoteNote:
    fields = {
        name: str(value.get("value", "")) if isinstance(value, dict) else str(value)
        for name, value in (info.get("fields") or {}).items()
    }
    return RemoteNote(
        remote_id=int(info["noteId"]),
        model_name=info.get("modelName", ""),
        fields=fields,
        tags=list(info.get("tags") or []),
        modified_at=datetime.fromtimestamp(int(info.get("mod", 0)), tz=timezone.utc),
    )
