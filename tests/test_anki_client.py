"""Tests for the AnkiConnect client."""

import json

import httpx
import pytest
import respx

from vocab_anki_sync.anki.client import AnkiClient
from vocab_anki_sync.anki.errors import classify_anki_error
from vocab_anki_sync.exceptions import (
    AuthFailure,
    ConnectionFailure,
    RemoteNotFound,
    RemoteRejected,
    TransientFailure,
)
from vocab_anki_sync.models.data import NoteSpec

ANKI_URL = "http://localhost:8765"


def _ok(result) -> httpx.Response:
    return httpx.Response(200, json={"result": result, "error": None})


class TestAnkiClient:
    """Test AnkiConnect requests and response handling."""

    @respx.mock
    def test_invoke_sends_version_and_key(self) -> None:
        route = respx.post(ANKI_URL).mock(return_value=_ok(6))

        client = AnkiClient(ANKI_URL, api_key="secret")
        assert client.version() == 6

        payload = json.loads(route.calls.last.request.content)
        assert payload == {"action": "version", "version": 6, "params": {}, "key": "secret"}

    @respx.mock
    def test_error_field_is_classified(self) -> None:
        respx.post(ANKI_URL).mock(
            return_value=httpx.Response(
                200, json={"result": None, "error": "cannot create note because it is a duplicate"}
            )
        )

        client = AnkiClient(ANKI_URL)
        with pytest.raises(RemoteRejected, match="duplicate") as exc_info:
            client.create_deck("Vocabulary")

        assert exc_info.value.action == "createDeck"

    @respx.mock
    def test_connection_refused_is_transient(self) -> None:
        respx.post(ANKI_URL).mock(side_effect=httpx.ConnectError("refused"))

        client = AnkiClient(ANKI_URL)
        with pytest.raises(ConnectionFailure) as exc_info:
            client.list_decks()

        assert isinstance(exc_info.value, TransientFailure)
        assert client.check_connection() is False

    @respx.mock
    def test_malformed_response(self) -> None:
        respx.post(ANKI_URL).mock(return_value=httpx.Response(200, json={"unexpected": 1}))

        with pytest.raises(RemoteRejected, match="Malformed"):
            AnkiClient(ANKI_URL).list_models()

    @respx.mock
    def test_fetch_notes_parses_fields_and_mod(self) -> None:
        respx.post(ANKI_URL).mock(
            return_value=_ok(
                [
                    {
                        "noteId": 1001,
                        "modelName": "Vocabulary",
                        "fields": {
                            "Word": {"value": "casa", "order": 0},
                            "Translation": {"value": "house", "order": 1},
                        },
                        "tags": ["vocab-anki-sync"],
                        "mod": 1767268800,
                    },
                    {},
                ]
            )
        )

        (note,) = AnkiClient(ANKI_URL).fetch_notes([1001, 999])

        assert note.remote_id == 1001
        assert note.fields == {"Word": "casa", "Translation": "house"}
        assert note.tags == ["vocab-anki-sync"]
        assert int(note.modified_at.timestamp()) == 1767268800

    def test_fetch_notes_without_ids_makes_no_request(self) -> None:
        with respx.mock(assert_all_called=False) as mock:
            route = mock.post(ANKI_URL)
            assert AnkiClient(ANKI_URL).fetch_notes([]) == []
            assert not route.called

    @respx.mock
    def test_create_notes_payload(self) -> None:
        route = respx.post(ANKI_URL).mock(return_value=_ok([1001, None]))
        specs = [
            NoteSpec(
                deck_name="Vocabulary",
                model_name="Basic",
                fields={"Front": "casa", "Back": "house"},
                tags=["vocab"],
            ),
            NoteSpec(deck_name="Vocabulary", model_name="Basic", fields={"Front": ""}),
        ]

        ids = AnkiClient(ANKI_URL).create_notes(specs)

        assert ids == [1001, None]
        notes = json.loads(route.calls.last.request.content)["params"]["notes"]
        assert notes[0] == {
            "deckName": "Vocabulary",
            "modelName": "Basic",
            "fields": {"Front": "casa", "Back": "house"},
            "options": {"allowDuplicate": False},
            "tags": ["vocab"],
        }
        assert "tags" not in notes[1]

    @respx.mock
    def test_update_note_fields_payload(self) -> None:
        route = respx.post(ANKI_URL).mock(return_value=_ok(None))

        AnkiClient(ANKI_URL).update_note_fields(1001, {"Translation": "home"})

        payload = json.loads(route.calls.last.request.content)
        assert payload["action"] == "updateNoteFields"
        assert payload["params"] == {"note": {"id": 1001, "fields": {"Translation": "home"}}}

    @respx.mock
    def test_find_note_ids(self) -> None:
        route = respx.post(ANKI_URL).mock(return_value=_ok([1, 2, 3]))

        assert AnkiClient(ANKI_URL).find_note_ids('"deck:Vocabulary"') == [1, 2, 3]
        assert json.loads(route.calls.last.request.content)["params"] == {
            "query": '"deck:Vocabulary"'
        }


class TestClassifyAnkiError:
    """Test mapping of AnkiConnect failures to typed errors."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("valid api key must be provided", AuthFailure),
            ("collection is not available", ConnectionFailure),
            ("Note was not found: 1001", RemoteNotFound),
            ("model was not found: Basic", RemoteNotFound),
            ("cannot create note because it is empty", RemoteRejected),
            ("something odd", RemoteRejected),
        ],
    )
    def test_error_strings(self, raw, expected) -> None:
        error = classify_anki_error(raw, action="addNotes")

        assert type(error) is expected
        assert error.raw_error == raw
        assert error.error_code is not None

    @pytest.mark.parametrize(
        ("status", "expected"),
        [(401, AuthFailure), (404, RemoteNotFound), (503, ConnectionFailure), (400, RemoteRejected)],
    )
    def test_http_status(self, status, expected) -> None:
        assert type(classify_anki_error(action="version", status_code=status)) is expected

    def test_timeout_is_connection_failure(self) -> None:
        error = classify_anki_error(
            action="version", transport_error=httpx.ReadTimeout("slow")
        )

        assert isinstance(error, ConnectionFailure)
        assert "Timed out" in error.message
        assert error.suggestion
