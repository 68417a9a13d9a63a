"""SQLite database for queue items, notes and sync reports.

Security Note:
    All SQL queries in this module use parameterized statements (? placeholders).
    Column names are only interpolated from the fixed EDITABLE_FIELDS set.
"""

import json
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from vocab_anki_sync.domain.entities.note import (
    EDITABLE_FIELDS,
    NoteState,
    VocabularyNote,
)
from vocab_anki_sync.domain.entities.queue_item import (
    EnrichmentStatus,
    QueueItem,
    ReviewStatus,
    utcnow,
)
from vocab_anki_sync.domain.interfaces.vocabulary_repository import (
    IVocabularyRepository,
)
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import StateError
from vocab_anki_sync.models.data import SyncResult
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS queue_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    raw_content TEXT NOT NULL,
    source TEXT NOT NULL,
    params TEXT NOT NULL DEFAULT '{}',
    enrichment_status TEXT NOT NULL DEFAULT 'pending',
    review_status TEXT NOT NULL DEFAULT 'not_ready',
    last_error TEXT,
    attempts INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    enrichment_started_at TEXT,
    enrichment_completed_at TEXT,
    reviewed_at TEXT,
    CHECK (review_status = 'not_ready' OR enrichment_status = 'completed')
);

CREATE INDEX IF NOT EXISTS idx_queue_enrichment
    ON queue_items(enrichment_status, created_at);

CREATE TABLE IF NOT EXISTS notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content TEXT NOT NULL,
    translation TEXT NOT NULL,
    part_of_speech TEXT NOT NULL,
    gender TEXT,
    example TEXT NOT NULL DEFAULT '',
    explanation TEXT NOT NULL DEFAULT '',
    state TEXT NOT NULL DEFAULT 'draft',
    remote_id INTEGER UNIQUE,
    local_modified_at TEXT,
    remote_modified_at TEXT,
    local_synced_at TEXT,
    remote_fingerprint TEXT,
    audio_refs TEXT NOT NULL DEFAULT '[]',
    sync_enabled INTEGER NOT NULL DEFAULT 1,
    deleted_at TEXT,
    created_at TEXT NOT NULL,
    CHECK (state = 'permanent' OR remote_id IS NULL)
);

CREATE TABLE IF NOT EXISTS queue_item_notes (
    queue_item_id INTEGER NOT NULL REFERENCES queue_items(id) ON DELETE CASCADE,
    note_id INTEGER NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    PRIMARY KEY (queue_item_id, note_id)
);

CREATE INDEX IF NOT EXISTS idx_links_note ON queue_item_notes(note_id);

CREATE TABLE IF NOT EXISTS sync_lock (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    owner TEXT NOT NULL,
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_results (
    session_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
"""

_NOTE_COLUMNS = (
    "id, content, translation, part_of_speech, gender, example, explanation, "
    "state, remote_id, local_modified_at, remote_modified_at, local_synced_at, "
    "remote_fingerprint, audio_refs, sync_enabled, deleted_at, created_at"
)

# Columns added after the first release, created on open when missing
_NOTE_COLUMN_MIGRATIONS = {
    "local_synced_at": "TEXT",
    "remote_fingerprint": "TEXT",
}


def _ts(value: datetime | None) -> str | None:
    """Serialize a timestamp as sortable UTC ISO text."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class VocabularyStateDB(IVocabularyRepository):
    """SQLite store for the vocabulary pipeline.

    Thread Safety:
        Each thread gets its own SQLite connection via thread-local storage.
        The database uses WAL mode so readers do not block the writer.
        Multi-statement changes run inside ``BEGIN IMMEDIATE`` transactions.

    Usage:
        with VocabularyStateDB(db_path) as db:
            item = db.add_queue_item(QueueItem(raw_content="casa", source="cli"))
    """

    def __init__(self, db_path: Path, busy_timeout: float = 30.0):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds a writer waits for a competing transaction
        """
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self._busy_timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local SQLite connection.

        Returns:
            Thread-local SQLite connection
        """
        if getattr(self._local, "conn", None) is None:
            conn = self._connect()
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
            logger.debug(
                "db_connection_created",
                thread_id=threading.get_ident(),
                total_connections=len(self._connections),
                db_path=str(self._db_path),
            )
        return self._local.conn  # type: ignore[no-any-return]

    def _execute_query(
        self, query: str, params: tuple = (), operation: str = "query"
    ) -> sqlite3.Cursor:
        """Execute a single autocommitted statement with logging."""
        start_time = time.time()
        try:
            cursor = self._get_connection().execute(query, params)
        except sqlite3.Error as e:
            logger.error(
                "db_query_error",
                operation=operation,
                duration=round(time.time() - start_time, 3),
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise

        duration = time.time() - start_time
        if duration > 0.1:
            logger.warning(
                "db_slow_query",
                operation=operation,
                duration=round(duration, 3),
                query_preview=query[:100],
            )
        return cursor

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run statements in one write transaction, rolling back on error."""
        conn = self._get_connection()
        start_time = time.time()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException as e:
            conn.execute("ROLLBACK")
            logger.debug(
                "db_transaction_rolled_back",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        conn.execute("COMMIT")
        logger.debug(
            "db_transaction_committed",
            operation=operation,
            duration=round(time.time() - start_time, 4),
        )

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
            existing = {row[1] for row in conn.execute("PRAGMA table_info(notes)")}
            for name, column_type in _NOTE_COLUMN_MIGRATIONS.items():
                if name not in existing:
                    conn.execute(f"ALTER TABLE notes ADD COLUMN {name} {column_type}")
                    logger.debug("added_column_to_notes_table", column=name)
        finally:
            conn.close()

    # Row mapping

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> QueueItem:
        return QueueItem(
            id=row["id"],
            raw_content=row["raw_content"],
            source=row["source"],
            params=json.loads(row["params"]),
            enrichment_status=EnrichmentStatus(row["enrichment_status"]),
            review_status=ReviewStatus(row["review_status"]),
            last_error=row["last_error"],
            attempts=row["attempts"],
            created_at=_parse_ts(row["created_at"]) or utcnow(),
            enrichment_started_at=_parse_ts(row["enrichment_started_at"]),
            enrichment_completed_at=_parse_ts(row["enrichment_completed_at"]),
            reviewed_at=_parse_ts(row["reviewed_at"]),
        )

    @staticmethod
    def _row_to_note(row: sqlite3.Row) -> VocabularyNote:
        return VocabularyNote(
            id=row["id"],
            content=row["content"],
            translation=row["translation"],
            part_of_speech=row["part_of_speech"],
            gender=row["gender"],
            example=row["example"],
            explanation=row["explanation"],
            state=NoteState(row["state"]),
            remote_id=row["remote_id"],
            local_modified_at=_parse_ts(row["local_modified_at"]),
            remote_modified_at=_parse_ts(row["remote_modified_at"]),
            local_synced_at=_parse_ts(row["local_synced_at"]),
            remote_fingerprint=row["remote_fingerprint"],
            audio_refs=json.loads(row["audio_refs"]),
            sync_enabled=bool(row["sync_enabled"]),
            deleted_at=_parse_ts(row["deleted_at"]),
            created_at=_parse_ts(row["created_at"]) or utcnow(),
        )

    def _select_notes(self, where: str, params: tuple = ()) -> list[VocabularyNote]:
        rows = self._execute_query(
            f"SELECT {_NOTE_COLUMNS} FROM notes {where}", params, "select_notes"
        ).fetchall()
        return [self._row_to_note(row) for row in rows]

    # Queue items

    def add_queue_item(self, item: QueueItem) -> QueueItem:
        cursor = self._execute_query(
            """
            INSERT INTO queue_items (
                raw_content, source, params, enrichment_status, review_status,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                item.raw_content,
                item.source,
                json.dumps(item.params),
                item.enrichment_status.value,
                item.review_status.value,
                _ts(item.created_at),
            ),
            "add_queue_item",
        )
        item.id = cursor.lastrowid
        return item

    def get_queue_item(self, item_id: int) -> QueueItem | None:
        row = self._execute_query(
            "SELECT * FROM queue_items WHERE id = ?", (item_id,), "get_queue_item"
        ).fetchone()
        return self._row_to_item(row) if row else None

    def list_queue_items(
        self,
        enrichment_status: EnrichmentStatus | None = None,
        review_status: ReviewStatus | None = None,
        limit: int | None = None,
    ) -> list[QueueItem]:
        clauses: list[str] = []
        params: list[Any] = []
        if enrichment_status is not None:
            clauses.append("enrichment_status = ?")
            params.append(EnrichmentStatus(enrichment_status).value)
        if review_status is not None:
            clauses.append("review_status = ?")
            params.append(ReviewStatus(review_status).value)
        query = "SELECT * FROM queue_items"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self._execute_query(query, tuple(params), "list_queue_items").fetchall()
        return [self._row_to_item(row) for row in rows]

    def next_pending_item_id(self) -> int | None:
        row = self._execute_query(
            """
            SELECT id FROM queue_items WHERE enrichment_status = 'pending'
            ORDER BY created_at, id LIMIT 1
            """,
            operation="next_pending_item_id",
        ).fetchone()
        return row["id"] if row else None

    def try_begin_processing(self, item_id: int, now: datetime) -> bool:
        # Single conditional UPDATE: SQLite serializes writers, so exactly one
        # concurrent caller sees rowcount == 1.
        cursor = self._execute_query(
            """
            UPDATE queue_items
            SET enrichment_status = 'processing',
                enrichment_started_at = ?,
                enrichment_completed_at = NULL,
                last_error = NULL,
                attempts = 0
            WHERE id = ? AND enrichment_status IN ('pending', 'failed')
            """,
            (_ts(now), item_id),
            "try_begin_processing",
        )
        return cursor.rowcount == 1

    def complete_enrichment(
        self,
        item_id: int,
        drafts: list[VocabularyNote],
        attempts: int,
        now: datetime,
    ) -> list[int]:
        if not drafts:
            msg = f"Cannot complete queue item {item_id} without drafts"
            raise StateError(msg, error_code=ErrorCode.STA_TRANSITION.value)

        with self._transaction("complete_enrichment") as conn:
            cursor = conn.execute(
                """
                UPDATE queue_items
                SET enrichment_status = 'completed',
                    review_status = 'pending',
                    enrichment_completed_at = ?,
                    attempts = ?,
                    last_error = NULL
                WHERE id = ? AND enrichment_status = 'processing'
                    AND review_status = 'not_ready'
                """,
                (_ts(now), attempts, item_id),
            )
            if cursor.rowcount != 1:
                msg = f"Queue item {item_id} is no longer processing"
                raise StateError(msg, error_code=ErrorCode.STA_TRANSITION.value)

            note_ids: list[int] = []
            for position, draft in enumerate(drafts):
                cursor = conn.execute(
                    """
                    INSERT INTO notes (
                        content, translation, part_of_speech, gender, example,
                        explanation, state, audio_refs, sync_enabled, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, 'draft', ?, ?, ?)
                    """,
                    (
                        draft.content,
                        draft.translation,
                        draft.part_of_speech,
                        draft.gender,
                        draft.example,
                        draft.explanation,
                        json.dumps(draft.audio_refs),
                        int(draft.sync_enabled),
                        _ts(now),
                    ),
                )
                note_id = int(cursor.lastrowid or 0)
                conn.execute(
                    """
                    INSERT INTO queue_item_notes (queue_item_id, note_id, position)
                    VALUES (?, ?, ?)
                    """,
                    (item_id, note_id, position),
                )
                draft.id = note_id
                note_ids.append(note_id)

        return note_ids

    def fail_enrichment(
        self, item_id: int, error: str, attempts: int, now: datetime
    ) -> bool:
        cursor = self._execute_query(
            """
            UPDATE queue_items
            SET enrichment_status = 'failed',
                enrichment_completed_at = ?,
                attempts = ?,
                last_error = ?
            WHERE id = ? AND enrichment_status = 'processing'
            """,
            (_ts(now), attempts, error, item_id),
            "fail_enrichment",
        )
        if cursor.rowcount != 1:
            logger.warning("fail_enrichment_not_processing", item_id=item_id)
            return False
        return True

    def save_queue_item(self, item: QueueItem) -> None:
        if item.id is None:
            msg = "Cannot save a queue item without an id"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)
        cursor = self._execute_query(
            """
            UPDATE queue_items
            SET enrichment_status = ?, review_status = ?, last_error = ?,
                attempts = ?, enrichment_started_at = ?,
                enrichment_completed_at = ?, reviewed_at = ?
            WHERE id = ?
            """,
            (
                item.enrichment_status.value,
                item.review_status.value,
                item.last_error,
                item.attempts,
                _ts(item.enrichment_started_at),
                _ts(item.enrichment_completed_at),
                _ts(item.reviewed_at),
                item.id,
            ),
            "save_queue_item",
        )
        if cursor.rowcount != 1:
            msg = f"Queue item {item.id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)

    def release_stale_processing(self, older_than: datetime) -> list[int]:
        with self._transaction("release_stale_processing") as conn:
            rows = conn.execute(
                """
                SELECT id FROM queue_items
                WHERE enrichment_status = 'processing' AND enrichment_started_at < ?
                """,
                (_ts(older_than),),
            ).fetchall()
            ids = [row["id"] for row in rows]
            for item_id in ids:
                conn.execute(
                    """
                    UPDATE queue_items
                    SET enrichment_status = 'pending', enrichment_started_at = NULL
                    WHERE id = ? AND enrichment_status = 'processing'
                    """,
                    (item_id,),
                )
        return ids

    def queue_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for column in ("enrichment_status", "review_status"):
            rows = self._execute_query(
                f"SELECT {column} AS status, COUNT(*) AS n FROM queue_items "
                f"GROUP BY {column}",
                operation="queue_counts",
            ).fetchall()
            prefix = column.split("_")[0]
            for row in rows:
                counts[f"{prefix}.{row['status']}"] = row["n"]
        return counts

    # Notes

    def get_note(self, note_id: int) -> VocabularyNote | None:
        notes = self._select_notes("WHERE id = ?", (note_id,))
        return notes[0] if notes else None

    def list_notes(self, state: NoteState | None = None) -> list[VocabularyNote]:
        if state is None:
            return self._select_notes("ORDER BY id")
        return self._select_notes(
            "WHERE state = ? ORDER BY id", (NoteState(state).value,)
        )

    def get_item_notes(self, item_id: int) -> list[VocabularyNote]:
        rows = self._execute_query(
            f"""
            SELECT {", ".join("n." + c.strip() for c in _NOTE_COLUMNS.split(","))}
            FROM notes n JOIN queue_item_notes l ON l.note_id = n.id
            WHERE l.queue_item_id = ?
            ORDER BY l.position
            """,
            (item_id,),
            "get_item_notes",
        ).fetchall()
        return [self._row_to_note(row) for row in rows]

    def accept_item(self, item_id: int, now: datetime) -> bool:
        with self._transaction("accept_item") as conn:
            cursor = conn.execute(
                """
                UPDATE queue_items SET review_status = 'accepted', reviewed_at = ?
                WHERE id = ? AND review_status = 'pending'
                """,
                (_ts(now), item_id),
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(
                """
                UPDATE notes SET state = 'permanent', local_modified_at = ?
                WHERE state = 'draft' AND id IN (
                    SELECT note_id FROM queue_item_notes WHERE queue_item_id = ?
                )
                """,
                (_ts(now), item_id),
            )
        return True

    def reject_item(self, item_id: int, now: datetime) -> list[str] | None:
        with self._transaction("reject_item") as conn:
            cursor = conn.execute(
                """
                UPDATE queue_items SET review_status = 'rejected', reviewed_at = ?
                WHERE id = ? AND review_status = 'pending'
                """,
                (_ts(now), item_id),
            )
            if cursor.rowcount != 1:
                return None
            rows = conn.execute(
                """
                SELECT audio_refs FROM notes
                WHERE state = 'draft' AND id IN (
                    SELECT note_id FROM queue_item_notes WHERE queue_item_id = ?
                )
                ORDER BY id
                """,
                (item_id,),
            ).fetchall()
            conn.execute(
                """
                DELETE FROM notes
                WHERE state = 'draft' AND id IN (
                    SELECT note_id FROM queue_item_notes WHERE queue_item_id = ?
                )
                """,
                (item_id,),
            )
        return [ref for row in rows for ref in json.loads(row["audio_refs"])]

    @staticmethod
    def _check_editable(fields: dict[str, Any], operation: str) -> None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"Cannot {operation} unknown fields: {sorted(unknown)}"
            raise StateError(msg)

    def update_note_fields(self, note_id: int, fields: dict[str, Any], now: datetime) -> None:
        self._check_editable(fields, "edit")
        with self._transaction("update_note_fields") as conn:
            row = conn.execute(
                """
                SELECT local_modified_at FROM notes
                WHERE id = ? AND state = 'permanent' AND deleted_at IS NULL
                """,
                (note_id,),
            ).fetchone()
            if row is None:
                msg = f"Note {note_id} not found or no longer editable"
                raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)

            # Always strictly after the previous local state, even within one tick
            modified_at = now
            previous = _parse_ts(row["local_modified_at"])
            if previous is not None:
                modified_at = max(now, previous + timedelta(microseconds=1))

            assignments = [f"{name} = ?" for name in fields] + ["local_modified_at = ?"]
            conn.execute(
                f"UPDATE notes SET {', '.join(assignments)} WHERE id = ?",
                (*fields.values(), _ts(modified_at), note_id),
            )

    def set_note_sync_enabled(self, note_id: int, enabled: bool) -> None:
        cursor = self._execute_query(
            "UPDATE notes SET sync_enabled = ? WHERE id = ?",
            (int(enabled), note_id),
            "set_note_sync_enabled",
        )
        if cursor.rowcount != 1:
            msg = f"Note {note_id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)

    def delete_unsynced_note(self, note_id: int) -> bool:
        cursor = self._execute_query(
            "DELETE FROM notes WHERE id = ? AND state = 'permanent' AND remote_id IS NULL",
            (note_id,),
            "delete_unsynced_note",
        )
        return cursor.rowcount == 1

    def tombstone_note(self, note_id: int, now: datetime) -> None:
        cursor = self._execute_query(
            """
            UPDATE notes SET deleted_at = COALESCE(deleted_at, ?), audio_refs = '[]'
            WHERE id = ? AND state = 'permanent'
            """,
            (_ts(now), note_id),
            "tombstone_note",
        )
        if cursor.rowcount != 1:
            msg = f"Note {note_id} not found"
            raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)

    def delete_note(self, note_id: int) -> None:
        self._execute_query("DELETE FROM notes WHERE id = ?", (note_id,), "delete_note")

    def list_sync_candidates(self) -> list[VocabularyNote]:
        return self._select_notes(
            """
            WHERE state = 'permanent' AND sync_enabled = 1 AND deleted_at IS NULL
            ORDER BY id
            """
        )

    def list_tombstones(self) -> list[VocabularyNote]:
        return self._select_notes(
            """
            WHERE state = 'permanent' AND deleted_at IS NOT NULL
                AND remote_id IS NOT NULL
            ORDER BY id
            """
        )

    def mark_synced(
        self,
        note_id: int,
        remote_id: int,
        remote_modified_at: datetime,
        local_synced_at: datetime | None,
        remote_fingerprint: str,
    ) -> None:
        self._execute_query(
            """
            UPDATE notes
            SET remote_id = ?, remote_modified_at = ?, local_synced_at = ?,
                remote_fingerprint = ?
            WHERE id = ?
            """,
            (
                remote_id,
                _ts(remote_modified_at),
                _ts(local_synced_at),
                remote_fingerprint,
                note_id,
            ),
            "mark_synced",
        )

    def apply_remote_fields(
        self,
        note_id: int,
        fields: dict[str, str | None],
        remote_modified_at: datetime,
        remote_fingerprint: str,
        now: datetime,
        expected_local_modified_at: datetime | None,
    ) -> bool:
        self._check_editable(fields, "pull")
        assignments = [f"{name} = ?" for name in fields]
        assignments += [
            "local_modified_at = ?",
            "local_synced_at = ?",
            "remote_modified_at = ?",
            "remote_fingerprint = ?",
        ]
        params: list[Any] = [
            *fields.values(),
            _ts(now),
            _ts(now),
            _ts(remote_modified_at),
            remote_fingerprint,
            note_id,
            _ts(expected_local_modified_at),
        ]
        cursor = self._execute_query(
            f"""
            UPDATE notes SET {', '.join(assignments)}
            WHERE id = ? AND local_modified_at IS ? AND deleted_at IS NULL
            """,
            tuple(params),
            "apply_remote_fields",
        )
        return cursor.rowcount == 1

    # Sync coordination

    def acquire_sync_lease(self, owner: str, ttl_seconds: int, now: datetime) -> bool:
        with self._transaction("acquire_sync_lease") as conn:
            row = conn.execute(
                "SELECT owner, expires_at FROM sync_lock WHERE id = 1"
            ).fetchone()
            if row and row["owner"] != owner and row["expires_at"] > _ts(now):
                return False
            expires_at = datetime.fromtimestamp(
                now.timestamp() + ttl_seconds, tz=timezone.utc
            )
            conn.execute(
                "INSERT OR REPLACE INTO sync_lock (id, owner, expires_at) VALUES (1, ?, ?)",
                (owner, _ts(expires_at)),
            )
        return True

    def release_sync_lease(self, owner: str) -> None:
        self._execute_query(
            "DELETE FROM sync_lock WHERE id = 1 AND owner = ?",
            (owner,),
            "release_sync_lease",
        )

    def save_sync_result(self, result: SyncResult) -> None:
        expires_at = result.expires_at or result.created_at
        self._execute_query(
            """
            INSERT OR REPLACE INTO sync_results (session_id, payload, created_at, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                result.session_id,
                result.model_dump_json(),
                _ts(result.created_at),
                _ts(expires_at),
            ),
            "save_sync_result",
        )

    def pop_sync_result(self, session_id: str, now: datetime) -> SyncResult | None:
        with self._transaction("pop_sync_result") as conn:
            row = conn.execute(
                "SELECT payload, expires_at FROM sync_results WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                "DELETE FROM sync_results WHERE session_id = ?", (session_id,)
            )
        if row["expires_at"] <= _ts(now):
            return None
        return SyncResult.model_validate_json(row["payload"])

    def purge_expired_sync_results(self, now: datetime) -> int:
        cursor = self._execute_query(
            "DELETE FROM sync_results WHERE expires_at <= ?",
            (_ts(now),),
            "purge_expired_sync_results",
        )
        return cursor.rowcount

    def close(self) -> None:
        """Close all thread-local database connections.

        Safe to call multiple times.
        """
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning("error_closing_connection", error=str(e))
            self._connections.clear()

        if hasattr(self._local, "conn"):
            self._local.conn = None

    def __enter__(self) -> "VocabularyStateDB":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
