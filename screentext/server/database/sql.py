import logging
import os
import sqlite3
import threading
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from screentext.shared.errors import InitializationError, QueryError, WriteError
from screentext.shared.models import (
    UNKNOWN_APP,
    CaptureRecord,
    CaptureTrigger,
    SearchResult,
    StoreStatus,
    TextSource,
)
from screentext.shared.utils import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

SNIPPET_CONTEXT_TOKENS = 16

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS captures (
           id INTEGER PRIMARY KEY AUTOINCREMENT,
           timestamp TEXT NOT NULL,
           app_name TEXT NOT NULL,
           window_title TEXT,
           bundle_id TEXT,
           text_source TEXT NOT NULL,
           capture_trigger TEXT NOT NULL,
           display_id TEXT,
           text_hash TEXT NOT NULL,
           text_length INTEGER NOT NULL,
           text_content TEXT NOT NULL,
           created_at TEXT NOT NULL
       )""",
    "CREATE INDEX IF NOT EXISTS idx_captures_timestamp ON captures (timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_captures_app_name ON captures (app_name)",
    "CREATE INDEX IF NOT EXISTS idx_captures_source ON captures (text_source)",
    """CREATE VIRTUAL TABLE IF NOT EXISTS captures_fts
       USING fts5(text_content, content='captures', content_rowid='id')""",
    # The index is maintained by triggers so it changes in the same
    # transaction as the row it mirrors.
    """CREATE TRIGGER IF NOT EXISTS captures_ai AFTER INSERT ON captures BEGIN
           INSERT INTO captures_fts (rowid, text_content) VALUES (new.id, new.text_content);
       END""",
    """CREATE TRIGGER IF NOT EXISTS captures_ad AFTER DELETE ON captures BEGIN
           INSERT INTO captures_fts (captures_fts, rowid, text_content)
           VALUES ('delete', old.id, old.text_content);
       END""",
    """CREATE TRIGGER IF NOT EXISTS captures_au AFTER UPDATE ON captures BEGIN
           INSERT INTO captures_fts (captures_fts, rowid, text_content)
           VALUES ('delete', old.id, old.text_content);
           INSERT INTO captures_fts (rowid, text_content) VALUES (new.id, new.text_content);
       END""",
]


class SQLStore:
    """
    Record store for captured screen text.

    Owns one SQLite file holding the ``captures`` table and its FTS5 index.
    Every write runs in an explicit transaction and is serialized by a
    per-store lock; the file is in WAL mode so readers in other threads or
    processes proceed while a write is in flight.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._write_lock = threading.Lock()
        self._init_db()

    def _connect_db(self) -> sqlite3.Connection:
        """Open a connection with the store's pragmas applied.

        Connections run in autocommit mode; callers that write open their
        own transaction through ``_transaction``.
        """
        conn = sqlite3.connect(str(self.db_path), timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=5000;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock, closing(self._connect_db()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                # SQLite may already have rolled back (e.g. SQLITE_FULL)
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _init_db(self) -> None:
        """Create or open the schema; nothing else is accepted until it commits."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._transaction() as conn:
                for statement in SCHEMA:
                    conn.execute(statement)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to initialize record store at {self.db_path}: {e}")
            raise InitializationError(f"Failed to open database {self.db_path}: {e}") from e
        logger.debug(f"Record store ready: {self.db_path}")

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, record: CaptureRecord) -> CaptureRecord:
        """Append one record; returns it with its assigned id and created_at."""
        created_at = utc_now()
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """INSERT INTO captures (
                           timestamp, app_name, window_title, bundle_id,
                           text_source, capture_trigger, display_id,
                           text_hash, text_length, text_content, created_at
                       ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        format_timestamp(record.timestamp),
                        record.app_name,
                        record.window_title,
                        record.bundle_id,
                        record.source.value,
                        record.trigger.value,
                        record.display_id,
                        record.text_hash,
                        record.text_length,
                        record.text_content,
                        format_timestamp(created_at),
                    ),
                )
                record_id = cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Failed to insert capture for {record.app_name}: {e}")
            raise WriteError(f"Failed to insert capture: {e}") from e
        return record.model_copy(update={"id": record_id, "created_at": created_at})

    def purge(self, older_than: datetime) -> int:
        """Delete every record captured strictly before ``older_than``."""
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM captures WHERE timestamp < ?",
                    (format_timestamp(older_than),),
                )
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to purge captures older than {older_than}: {e}")
            raise WriteError(f"Failed to purge captures: {e}") from e
        if deleted:
            logger.info(f"Purged {deleted} captures older than {format_timestamp(older_than)}")
        return deleted

    def purge_oldest(self, count: int) -> int:
        """Delete the ``count`` oldest records."""
        if count <= 0:
            return 0
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """DELETE FROM captures WHERE id IN (
                           SELECT id FROM captures ORDER BY timestamp ASC, id ASC LIMIT ?
                       )""",
                    (count,),
                )
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to purge {count} oldest captures: {e}")
            raise WriteError(f"Failed to purge oldest captures: {e}") from e
        return deleted

    def compact(self) -> None:
        """Checkpoint the WAL and rebuild the file so freed pages leave the disk."""
        try:
            with self._write_lock, closing(self._connect_db()) as conn:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
                conn.execute("VACUUM")
        except sqlite3.Error as e:
            logger.error(f"Failed to compact record store: {e}")
            raise WriteError(f"Failed to compact database: {e}") from e

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _row_to_result(row: sqlite3.Row) -> SearchResult:
        try:
            source = TextSource(row["text_source"])
        except ValueError:
            source = TextSource.ACCESSIBILITY
        try:
            trigger = CaptureTrigger(row["capture_trigger"])
        except ValueError:
            trigger = CaptureTrigger.MANUAL

        return SearchResult(
            id=row["id"],
            timestamp=parse_timestamp(row["timestamp"]),
            app_name=row["app_name"] or UNKNOWN_APP,
            window_title=row["window_title"],
            bundle_id=row["bundle_id"],
            source=source,
            trigger=trigger,
            snippet=row["snippet"] or "",
        )

    def search(self, query: str, limit: int = 20, app_name: Optional[str] = None) -> List[SearchResult]:
        """Full-text search, newest first.

        ``limit`` is trusted as already clamped by the caller.
        """
        sql = (
            "SELECT c.id, c.timestamp, c.app_name, c.window_title, c.bundle_id, "
            "       c.text_source, c.capture_trigger, "
            f"      snippet(captures_fts, 0, '[', ']', ' ... ', {SNIPPET_CONTEXT_TOKENS}) AS snippet "
            "FROM captures_fts "
            "JOIN captures c ON c.id = captures_fts.rowid "
            "WHERE captures_fts MATCH ?"
        )
        params: list = [query]
        if app_name is not None:
            sql += " AND c.app_name = ?"
            params.append(app_name)
        sql += " ORDER BY c.timestamp DESC, c.id DESC LIMIT ?"
        params.append(limit)

        try:
            with closing(self._connect_db()) as conn:
                rows = conn.execute(sql, params).fetchall()
                return [self._row_to_result(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"FTS search failed for {query!r}: {e}")
            raise QueryError(f"Search failed: {e}") from e

    def _database_bytes(self) -> int:
        total = os.path.getsize(self.db_path)
        wal_path = self.db_path.with_name(self.db_path.name + "-wal")
        if wal_path.exists():
            total += os.path.getsize(wal_path)
        return total

    def status(self) -> StoreStatus:
        try:
            with closing(self._connect_db()) as conn:
                count, last_raw = conn.execute(
                    "SELECT COUNT(*), MAX(timestamp) FROM captures"
                ).fetchone()
            database_bytes = self._database_bytes()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to read store status: {e}")
            raise QueryError(f"Status query failed: {e}") from e

        return StoreStatus(
            record_count=int(count),
            last_capture_at=parse_timestamp(last_raw),
            database_bytes=database_bytes,
        )
