"""
chronokv Durable-Embedded Backend (SQLite)

File-based store for version records. One table, kv_store, with a unique
(key, timestamp) constraint and a descending (key, timestamp) index so that
latest / as-of lookups are a single index seek.

Concurrency:
- One write connection, serialized by a lock; each put is one transaction
- One dedicated read connection (WAL lets reads run alongside the writer)
- Busy timeout bounds how long a call waits on a locked database

Same-tick writes use an atomic upsert: the later committed write replaces
the earlier record at that (key, timestamp).
"""

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from chronokv.logging import getLogger

from ..contract import TABLE_NAME, INDEX_NAME, BACKEND_SQLITE
from ..records import VersionRecord
from .base import Clock, HealthStatus, StorageError, emptyStats, wallClock


MEMORY_PATH = ':memory:'


class SqliteBackend:
    """
    SQLite version store.

    Usage:
        with SqliteBackend('data/kv_store.db') as backend:
            record = backend.put('mykey', {'a': 1})
    """

    name = BACKEND_SQLITE

    def __init__(self, dbPath: str = 'data/kv_store.db', busyTimeoutSeconds: float = 10.0,
                 clock: Clock = wallClock):
        """
        Open (creating if needed) the database file and schema.

        Args:
            dbPath: Path to SQLite file, or ':memory:' for a private database
            busyTimeoutSeconds: Max wait for a database lock before failing
            clock: Source of write timestamps (integer Unix seconds)

        Raises:
            StorageError: If the database cannot be opened or initialized
        """
        self.log = getLogger()
        self.dbPath = dbPath
        self.busyTimeoutSeconds = busyTimeoutSeconds
        self.clock = clock
        self.conn: Optional[sqlite3.Connection] = None
        self._readConn: Optional[sqlite3.Connection] = None
        self._writeLock = threading.Lock()
        self._readLock = threading.Lock()
        self._closed = False

        try:
            self._connect()
            self._initSchema()
        except sqlite3.Error as e:
            self.log.error("Database initialization failed", dbPath=str(dbPath), errorMsg=str(e))
            self._closeConnections()
            raise StorageError(f"Database initialization failed: {e}", operation='open') from e

        self.log.info("Database ready", dbPath=str(dbPath))

    @property
    def _inMemory(self) -> bool:
        return str(self.dbPath) == MEMORY_PATH

    def _connect(self):
        """Open the write connection"""
        if not self._inMemory:
            Path(self.dbPath).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(
            str(self.dbPath),
            check_same_thread=False,
            isolation_level='DEFERRED',
            timeout=self.busyTimeoutSeconds
        )
        self.conn.row_factory = sqlite3.Row

        if not self._inMemory:
            self.conn.execute("PRAGMA journal_mode=WAL")
            # NORMAL sync is durable enough in WAL mode
            self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA temp_store=MEMORY")
        self.conn.commit()

    def _getReadConnection(self) -> sqlite3.Connection:
        """
        Dedicated read connection.

        A ':memory:' database is private to its connection, so reads share
        the write connection in that case.
        """
        if self._inMemory:
            return self.conn

        if self._readConn is None:
            self._readConn = sqlite3.connect(
                str(self.dbPath),
                check_same_thread=False,
                timeout=self.busyTimeoutSeconds
            )
            self._readConn.row_factory = sqlite3.Row
            self._readConn.execute("PRAGMA query_only=ON")
        return self._readConn

    def _initSchema(self):
        cursor = self.conn.cursor()
        try:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(key, timestamp)
                )
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS {INDEX_NAME}
                ON {TABLE_NAME}(key, timestamp DESC)
            """)
            self.conn.commit()
        finally:
            cursor.close()

    def _requireOpen(self, operation: str, key: Optional[str] = None):
        if self._closed:
            raise StorageError("Backend is closed", operation=operation, key=key)

    # =========================================================================
    # Writes
    # =========================================================================

    def put(self, key: str, value: Any) -> VersionRecord:
        """
        Insert a version stamped with clock(), replacing any record already
        at (key, timestamp).

        Raises:
            StorageError: On serialization or database failure; the
                transaction is rolled back so no partial record remains
        """
        self._requireOpen('put', key)

        try:
            storedValue = VersionRecord(key=key, value=value, timestamp=0).storedValue()
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not JSON-serializable: {e}", operation='put', key=key) from e

        with self._writeLock:
            self._requireOpen('put', key)
            timestamp = self.clock()
            createdAt = datetime.now(timezone.utc).isoformat()
            cursor = self.conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO {TABLE_NAME} (key, value, timestamp, created_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key, timestamp) DO UPDATE SET
                        value = excluded.value,
                        created_at = excluded.created_at
                """, (key, storedValue, timestamp, createdAt))
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                self.log.error("Failed to store value", key=key, timestamp=timestamp,
                               valueSize=len(storedValue), errorClass=type(e).__name__, errorMsg=str(e))
                raise StorageError(_describeSqliteError(e), operation='put', key=key) from e
            finally:
                cursor.close()

        self.log.debug("Value stored", key=key, timestamp=timestamp, valueSize=len(storedValue))
        return VersionRecord.fromStored(key, storedValue, timestamp, createdAt)

    # =========================================================================
    # Reads
    # =========================================================================

    def getLatest(self, key: str) -> Optional[VersionRecord]:
        rows = self._query('getLatest', key, f"""
            SELECT key, value, timestamp, created_at
            FROM {TABLE_NAME}
            WHERE key = ?
            ORDER BY timestamp DESC
            LIMIT 1
        """, (key,))
        return _rowToRecord(rows[0]) if rows else None

    def getAsOf(self, key: str, timestamp: int) -> Optional[VersionRecord]:
        rows = self._query('getAsOf', key, f"""
            SELECT key, value, timestamp, created_at
            FROM {TABLE_NAME}
            WHERE key = ? AND timestamp <= ?
            ORDER BY timestamp DESC
            LIMIT 1
        """, (key, timestamp))
        return _rowToRecord(rows[0]) if rows else None

    def getHistory(self, key: str, limit: Optional[int] = None) -> List[VersionRecord]:
        sql = f"""
            SELECT key, value, timestamp, created_at
            FROM {TABLE_NAME}
            WHERE key = ?
            ORDER BY timestamp DESC
        """
        params: tuple = (key,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (key, limit)
        return [_rowToRecord(row) for row in self._query('getHistory', key, sql, params)]

    def getStats(self) -> Dict[str, Any]:
        rows = self._query('getStats', None, f"""
            SELECT
                COUNT(*) AS totalRecords,
                COUNT(DISTINCT key) AS uniqueKeys,
                MIN(timestamp) AS earliestTimestamp,
                MAX(timestamp) AS latestTimestamp
            FROM {TABLE_NAME}
        """, ())
        if not rows:
            return emptyStats()
        row = rows[0]
        return {
            'totalRecords': row['totalRecords'],
            'uniqueKeys': row['uniqueKeys'],
            'earliestTimestamp': row['earliestTimestamp'],
            'latestTimestamp': row['latestTimestamp']
        }

    def _query(self, operation: str, key: Optional[str], sql: str, params: tuple) -> List[sqlite3.Row]:
        self._requireOpen(operation, key)
        lock = self._writeLock if self._inMemory else self._readLock
        with lock:
            self._requireOpen(operation, key)
            try:
                cursor = self._getReadConnection().execute(sql, params)
                try:
                    return cursor.fetchall()
                finally:
                    cursor.close()
            except sqlite3.Error as e:
                self.log.error("Database query failed", operation=operation, key=key,
                               errorClass=type(e).__name__, errorMsg=str(e))
                raise StorageError(_describeSqliteError(e), operation=operation, key=key) from e

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def healthCheck(self) -> HealthStatus:
        try:
            stats = self.getStats()
        except StorageError as e:
            return HealthStatus(healthy=False, backend=self.name, reason=str(e))
        stats['dbPath'] = str(self.dbPath)
        return HealthStatus(healthy=True, backend=self.name, stats=stats)

    def close(self):
        """Close connections (idempotent)"""
        if self._closed:
            return
        with self._writeLock, self._readLock:
            if self._closed:
                return
            self._closed = True
            self._closeConnections()
        self.log.info("Database connection closed", dbPath=str(self.dbPath))

    def _closeConnections(self):
        if self._readConn:
            try:
                self._readConn.close()
            except sqlite3.Error as e:
                self.log.warning("Error closing read connection", errorMsg=str(e))
            self._readConn = None

        if self.conn:
            if not self._inMemory:
                # Fold the WAL back into the main file
                try:
                    self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                except sqlite3.Error as e:
                    self.log.warning("Final checkpoint failed", errorMsg=str(e))
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _rowToRecord(row: sqlite3.Row) -> VersionRecord:
    return VersionRecord.fromStored(row['key'], row['value'], row['timestamp'], row['created_at'])


def _describeSqliteError(error: sqlite3.Error) -> str:
    """Short operator-facing description keyed on the SQLite error class"""
    text = str(error)
    if isinstance(error, sqlite3.IntegrityError):
        return f"Constraint violation: {text}"
    if isinstance(error, sqlite3.OperationalError):
        if 'locked' in text or 'busy' in text:
            return "Database is busy"
        if 'full' in text:
            return "Database storage full"
    return f"Database operation failed: {text}"
