"""SQLite database management for the healthtrack metric store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS users (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

-- One row per recorded observation
CREATE TABLE IF NOT EXISTS health_metrics (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id        INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    metric_type    TEXT NOT NULL,
    value          REAL NOT NULL,
    unit           TEXT,
    -- Blood pressure payload: JSON, or a Fernet token when a key is configured
    composite_data TEXT,
    timestamp      TEXT NOT NULL,
    created_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_health_metrics_user_ts ON health_metrics(user_id, timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_health_metrics_type    ON health_metrics(metric_type);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (operation trail + LLM disclosure tracking)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL,
    action          TEXT NOT NULL,
    operation       TEXT,
    input_hash      TEXT,
    user_id         INTEGER,
    llm_provider    TEXT,
    llm_disclosed   INTEGER DEFAULT 0,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_operation ON audit_log(operation);
"""


# Ordered (version, DDL, description) steps applied to older stores.
_MIGRATIONS: tuple[tuple[int, str, str], ...] = (
    (2, _SCHEMA_V2, "audit_log table"),
)


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """One shared SQLite connection holding users, metrics and the audit trail.

    ``:memory:`` gives a throwaway store (tests); any other path is a file,
    created with its parent directories on first use.

    Usage::

        with HealthDatabase("~/.healthtrack/health.db") as db:
            db.connection.execute("SELECT COUNT(*) FROM users")
    """

    def __init__(self, db_path: str = ":memory:", *, timeout: float = 10.0) -> None:
        """Remember where the store lives; nothing opens until initialize().

        Args:
            db_path: SQLite file path (``~`` expanded), or ":memory:".
            timeout: Seconds a statement waits on a locked database before
                raising ``sqlite3.OperationalError``.
        """
        self._db_path = db_path
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    @property
    def lock(self) -> threading.RLock:
        """Held around every use of the shared connection."""
        return self._lock

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        target = self._db_path
        if target != ":memory:":
            db_file = Path(target).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_file)

        # Store calls run on worker threads via asyncio.to_thread, one at a
        # time under ``lock``.
        self._conn = sqlite3.connect(target, timeout=self._timeout, check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Health database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create the base tables, then apply any migration newer than the store."""
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        found = self.get_schema_version()
        for version, ddl, description in _MIGRATIONS:
            if found < version:
                conn.executescript(ddl)
                logger.info("Applied schema migration V%d: %s", version, description)

        if found < SCHEMA_VERSION:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            conn.commit()
            logger.info("Schema updated from version %d to %d", found, SCHEMA_VERSION)

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            row = self.connection.execute("SELECT 1").fetchone()
        except (DatabaseError, sqlite3.Error):
            logger.exception("Database health check failed")
            return False
        return row is not None and row[0] == 1

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Health database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
