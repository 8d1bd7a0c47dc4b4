"""Audit logger: operation trail and LLM disclosure tracking.

Records every tool/route invocation in a health-data-free audit trail:

* ``input_hash``: SHA-256 of canonical JSON (no raw readings in logs).
* ``llm_disclosed``: whether health data was sent to an external LLM.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from healthtrack.core.storage.database import DatabaseError, HealthDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'operation' | 'data_write' | 'data_export' | 'admin'
    operation: str = ""
    input_hash: str = ""
    user_id: int | None = None
    llm_provider: str | None = None      # 'anthropic' | 'openai' | 'mock'
    llm_disclosed: bool = False
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and
    swallowed: auditing must never break the request it describes.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_operation(
            "generate_insights",
            {"user_id": 3},
            user_id=3,
            llm_provider="openai",
            llm_disclosed=True,
        )
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its id ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            with self._db.lock:
                conn = self._db.connection
                conn.execute(
                    """INSERT INTO audit_log
                       (id, timestamp, action, operation, input_hash, user_id,
                        llm_provider, llm_disclosed, duration_ms, status,
                        error_type, metadata_json)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        event_id,
                        now,
                        event.action,
                        event.operation or None,
                        event.input_hash or None,
                        event.user_id,
                        event.llm_provider,
                        1 if event.llm_disclosed else 0,
                        event.duration_ms,
                        event.status,
                        event.error_type,
                        metadata_json,
                    ),
                )
                conn.commit()
        except (DatabaseError, sqlite3.Error):
            logger.exception("Failed to write audit event for %s", event.operation)
            return ""

        return event_id

    def log_operation(
        self,
        operation: str,
        operation_input: Any = None,
        *,
        action: str = "operation",
        user_id: int | None = None,
        llm_provider: str | None = None,
        llm_disclosed: bool = False,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging one tool or route call.

        ``operation_input`` is hashed, never stored.
        """
        return self.log_event(AuditEvent(
            action=action,
            operation=operation,
            input_hash=_hash_input(operation_input) if operation_input else "",
            user_id=user_id,
            llm_provider=llm_provider,
            llm_disclosed=llm_disclosed,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    @staticmethod
    def _filters(
        *,
        action: str | None = None,
        operation: str | None = None,
        since: str | None = None,
        status: str | None = None,
        disclosed_only: bool = False,
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for column, wanted in (("action", action), ("operation", operation), ("status", status)):
            if wanted:
                clauses.append(f"{column} = ?")
                params.append(wanted)
        if since:
            clauses.append("timestamp >= ?")
            params.append(since)
        if disclosed_only:
            clauses.append("llm_disclosed = 1")
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def get_events(
        self,
        *,
        action: str | None = None,
        operation: str | None = None,
        since: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Audit rows matching every given filter, newest first."""
        where, params = self._filters(
            action=action, operation=operation, since=since, status=status
        )
        with self._db.lock:
            rows = self._db.connection.execute(
                f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
                [*params, limit],
            ).fetchall()
        return [dict(row) for row in rows]

    def _count(self, **filters: Any) -> int:
        where, params = self._filters(**filters)
        with self._db.lock:
            return self._db.connection.execute(
                f"SELECT COUNT(*) FROM audit_log{where}", params
            ).fetchone()[0]

    def count_events(self, *, since: str | None = None, operation: str | None = None) -> int:
        return self._count(since=since, operation=operation)

    def count_failures(self, *, since: str | None = None, operation: str | None = None) -> int:
        return self._count(since=since, operation=operation, status="failure")

    def count_disclosures(self, *, since: str | None = None) -> int:
        """Events where health data was sent to an external LLM."""
        return self._count(since=since, disclosed_only=True)
