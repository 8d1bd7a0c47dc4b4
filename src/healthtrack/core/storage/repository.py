"""Health data repository: CRUD over users and metric rows.

The repository mediates between domain objects (User, HealthMetric) and the
SQLite database. When a FieldEncryptor is supplied, blood pressure payloads
are encrypted before they are written.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from healthtrack.core.errors import ConflictError
from healthtrack.core.storage.database import HealthDatabase
from healthtrack.core.storage.encryption import FieldEncryptor
from healthtrack.core.storage.models import BloodPressureData, HealthMetric, User

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when stored data cannot be read back."""


def to_iso(moment: datetime) -> str:
    """Render a datetime as fixed-width UTC ISO 8601 (sortable as text)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthRepository:
    """CRUD repository for users and their health metrics.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthRepository(db)

        user = repo.create_user("Ada")
        repo.save_metric(user.id, "Weight", 180.0, unit="lbs")
        rows = repo.get_metrics(user.id, days=30)
    """

    def __init__(
        self, database: HealthDatabase, encryptor: FieldEncryptor | None = None
    ) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def encrypts_payloads(self) -> bool:
        return self._enc is not None

    def _query(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        start = time.monotonic()
        rows = self._db.connection.execute(sql, params).fetchall()
        logger.debug(
            "Executed query %s (%.1fms, %d rows)",
            " ".join(sql.split())[:100],
            (time.monotonic() - start) * 1000,
            len(rows),
        )
        return rows

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, name: str) -> User:
        """Insert a user.

        Raises:
            ConflictError: If a user with this name already exists.
        """
        conn = self._db.connection
        try:
            cursor = conn.execute("INSERT INTO users (name) VALUES (?)", (name,))
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ConflictError("User already exists") from exc

        user = self.get_user(cursor.lastrowid)
        logger.info("Created user %d", cursor.lastrowid)
        return user

    def get_user(self, user_id: int) -> User | None:
        rows = self._query(
            "SELECT id, name, created_at FROM users WHERE id = ?", (user_id,)
        )
        if not rows:
            return None
        row = rows[0]
        return User(id=row["id"], name=row["name"], created_at=row["created_at"])

    def list_users(self) -> list[User]:
        """All users, alphabetically by name."""
        rows = self._query("SELECT id, name, created_at FROM users ORDER BY name ASC")
        return [User(id=r["id"], name=r["name"], created_at=r["created_at"]) for r in rows]

    def count_users(self) -> int:
        return self._query("SELECT COUNT(*) FROM users")[0][0]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def save_metric(
        self,
        user_id: int,
        metric_type: str,
        value: float,
        *,
        unit: str | None = None,
        composite_data: BloodPressureData | None = None,
        timestamp: datetime | None = None,
    ) -> HealthMetric:
        """Append one metric row and return it as stored.

        Args:
            user_id: Owner of the observation.
            metric_type: One of the tracked metric types.
            value: Scalar reading.
            unit: Optional display unit.
            composite_data: Optional blood pressure payload.
            timestamp: Observation time. Defaults to now.
        """
        conn = self._db.connection
        observed = to_iso(timestamp or utc_now())
        cursor = conn.execute(
            """INSERT INTO health_metrics
               (user_id, metric_type, value, unit, composite_data, timestamp)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                user_id,
                metric_type,
                value,
                unit,
                self._encode_composite(composite_data),
                observed,
            ),
        )
        conn.commit()
        metric_id = cursor.lastrowid
        logger.info("Saved metric %d (user=%d, type=%s)", metric_id, user_id, metric_type)

        row = self._query("SELECT * FROM health_metrics WHERE id = ?", (metric_id,))[0]
        return self._row_to_metric(row)

    def get_metrics(
        self,
        user_id: int,
        *,
        days: int | None = None,
        metric_type: str | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[HealthMetric]:
        """Query a user's metrics, newest first.

        Args:
            user_id: Owner filter.
            days: When given, only rows with ``timestamp`` in
                ``[now - days, now]``.
            metric_type: Optional exact type filter.
            limit: Maximum rows to return.
            now: Reference time for the window (defaults to the current time).
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if days is not None:
            reference = now or utc_now()
            conditions.append("timestamp >= ?")
            params.append(to_iso(reference - timedelta(days=days)))
            conditions.append("timestamp <= ?")
            params.append(to_iso(reference))
        if metric_type:
            conditions.append("metric_type = ?")
            params.append(metric_type)

        query = (
            "SELECT * FROM health_metrics WHERE "
            + " AND ".join(conditions)
            + " ORDER BY timestamp DESC, id DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        return [self._row_to_metric(row) for row in self._query(query, params)]

    def count_metrics(self, user_id: int | None = None) -> int:
        if user_id is None:
            return self._query("SELECT COUNT(*) FROM health_metrics")[0][0]
        return self._query(
            "SELECT COUNT(*) FROM health_metrics WHERE user_id = ?", (user_id,)
        )[0][0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _encode_composite(self, composite: BloodPressureData | None) -> str | None:
        if composite is None:
            return None
        payload = composite.to_dict()
        if self._enc is not None:
            return self._enc.encrypt(payload)
        return json.dumps(payload, separators=(",", ":"))

    def _decode_composite(self, raw: str | None) -> BloodPressureData | None:
        if not raw:
            return None
        if FieldEncryptor.looks_encrypted(raw):
            if self._enc is None:
                raise RepositoryError(
                    "Stored blood pressure payload is encrypted but no ENCRYPTION_KEY is configured"
                )
            payload = self._enc.decrypt(raw)
        else:
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise RepositoryError(f"Corrupt composite payload: {exc}") from exc
        return BloodPressureData.from_dict(payload) if payload else None

    def _row_to_metric(self, row: sqlite3.Row) -> HealthMetric:
        return HealthMetric(
            id=row["id"],
            user_id=row["user_id"],
            metric_type=row["metric_type"],
            value=row["value"],
            unit=row["unit"],
            composite_data=self._decode_composite(row["composite_data"]),
            timestamp=row["timestamp"],
            created_at=row["created_at"],
        )
