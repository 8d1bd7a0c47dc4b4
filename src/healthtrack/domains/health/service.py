"""Health tracker operations shared by the MCP tools and the HTTP routes.

Each public coroutine validates its input, runs store calls on a worker
thread under the store retry policy, and records one audit event whether it
succeeds or fails. Backoff between store retries is awaited, so a locked
store never blocks the event loop.
Errors propagate as :mod:`healthtrack.core.errors` types; rendering them is
the caller's job.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

from healthtrack.core.errors import NotFoundError, TransientError
from healthtrack.core.resilience.retry import RetryPolicy, aexecute_with_policy
from healthtrack.domains.health.domain_logic.analytics import (
    analyze_metrics,
    get_health_summary,
    get_trend_data,
    group_metrics_by_type,
)
from healthtrack.domains.health.domain_logic.metric_models import (
    BLOOD_PRESSURE,
    BLOOD_PRESSURE_UNIT,
    INSIGHT_ROW_LIMIT,
    INSIGHT_WINDOW_DAYS,
    InsightReport,
)
from healthtrack.domains.health.domain_logic.report_export import (
    ExportedReport,
    export_report,
)
from healthtrack.domains.health.domain_logic.validation import (
    validate_blood_pressure,
    validate_days,
    validate_export_format,
    validate_metric_type,
    validate_metric_value,
    validate_user_id,
    validate_user_name,
)

if TYPE_CHECKING:
    from healthtrack.core.audit.logger import AuditLogger
    from healthtrack.core.storage.database import HealthDatabase
    from healthtrack.core.storage.models import HealthMetric, User
    from healthtrack.core.storage.repository import HealthRepository
    from healthtrack.domains.health.domain_logic.insights import InsightComposer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HealthService:
    """Application operations over the metric store.

    Usage::

        service = HealthService(database, repository, composer, audit_logger)
        user = await service.create_user("Ada", surface="mcp")
        await service.record_metric(user.id, "Weight", 180, unit="lbs")
        report = await service.generate_insights(user.id)
    """

    def __init__(
        self,
        database: HealthDatabase,
        repository: HealthRepository,
        composer: InsightComposer,
        audit_logger: AuditLogger | None = None,
        *,
        store_retry_policy: RetryPolicy | None = None,
        request_deadline: float | None = 30.0,
    ) -> None:
        self.database = database
        self.repository = repository
        self.composer = composer
        self.audit_logger = audit_logger
        self.store_retry_policy = store_retry_policy or RetryPolicy()
        self.request_deadline = request_deadline

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _locked(self, fn: Callable[[], T]) -> T:
        with self.database.lock:
            return fn()

    async def _store(self, fn: Callable[[], T], label: str) -> T:
        return await aexecute_with_policy(
            lambda: asyncio.to_thread(self._locked, fn),
            self.store_retry_policy,
            label=label,
        )

    @asynccontextmanager
    async def _audited(
        self,
        operation: str,
        operation_input: Any = None,
        *,
        surface: str,
        action: str = "operation",
    ) -> AsyncIterator[dict[str, Any]]:
        """Time the wrapped block and write one audit event for it.

        The block may set ``user_id``, ``llm_provider`` and ``llm_disclosed``
        on the yielded dict.
        """
        extra: dict[str, Any] = {}
        start = time.monotonic()
        try:
            yield extra
        except Exception as exc:
            await self._write_audit(
                operation, operation_input, surface=surface,
                action=action, start=start, status="failure",
                error_type=type(exc).__name__, extra=extra,
            )
            raise
        await self._write_audit(
            operation, operation_input, surface=surface,
            action=action, start=start, status="success", error_type=None, extra=extra,
        )

    async def _write_audit(
        self,
        operation: str,
        operation_input: Any,
        *,
        surface: str,
        action: str,
        start: float,
        status: str,
        error_type: str | None,
        extra: dict[str, Any],
    ) -> None:
        if self.audit_logger is None:
            return
        await asyncio.to_thread(
            self.audit_logger.log_operation,
            operation,
            operation_input,
            action=action,
            user_id=extra.get("user_id"),
            llm_provider=extra.get("llm_provider"),
            llm_disclosed=bool(extra.get("llm_disclosed")),
            duration_ms=round((time.monotonic() - start) * 1000, 1),
            status=status,
            error_type=error_type,
            metadata={"surface": surface},
        )

    async def _require_user(self, user_id: int) -> User:
        user = await self._store(lambda: self.repository.get_user(user_id), "get_user")
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # Store administration
    # ------------------------------------------------------------------

    def _status_snapshot(self) -> dict[str, Any]:
        store_ok = self.database.is_initialized and self.database.ping()
        status: dict[str, Any] = {
            "status": "ok" if store_ok else "degraded",
            "server": "HealthTrack",
            "store": "ok" if store_ok else "unavailable",
            "encrypted_payloads": self.repository.encrypts_payloads,
            "llm_provider": self.composer.provider_name,
        }
        if store_ok:
            status["schema_version"] = self.database.get_schema_version()
            status["users"] = self.repository.count_users()
            status["metrics_stored"] = self.repository.count_metrics()
        return status

    async def health_status(self) -> dict[str, Any]:
        """Liveness plus basic store counters."""
        return await asyncio.to_thread(self._locked, self._status_snapshot)

    async def initialize_store(self, *, surface: str = "mcp") -> dict[str, Any]:
        """Create tables if missing. Safe to call repeatedly."""
        async with self._audited("initialize_database", surface=surface, action="admin"):
            await self._store(self.database.initialize, "initialize_database")
            version = await self._store(self.database.get_schema_version, "schema_version")
            logger.info("Store initialized at schema v%d", version)
            return {
                "success": True,
                "message": "Database initialized successfully",
                "schema_version": version,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self, *, surface: str = "mcp") -> list[User]:
        async with self._audited("list_users", surface=surface):
            return await self._store(self.repository.list_users, "list_users")

    async def create_user(self, name: Any, *, surface: str = "mcp") -> User:
        async with self._audited(
            "create_user", {"name": name}, surface=surface, action="data_write"
        ):
            clean_name = validate_user_name(name)
            return await self._store(
                lambda: self.repository.create_user(clean_name), "create_user"
            )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def get_metrics(
        self, user_id: Any, days: Any = None, *, surface: str = "mcp"
    ) -> tuple[int, list[HealthMetric]]:
        """Rows inside the window, newest first, with the window actually used."""
        async with self._audited(
            "get_metrics", {"user_id": user_id, "days": days}, surface=surface
        ) as audit:
            uid = validate_user_id(user_id)
            window = validate_days(days)
            audit["user_id"] = uid
            await self._require_user(uid)
            rows = await self._store(
                lambda: self.repository.get_metrics(uid, days=window), "get_metrics"
            )
            return window, rows

    async def record_metric(
        self,
        user_id: Any,
        metric_type: Any,
        value: Any = None,
        *,
        unit: str | None = None,
        composite_data: Any = None,
        surface: str = "mcp",
    ) -> HealthMetric:
        """Append one observation timestamped now.

        Blood Pressure with a composite payload stores the systolic as
        ``value`` and defaults ``unit`` to mmHg.
        """
        async with self._audited(
            "record_metric",
            {"user_id": user_id, "metric_type": metric_type},
            surface=surface,
            action="data_write",
        ) as audit:
            uid = validate_user_id(user_id)
            audit["user_id"] = uid
            kind = validate_metric_type(metric_type)
            unit = unit.strip() if isinstance(unit, str) and unit.strip() else None

            composite = None
            if kind == BLOOD_PRESSURE and composite_data is not None:
                composite = validate_blood_pressure(composite_data)
                number = composite.systolic
                unit = unit or BLOOD_PRESSURE_UNIT
            else:
                number = validate_metric_value(value, kind)

            await self._require_user(uid)
            return await self._store(
                lambda: self.repository.save_metric(
                    uid, kind, number, unit=unit, composite_data=composite
                ),
                "record_metric",
            )

    async def analyze(
        self, user_id: Any, days: Any = None, *, surface: str = "mcp"
    ) -> dict[str, Any]:
        """Per-type analyses, headline summary and chart series for a window."""
        async with self._audited(
            "analyze_metrics", {"user_id": user_id, "days": days}, surface=surface
        ) as audit:
            uid = validate_user_id(user_id)
            audit["user_id"] = uid
            window = validate_days(days)
            await self._require_user(uid)
            rows = await self._store(
                lambda: self.repository.get_metrics(uid, days=window), "get_metrics"
            )
            analyses = analyze_metrics(rows)
            return {
                "user_id": uid,
                "days": window,
                "metric_count": len(rows),
                "summary": get_health_summary(analyses),
                "analyses": [a.to_dict() for a in analyses],
                "trend_data": {
                    metric_type: [p.to_dict() for p in get_trend_data(group)]
                    for metric_type, group in group_metrics_by_type(rows).items()
                },
            }

    async def export(
        self,
        user_id: Any,
        fmt: Any = None,
        days: Any = None,
        *,
        surface: str = "mcp",
    ) -> ExportedReport:
        async with self._audited(
            "export_report",
            {"user_id": user_id, "format": fmt, "days": days},
            surface=surface,
            action="data_export",
        ) as audit:
            uid = validate_user_id(user_id)
            audit["user_id"] = uid
            chosen_format = validate_export_format(fmt)
            window = validate_days(days)
            user = await self._require_user(uid)
            rows = await self._store(
                lambda: self.repository.get_metrics(uid, days=window), "get_metrics"
            )
            report = export_report(user.name, rows, fmt=chosen_format, days=window)
            logger.info(
                "Exported %d rows for user %d as %s", report.row_count, uid, chosen_format
            )
            return report

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    async def generate_insights(self, user_id: Any, *, surface: str = "mcp") -> InsightReport:
        """Narrative insights over the trailing 30 days (at most 100 rows).

        Raises:
            TransientError: The LLM kept failing, or the request deadline passed.
        """
        async with self._audited(
            "generate_insights", {"user_id": user_id}, surface=surface
        ) as audit:
            uid = validate_user_id(user_id)
            audit["user_id"] = uid
            await self._require_user(uid)
            rows = await self._store(
                lambda: self.repository.get_metrics(
                    uid, days=INSIGHT_WINDOW_DAYS, limit=INSIGHT_ROW_LIMIT
                ),
                "get_metrics",
            )
            if rows:
                audit["llm_provider"] = self.composer.provider_name
                audit["llm_disclosed"] = self.composer.provider_name != "mock"

            try:
                if self.request_deadline is None:
                    return await self.composer.compose(rows)
                return await asyncio.wait_for(
                    self.composer.compose(rows), self.request_deadline
                )
            except asyncio.TimeoutError as exc:
                raise TransientError(
                    f"Insight generation exceeded {self.request_deadline:g}s"
                ) from exc
