"""HealthTrack server entry point: ``healthtrack`` or ``python -m healthtrack.core.server.main``.

Command-line flags override the matching environment settings for one run.
"""

from __future__ import annotations

import argparse
import logging
from ipaddress import ip_address

from healthtrack.core.config.settings import Settings, get_settings
from healthtrack.core.resilience.retry import RetryPolicy, execute_with_policy
from healthtrack.core.server.app import create_app
from healthtrack.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="healthtrack",
        description="Personal health metrics tracker served over MCP and HTTP.",
    )
    parser.add_argument("--host", help="Bind address (default: HT_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Bind port (default: HT_PORT or 8001)")
    parser.add_argument("--log-level", help="debug, info, warning or error")
    parser.add_argument("--db-path", help="SQLite file for the metric store")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the metric store schema and exit without serving",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return ``settings`` with every flag given on the command line applied."""
    updates = {
        field: value
        for field, value in (
            ("ht_host", args.host),
            ("ht_port", args.port),
            ("ht_log_level", args.log_level),
            ("db_path", args.db_path),
        )
        if value is not None
    }
    return settings.model_copy(update=updates) if updates else settings


def run(argv: list[str] | None = None) -> None:
    """Start the HealthTrack server with Streamable HTTP transport."""
    args = build_parser().parse_args(argv)
    settings = apply_overrides(get_settings(), args)
    logging.basicConfig(
        level=getattr(logging, settings.ht_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.init_db:
        db = HealthDatabase(settings.db_path, timeout=settings.db_timeout_seconds)
        execute_with_policy(
            db.initialize,
            RetryPolicy(max_attempts=settings.db_max_retries + 1),
            label="initialize_database",
        )
        try:
            logger.info("Metric store at %s is at schema v%d", db.path, db.get_schema_version())
        finally:
            db.close()
        return

    if not settings.ht_allow_insecure_bind and not _is_loopback_host(settings.ht_host):
        raise RuntimeError(
            "Refusing to bind HealthTrack to a non-loopback host: users are selected "
            "by id with no authentication. Set HT_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info("Starting HealthTrack server on %s:%d", settings.ht_host, settings.ht_port)

    create_app(settings_override=settings).run(
        transport="streamable-http",
        host=settings.ht_host,
        port=settings.ht_port,
    )


if __name__ == "__main__":
    run()
