"""Tests for the command-line entry point."""

from __future__ import annotations

import pytest

from healthtrack.core.config.settings import Settings
from healthtrack.core.server.main import _is_loopback_host, apply_overrides, build_parser, run
from healthtrack.core.storage.database import SCHEMA_VERSION, HealthDatabase


class TestLoopbackGuard:
    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1"])
    def test_loopback(self, host):
        assert _is_loopback_host(host)

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.com"])
    def test_not_loopback(self, host):
        assert not _is_loopback_host(host)

    def test_public_bind_refused(self, monkeypatch):
        monkeypatch.setenv("HT_HOST", "0.0.0.0")
        monkeypatch.setenv("HT_ALLOW_INSECURE_BIND", "false")
        with pytest.raises(RuntimeError, match="non-loopback"):
            run([])


class TestOverrides:
    def test_flags_override_settings(self):
        args = build_parser().parse_args(["--port", "9100", "--db-path", "/tmp/x.db"])
        settings = apply_overrides(Settings(db_path=":memory:"), args)
        assert settings.ht_port == 9100
        assert settings.db_path == "/tmp/x.db"
        assert settings.ht_host == "127.0.0.1"

    def test_no_flags_keeps_settings(self):
        base = Settings(db_path=":memory:")
        assert apply_overrides(base, build_parser().parse_args([])) is base


class TestInitOnly:
    def test_init_db_creates_schema(self, tmp_path):
        db_file = tmp_path / "nested" / "health.db"
        run(["--init-db", "--db-path", str(db_file)])
        assert db_file.exists()
        with HealthDatabase(str(db_file)) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
