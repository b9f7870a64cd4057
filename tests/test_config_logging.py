"""
Tests for settings resolution and logging setup.
"""
import logging
from datetime import timezone
from zoneinfo import ZoneInfo

from app.core.config import Settings
from app.core.logging import configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("DATABASE_URL", "STORE_KEY_PREFIX", "STATS_TIMEZONE", "HEATMAP_DAYS"):
            monkeypatch.delenv(var, raising=False)
        s = Settings(_env_file=None)
        assert s.DATABASE_URL.startswith("sqlite")
        assert s.STORE_KEY_PREFIX == "ls_"
        assert s.HEATMAP_DAYS == 365
        assert s.stats_tzinfo is timezone.utc

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("STATS_TIMEZONE", "Asia/Shanghai")
        monkeypatch.setenv("HEATMAP_DAYS", "90")
        s = Settings(_env_file=None)
        assert s.stats_tzinfo == ZoneInfo("Asia/Shanghai")
        assert s.HEATMAP_DAYS == 90

    def test_utc_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("STATS_TIMEZONE", "utc")
        assert Settings(_env_file=None).stats_tzinfo is timezone.utc


class TestConfigureLogging:
    def test_installs_single_handler(self):
        root = logging.getLogger()
        before = len(root.handlers)
        configure_logging("DEBUG")
        configure_logging("DEBUG")
        added = [h for h in root.handlers if h.get_name() == "learnsync-stdout"]
        assert len(added) == 1
        assert len(root.handlers) <= before + 1
        assert root.level == logging.DEBUG

    def test_quiets_sqlalchemy(self):
        configure_logging("DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_returns_app_logger(self):
        assert configure_logging("INFO").name == "app"
