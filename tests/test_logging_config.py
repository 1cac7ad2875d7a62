"""
Tests for logging setup and environment-driven settings.
"""

import logging

from loguru import logger

from deal_workflow import config
from deal_workflow.logging_config import setup_logging


class TestConfig:
    """Test environment lookups."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WORKFLOW_STORAGE_PATH", raising=False)
        monkeypatch.delenv("INVITE_BASE_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        assert config.get_storage_path() is None
        assert config.get_invite_base_url() == config.DEFAULT_INVITE_BASE_URL
        assert config.get_log_level() == "INFO"
        assert config.use_json_logs() is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_STORAGE_PATH", "/tmp/records.json")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_JSON", "TRUE")

        assert config.get_storage_path() == "/tmp/records.json"
        assert config.get_log_level() == "DEBUG"
        assert config.use_json_logs() is True


class TestSetupLogging:
    """Test Loguru configuration and stdlib interception."""

    def test_stdlib_records_reach_loguru(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        setup_logging()

        messages = []
        sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
        try:
            logging.getLogger("deal_workflow.test").warning("intercepted %s", "ok")
        finally:
            logger.remove(sink_id)

        assert "intercepted ok" in messages

    def test_uvicorn_access_quieted(self):
        setup_logging()
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
