"""Tests for settings and logging configuration."""

import json
import logging

from inbox_sync.config import PROJECT_ROOT, Settings, resolve_log_path
from inbox_sync.logging_config import JSONFormatter


class TestSettings:
    """Tests for Settings.from_env()."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is set."""
        for name in ("MAX_ATTACHMENTS", "UPLOAD_WAIT_TIMEOUT", "INBOX_USER_ROLE"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.max_attachments == 5
        assert settings.upload_wait_timeout == 10.0
        assert settings.user_role == "buyer"
        assert settings.typing_debounce == 0.4

    def test_environment_overrides(self, monkeypatch):
        """Test values read from the environment."""
        monkeypatch.setenv("INBOX_API_URL", "https://api.example.com/api")
        monkeypatch.setenv("INBOX_USER_ROLE", "seller")
        monkeypatch.setenv("INBOX_API_PREFIX", "seller/inbox")
        monkeypatch.setenv("MAX_ATTACHMENTS", "3")
        monkeypatch.setenv("UPLOAD_WAIT_TIMEOUT", "2.5")

        settings = Settings.from_env()

        assert settings.api_url == "https://api.example.com/api"
        assert settings.user_role == "seller"
        assert settings.api_prefix == "seller/inbox"
        assert settings.max_attachments == 3
        assert settings.upload_wait_timeout == 2.5

    def test_relative_log_path(self):
        """Test that relative LOG_FILE values resolve under the project root."""
        assert resolve_log_path("logs/x.log") == PROJECT_ROOT / "logs/x.log"
        assert resolve_log_path(None).name == "app.log"


class TestJSONFormatter:
    """Tests for structured log records."""

    def test_record_with_context(self):
        """Test that context passed via extra is serialized."""
        record = logging.LogRecord(
            "inbox_sync.test", logging.WARNING, __file__, 10, "Upload of %s failed", ("a.pdf",), None
        )
        record.context = {"task_id": "t1"}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "Upload of a.pdf failed"
        assert data["context"] == {"task_id": "t1"}

    def test_correlation_ids_lifted(self):
        """Test that thread and task ids passed via extra become top-level keys."""
        logger = logging.getLogger("inbox_sync.test")
        record = logger.makeRecord(
            logger.name,
            logging.INFO,
            __file__,
            20,
            "sent",
            (),
            None,
            extra={"thread_id": "th1", "task_id": "t9"},
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["thread_id"] == "th1"
        assert data["task_id"] == "t9"
        assert "message_id" not in data
