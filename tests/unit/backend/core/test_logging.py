"""
Unit Tests for Centralized Logging.

Tests the logging configuration, structured fields, and source handling.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from portal.backend.core import logging as logging_module
from portal.backend.core.logging import (
    VALID_SOURCES,
    _load_logging_config,
    _resolve_log_path,
    get_logger,
    log_with_source,
    redact_secrets,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_cached_config():
    logging_module._logging_config = None
    yield
    logging_module._logging_config = None


@pytest.fixture
def mock_logging_config():
    return {
        "level": "INFO",
        "format": "json",
        "handlers": {
            "console": {"enabled": True},
            "file": {
                "enabled": True,
                "path": "logs/system.jsonl",
                "max_bytes": 10485760,
                "backup_count": 5,
            },
        },
    }


class TestValidSources:
    def test_contains_portal_sources(self):
        """Should list every origin the portal logs from."""
        assert {"web", "cli", "api", "tasks", "internal"} <= VALID_SOURCES

    def test_is_frozenset(self):
        assert isinstance(VALID_SOURCES, frozenset)


class TestLoggingConfigLoading:
    def test_reads_logging_yaml(self, mock_logging_config):
        with patch("portal.backend.core.logging.load_yaml_config", return_value=mock_logging_config) as loader:
            config = _load_logging_config()

        loader.assert_called_once_with("logging.yaml")
        assert config["handlers"]["file"]["backup_count"] == 5

    def test_missing_file_propagates(self):
        """Should raise FileNotFoundError if logging.yaml doesn't exist."""
        with patch(
            "portal.backend.core.logging.load_yaml_config",
            side_effect=FileNotFoundError("Configuration file not found: logging.yaml"),
        ):
            with pytest.raises(FileNotFoundError, match="logging.yaml"):
                _load_logging_config()

    def test_config_is_cached(self, mock_logging_config):
        with patch("portal.backend.core.logging.load_yaml_config", return_value=mock_logging_config) as loader:
            first = _load_logging_config()
            second = _load_logging_config()

        assert first is second
        assert loader.call_count == 1


class TestSetupLogging:
    def test_explicit_level_overrides_config(self, mock_logging_config):
        with patch("portal.backend.core.logging._load_logging_config", return_value=mock_logging_config):
            setup_logging(level="DEBUG", enable_file_logging=False)

        assert logging.getLogger().level == logging.DEBUG

    def test_uses_config_defaults(self, mock_logging_config):
        with patch("portal.backend.core.logging._load_logging_config", return_value=mock_logging_config):
            setup_logging(enable_file_logging=False)

        assert logging.getLogger().level == logging.INFO

    def test_console_handler_without_file(self, mock_logging_config):
        with patch("portal.backend.core.logging._load_logging_config", return_value=mock_logging_config):
            setup_logging(format_type="console", enable_file_logging=False)

        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        assert "StreamHandler" in handler_types
        assert "RotatingFileHandler" not in handler_types

    def test_file_handler_writes_jsonl(self, tmp_path, mock_logging_config):
        """Should create a single RotatingFileHandler for the JSONL file."""
        log_file = tmp_path / "logs" / "system.jsonl"

        with patch("portal.backend.core.logging._load_logging_config", return_value=mock_logging_config), \
             patch("portal.backend.core.logging._resolve_log_path", return_value=log_file):
            setup_logging(level="INFO", enable_file_logging=True)

        root_logger = logging.getLogger()
        file_handlers = [h for h in root_logger.handlers if type(h).__name__ == "RotatingFileHandler"]
        assert len(file_handlers) == 1
        assert log_file.parent.is_dir()

        for handler in file_handlers:
            root_logger.removeHandler(handler)
            handler.close()


class TestGetLogger:
    def test_returns_structlog_logger(self):
        logger = get_logger("portal.test")
        assert hasattr(logger, "bind")
        assert hasattr(logger, "info")


class TestLogWithSource:
    def test_adds_source_field(self):
        logger = get_logger("test")
        mock_info = MagicMock()

        with patch.object(logger, "info", mock_info):
            log_with_source(logger, "tasks", "info", "Job completed", job_id="j-1")

        mock_info.assert_called_once_with("Job completed", source="tasks", job_id="j-1")

    @pytest.mark.parametrize("level", ["debug", "info", "warning", "error", "critical"])
    def test_supports_levels(self, level):
        logger = get_logger("test")
        mock_method = MagicMock()
        with patch.object(logger, level, mock_method):
            log_with_source(logger, "cli", level, "message")
        mock_method.assert_called_once()

    def test_invalid_level_raises(self):
        with pytest.raises(AttributeError):
            log_with_source(get_logger("test"), "web", "nonexistent_level", "message")


class TestResolveLogPath:
    def test_relative_to_project_root(self, tmp_path):
        with patch("portal.backend.core.logging.find_project_root", return_value=tmp_path):
            assert _resolve_log_path("logs/system.jsonl") == tmp_path / "logs" / "system.jsonl"


class TestRedactSecrets:
    def test_masks_top_level_keys(self):
        event = redact_secrets(None, "info", {"event": "Login", "password": "hunter2", "email": "a@b.test"})
        assert event == {"event": "Login", "password": "[REDACTED]", "email": "a@b.test"}

    def test_masks_inside_extra(self):
        event = redact_secrets(
            None,
            "info",
            {"event": "Charging", "extra": {"source_id": "cnon:card-nonce-ok", "Access_Token": "shpat_x", "amount": 100}},
        )
        assert event["extra"] == {"source_id": "[REDACTED]", "Access_Token": "[REDACTED]", "amount": 100}

    def test_empty_values_left_alone(self):
        event = redact_secrets(None, "info", {"event": "Setup", "invite_token": None})
        assert event["invite_token"] is None
