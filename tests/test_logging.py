"""Tests for logging configuration."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from fiscal_assistant.logging import configure_logging, get_logger
from loguru._logger import Logger


def test_get_logger_returns_logger() -> None:
    """Test that get_logger returns a Logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, Logger)


def test_get_logger_with_different_names() -> None:
    """Test that get_logger works with different module names."""
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")

    assert isinstance(logger1, Logger)
    assert isinstance(logger2, Logger)


@patch("fiscal_assistant.logging.settings")
def test_configure_logging_creates_log_directory(mock_settings: MagicMock) -> None:
    """Test that configuring logging creates the log directory if it doesn't exist."""
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = Path(temp_dir) / "test_logs"
        mock_settings.log_dir = str(log_dir)
        mock_settings.log_level = "INFO"

        # Directory shouldn't exist initially
        assert not log_dir.exists()

        configure_logging(force=True)

        assert log_dir.exists()
        assert log_dir.is_dir()

        # Clean up logger handlers to release file locks
        from loguru import logger as loguru_logger

        loguru_logger.remove()


@patch("fiscal_assistant.logging.settings")
def test_errors_reach_error_log(mock_settings: MagicMock) -> None:
    """Test that ERROR records land in errors.log."""
    with tempfile.TemporaryDirectory() as temp_dir:
        mock_settings.log_dir = temp_dir
        mock_settings.log_level = "DEBUG"

        configure_logging(force=True)
        logger = get_logger("test_module")
        logger.error("emission failed for tenant=t1")

        content = (Path(temp_dir) / "errors.log").read_text(encoding="utf-8")

        from loguru import logger as loguru_logger

        loguru_logger.remove()

        assert "emission failed for tenant=t1" in content
