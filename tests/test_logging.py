"""Tests for logging setup."""

import json
import logging
from pathlib import Path

from tensor_explorer.observability.logging import (
    ROOT_LOGGER,
    ExplorerFormatter,
    get_logger,
    mute_console,
    restore_console,
    setup_logging,
)


def _record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("tensor_explorer.test", level, __file__, 1, message, None, None)


class TestFormatter:
    """Test console and JSON formatting."""

    def test_plain_console(self) -> None:
        """Test the uncolored console layout."""
        formatter = ExplorerFormatter(include_timestamp=False, use_color=False)
        assert formatter.format(_record("hello")) == "   INFO | hello"

    def test_colored_console(self) -> None:
        """Test warnings are colored."""
        formatter = ExplorerFormatter(include_timestamp=False, use_color=True)
        text = formatter.format(_record("careful", logging.WARNING))
        assert "\033[33m" in text
        assert text.endswith("| careful")

    def test_json(self) -> None:
        """Test JSON output fields."""
        formatter = ExplorerFormatter(json_output=True, include_timestamp=False)
        data = json.loads(formatter.format(_record("structured")))
        assert data == {"level": "INFO", "message": "structured", "logger": "tensor_explorer.test"}

    def test_json_timestamp(self) -> None:
        """Test JSON output carries a timestamp by default."""
        data = json.loads(ExplorerFormatter(json_output=True).format(_record("x")))
        assert "timestamp" in data


class TestSetupLogging:
    """Test handler configuration."""

    def test_level_and_handlers(self) -> None:
        """Test level, single console handler and no propagation."""
        logger = setup_logging(level="info")
        assert logger.name == ROOT_LOGGER
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_unknown_level_falls_back(self) -> None:
        """Test an unknown level name falls back to WARNING."""
        assert setup_logging(level="chatty").level == logging.WARNING

    def test_file_handler_writes_json(self, tmp_path: Path) -> None:
        """Test the log file receives JSON lines."""
        log_file = tmp_path / "logs" / "explorer.jsonl"
        logger = setup_logging(level="debug", log_file=log_file)
        get_logger("catalog").info("loaded")
        for handler in logger.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "loaded"

    def test_get_logger_prefix(self) -> None:
        """Test child loggers are prefixed."""
        assert get_logger("resolver").name == "tensor_explorer.resolver"
        assert get_logger().name == ROOT_LOGGER


class TestMuteConsole:
    """Test detaching console output while the terminal UI runs."""

    def test_mute_keeps_file_handler(self, tmp_path: Path) -> None:
        """Test muting removes only console handlers and restore puts them back."""
        logger = setup_logging(log_file=tmp_path / "x.log")
        muted = mute_console()
        assert len(muted) == 1
        assert all(isinstance(h, logging.FileHandler) for h in logger.handlers)

        restore_console(muted)
        assert len(logger.handlers) == 2
