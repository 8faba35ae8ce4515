"""Tensor Explorer - Structured Logging.

Provides a unified logging interface with:
- Pretty console output on stderr (stdout belongs to the terminal UI)
- JSON lines for the optional log file
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_LOGGER = "tensor_explorer"


class ExplorerFormatter(logging.Formatter):
    """Custom formatter with optional JSON output."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        *,
        json_output: bool = False,
        include_timestamp: bool = True,
        use_color: bool = True,
    ) -> None:
        super().__init__()
        self.json_output = json_output
        self.include_timestamp = include_timestamp
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        """Format log record."""
        if self.json_output:
            log_dict: dict[str, Any] = {
                "level": record.levelname,
                "message": record.getMessage(),
                "logger": record.name,
            }
            if self.include_timestamp:
                log_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
            if record.exc_info:
                log_dict["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_dict)

        level = record.levelname
        if self.use_color:
            color = self.LEVEL_COLORS.get(level, "")
            level_text = f"{color}{level:>7}{self.RESET}"
        else:
            level_text = f"{level:>7}"

        prefix = f"{level_text} |"
        if self.include_timestamp:
            timestamp = datetime.now().strftime("%H:%M:%S")
            prefix = f"{timestamp} | {prefix}"

        message = record.getMessage()

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{prefix} {message}"


def setup_logging(
    level: str = "WARNING",
    json_output: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure Tensor Explorer logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON format on the console
        log_file: Optional file path for log output

    Returns:
        Root logger configured for Tensor Explorer
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root_logger.propagate = False

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        ExplorerFormatter(json_output=json_output, use_color=sys.stderr.isatty())
    )
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(ExplorerFormatter(json_output=True))
        root_logger.addHandler(file_handler)

    return root_logger


def mute_console(logger: logging.Logger | None = None) -> list[logging.Handler]:
    """Detach console handlers while curses owns the terminal.

    Returns the detached handlers so they can be restored afterwards.
    """
    logger = logger or logging.getLogger(ROOT_LOGGER)
    detached = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]
    for handler in detached:
        logger.removeHandler(handler)
    return detached


def restore_console(handlers: list[logging.Handler], logger: logging.Logger | None = None) -> None:
    """Re-attach handlers detached by mute_console."""
    logger = logger or logging.getLogger(ROOT_LOGGER)
    for handler in handlers:
        logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional module name (automatically prefixed with 'tensor_explorer.')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)
