"""Tensor Explorer - Simple Configuration.

Flat YAML config; every value can be overridden from the command line.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tensor_explorer.core.exceptions import ConfigNotFoundError, ConfigValidationError
from tensor_explorer.observability.logging import get_logger

log = get_logger("config")

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
FORMAT_ERROR_POLICIES = ("abort", "skip")


@dataclass
class Config:
    """Tensor Explorer configuration."""

    # Logging
    log_level: str = "warning"
    log_file: Path | None = None

    # Source resolution
    recursive: bool = False
    index_filename: str = "model.safetensors.index.json"
    on_format_error: str = "abort"  # "abort" | "skip"

    # Browser
    show_metadata: bool = True
    expand_top_level: bool = True

    @classmethod
    def search_paths(cls) -> list[Path]:
        """Default config locations, most specific first."""
        return [
            Path("tensor-explorer.yaml"),
            Path("config/tensor-explorer.yaml"),
            Path.home() / ".config" / "tensor-explorer" / "config.yaml",
        ]

    @classmethod
    def load(cls, path: Path | str | None = None) -> Config:
        """Load config from YAML file.

        An explicitly requested file must exist; default locations are optional.
        """
        if path:
            explicit = Path(path)
            if not explicit.exists():
                raise ConfigNotFoundError(explicit)
            search = [explicit]
        else:
            search = cls.search_paths()

        config_file = None
        for p in search:
            if p.exists():
                config_file = p
                break

        if config_file:
            log.info(f"Loading config from {config_file}")
            with open(config_file, encoding="utf-8") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    msg = f"Invalid YAML in {config_file}: {e}"
                    raise ConfigValidationError(msg) from e
            if not isinstance(data, dict):
                msg = f"Config {config_file} must be a mapping, got {type(data).__name__}"
                raise ConfigValidationError(msg)
            return cls._from_dict(data)

        log.debug("No config file found, using defaults")
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Config:
        """Create Config from dictionary."""
        config = cls()

        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                log.warning(f"Ignoring unknown config key: {key}")

        if "log_level" in data:
            config.log_level = str(data["log_level"]).lower()
        if "log_file" in data:
            config.log_file = Path(data["log_file"]) if data["log_file"] else None

        if "recursive" in data:
            config.recursive = bool(data["recursive"])
        if "index_filename" in data:
            config.index_filename = str(data["index_filename"])
        if "on_format_error" in data:
            config.on_format_error = str(data["on_format_error"]).lower()

        if "show_metadata" in data:
            config.show_metadata = bool(data["show_metadata"])
        if "expand_top_level" in data:
            config.expand_top_level = bool(data["expand_top_level"])

        return config

    def validate(self) -> list[str]:
        """Validate config. Returns list of warnings."""
        warnings = []

        if self.log_level not in LOG_LEVELS:
            warnings.append(f"Invalid log_level: {self.log_level}")

        if self.on_format_error not in FORMAT_ERROR_POLICIES:
            warnings.append(
                f"Invalid on_format_error: {self.on_format_error} "
                f"(expected one of {', '.join(FORMAT_ERROR_POLICIES)})"
            )

        if not self.index_filename.endswith(".json"):
            warnings.append(f"index_filename should be a .json file: {self.index_filename}")

        return warnings

    @property
    def skip_bad_sources(self) -> bool:
        """Best-effort loading: skip sources that fail to parse."""
        return self.on_format_error == "skip"
