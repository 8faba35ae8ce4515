"""Tensor Explorer - Custom Exceptions.

Hierarchical exception system for clean error handling.
"""

from __future__ import annotations

from pathlib import Path


class TensorExplorerError(Exception):
    """Base exception for all Tensor Explorer errors."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(TensorExplorerError):
    """Configuration-related errors."""


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Config file not found: {path}", code="CONFIG_NOT_FOUND")
        self.path = Path(path)


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""


# =============================================================================
# Format Errors
# =============================================================================

class FormatError(TensorExplorerError):
    """Malformed, truncated or unsupported checkpoint file."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Failed to parse {path}: {reason}", code="FORMAT_ERROR")
        self.path = Path(path)
        self.reason = reason


class UnsupportedFormatError(FormatError):
    """No reader is registered for this file."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(path, "unsupported file format")
        self.code = "UNSUPPORTED_FORMAT"


# =============================================================================
# Catalog Errors
# =============================================================================

class NameConflictError(TensorExplorerError):
    """Two tensors claim the same place in the name hierarchy."""

    def __init__(self, name: str, reason: str, *, source: Path | str | None = None) -> None:
        location = f" (from {source})" if source else ""
        super().__init__(f"Name conflict at '{name}'{location}: {reason}", code="NAME_CONFLICT")
        self.name = name
        self.reason = reason
        self.source = Path(source) if source else None


NameConflict = NameConflictError


# =============================================================================
# Resolution Errors
# =============================================================================

class ResolutionError(TensorExplorerError):
    """Arguments did not resolve to any usable checkpoint file."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NO_SOURCES")


class IndexManifestError(ResolutionError):
    """Sharded checkpoint index could not be used."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Invalid index manifest {path}: {reason}")
        self.code = "INDEX_MANIFEST"
        self.path = Path(path)
        self.reason = reason
