"""Tensor Explorer - Format Reader Contract.

Every container format implements the same two-method capability and is
selected by the file format tagged at resolution time.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from tensor_explorer.core.exceptions import UnsupportedFormatError
from tensor_explorer.core.types import (
    FileFormat,
    MetadataRecord,
    SourceContents,
    SourceFile,
    TensorRecord,
)


@runtime_checkable
class FormatReader(Protocol):
    """Metadata-only reader for one checkpoint format."""

    def list_tensors(self, path: Path, source_index: int = 0) -> list[TensorRecord]:
        """Return tensor records in file order. Raises FormatError."""
        ...

    def list_metadata(self, path: Path, source_index: int = 0) -> list[MetadataRecord]:
        """Return header key/value entries (may be empty). Raises FormatError."""
        ...


def get_reader(fmt: FileFormat) -> FormatReader:
    """Get the reader for a file format."""
    # Local imports keep format modules independent of each other
    if fmt is FileFormat.SAFETENSORS:
        from tensor_explorer.formats.safetensors import SafetensorsReader
        return SafetensorsReader()
    if fmt is FileFormat.GGUF:
        from tensor_explorer.formats.gguf import GGUFReader
        return GGUFReader()
    raise UnsupportedFormatError(str(fmt))


def read_source(source: SourceFile, source_index: int, *, with_metadata: bool = True) -> SourceContents:
    """Extract tensors (and optionally metadata) from one resolved source."""
    reader = get_reader(source.format)
    contents = SourceContents(source=source)
    contents.tensors = reader.list_tensors(source.path, source_index)
    if with_metadata:
        contents.metadata = reader.list_metadata(source.path, source_index)
    return contents
