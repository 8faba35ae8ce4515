"""Test fixtures for Tensor Explorer."""

import json
import logging
import struct
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from tensor_explorer.catalog.builder import Catalog, CatalogBuilder
from tensor_explorer.core.types import DType, FileFormat, MetadataRecord, SourceFile, TensorRecord
from tensor_explorer.navigation.engine import NavigationEngine
from tensor_explorer.observability.logging import ROOT_LOGGER

F32_BYTES = 4


def _gguf_string(text: str) -> bytes:
    data = text.encode("utf-8")
    return struct.pack("<Q", len(data)) + data


def _gguf_value(value_type: int, value: Any) -> bytes:
    """Encode one GGUF metadata value (arrays as (item_type, items))."""
    scalar = {0: "<B", 1: "<b", 2: "<H", 3: "<h", 4: "<I", 5: "<i", 6: "<f", 7: "<?", 10: "<Q", 11: "<q", 12: "<d"}
    if value_type == 8:
        return _gguf_string(value)
    if value_type == 9:
        item_type, items = value
        out = struct.pack("<I", item_type) + struct.pack("<Q", len(items))
        for item in items:
            out += _gguf_value(item_type, item)
        return out
    return struct.pack(scalar[value_type], value)


def build_gguf(
    tensors: list[tuple[str, tuple[int, ...], int]],
    metadata: list[tuple[str, int, Any]] | None = None,
    *,
    version: int = 3,
) -> bytes:
    """Assemble a GGUF header with tensor infos and no tensor data."""
    metadata = metadata or []
    out = b"GGUF"
    out += struct.pack("<I", version)
    out += struct.pack("<Q", len(tensors))
    out += struct.pack("<Q", len(metadata))
    for key, value_type, value in metadata:
        out += _gguf_string(key) + struct.pack("<I", value_type) + _gguf_value(value_type, value)
    offset = 0
    for name, dims, type_id in tensors:
        out += _gguf_string(name)
        out += struct.pack("<I", len(dims))
        for d in dims:
            out += struct.pack("<Q", d)
        out += struct.pack("<I", type_id)
        out += struct.pack("<Q", offset)
        offset += 32
    return out


def build_safetensors(
    tensors: dict[str, tuple[str, list[int]]],
    metadata: dict[str, str] | None = None,
) -> bytes:
    """Assemble a safetensors file with zero-filled F32-sized payloads.

    Byte sizes come from the element count times 4, whatever the dtype label.
    """
    header: dict[str, Any] = {}
    if metadata is not None:
        header["__metadata__"] = metadata
    offset = 0
    for name, (dtype, shape) in tensors.items():
        size = F32_BYTES
        for d in shape:
            size *= d
        header[name] = {"dtype": dtype, "shape": shape, "data_offsets": [offset, offset + size]}
        offset += size
    raw = json.dumps(header).encode("utf-8")
    return struct.pack("<Q", len(raw)) + raw + b"\x00" * offset


@pytest.fixture
def write_safetensors(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a synthetic .safetensors file under tmp_path."""

    def _write(name: str, tensors: dict[str, tuple[str, list[int]]], metadata: dict[str, str] | None = None) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_safetensors(tensors, metadata))
        return path

    return _write


@pytest.fixture
def write_gguf(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a synthetic .gguf file under tmp_path."""

    def _write(
        name: str,
        tensors: list[tuple[str, tuple[int, ...], int]],
        metadata: list[tuple[str, int, Any]] | None = None,
        **kwargs: Any,
    ) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_gguf(tensors, metadata, **kwargs))
        return path

    return _write


def make_record(name: str, byte_size: int = 4, shape: tuple[int, ...] = (1,), source_index: int = 0) -> TensorRecord:
    """Tensor record with a made-up shape and size."""
    return TensorRecord(name=name, dtype=DType.F32, shape=shape, byte_size=byte_size, source_index=source_index)


def make_catalog(
    records: list[TensorRecord],
    metadata: list[MetadataRecord] | None = None,
    sources: list[SourceFile] | None = None,
) -> Catalog:
    """Finalized catalog built straight from records."""
    builder = CatalogBuilder(sources)
    for record in records:
        builder.insert(record)
    for meta in metadata or []:
        builder.add_metadata(meta)
    return builder.finalize()


@pytest.fixture
def block_catalog() -> Catalog:
    """Three tensors under block: 1088 bytes in total."""
    return make_catalog([
        make_record("block.0.weight", 512, (128,)),
        make_record("block.0.bias", 64, (16,)),
        make_record("block.1.weight", 512, (128,)),
    ])


@pytest.fixture
def collapsed_engine(block_catalog: Catalog) -> NavigationEngine:
    """Engine over block_catalog with every group collapsed."""
    return NavigationEngine(block_catalog, viewport_height=10, expand_top_level=False)


@pytest.fixture
def source_file(tmp_path: Path) -> SourceFile:
    """A safetensors source record (file not written)."""
    return SourceFile(path=tmp_path / "model.safetensors", format=FileFormat.SAFETENSORS)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo setup_logging so caplog sees records from every test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
