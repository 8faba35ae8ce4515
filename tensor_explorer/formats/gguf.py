"""Tensor Explorer - GGUF Header Reader.

Parses the key/value section and tensor info table of GGUF v2/v3 files.
Tensor data is never touched; byte sizes come from the GGML type table.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import IO, Any, ClassVar

from tensor_explorer.core.exceptions import FormatError
from tensor_explorer.core.types import DType, MetadataRecord, TensorRecord
from tensor_explorer.observability.logging import get_logger

log = get_logger("formats.gguf")

GGUF_MAGIC = b"GGUF"
SUPPORTED_VERSIONS = (2, 3)
MAX_STRING_LENGTH = 64 * 1024 * 1024
MAX_TENSOR_COUNT = 10_000_000
MAX_DIMS = 8
ARRAY_PREVIEW_ITEMS = 16


class GGUFValueType(IntEnum):
    """GGUF metadata value types."""
    UINT8 = 0
    INT8 = 1
    UINT16 = 2
    INT16 = 3
    UINT32 = 4
    INT32 = 5
    FLOAT32 = 6
    BOOL = 7
    STRING = 8
    ARRAY = 9
    UINT64 = 10
    INT64 = 11
    FLOAT64 = 12


class GGUFConstants:
    """GGUF binary format constants."""

    SCALAR_FORMATS: ClassVar[dict[int, str]] = {
        GGUFValueType.UINT8: "<B",
        GGUFValueType.INT8: "<b",
        GGUFValueType.UINT16: "<H",
        GGUFValueType.INT16: "<h",
        GGUFValueType.UINT32: "<I",
        GGUFValueType.INT32: "<i",
        GGUFValueType.FLOAT32: "<f",
        GGUFValueType.BOOL: "<?",
        GGUFValueType.UINT64: "<Q",
        GGUFValueType.INT64: "<q",
        GGUFValueType.FLOAT64: "<d",
    }

    # GGML type id -> (unified dtype, elements per block, bytes per block)
    GGML_TYPES: ClassVar[dict[int, tuple[DType, int, int]]] = {
        0: (DType.F32, 1, 4),
        1: (DType.F16, 1, 2),
        2: (DType.Q4_0, 32, 18),
        3: (DType.Q4_1, 32, 20),
        6: (DType.Q5_0, 32, 22),
        7: (DType.Q5_1, 32, 24),
        8: (DType.Q8_0, 32, 34),
        9: (DType.Q8_1, 32, 40),
        10: (DType.Q2_K, 256, 84),
        11: (DType.Q3_K, 256, 110),
        12: (DType.Q4_K, 256, 144),
        13: (DType.Q5_K, 256, 176),
        14: (DType.Q6_K, 256, 210),
        15: (DType.Q8_K, 256, 292),
        16: (DType.IQ2_XXS, 256, 66),
        17: (DType.IQ2_XS, 256, 74),
        18: (DType.IQ3_XXS, 256, 98),
        19: (DType.IQ1_S, 256, 50),
        20: (DType.IQ4_NL, 32, 18),
        21: (DType.IQ3_S, 256, 110),
        22: (DType.IQ2_S, 256, 82),
        23: (DType.IQ4_XS, 256, 136),
        24: (DType.I8, 1, 1),
        25: (DType.I16, 1, 2),
        26: (DType.I32, 1, 4),
        27: (DType.I64, 1, 8),
        28: (DType.F64, 1, 8),
        29: (DType.IQ1_M, 256, 56),
        30: (DType.BF16, 1, 2),
        34: (DType.TQ1_0, 256, 54),
        35: (DType.TQ2_0, 256, 66),
        39: (DType.MXFP4, 32, 17),
    }


def ggml_byte_size(type_id: int, num_elements: int) -> int:
    """Storage size for num_elements of a GGML type, rounded up to whole blocks."""
    _, block_size, type_size = GGUFConstants.GGML_TYPES[type_id]
    return math.ceil(num_elements / block_size) * type_size


@dataclass
class GGUFHeader:
    """Decoded GGUF header (metadata values already rendered for display)."""
    version: int
    tensor_count: int
    metadata: list[tuple[str, str, str]] = field(default_factory=list)
    tensors: list[tuple[str, tuple[int, ...], int, int]] = field(default_factory=list)


class GGUFReader:
    """Reads tensor info and metadata from a .gguf file."""

    def __init__(self) -> None:
        """Initialize the reader with an empty per-path cache."""
        self._cache: dict[Path, GGUFHeader] = {}

    @staticmethod
    def _read_exact(f: IO[bytes], size: int, what: str) -> bytes:
        data = f.read(size)
        if len(data) < size:
            msg = f"Unexpected EOF reading {what} (got {len(data)}/{size} bytes)"
            raise ValueError(msg)
        return data

    @classmethod
    def _read_uint64(cls, f: IO[bytes]) -> int:
        """Read uint64 with EOF detection."""
        return int(struct.unpack("<Q", cls._read_exact(f, 8, "uint64"))[0])

    @classmethod
    def _read_uint32(cls, f: IO[bytes]) -> int:
        """Read uint32 with EOF detection."""
        return int(struct.unpack("<I", cls._read_exact(f, 4, "uint32"))[0])

    def _read_string(self, f: IO[bytes]) -> str:
        """Read GGUF string (uint64 length + UTF-8 bytes)."""
        length = self._read_uint64(f)
        if length > MAX_STRING_LENGTH:
            msg = f"String length {length} exceeds limit"
            raise ValueError(msg)
        if length == 0:
            return ""
        return self._read_exact(f, length, "string").decode("utf-8", errors="replace")

    def _read_scalar(self, f: IO[bytes], value_type: int) -> Any:  # noqa: ANN401
        fmt = GGUFConstants.SCALAR_FORMATS[value_type]
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self._read_exact(f, size, GGUFValueType(value_type).name))[0]

    def _read_value(self, f: IO[bytes], value_type: int) -> Any:  # noqa: ANN401
        """Read typed value."""
        if value_type == GGUFValueType.STRING:
            return self._read_string(f)
        if value_type == GGUFValueType.ARRAY:
            return self._read_array(f)
        if value_type in GGUFConstants.SCALAR_FORMATS:
            return self._read_scalar(f, value_type)
        msg = f"Unknown value type: {value_type}"
        raise ValueError(msg)

    def _read_array(self, f: IO[bytes]) -> tuple[list[Any], int]:
        """Read an array, keeping only a display preview of its items."""
        arr_type = self._read_uint32(f)
        arr_len = self._read_uint64(f)

        preview = []
        for i in range(arr_len):
            value = self._read_value(f, arr_type)
            if i < ARRAY_PREVIEW_ITEMS:
                preview.append(value)
        return preview, arr_len

    @staticmethod
    def _type_name(value_type: int) -> str:
        if value_type == GGUFValueType.ARRAY:
            return "array"
        return GGUFValueType(value_type).name.lower()

    @classmethod
    def render_value(cls, value: Any) -> str:  # noqa: ANN401
        """Render a metadata value for display."""
        if isinstance(value, tuple):
            items, total = value
            rendered = ", ".join(cls.render_value(v) for v in items)
            if total > len(items):
                return f"[{rendered}, ... ({total} items)]"
            return f"[{rendered}]"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return f"{value:g}"
        return str(value)

    def _parse(self, path: Path) -> GGUFHeader:
        if path in self._cache:
            return self._cache[path]

        try:
            with path.open("rb") as f:
                if f.read(4) != GGUF_MAGIC:
                    raise FormatError(path, "missing GGUF magic")

                version = self._read_uint32(f)
                if version not in SUPPORTED_VERSIONS:
                    raise FormatError(path, f"unsupported GGUF version {version}")

                tensor_count = self._read_uint64(f)
                metadata_count = self._read_uint64(f)
                if tensor_count > MAX_TENSOR_COUNT:
                    raise FormatError(path, f"implausible tensor count {tensor_count}")

                log.debug(f"GGUF v{version}: {tensor_count} tensors, {metadata_count} metadata")

                header = GGUFHeader(version=version, tensor_count=tensor_count)

                for _ in range(metadata_count):
                    key = self._read_string(f)
                    val_type = self._read_uint32(f)
                    value = self._read_value(f, val_type)
                    header.metadata.append(
                        (key, self.render_value(value), self._type_name(val_type))
                    )

                for _ in range(tensor_count):
                    name = self._read_string(f)
                    n_dims = self._read_uint32(f)
                    if n_dims > MAX_DIMS:
                        raise FormatError(path, f"tensor '{name}' has {n_dims} dimensions")
                    dims = tuple(self._read_uint64(f) for _ in range(n_dims))
                    type_id = self._read_uint32(f)
                    offset = self._read_uint64(f)
                    if type_id not in GGUFConstants.GGML_TYPES:
                        raise FormatError(path, f"tensor '{name}' has unknown GGML type {type_id}")
                    header.tensors.append((name, dims, type_id, offset))

        except OSError as e:
            raise FormatError(path, str(e)) from e
        except ValueError as e:
            raise FormatError(path, str(e)) from e

        self._cache[path] = header
        return header

    def list_tensors(self, path: Path, source_index: int = 0) -> list[TensorRecord]:
        """Return tensor records in tensor-info order.

        Shapes are reported in GGUF storage order (innermost dimension first).
        """
        path = Path(path)
        header = self._parse(path)

        records = []
        for name, dims, type_id, _offset in header.tensors:
            dtype = GGUFConstants.GGML_TYPES[type_id][0]
            records.append(
                TensorRecord(
                    name=name,
                    dtype=dtype,
                    shape=dims,
                    byte_size=ggml_byte_size(type_id, math.prod(dims)),
                    source_index=source_index,
                )
            )

        log.debug(f"{path.name}: {len(records)} tensors")
        return records

    def list_metadata(self, path: Path, source_index: int = 0) -> list[MetadataRecord]:
        """Return the header key/value entries in file order."""
        path = Path(path)
        header = self._parse(path)
        return [
            MetadataRecord(key=key, value=value, value_type=value_type, source_index=source_index)
            for key, value, value_type in header.metadata
        ]
