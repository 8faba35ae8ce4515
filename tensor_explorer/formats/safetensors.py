"""Tensor Explorer - Safetensors Header Reader.

Layout: little-endian uint64 header length, a JSON header of that length,
then the raw byte buffer. Only the header is read.
"""

from __future__ import annotations

import json
import struct
from pathlib import Path
from typing import IO, Any

from tensor_explorer.core.exceptions import FormatError
from tensor_explorer.core.types import DType, MetadataRecord, TensorRecord
from tensor_explorer.observability.logging import get_logger

log = get_logger("formats.safetensors")

METADATA_KEY = "__metadata__"
MAX_HEADER_SIZE = 100 * 1024 * 1024  # Same ceiling the safetensors library enforces

# Safetensors spellings that differ from the unified names
DTYPE_ALIASES = {
    "F8_E4M3FN": DType.F8_E4M3,
    "F8_E5M2FNUZ": DType.F8_E5M2,
    "F8_E4M3FNUZ": DType.F8_E4M3,
}


class DuplicateKeyError(ValueError):
    """A JSON object in the header repeats a key."""


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise DuplicateKeyError(key)
        obj[key] = value
    return obj


class SafetensorsReader:
    """Reads tensor metadata from a .safetensors header."""

    @staticmethod
    def _read_uint64(f: IO[bytes]) -> int:
        """Read uint64 with EOF detection."""
        data = f.read(8)
        if len(data) < 8:
            msg = f"Unexpected EOF reading header length (got {len(data)}/8 bytes)"
            raise ValueError(msg)
        return int(struct.unpack("<Q", data)[0])

    def read_header(self, path: Path) -> tuple[dict[str, Any], int]:
        """Return the decoded JSON header and the size of the data buffer."""
        try:
            file_size = path.stat().st_size
            with path.open("rb") as f:
                header_size = self._read_uint64(f)
                if header_size > MAX_HEADER_SIZE:
                    msg = f"header too large ({header_size} bytes)"
                    raise FormatError(path, msg)
                if header_size + 8 > file_size:
                    msg = f"truncated header ({file_size - 8}/{header_size} bytes)"
                    raise FormatError(path, msg)
                raw = f.read(header_size)
        except OSError as e:
            raise FormatError(path, str(e)) from e
        except ValueError as e:
            raise FormatError(path, str(e)) from e

        try:
            header = json.loads(raw.decode("utf-8"), object_pairs_hook=_reject_duplicates)
        except DuplicateKeyError as e:
            raise FormatError(path, f"duplicate key '{e}' in JSON header") from e
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError(path, f"invalid JSON header: {e}") from e

        if not isinstance(header, dict):
            raise FormatError(path, "header is not a JSON object")

        return header, file_size - 8 - header_size

    @staticmethod
    def _parse_dtype(path: Path, name: str, value: Any) -> DType:  # noqa: ANN401
        if not isinstance(value, str):
            raise FormatError(path, f"tensor '{name}' has no dtype")
        upper = value.upper()
        if upper in DTYPE_ALIASES:
            return DTYPE_ALIASES[upper]
        try:
            return DType(upper)
        except ValueError:
            raise FormatError(path, f"tensor '{name}' has unknown dtype {value}") from None

    @staticmethod
    def _parse_shape(path: Path, name: str, value: Any) -> tuple[int, ...]:  # noqa: ANN401
        if not isinstance(value, list) or not all(
            isinstance(d, int) and not isinstance(d, bool) and d >= 0 for d in value
        ):
            raise FormatError(path, f"tensor '{name}' has invalid shape {value!r}")
        return tuple(value)

    def list_tensors(self, path: Path, source_index: int = 0) -> list[TensorRecord]:
        """Return tensor records in header order."""
        path = Path(path)
        header, buffer_size = self.read_header(path)

        records = []
        for name, entry in header.items():
            if name == METADATA_KEY:
                continue
            if not isinstance(entry, dict):
                raise FormatError(path, f"tensor '{name}' entry is not an object")

            dtype = self._parse_dtype(path, name, entry.get("dtype"))
            shape = self._parse_shape(path, name, entry.get("shape"))

            offsets = entry.get("data_offsets")
            if (
                not isinstance(offsets, list)
                or len(offsets) != 2
                or not all(isinstance(o, int) and o >= 0 for o in offsets)
                or offsets[1] < offsets[0]
            ):
                raise FormatError(path, f"tensor '{name}' has invalid data_offsets {offsets!r}")
            if offsets[1] > buffer_size:
                msg = f"tensor '{name}' ends at {offsets[1]} past data buffer of {buffer_size} bytes"
                raise FormatError(path, msg)

            records.append(
                TensorRecord(
                    name=name,
                    dtype=dtype,
                    shape=shape,
                    byte_size=offsets[1] - offsets[0],
                    source_index=source_index,
                )
            )

        log.debug(f"{path.name}: {len(records)} tensors")
        return records

    def list_metadata(self, path: Path, source_index: int = 0) -> list[MetadataRecord]:
        """Return the free-form __metadata__ string map."""
        path = Path(path)
        header, _ = self.read_header(path)
        raw = header.get(METADATA_KEY) or {}
        if not isinstance(raw, dict):
            raise FormatError(path, f"{METADATA_KEY} is not an object")
        return [
            MetadataRecord(key=str(k), value=str(v), value_type="string", source_index=source_index)
            for k, v in raw.items()
        ]
