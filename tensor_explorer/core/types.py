"""Tensor Explorer - Shared Type Definitions.

Contains the records produced by format readers and consumed by the catalog.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class FileFormat(str, Enum):
    """Checkpoint container formats."""
    SAFETENSORS = "safetensors"
    GGUF = "gguf"

    @classmethod
    def from_path(cls, path: Path | str) -> FileFormat | None:
        """Detect format by file extension."""
        suffix = Path(path).suffix.lower().lstrip(".")
        for fmt in cls:
            if fmt.value == suffix:
                return fmt
        return None


class DType(str, Enum):
    """Unified scalar and quantized element types.

    Safetensors names and GGML type names share one namespace; plain types
    that exist in both (F32, F16, BF16, I8...) map to a single member.
    """

    # Plain types
    BOOL = "BOOL"
    U8 = "U8"
    I8 = "I8"
    U16 = "U16"
    I16 = "I16"
    U32 = "U32"
    I32 = "I32"
    U64 = "U64"
    I64 = "I64"
    F16 = "F16"
    BF16 = "BF16"
    F32 = "F32"
    F64 = "F64"
    F8_E4M3 = "F8_E4M3"
    F8_E5M2 = "F8_E5M2"
    F8_E8M0 = "F8_E8M0"
    F6_E2M3 = "F6_E2M3"
    F6_E3M2 = "F6_E3M2"
    F4 = "F4"

    # GGML block quantizations
    Q4_0 = "Q4_0"
    Q4_1 = "Q4_1"
    Q5_0 = "Q5_0"
    Q5_1 = "Q5_1"
    Q8_0 = "Q8_0"
    Q8_1 = "Q8_1"
    Q2_K = "Q2_K"
    Q3_K = "Q3_K"
    Q4_K = "Q4_K"
    Q5_K = "Q5_K"
    Q6_K = "Q6_K"
    Q8_K = "Q8_K"
    IQ2_XXS = "IQ2_XXS"
    IQ2_XS = "IQ2_XS"
    IQ3_XXS = "IQ3_XXS"
    IQ1_S = "IQ1_S"
    IQ4_NL = "IQ4_NL"
    IQ3_S = "IQ3_S"
    IQ2_S = "IQ2_S"
    IQ4_XS = "IQ4_XS"
    IQ1_M = "IQ1_M"
    TQ1_0 = "TQ1_0"
    TQ2_0 = "TQ2_0"
    MXFP4 = "MXFP4"

    @property
    def is_quantized(self) -> bool:
        """Check if this is a block-quantized GGML type."""
        return list(DType).index(self) >= list(DType).index(DType.Q4_0)


@dataclass(frozen=True)
class TensorRecord:
    """Metadata for one tensor; payload bytes are never read."""
    name: str
    dtype: DType
    shape: tuple[int, ...]
    byte_size: int
    source_index: int = 0

    @property
    def num_elements(self) -> int:
        """Element count (1 for scalars)."""
        return math.prod(self.shape)


@dataclass(frozen=True)
class MetadataRecord:
    """One GGUF key/value header entry, rendered for display."""
    key: str
    value: str
    value_type: str
    source_index: int = 0


@dataclass(frozen=True)
class SourceFile:
    """A resolved checkpoint file tagged with its format."""
    path: Path
    format: FileFormat
    manifest: Path | None = None

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class SourceContents:
    """Everything a reader extracted from one source file."""
    source: SourceFile
    tensors: list[TensorRecord] = field(default_factory=list)
    metadata: list[MetadataRecord] = field(default_factory=list)
