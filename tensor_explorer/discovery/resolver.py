"""Tensor Explorer - Source Resolution.

Expands command line arguments (files, directories, glob patterns and
sharded-checkpoint index manifests) into an ordered list of source files.
"""

from __future__ import annotations

import glob
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from tensor_explorer.core.exceptions import IndexManifestError, ResolutionError
from tensor_explorer.core.types import FileFormat, SourceFile
from tensor_explorer.observability.logging import get_logger

log = get_logger("resolver")

INDEX_SUFFIX = ".index.json"


class SafetensorsIndex(BaseModel):
    """Sharded checkpoint index (``model.safetensors.index.json``)."""

    metadata: dict[str, Any] = Field(default_factory=dict)
    weight_map: dict[str, str]

    def shard_files(self) -> list[str]:
        """Unique shard file names in sorted order."""
        return sorted(set(self.weight_map.values()))


def load_index(path: Path) -> SafetensorsIndex:
    """Parse and validate an index manifest."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise IndexManifestError(path, str(e)) from e
    except json.JSONDecodeError as e:
        raise IndexManifestError(path, f"invalid JSON: {e}") from e

    try:
        return SafetensorsIndex.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise IndexManifestError(path, errors) from e


def is_index_file(path: Path) -> bool:
    """Check if a path names an index manifest."""
    return path.name.endswith(INDEX_SUFFIX)


@dataclass
class SourceResolver:
    """Resolves user arguments to concrete checkpoint files."""

    recursive: bool = False
    index_filename: str = "model.safetensors.index.json"

    # Tensor name -> shard file name, merged from every manifest seen
    weight_map: dict[str, str] = field(default_factory=dict)

    def resolve(self, arguments: list[str]) -> list[SourceFile]:
        """Resolve arguments to a sorted, de-duplicated list of sources.

        Raises:
            ResolutionError: if nothing usable was found
        """
        if not arguments:
            msg = "Please specify one or more SafeTensors or GGUF files or directories to explore."
            raise ResolutionError(msg)

        found: dict[Path, SourceFile] = {}
        for argument in arguments:
            for source in self._resolve_argument(argument):
                key = source.path.resolve()
                if key not in found:
                    found[key] = source

        if not found:
            msg = "No SafeTensors or GGUF files found in the specified paths."
            raise ResolutionError(msg)

        sources = sorted(found.values(), key=lambda s: str(s.path))
        log.info(f"Resolved {len(sources)} source file(s)")
        return sources

    def _resolve_argument(self, argument: str) -> list[SourceFile]:
        if glob.has_magic(argument):
            matches = sorted(glob.glob(argument, recursive=True))
            if not matches:
                log.warning(f"Pattern matched nothing: {argument}")
            paths = [Path(m) for m in matches]
        else:
            paths = [Path(argument)]

        sources: list[SourceFile] = []
        for path in paths:
            if not path.exists():
                log.warning(f"Path does not exist: {path}")
                continue
            if path.is_dir():
                sources.extend(self._resolve_directory(path))
            elif is_index_file(path):
                sources.extend(self._resolve_index(path))
            else:
                fmt = FileFormat.from_path(path)
                if fmt is None:
                    log.warning(f"Skipping unsupported file: {path}")
                    continue
                sources.append(SourceFile(path=path, format=fmt))
        return sources

    def _resolve_directory(self, directory: Path) -> list[SourceFile]:
        """Prefer the directory's index manifest; otherwise scan for files."""
        index_path = directory / self.index_filename
        if index_path.exists():
            log.info(f"Using index manifest {index_path}")
            return self._resolve_index(index_path)

        pattern = "**/*" if self.recursive else "*"
        sources = []
        for fmt in FileFormat:
            for path in sorted(directory.glob(f"{pattern}.{fmt.value}")):
                if path.is_file():
                    sources.append(SourceFile(path=path, format=fmt))

        if not sources:
            log.warning(f"No checkpoint files in directory: {directory}")
        return sources

    def _resolve_index(self, index_path: Path) -> list[SourceFile]:
        """Load only the shards a manifest references."""
        index = load_index(index_path)

        sources = []
        for shard in index.shard_files():
            shard_path = index_path.parent / shard
            if not shard_path.exists():
                msg = f"Shard {shard} referenced by {index_path} does not exist"
                raise ResolutionError(msg)
            fmt = FileFormat.from_path(shard_path) or FileFormat.SAFETENSORS
            sources.append(SourceFile(path=shard_path, format=fmt, manifest=index_path))

        self.weight_map.update(index.weight_map)
        log.debug(f"{index_path.name}: {len(index.weight_map)} tensors in {len(sources)} shards")
        return sources
