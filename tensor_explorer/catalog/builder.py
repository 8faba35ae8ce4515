"""Tensor Explorer - Catalog Builder.

Merges tensor records from every source into one tree keyed by dotted name
segments. The finished Catalog is read-only for the rest of the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tensor_explorer.catalog.ordering import name_key
from tensor_explorer.catalog.tree import GroupNode, MetadataLeaf, TensorLeaf
from tensor_explorer.core.exceptions import FormatError, NameConflictError, ResolutionError
from tensor_explorer.core.types import MetadataRecord, SourceFile, TensorRecord
from tensor_explorer.formats.base import read_source
from tensor_explorer.observability.logging import get_logger

log = get_logger("catalog")

SEGMENT_DELIMITER = "."
METADATA_LABEL = "Metadata"


@dataclass
class Catalog:
    """Merged, finalized view of every tensor across all sources."""
    root: GroupNode
    metadata: GroupNode | None = None
    sources: list[SourceFile] = field(default_factory=list)
    weight_map: dict[str, str] = field(default_factory=dict)
    skipped: list[FormatError] = field(default_factory=list)

    @property
    def tensor_count(self) -> int:
        return self.root.tensor_count

    @property
    def total_bytes(self) -> int:
        return self.root.total_bytes

    @property
    def total_parameters(self) -> int:
        """Total element count over all tensors."""
        return sum(leaf.record.num_elements for leaf in self.root.iter_leaves())

    @property
    def title(self) -> str:
        if len(self.sources) == 1:
            return str(self.sources[0].path)
        return f"{len(self.sources)} files"

    def source_for(self, record: TensorRecord) -> SourceFile | None:
        """Source file a tensor was read from."""
        if 0 <= record.source_index < len(self.sources):
            return self.sources[record.source_index]
        return None

    def shard_for(self, record: TensorRecord) -> str | None:
        """Shard named for this tensor by an index manifest, if any."""
        return self.weight_map.get(record.name)

    def tensors(self) -> list[TensorLeaf]:
        """Every tensor leaf, in natural order of full name."""
        leaves = [leaf for leaf in self.root.iter_leaves() if isinstance(leaf, TensorLeaf)]
        return sorted(leaves, key=lambda leaf: name_key(leaf.record.name))


class CatalogBuilder:
    """Builds the catalog tree one record at a time."""

    def __init__(self, sources: list[SourceFile] | None = None) -> None:
        """Initialize an empty tree."""
        self.sources = list(sources or [])
        self.root = GroupNode(name="")
        self.metadata = GroupNode(name=METADATA_LABEL, path=(METADATA_LABEL,))
        self._finalized = False

    def _source_label(self, record: TensorRecord | MetadataRecord) -> Path | None:
        if 0 <= record.source_index < len(self.sources):
            return self.sources[record.source_index].path
        return None

    def insert(self, record: TensorRecord) -> TensorLeaf:
        """Attach a tensor under its dotted name.

        Raises:
            NameConflictError: if the name collides with an existing tensor or group
        """
        if self._finalized:
            msg = "Catalog already finalized"
            raise RuntimeError(msg)

        segments = record.name.split(SEGMENT_DELIMITER)
        source = self._source_label(record)

        # Validate the whole path before touching the tree
        node: GroupNode | None = self.root
        for depth, segment in enumerate(segments[:-1]):
            child = node.children.get(segment) if node else None
            if isinstance(child, TensorLeaf):
                prefix = SEGMENT_DELIMITER.join(segments[: depth + 1])
                raise NameConflictError(
                    record.name, f"'{prefix}' is already a tensor", source=source
                )
            node = child if isinstance(child, GroupNode) else None

        if node is not None:
            existing = node.children.get(segments[-1])
            if isinstance(existing, GroupNode):
                raise NameConflictError(
                    record.name,
                    f"already a group of {existing.tensor_count} tensor(s)",
                    source=source,
                )
            if isinstance(existing, TensorLeaf):
                first = self._source_label(existing.record)
                where = f" in {first}" if first else ""
                raise NameConflictError(
                    record.name, f"duplicate tensor, first seen{where}", source=source
                )

        # Create missing groups, keeping ancestor aggregates current
        group = self.root
        group.tensor_count += 1
        group.total_bytes += record.byte_size
        for depth, segment in enumerate(segments[:-1]):
            child = group.children.get(segment)
            if child is None:
                child = GroupNode(name=segment, path=tuple(segments[: depth + 1]))
                group.add_child(child)
            group = child  # type: ignore[assignment]
            group.tensor_count += 1
            group.total_bytes += record.byte_size

        leaf = TensorLeaf(name=segments[-1], record=record)
        group.add_child(leaf)
        return leaf

    def add_metadata(self, record: MetadataRecord) -> bool:
        """Add a header entry; a key already present is kept from its first source."""
        if record.key in self.metadata.children:
            log.debug(f"Metadata key {record.key} already loaded, keeping first value")
            return False
        self.metadata.add_child(MetadataLeaf(name=record.key, record=record))
        return True

    def finalize(self, weight_map: dict[str, str] | None = None) -> Catalog:
        """Recompute every aggregate bottom-up and freeze the tree."""
        self.root.recompute()
        self._finalized = True
        return Catalog(
            root=self.root,
            metadata=self.metadata if self.metadata.children else None,
            sources=self.sources,
            weight_map=dict(weight_map or {}),
        )


def load_catalog(
    sources: list[SourceFile],
    *,
    skip_errors: bool = False,
    with_metadata: bool = True,
    weight_map: dict[str, str] | None = None,
) -> Catalog:
    """Read every source eagerly and merge it into one catalog.

    Args:
        sources: Resolved source files, in insertion order
        skip_errors: Log and skip sources that fail to parse instead of aborting
        with_metadata: Also collect header key/value entries
        weight_map: Tensor name -> shard mapping from index manifests

    Raises:
        FormatError: a source failed to parse and skip_errors is False
        NameConflictError: two sources disagree about the name hierarchy
        ResolutionError: every source was skipped
    """
    builder = CatalogBuilder(sources)
    skipped: list[FormatError] = []

    for idx, source in enumerate(sources):
        try:
            contents = read_source(source, idx, with_metadata=with_metadata)
        except FormatError as e:
            if not skip_errors:
                raise
            log.warning(f"Skipping {source.path}: {e.reason}")
            skipped.append(e)
            continue

        for record in contents.tensors:
            builder.insert(record)
        for meta in contents.metadata:
            builder.add_metadata(meta)

        log.info(f"[{idx + 1}/{len(sources)}] {source.name}: {len(contents.tensors)} tensors")

    if sources and len(skipped) == len(sources):
        msg = f"None of the {len(sources)} source file(s) could be read"
        raise ResolutionError(msg)

    catalog = builder.finalize(weight_map)
    catalog.skipped = skipped
    log.info(
        f"Catalog ready: {catalog.tensor_count} tensors, {catalog.total_bytes} bytes "
        f"from {len(sources) - len(skipped)} file(s)"
    )
    return catalog
