"""Tensor Explorer - Catalog Tree Nodes.

Groups own their children exclusively; there are no parent pointers.
Nodes hash by identity so navigation state can hold plain references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from tensor_explorer.catalog.ordering import natural_key
from tensor_explorer.core.types import MetadataRecord, TensorRecord


@dataclass(eq=False)
class TensorLeaf:
    """A tensor under its owning segment name."""
    name: str
    record: TensorRecord

    is_group = False

    @property
    def tensor_count(self) -> int:
        return 1

    @property
    def total_bytes(self) -> int:
        return self.record.byte_size


@dataclass(eq=False)
class MetadataLeaf:
    """A header key/value entry."""
    name: str
    record: MetadataRecord

    is_group = False
    tensor_count = 0
    total_bytes = 0


Leaf = Union[TensorLeaf, MetadataLeaf]


@dataclass(eq=False)
class GroupNode:
    """A path segment holding child nodes and cached aggregates."""
    name: str
    path: tuple[str, ...] = ()
    children: dict[str, Node] = field(default_factory=dict)
    tensor_count: int = 0
    total_bytes: int = 0

    is_group = True

    _ordered: list[Node] | None = field(default=None, init=False, repr=False)

    def add_child(self, child: Node) -> None:
        self.children[child.name] = child
        self._ordered = None

    def ordered_children(self) -> list[Node]:
        """Children in natural order of their segment names."""
        if self._ordered is None:
            self._ordered = [self.children[k] for k in sorted(self.children, key=natural_key)]
        return self._ordered

    def recompute(self) -> tuple[int, int]:
        """Recompute aggregates bottom-up for this subtree."""
        count = 0
        total = 0
        for child in self.children.values():
            if isinstance(child, GroupNode):
                child_count, child_total = child.recompute()
            else:
                child_count, child_total = child.tensor_count, child.total_bytes
            count += child_count
            total += child_total
        self.tensor_count = count
        self.total_bytes = total
        return count, total

    def iter_leaves(self):
        """Yield every leaf below this group in natural order."""
        for child in self.ordered_children():
            if isinstance(child, GroupNode):
                yield from child.iter_leaves()
            else:
                yield child

    def find(self, dotted: str) -> Node | None:
        """Look up a descendant by dotted path relative to this group."""
        node: Node = self
        for segment in dotted.split("."):
            if not isinstance(node, GroupNode) or segment not in node.children:
                return None
            node = node.children[segment]
        return node


Node = Union[GroupNode, TensorLeaf, MetadataLeaf]
