"""Tensor Explorer - Navigation Engine.

Tracks expansion, selection and scrolling over a finalized catalog and
flattens the tree into the rows the terminal shows. Terminal-free so it can
be driven directly from tests.

The catalog root never gets a row of its own; its children render at
depth 0. When the catalog carries header metadata, the metadata group is the
first row.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tensor_explorer.catalog.builder import SEGMENT_DELIMITER, Catalog
from tensor_explorer.catalog.tree import GroupNode, Leaf, MetadataLeaf, Node, TensorLeaf
from tensor_explorer.core.types import MetadataRecord, TensorRecord
from tensor_explorer.observability.logging import get_logger

log = get_logger("navigation")

DEFAULT_VIEWPORT_HEIGHT = 20


@dataclass(frozen=True)
class FlatRow:
    """One visible line: a node reference and its indent depth."""
    node: Node
    depth: int


@dataclass(frozen=True)
class RenderRow:
    """Read-only snapshot of a visible line for the renderer."""
    depth: int
    label: str
    is_group: bool
    is_expanded: bool = False
    tensor_count: int = 0
    total_bytes: int = 0
    entry_count: int = 0
    record: TensorRecord | MetadataRecord | None = None

    @property
    def is_metadata(self) -> bool:
        return isinstance(self.record, MetadataRecord)


@dataclass
class NavigationState:
    """Mutable per-session browsing state."""
    expanded: set[GroupNode] = field(default_factory=set)
    flat_view: list[FlatRow] | None = None  # None means stale
    selected_index: int = 0
    scroll_offset: int = 0
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    search_mode: bool = False
    search_query: str = ""

    @property
    def is_stale(self) -> bool:
        return self.flat_view is None


@dataclass
class _Anchor:
    """Selection remembered across a flat view rebuild."""
    node: Node | None
    view: list[FlatRow]
    index: int


class NavigationEngine:
    """State machine over NavigationState."""

    def __init__(
        self,
        catalog: Catalog,
        *,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
        expand_top_level: bool = True,
        show_metadata: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            catalog: Finalized catalog to browse
            viewport_height: Number of tree rows visible at once
            expand_top_level: Start with every top-level tensor group open
            show_metadata: Include the header metadata group
        """
        self.catalog = catalog
        self.show_metadata = show_metadata and catalog.metadata is not None
        self.state = NavigationState(viewport_height=max(1, viewport_height))
        self._anchor: _Anchor | None = None
        self._search_pool: list[TensorLeaf] | None = None

        if expand_top_level:
            for child in catalog.root.ordered_children():
                if isinstance(child, GroupNode):
                    self.state.expanded.add(child)

    # ------------------------------------------------------------------
    # Flat view
    # ------------------------------------------------------------------

    @property
    def flat_view(self) -> list[FlatRow]:
        """Current visible rows, rebuilt if stale."""
        return self._refresh()

    @property
    def searching(self) -> bool:
        """A non-empty search query replaces the tree view."""
        return self.state.search_mode and bool(self.state.search_query)

    def top_level(self) -> list[Node]:
        """Rows shown at depth 0 in tree mode."""
        nodes: list[Node] = []
        if self.show_metadata and self.catalog.metadata is not None:
            nodes.append(self.catalog.metadata)
        nodes.extend(self.catalog.root.ordered_children())
        return nodes

    def rebuild_flat_view(self) -> list[FlatRow]:
        """Depth-first pre-order walk that only descends into expanded groups."""
        if self.searching:
            return [FlatRow(node=leaf, depth=0) for leaf in self.search_matches()]

        rows: list[FlatRow] = []
        stack = [(node, 0) for node in reversed(self.top_level())]
        while stack:
            node, depth = stack.pop()
            rows.append(FlatRow(node=node, depth=depth))
            if isinstance(node, GroupNode) and node in self.state.expanded:
                stack.extend((child, depth + 1) for child in reversed(node.ordered_children()))
        return rows

    def _invalidate(self) -> None:
        """Mark the flat view stale, remembering the selection once."""
        if self.state.flat_view is not None:
            view = self.state.flat_view
            index = self.state.selected_index
            node = view[index].node if 0 <= index < len(view) else None
            self._anchor = _Anchor(node=node, view=view, index=index)
        self.state.flat_view = None

    def _refresh(self) -> list[FlatRow]:
        if self.state.flat_view is not None:
            return self.state.flat_view

        view = self.rebuild_flat_view()
        self.state.flat_view = view
        log.debug(f"Flat view rebuilt: {len(view)} rows")

        if self._anchor is not None:
            self.state.selected_index = self._reconcile(self._anchor, view)
            self._anchor = None

        self._clamp_selection()
        self._scroll_to_selection()
        return view

    def _reconcile(self, anchor: _Anchor, view: list[FlatRow]) -> int:
        """Index of the anchored node in a new view, or its nearest visible stand-in."""
        positions = {row.node: i for i, row in enumerate(view)}

        if anchor.node is not None:
            if anchor.node in positions:
                return positions[anchor.node]
            for ancestor in self._ancestors(anchor.node):
                if ancestor in positions:
                    return positions[ancestor]

        for i in range(min(anchor.index, len(anchor.view) - 1), -1, -1):
            node = anchor.view[i].node
            if node in positions:
                return positions[node]
        return 0

    def _ancestors(self, node: Node) -> list[GroupNode]:
        """Groups enclosing node, deepest first, found by walking its path from the root."""
        if isinstance(node, MetadataLeaf):
            return [self.catalog.metadata] if self.catalog.metadata is not None else []
        if isinstance(node, TensorLeaf):
            path = node.record.name.split(SEGMENT_DELIMITER)[:-1]
        elif isinstance(node, GroupNode):
            path = list(node.path[:-1])
        else:
            return []

        chain: list[GroupNode] = []
        group = self.catalog.root
        for segment in path:
            child = group.children.get(segment)
            if not isinstance(child, GroupNode):
                break
            chain.append(child)
            group = child
        return list(reversed(chain))

    def _clamp_selection(self) -> None:
        view = self.state.flat_view or []
        last = max(len(view) - 1, 0)
        self.state.selected_index = min(max(self.state.selected_index, 0), last)

    def _scroll_to_selection(self) -> None:
        """Scroll by the minimum amount that keeps the selection on screen."""
        height = self.state.viewport_height
        selected = self.state.selected_index
        if selected < self.state.scroll_offset:
            self.state.scroll_offset = selected
        elif selected >= self.state.scroll_offset + height:
            self.state.scroll_offset = selected - height + 1

        # Never leave blank rows below the end after the view shrinks
        total = len(self.state.flat_view or [])
        self.state.scroll_offset = max(0, min(self.state.scroll_offset, max(total - height, 0)))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def toggle_expand(self, node: Node) -> bool:
        """Open or close a group. No-op on leaves.

        Returns:
            True if the node is a group (and was toggled)
        """
        if not isinstance(node, GroupNode):
            return False
        if node in self.state.expanded:
            self.state.expanded.discard(node)
        else:
            self.state.expanded.add(node)
        self._invalidate()
        return True

    def expand(self, node: Node) -> bool:
        """Open a collapsed group."""
        if isinstance(node, GroupNode) and node not in self.state.expanded:
            return self.toggle_expand(node)
        return False

    def collapse(self, node: Node) -> bool:
        """Close an expanded group."""
        if isinstance(node, GroupNode) and node in self.state.expanded:
            return self.toggle_expand(node)
        return False

    def is_expanded(self, node: Node) -> bool:
        return isinstance(node, GroupNode) and node in self.state.expanded

    def move_selection(self, delta: int) -> int:
        """Move the selection by delta rows, clamped to the view.

        Returns:
            The new selected index
        """
        view = self.flat_view
        if not view:
            self.state.selected_index = 0
            self.state.scroll_offset = 0
            return 0
        self.state.selected_index = min(max(self.state.selected_index + delta, 0), len(view) - 1)
        self._scroll_to_selection()
        return self.state.selected_index

    def page(self, pages: int) -> int:
        """Move by whole viewports."""
        return self.move_selection(pages * self.state.viewport_height)

    def set_viewport_height(self, height: int) -> None:
        """Resize the viewport and keep the selection visible."""
        self.state.viewport_height = max(1, height)
        self._refresh()
        self._scroll_to_selection()

    @property
    def selected_node(self) -> Node | None:
        view = self.flat_view
        if not view:
            return None
        return view[self.state.selected_index].node

    def activate(self) -> Leaf | None:
        """Toggle a selected group, or return the selected leaf for a detail view."""
        node = self.selected_node
        if node is None:
            return None
        if isinstance(node, GroupNode):
            self.toggle_expand(node)
            return None
        return node

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_matches(self) -> list[TensorLeaf]:
        """Tensors whose full name contains the query, case-insensitively."""
        if self._search_pool is None:
            self._search_pool = self.catalog.tensors()
        query = self.state.search_query.lower()
        return [leaf for leaf in self._search_pool if query in leaf.record.name.lower()]

    def start_search(self) -> None:
        self.state.search_mode = True
        self.state.search_query = ""

    def set_search_query(self, query: str) -> None:
        """Replace the query; the view switches between tree and matches as needed."""
        was_searching = self.searching
        self.state.search_query = query
        if was_searching or self.searching:
            self._invalidate()
            if self.searching:
                self._anchor = None
                self.state.selected_index = 0
                self.state.scroll_offset = 0

    def end_search(self, *, reveal_selection: bool = False) -> None:
        """Leave search mode, keeping the selected tensor where possible.

        Args:
            reveal_selection: Expand the selected match's ancestors so it stays selected
        """
        was_searching = self.searching
        node = self.selected_node if was_searching else None
        self.state.search_mode = False
        self.state.search_query = ""
        if not was_searching:
            return
        self._invalidate()
        if reveal_selection and node is not None:
            self.state.expanded.update(self._ancestors(node))

    # ------------------------------------------------------------------
    # Render contract
    # ------------------------------------------------------------------

    def _render_row(self, row: FlatRow) -> RenderRow:
        node = row.node
        if isinstance(node, GroupNode):
            return RenderRow(
                depth=row.depth,
                label=node.name,
                is_group=True,
                is_expanded=node in self.state.expanded,
                tensor_count=node.tensor_count,
                total_bytes=node.total_bytes,
                entry_count=len(node.children),
            )
        if isinstance(node, TensorLeaf):
            label = node.record.name if self.searching else node.name
            return RenderRow(
                depth=row.depth,
                label=label,
                is_group=False,
                tensor_count=1,
                total_bytes=node.record.byte_size,
                record=node.record,
            )
        return RenderRow(depth=row.depth, label=node.name, is_group=False, record=node.record)

    def current_flat_view(self) -> list[RenderRow]:
        """Snapshot of every visible row."""
        return [self._render_row(row) for row in self.flat_view]

    def visible_rows(self) -> list[tuple[int, RenderRow]]:
        """(index, row) pairs inside the viewport."""
        view = self.flat_view
        start = self.state.scroll_offset
        stop = min(start + self.state.viewport_height, len(view))
        return [(i, self._render_row(view[i])) for i in range(start, stop)]

    @property
    def selected_index(self) -> int:
        self._refresh()
        return self.state.selected_index

    @property
    def scroll_offset(self) -> int:
        self._refresh()
        return self.state.scroll_offset

    @property
    def viewport_height(self) -> int:
        return self.state.viewport_height
