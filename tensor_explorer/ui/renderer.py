"""Tensor Explorer - Terminal Renderer.

Draws the tree, header, footer and detail screens with curses. Everything it
shows comes from the navigation engine's render snapshot.
"""

from __future__ import annotations

import curses
import textwrap

from tensor_explorer.catalog.builder import Catalog
from tensor_explorer.catalog.tree import Leaf, MetadataLeaf, TensorLeaf
from tensor_explorer.core.types import MetadataRecord, TensorRecord
from tensor_explorer.navigation.engine import NavigationEngine, RenderRow
from tensor_explorer.ui.format import (
    format_count,
    format_parameters,
    format_shape,
    format_size,
    truncate,
)

HEADER_HEIGHT = 3
FOOTER_HEIGHT = 2
METADATA_VALUE_WIDTH = 50
DETAIL_VALUE_LINES = 20

HELP_LINE = "Use ↑/↓ to navigate, Enter/Space to expand/collapse, / to search, q to quit"


def viewport_height_for(screen_height: int) -> int:
    """Rows left for the tree once header and footer are drawn."""
    return max(screen_height - HEADER_HEIGHT - FOOTER_HEIGHT, 1)


def row_text(row: RenderRow) -> str:
    """Text for one tree row, indented by depth."""
    indent = "  " * row.depth
    if row.is_group:
        icon = "▼" if row.is_expanded else "▶"
        if row.tensor_count == 0 and row.total_bytes == 0:
            return f"{indent}{icon} {row.label} ({row.entry_count} entries)"
        return (
            f"{indent}{icon} {row.label} "
            f"({row.tensor_count} tensors, {format_size(row.total_bytes)})"
        )
    if isinstance(row.record, TensorRecord):
        rec = row.record
        return (
            f"{indent}  {row.label} "
            f"[{rec.dtype.value}, {format_shape(rec.shape)}, {format_size(rec.byte_size)}]"
        )
    if isinstance(row.record, MetadataRecord):
        rec = row.record
        return f"{indent}  {row.label} [{rec.value_type}]: {truncate(rec.value, METADATA_VALUE_WIDTH)}"
    return f"{indent}  {row.label}"


def footer_text(engine: NavigationEngine, catalog: Catalog) -> str:
    """Status line for the bottom of the screen."""
    state = engine.state
    total = len(engine.flat_view)
    selected = engine.selected_index + 1 if total else 0
    if engine.searching and total == 0:
        return f'No results found for "{state.search_query}" | Press Esc to exit search'
    text = (
        f"Total Parameters: {format_parameters(catalog.total_parameters)} | "
        f"Selected: {selected}/{total} | "
        f"Scroll: {engine.scroll_offset}"
    )
    if engine.searching:
        text += f" | Matches: {total}"
    return text


def tensor_detail_lines(leaf: TensorLeaf, catalog: Catalog) -> list[str]:
    """Lines of the tensor detail screen."""
    rec = leaf.record
    lines = [
        "Tensor Details",
        "==============",
        f"Name: {rec.name}",
        f"Data Type: {rec.dtype.value}" + (" (block quantized)" if rec.dtype.is_quantized else ""),
        f"Shape: {format_shape(rec.shape)}",
        f"Elements: {format_count(rec.num_elements)}",
        f"Size: {format_size(rec.byte_size)} ({format_count(rec.byte_size)} bytes)",
    ]
    source = catalog.source_for(rec)
    if source is not None:
        lines.append(f"File: {source.path}")
    shard = catalog.shard_for(rec)
    if shard is not None:
        lines.append(f"Shard (index): {shard}")
    return lines


def metadata_detail_lines(leaf: MetadataLeaf, width: int = 78) -> list[str]:
    """Lines of the metadata detail screen."""
    rec = leaf.record
    lines = [
        "Metadata Details",
        "================",
        f"Key: {rec.key}",
        f"Type: {rec.value_type}",
        "Value:",
    ]
    wrapped: list[str] = []
    for raw in rec.value.splitlines() or [""]:
        wrapped.extend(textwrap.wrap(raw, max(width - 2, 10)) or [""])
    lines.extend(f"  {line}" for line in wrapped[:DETAIL_VALUE_LINES])
    if len(wrapped) > DETAIL_VALUE_LINES:
        lines.append(f"  ... ({len(wrapped) - DETAIL_VALUE_LINES} more lines)")
    return lines


class TreeRenderer:
    """Draws engine snapshots onto a curses window."""

    def __init__(self, stdscr: curses.window) -> None:
        """Initialize renderer on the root window."""
        self.stdscr = stdscr
        try:
            curses.curs_set(0)
        except curses.error:
            pass  # terminal cannot hide the cursor
        self._init_colors()

    def _init_colors(self) -> None:
        if not curses.has_colors():
            return
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_CYAN, -1)    # groups
        curses.init_pair(2, curses.COLOR_YELLOW, -1)  # metadata
        curses.init_pair(3, curses.COLOR_BLACK, curses.COLOR_WHITE)  # selection

    def _write_line(self, y: int, text: str, attr: int = 0) -> None:
        height, width = self.stdscr.getmaxyx()
        if y < 0 or y >= height:
            return
        try:
            self.stdscr.addnstr(y, 0, text, width - 1, attr)
        except curses.error:
            pass

    def draw(self, engine: NavigationEngine, catalog: Catalog) -> None:
        """Draw header, visible rows and footer."""
        height, width = self.stdscr.getmaxyx()
        engine.set_viewport_height(viewport_height_for(height))

        self.stdscr.erase()
        self._write_line(0, f"Tensor Explorer - {catalog.title}", curses.A_BOLD)
        if engine.state.search_mode:
            query = engine.state.search_query or "_"
            self._write_line(1, f"SEARCH MODE: {query} | Type to search, Enter to jump, Esc to cancel")
        else:
            self._write_line(1, HELP_LINE)
        self._write_line(2, "=" * max(width - 1, 0))

        colors = curses.has_colors()
        for line, (index, row) in enumerate(engine.visible_rows()):
            if index == engine.selected_index:
                attr = curses.color_pair(3) if colors else curses.A_REVERSE
            elif row.is_group and colors:
                attr = curses.color_pair(1)
            elif row.is_metadata and colors:
                attr = curses.color_pair(2)
            else:
                attr = 0
            self._write_line(HEADER_HEIGHT + line, row_text(row), attr)

        self._write_line(height - 1, footer_text(engine, catalog))
        self.stdscr.refresh()

    def draw_detail(self, leaf: Leaf, catalog: Catalog) -> None:
        """Full-screen detail for one leaf."""
        _, width = self.stdscr.getmaxyx()
        if isinstance(leaf, TensorLeaf):
            lines = tensor_detail_lines(leaf, catalog)
        else:
            lines = metadata_detail_lines(leaf, width)
        lines += ["", "Press any key to return..."]

        self.stdscr.erase()
        for y, text in enumerate(lines):
            self._write_line(y, text, curses.A_BOLD if y == 0 else 0)
        self.stdscr.refresh()
