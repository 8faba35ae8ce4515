"""Tensor Explorer - Interactive Session.

One blocking key read per iteration, handled to completion before the next.
Key handling lives in ``dispatch_key`` so it can be exercised without a
terminal.
"""

from __future__ import annotations

import curses
from dataclasses import dataclass

from tensor_explorer.catalog.builder import Catalog
from tensor_explorer.catalog.tree import Leaf
from tensor_explorer.core.config import Config
from tensor_explorer.navigation.engine import NavigationEngine
from tensor_explorer.observability.logging import get_logger, mute_console, restore_console
from tensor_explorer.ui.renderer import TreeRenderer

log = get_logger("session")

KEY_CTRL_C = 3
KEY_ESCAPE = 27
ENTER_KEYS = (10, 13, curses.KEY_ENTER)
BACKSPACE_KEYS = (8, 127, curses.KEY_BACKSPACE)
UP_KEYS = (curses.KEY_UP, ord("k"))
DOWN_KEYS = (curses.KEY_DOWN, ord("j"))
QUIT_KEYS = (ord("q"), KEY_CTRL_C)


@dataclass
class KeyResult:
    """Outcome of one key press."""
    quit: bool = False
    detail: Leaf | None = None


def _dispatch_search_key(engine: NavigationEngine, key: int) -> KeyResult:
    query = engine.state.search_query
    if key == KEY_CTRL_C:
        return KeyResult(quit=True)
    if key in ENTER_KEYS:
        engine.end_search(reveal_selection=True)
    elif key == KEY_ESCAPE:
        engine.end_search()
    elif key in BACKSPACE_KEYS:
        engine.set_search_query(query[:-1])
    elif key == curses.KEY_UP:
        engine.move_selection(-1)
    elif key == curses.KEY_DOWN:
        engine.move_selection(1)
    elif 32 <= key < 127:
        engine.set_search_query(query + chr(key))
    return KeyResult()


def dispatch_key(engine: NavigationEngine, key: int) -> KeyResult:
    """Apply one key press to the engine.

    Args:
        engine: Navigation engine for the session
        key: Key code as returned by ``getch``

    Returns:
        Whether to quit, and the leaf to show in a detail view, if any
    """
    if engine.state.search_mode:
        return _dispatch_search_key(engine, key)

    if key in QUIT_KEYS:
        return KeyResult(quit=True)

    if key in UP_KEYS:
        engine.move_selection(-1)
    elif key in DOWN_KEYS:
        engine.move_selection(1)
    elif key == curses.KEY_PPAGE:
        engine.page(-1)
    elif key == curses.KEY_NPAGE:
        engine.page(1)
    elif key == curses.KEY_HOME:
        engine.move_selection(-len(engine.flat_view))
    elif key == curses.KEY_END:
        engine.move_selection(len(engine.flat_view))
    elif key in ENTER_KEYS or key == ord(" "):
        return KeyResult(detail=engine.activate())
    elif key == curses.KEY_RIGHT:
        node = engine.selected_node
        if node is not None:
            engine.expand(node)
    elif key == curses.KEY_LEFT:
        node = engine.selected_node
        if node is not None:
            engine.collapse(node)
    elif key == ord("/"):
        engine.start_search()
    return KeyResult()


def _loop(stdscr: curses.window, engine: NavigationEngine, catalog: Catalog) -> None:
    curses.raw()
    stdscr.keypad(True)
    renderer = TreeRenderer(stdscr)

    while True:
        renderer.draw(engine, catalog)
        key = stdscr.getch()
        if key == curses.KEY_RESIZE:
            curses.update_lines_cols()
            continue

        result = dispatch_key(engine, key)
        if result.quit:
            break
        if result.detail is not None:
            renderer.draw_detail(result.detail, catalog)
            stdscr.getch()


def run_session(catalog: Catalog, config: Config) -> None:
    """Browse a catalog until the user quits.

    The terminal is restored on every exit path, including errors.
    """
    engine = NavigationEngine(
        catalog,
        expand_top_level=config.expand_top_level,
        show_metadata=config.show_metadata,
    )
    log.debug(f"Starting session with {len(engine.flat_view)} visible rows")

    muted = mute_console()
    try:
        curses.wrapper(_loop, engine, catalog)
    finally:
        restore_console(muted)
