"""Tensor Explorer - Display Formatting."""

from __future__ import annotations

import humanize


def format_size(num_bytes: int) -> str:
    """Human-readable byte size using binary units (1.0 KiB = 1024 bytes)."""
    return humanize.naturalsize(num_bytes, binary=True, format="%.1f")


def format_shape(shape: tuple[int, ...] | list[int]) -> str:
    """Render a shape as ``(a, b, c)``; scalars render as ``()``."""
    return "(" + ", ".join(str(d) for d in shape) + ")"


def format_parameters(count: int) -> str:
    """Compact parameter count: 1.2B, 350.0M, 12.5K or the plain number."""
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if count >= threshold:
            return f"{count / threshold:.1f}{suffix}"
    return str(count)


def format_count(count: int) -> str:
    """Integer with thousands separators."""
    return humanize.intcomma(count)


def truncate(text: str, width: int) -> str:
    """Clip text to width, marking the cut with an ellipsis."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."
