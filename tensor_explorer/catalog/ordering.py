"""Tensor Explorer - Natural Ordering.

Numeric-aware comparison of name segments so that ``layers.2`` sorts before
``layers.10``.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable

_RUN_PATTERN = re.compile(r"[0-9]+|[^0-9]+")

ASCII_DIGITS = "0123456789"

# Run kinds; text runs sort before digit runs at the same position
TEXT_RUN = 0
DIGIT_RUN = 1

NaturalKey = tuple[tuple[tuple[int, object], ...], tuple[str, ...]]


def split_runs(segment: str) -> list[str]:
    """Split into alternating ASCII digit and non-digit runs."""
    return _RUN_PATTERN.findall(segment)


@functools.lru_cache(maxsize=65536)
def natural_key(segment: str) -> NaturalKey:
    """Sort key implementing natural order.

    The first element compares runs by kind then value (digit runs by
    magnitude). The second holds the literal digit runs, so ``01`` and ``1``
    stay distinct and the order is total.
    """
    runs = []
    literals = []
    for run in split_runs(segment):
        if run[0] in ASCII_DIGITS:
            runs.append((DIGIT_RUN, int(run)))
            literals.append(run)
        else:
            runs.append((TEXT_RUN, run))
    return tuple(runs), tuple(literals)


def compare_segments(a: str, b: str) -> int:
    """Three-way natural comparison: -1 (less), 0 (equal) or 1 (greater)."""
    key_a = natural_key(a)
    key_b = natural_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def natural_sorted(segments: Iterable[str]) -> list[str]:
    """Return segments in natural order."""
    return sorted(segments, key=natural_key)


def name_key(name: str, delimiter: str = ".") -> tuple[NaturalKey, ...]:
    """Natural key for a full dotted name, compared segment by segment."""
    return tuple(natural_key(segment) for segment in name.split(delimiter))
