"""Unit tests for natural ordering of name segments."""

import random

from tensor_explorer.catalog.ordering import (
    compare_segments,
    name_key,
    natural_key,
    natural_sorted,
    split_runs,
)


class TestSplitRuns:
    """Test digit / text run splitting."""

    def test_mixed_segment(self) -> None:
        """Test alternating runs are kept in order."""
        assert split_runs("layer12norm3") == ["layer", "12", "norm", "3"]

    def test_pure_digits(self) -> None:
        """Test a numeric segment is a single run."""
        assert split_runs("0042") == ["0042"]

    def test_empty(self) -> None:
        """Test an empty segment has no runs."""
        assert split_runs("") == []


class TestNaturalOrder:
    """Test numeric-aware comparison."""

    def test_layer_sequence_any_insertion_order(self) -> None:
        """Test the canonical layer sequence sorts by magnitude."""
        expected = ["layer.0", "layer.1", "layer.2", "layer.9", "layer.10", "layer.11"]
        rng = random.Random(7)
        for _ in range(20):
            shuffled = expected[:]
            rng.shuffle(shuffled)
            assert sorted(shuffled, key=name_key) == expected

    def test_numeric_segments(self) -> None:
        """Test bare numeric segments order numerically."""
        assert natural_sorted(["10", "2", "1", "0"]) == ["0", "1", "2", "10"]

    def test_embedded_numbers(self) -> None:
        """Test digits embedded in text compare as numbers."""
        assert natural_sorted(["h10", "h9", "h100"]) == ["h9", "h10", "h100"]

    def test_prefix_sorts_first(self) -> None:
        """Test a proper prefix comes before its extensions."""
        assert natural_sorted(["attn_norm", "attn"]) == ["attn", "attn_norm"]

    def test_text_before_digits(self) -> None:
        """Test text runs sort before digit runs at the same position."""
        assert natural_sorted(["1", "a"]) == ["a", "1"]

    def test_leading_zeros_are_distinct(self) -> None:
        """Test equal magnitudes with different spellings still order totally."""
        assert compare_segments("01", "1") != 0
        assert compare_segments("01", "1") == -compare_segments("1", "01")

    def test_compare_is_three_way(self) -> None:
        """Test compare returns -1, 0 or 1."""
        assert compare_segments("layer2", "layer10") == -1
        assert compare_segments("layer10", "layer2") == 1
        assert compare_segments("layer2", "layer2") == 0

    def test_key_is_cached(self) -> None:
        """Test repeated keys come from the cache."""
        assert natural_key("blk42") is natural_key("blk42")


class TestNameKey:
    """Test full dotted-name ordering."""

    def test_compares_segment_by_segment(self) -> None:
        """Test dotted names compare one segment at a time."""
        names = ["blk.10.attn", "blk.2.ffn", "blk.2.attn", "output"]
        assert sorted(names, key=name_key) == ["blk.2.attn", "blk.2.ffn", "blk.10.attn", "output"]


class TestNonAsciiDigits:
    """Test characters that are digits outside ASCII."""

    def test_superscript_is_text(self) -> None:
        """Test a superscript digit forms a text run instead of a number."""
        assert split_runs("x²1") == ["x²", "1"]
        assert natural_key("²") == (((0, "²"),), ())

    def test_superscript_sorts_without_error(self) -> None:
        """Test names mixing superscripts and ASCII digits still order naturally."""
        assert natural_sorted(["x²10", "x²2", "²", "b"]) == ["b", "x²2", "x²10", "²"]

    def test_other_script_digits_are_text(self) -> None:
        """Test Arabic-Indic digits stay inside the text run."""
        assert split_runs("layer٣") == ["layer٣"]
        assert compare_segments("layer٣", "layer2") == 1
