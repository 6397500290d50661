"""
Unit tests for the frame-selection predicate.

The predicate ends up verbatim in an ffmpeg command line, so these tests
pin the exact text.
"""

import pytest

from src.core.extraction.predicate import (
    DEFAULT_FRAME_WIDTH,
    build_selection_predicate,
)


class TestBuildSelectionPredicate:
    """Tests for turning timestamps into a select expression."""

    def test_one_window_per_timestamp(self):
        predicate = build_selection_predicate([1000, 2500])

        assert len(predicate.windows) == 2
        assert predicate.expression == "between(t,0.99,1.01)+between(t,2.49,2.51)"

    def test_windows_clipped_at_zero(self):
        """Presentation times are never negative."""
        predicate = build_selection_predicate([0, 5])

        assert predicate.windows[0].start_seconds == 0.0
        assert predicate.windows[1].start_seconds == 0.0
        assert predicate.expression.startswith("between(t,0,0.01)+")

    def test_custom_tolerance(self):
        predicate = build_selection_predicate([1000], tolerance_ms=40)
        assert predicate.expression == "between(t,0.96,1.04)"

    def test_no_exponent_notation(self):
        """ffmpeg's expression parser must see plain decimals."""
        predicate = build_selection_predicate([0], tolerance_ms=0.01)
        assert "e-" not in predicate.expression

    def test_rejects_negative_timestamp(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            build_selection_predicate([1000, -1])

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="at least one window"):
            build_selection_predicate([])

    def test_rejects_negative_tolerance(self):
        with pytest.raises(ValueError, match="Tolerance"):
            build_selection_predicate([1000], tolerance_ms=-1)


class TestFilterGraph:
    """Tests for the full -vf argument."""

    def test_select_then_showinfo_then_scale(self):
        predicate = build_selection_predicate([1000])
        assert predicate.filter_graph == "select='between(t,0.99,1.01)',showinfo,scale=200:-1"

    def test_without_timing_report(self):
        predicate = build_selection_predicate([1000], report_timing=False)
        assert predicate.filter_graph == "select='between(t,0.99,1.01)',scale=200:-1"

    def test_custom_width(self):
        predicate = build_selection_predicate([1000], width=320)
        assert predicate.filter_graph.endswith("scale=320:-1")

    def test_default_width(self):
        assert build_selection_predicate([1000]).width == DEFAULT_FRAME_WIDTH == 200

