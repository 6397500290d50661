"""
Unit tests for the extraction domain models.

These tests verify the value objects without touching external
services (no ffmpeg, no network, no file system).

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
- Prefer real objects over mocks where practical
"""

import pytest

from src.core.extraction.errors import PartialExtractionError
from src.core.extraction.models import (
    ColorExtractionResult,
    ColorResult,
    FrameRecord,
    FrameTimestampMap,
    Palette,
    PaletteCategory,
    Swatch,
    TimestampRequest,
    TimingBreakdown,
)


# ---------------------------------------------------------------------------
# TimestampRequest Tests
# ---------------------------------------------------------------------------

class TestTimestampRequest:
    """Tests for the TimestampRequest value object."""

    def test_keeps_caller_order_and_duplicates(self):
        """Order defines result order, so it must survive untouched."""
        request = TimestampRequest.of([5000, 1000, 1000, 3000])
        assert list(request) == [5000, 1000, 1000, 3000]
        assert len(request) == 4

    def test_distinct_ascending_collapses_duplicates(self):
        """The decoder emits frames in time order, once per window."""
        request = TimestampRequest.of([5000, 1000, 1000, 3000])
        assert request.distinct_ascending == (1000, 3000, 5000)

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="At least one timestamp"):
            TimestampRequest.of([])

    def test_rejects_negative(self):
        """Negative offsets don't exist in a video."""
        with pytest.raises(ValueError, match="cannot be negative"):
            TimestampRequest.of([1000, -1])

    def test_zero_is_valid(self):
        """Zero is the first frame."""
        assert TimestampRequest.of([0]).timestamps == (0,)


# ---------------------------------------------------------------------------
# Frame Tests
# ---------------------------------------------------------------------------

class TestFrameRecord:
    """Tests for demultiplexed frames."""

    def test_rejects_empty_data(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            FrameRecord(index=0, data=b"")

    def test_presentation_time_is_optional(self):
        assert FrameRecord(index=0, data=b"x").presentation_time_ms is None


class TestFrameTimestampMap:
    """Tests for the timestamp to frame association."""

    def test_frame_for_returns_mapped_frame(self):
        a = FrameRecord(index=0, data=b"a")
        b = FrameRecord(index=1, data=b"b")
        mapping = FrameTimestampMap(pairs=((1000, a), (2000, b)))

        assert mapping.frame_for(2000) is b
        assert mapping.timestamps == (1000, 2000)

    def test_frame_for_unknown_timestamp_raises(self):
        mapping = FrameTimestampMap(pairs=((1000, FrameRecord(index=0, data=b"a")),))
        with pytest.raises(KeyError):
            mapping.frame_for(1500)

    def test_lookups_do_not_rescan_pairs(self):
        """Resolving every timestamp of a long request stays linear overall."""

        class CountingPairs(tuple):
            scans = 0

            def __iter__(self):
                CountingPairs.scans += 1
                return super().__iter__()

        frames = [FrameRecord(index=i, data=b"f") for i in range(5000)]
        pairs = CountingPairs((i * 40, frame) for i, frame in enumerate(frames))
        mapping = FrameTimestampMap(pairs=pairs)
        scans_after_build = CountingPairs.scans

        resolved = [mapping.frame_for(i * 40) for i in range(5000)]

        assert resolved == frames
        assert CountingPairs.scans == scans_after_build

    def test_equality_ignores_lookup_index(self):
        a = FrameRecord(index=0, data=b"a")
        assert FrameTimestampMap(pairs=((1000, a),)) == FrameTimestampMap(pairs=((1000, a),))

    def test_shared_frames_listed_once(self):
        """Coalesced windows share a frame; its palette is computed once."""
        a = FrameRecord(index=0, data=b"a")
        b = FrameRecord(index=1, data=b"b")
        mapping = FrameTimestampMap(pairs=((1000, a), (1005, a), (2000, b)))

        assert mapping.frames == (a, b)
        assert len(mapping) == 3


# ---------------------------------------------------------------------------
# Palette Tests
# ---------------------------------------------------------------------------

class TestPalette:
    """Tests for the categorized palette."""

    def test_get_by_category(self):
        swatch = Swatch(rgb=(10.0, 20.0, 30.0), population=5)
        palette = Palette(dark_muted=swatch)

        assert palette.get(PaletteCategory.DARK_MUTED) is swatch
        assert palette.get(PaletteCategory.VIBRANT) is None

    def test_from_categories(self):
        swatch = Swatch(rgb=(1.0, 2.0, 3.0), population=1)
        palette = Palette.from_categories({PaletteCategory.LIGHT_VIBRANT: swatch})

        assert palette.light_vibrant is swatch
        assert not palette.is_empty

    def test_empty_palette(self):
        assert Palette().is_empty


# ---------------------------------------------------------------------------
# Result Tests
# ---------------------------------------------------------------------------

class TestColorExtractionResult:
    """Tests for results and timing."""

    def test_colors_in_result_order(self):
        result = ColorExtractionResult(
            results=(
                ColorResult(timestamp=3000, hex_color="#000003", decode_duration_ms=5, extract_duration_ms=1),
                ColorResult(timestamp=1000, hex_color="#000001", decode_duration_ms=5, extract_duration_ms=1),
            ),
            timing=TimingBreakdown(decode_duration_ms=5, extract_durations_ms=(1, 1), total_duration_ms=8),
        )

        assert result.colors == ["#000003", "#000001"]
        assert len(result) == 2

    def test_total_extract_duration_sums_frames(self):
        timing = TimingBreakdown(
            decode_duration_ms=100,
            extract_durations_ms=(10.0, 12.5, 7.5),
            total_duration_ms=140,
        )
        assert timing.total_extract_duration_ms == 30.0
        assert timing.decoder_invocations == 1
        assert timing.batched


class TestPartialExtractionError:
    """The error has to say which timestamps went missing."""

    def test_message_lists_missing_timestamps(self):
        error = PartialExtractionError(missing_timestamps=[3000, 4000], produced=2, requested=4)

        assert error.missing_timestamps == [3000, 4000]
        assert "2 of 4" in str(error)
        assert "3000ms, 4000ms" in str(error)
