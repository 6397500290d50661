"""
Unit tests for matching frames back to requested timestamps.
"""

import pytest

from src.core.extraction.errors import PartialExtractionError
from src.core.extraction.models import FrameRecord
from src.core.extraction.reconcile import reconcile


def frames(count: int, times=None) -> list[FrameRecord]:
    times = times or [None] * count
    return [
        FrameRecord(index=i, data=bytes([i + 1]), presentation_time_ms=times[i])
        for i in range(count)
    ]


class TestPositionalMatching:
    """Without frame times, the i-th frame belongs to the i-th timestamp."""

    def test_exact_count(self):
        produced = frames(3)
        mapping = reconcile([1000, 2000, 3000], produced)

        assert mapping.frame_for(1000) is produced[0]
        assert mapping.frame_for(3000) is produced[2]

    def test_undercount_names_missing_timestamps(self):
        """Two frames for three timestamps: the third has nothing."""
        with pytest.raises(PartialExtractionError) as exc_info:
            reconcile([1000, 2000, 3000], frames(2))

        assert exc_info.value.missing_timestamps == [3000]
        assert exc_info.value.produced == 2
        assert exc_info.value.requested == 3

    def test_extra_frames_ignored(self, caplog):
        produced = frames(4)
        mapping = reconcile([1000, 2000], produced)

        assert mapping.timestamps == (1000, 2000)
        assert mapping.frames == (produced[0], produced[1])
        assert "more frames than requested" in caplog.text

    def test_times_ignored_when_disabled(self):
        produced = frames(2, times=[2000.0, 1000.0])
        mapping = reconcile([1000, 2000], produced, use_presentation_time=False)

        assert mapping.frame_for(1000) is produced[0]

    def test_partial_times_fall_back_to_position(self):
        """Matching on time only happens when every frame has one."""
        produced = frames(2, times=[1000.0, None])
        mapping = reconcile([1000, 2000], produced)

        assert mapping.frame_for(2000) is produced[1]


class TestPresentationTimeMatching:
    """With frame times, each timestamp takes the nearest frame in its window."""

    def test_matches_nearest_frame(self):
        produced = frames(3, times=[999.0, 2001.0, 3000.0])
        mapping = reconcile([1000, 2000, 3000], produced)

        assert [mapping.frame_for(ts).index for ts in (1000, 2000, 3000)] == [0, 1, 2]

    def test_coalesced_windows_share_a_frame(self):
        """Timestamps 8ms apart can land on one frame; both get it."""
        produced = frames(2, times=[1004.0, 3000.0])
        mapping = reconcile([1000, 1008, 3000], produced)

        assert mapping.frame_for(1000) is produced[0]
        assert mapping.frame_for(1008) is produced[0]
        assert mapping.frame_for(3000) is produced[1]
        assert len(mapping.frames) == 2

    def test_missing_window_reported(self):
        produced = frames(2, times=[1000.0, 3000.0])

        with pytest.raises(PartialExtractionError) as exc_info:
            reconcile([1000, 2000, 3000], produced)

        assert exc_info.value.missing_timestamps == [2000]

    def test_rounded_times_at_window_edge_still_match(self):
        """showinfo rounds pts_time; half a millisecond of slack absorbs it."""
        produced = frames(1, times=[1010.4])
        mapping = reconcile([1000], produced, tolerance_ms=10)

        assert mapping.frame_for(1000) is produced[0]

    def test_frame_outside_window_not_used(self):
        produced = frames(1, times=[1020.0])

        with pytest.raises(PartialExtractionError):
            reconcile([1000], produced, tolerance_ms=10)
