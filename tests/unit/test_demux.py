"""
Unit tests for splitting the decoder's JPEG stream into frames.
"""

import pytest

from src.core.extraction.demux import DemuxMode, demultiplex, iter_jpeg_frames
from src.core.extraction.errors import NoFramesError


def with_app1_thumbnail(jpeg: bytes) -> bytes:
    """Insert an APP1 segment whose payload contains a stray SOI marker."""
    payload = b"Exif\x00\x00" + b"\xff\xd8\xff\xe0 embedded thumbnail \xff\xd9"
    segment = b"\xff\xe1" + (len(payload) + 2).to_bytes(2, "big") + payload
    return jpeg[:2] + segment + jpeg[2:]


@pytest.fixture
def three_frames(make_jpeg):
    return [
        make_jpeg((255, 0, 0)),
        make_jpeg((0, 255, 0)),
        make_jpeg((0, 0, 255)),
    ]


class TestRoundTrip:
    """Concatenated encoder output splits back into the original images."""

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_recovers_every_frame_in_order(self, three_frames, mode):
        frames = demultiplex(b"".join(three_frames), mode)

        assert [f.data for f in frames] == three_frames
        assert [f.index for f in frames] == [0, 1, 2]

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_single_frame(self, make_jpeg, mode):
        jpeg = make_jpeg()
        frames = demultiplex(jpeg, mode)

        assert len(frames) == 1
        assert frames[0].data == jpeg

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_leading_bytes_ignored(self, make_jpeg, mode):
        jpeg = make_jpeg()
        frames = demultiplex(b"ffmpeg noise" + jpeg, mode)

        assert [f.data for f in frames] == [jpeg]


class TestSegmentWalk:
    """Segment walking finds real frame boundaries, not just SOI bytes."""

    def test_embedded_soi_does_not_split_frame(self, make_jpeg):
        """A thumbnail marker inside a metadata segment belongs to the frame."""
        frames_in = [with_app1_thumbnail(make_jpeg((255, 0, 0))), with_app1_thumbnail(make_jpeg((0, 0, 255)))]

        frames = demultiplex(b"".join(frames_in), DemuxMode.SEGMENT_WALK)

        assert [f.data for f in frames] == frames_in

    def test_soi_scan_is_fooled_by_embedded_soi(self, make_jpeg):
        frames_in = [with_app1_thumbnail(make_jpeg()), with_app1_thumbnail(make_jpeg())]

        frames = demultiplex(b"".join(frames_in), DemuxMode.SOI_SCAN)

        assert len(frames) > 2

    def test_trailing_bytes_between_frames_dropped(self, make_jpeg):
        """Anything after EOI and before the next SOI isn't part of a frame."""
        a, b = make_jpeg((255, 0, 0)), make_jpeg((0, 255, 0))

        frames = demultiplex(a + b"\x00\x00padding" + b, DemuxMode.SEGMENT_WALK)

        assert [f.data for f in frames] == [a, b]

    def test_truncated_last_frame_runs_to_end(self, make_jpeg):
        a, b = make_jpeg((255, 0, 0)), make_jpeg((0, 255, 0))
        truncated = b[:-50]

        frames = demultiplex(a + truncated, DemuxMode.SEGMENT_WALK)

        assert [f.data for f in frames] == [a, truncated]

    def test_frame_missing_eoi_ends_at_next_soi(self, make_jpeg):
        a, b = make_jpeg((255, 0, 0)), make_jpeg((0, 255, 0))
        cut = a[:-2]

        frames = demultiplex(cut + b, DemuxMode.SEGMENT_WALK)

        assert [f.data for f in frames] == [cut, b]

    def test_restart_markers_stay_inside_scan(self):
        """RST markers and stuffed bytes are scan data, not frame ends."""
        scan_header = b"\xff\xda\x00\x08\x01\x01\x00\x00\x3f\x00"
        frame = b"\xff\xd8" + scan_header + b"\x12\xff\x00\x34\xff\xd0\x56\xff\xff\xd9"
        other = b"\xff\xd8\xff\xfe\x00\x03x\xff\xd9"

        frames = demultiplex(frame + other, DemuxMode.SEGMENT_WALK)

        assert [f.data for f in frames] == [frame, other]


class TestEdgeCases:
    """Inputs ffmpeg can produce when something went wrong."""

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_empty_stream_raises(self, mode):
        with pytest.raises(NoFramesError, match="empty"):
            demultiplex(b"", mode)

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_no_marker_raises(self, mode):
        with pytest.raises(NoFramesError, match="No JPEG start-of-image"):
            demultiplex(b"this is not a jpeg stream", mode)

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_adjacent_markers_do_not_make_empty_frames(self, make_jpeg, mode):
        jpeg = make_jpeg()
        frames = demultiplex(b"\xff\xd8" + jpeg, mode)

        assert [f.data for f in frames] == [jpeg]

    @pytest.mark.parametrize("mode", list(DemuxMode))
    def test_bare_marker_only_raises(self, mode):
        with pytest.raises(NoFramesError):
            demultiplex(b"\xff\xd8", mode)

    def test_iterator_is_lazy(self, three_frames):
        iterator = iter_jpeg_frames(b"".join(three_frames))
        first = next(iterator)

        assert first.data == three_frames[0]
