"""
Splitting the decoder's output into individual JPEG frames.

ffmpeg's image2pipe muxer writes the selected frames back to back on
stdout with no container and no length prefixes. All we have to go on is
the JPEG structure itself.

Two strategies:
- SOI scan: cut at every start-of-image marker. Simple and linear, but a
  stray FF D8 inside a segment payload (an EXIF thumbnail, say) would be
  taken for a frame boundary.
- Segment walk: follow the marker segments and their length fields, skip
  over entropy-coded scan data, and end the frame at end-of-image. This
  is the default.

Both are a single pass over the buffer and yield frames in stream order,
which is ascending presentation time.
"""

import logging
from enum import Enum
from typing import Iterator

from .errors import NoFramesError
from .models import FrameRecord

logger = logging.getLogger(__name__)

SOI = b"\xff\xd8"
EOI = b"\xff\xd9"

_MARKER_PREFIX = 0xFF
_EOI = 0xD9
_SOI = 0xD8
_SOS = 0xDA
_TEM = 0x01
_RST_FIRST = 0xD0
_RST_LAST = 0xD7


class DemuxMode(Enum):
    """How frame boundaries are found in the raw stream."""
    SOI_SCAN = "soi_scan"
    SEGMENT_WALK = "segment_walk"


def iter_jpeg_frames(
    stream: bytes,
    mode: DemuxMode = DemuxMode.SEGMENT_WALK,
) -> Iterator[FrameRecord]:
    """
    Yield each frame found in a concatenated JPEG stream.

    Bytes before the first SOI are ignored, as is anything between frames
    in segment-walk mode. A frame consisting of nothing but its marker
    (two SOIs back to back) is dropped.

    Raises:
        NoFramesError: the stream is empty or contains no SOI marker
    """
    if not stream:
        raise NoFramesError("Decoder produced an empty byte stream")

    start = stream.find(SOI)
    if start < 0:
        raise NoFramesError(
            f"No JPEG start-of-image marker in {len(stream)} bytes of decoder output"
        )

    cut = _next_soi_boundary if mode is DemuxMode.SOI_SCAN else _walk_segments
    index = 0

    while start >= 0:
        end = cut(stream, start)
        if end - start > len(SOI):
            yield FrameRecord(index=index, data=bytes(stream[start:end]))
            index += 1
        else:
            logger.debug("Dropped empty frame", extra={"offset": start})
        start = stream.find(SOI, end)


def demultiplex(
    stream: bytes,
    mode: DemuxMode = DemuxMode.SEGMENT_WALK,
) -> list[FrameRecord]:
    """
    Split a raw decoder stream into ordered frames.

    Raises:
        NoFramesError: nothing usable was found
    """
    frames = list(iter_jpeg_frames(stream, mode))

    if not frames:
        raise NoFramesError("Decoder output contained no usable frames")

    logger.debug(
        "Demultiplexed frame stream",
        extra={
            "mode": mode.value,
            "stream_bytes": len(stream),
            "frame_count": len(frames),
        }
    )
    return frames


# ---------------------------------------------------------------------------
# Boundary strategies
# ---------------------------------------------------------------------------

def _next_soi_boundary(stream: bytes, start: int) -> int:
    """End of the frame starting at `start`: the next SOI, or end of buffer."""
    following = stream.find(SOI, start + len(SOI))
    return following if following >= 0 else len(stream)


def _walk_segments(stream: bytes, start: int) -> int:
    """
    End of the frame starting at `start`, found by walking its segments.

    Truncated frames run to the end of the buffer. If the structure stops
    making sense we fall back to the next SOI, same as the scan strategy.
    """
    n = len(stream)
    pos = start + len(SOI)

    while True:
        if pos + 1 >= n:
            return n

        if stream[pos] != _MARKER_PREFIX:
            return _next_soi_from(stream, pos)

        marker = stream[pos + 1]

        if marker == _MARKER_PREFIX:
            # fill byte before a marker
            pos += 1
            continue
        if marker == _EOI:
            return pos + 2
        if marker == _SOI:
            # new image began without an EOI
            return pos
        if marker == _TEM or _RST_FIRST <= marker <= _RST_LAST:
            pos += 2
            continue

        if pos + 3 >= n:
            return n
        length = (stream[pos + 2] << 8) | stream[pos + 3]
        if length < 2:
            return _next_soi_from(stream, pos + 2)

        segment_end = pos + 2 + length
        if segment_end > n:
            return n
        pos = segment_end

        if marker == _SOS:
            pos = _skip_entropy_coded_data(stream, pos)


def _skip_entropy_coded_data(stream: bytes, pos: int) -> int:
    """Position of the first real marker after scan data."""
    n = len(stream)
    while True:
        pos = stream.find(b"\xff", pos)
        if pos < 0 or pos + 1 >= n:
            return n
        following = stream[pos + 1]
        if following == 0x00 or _RST_FIRST <= following <= _RST_LAST:
            # stuffed byte or restart marker, still inside the scan
            pos += 2
        elif following == _MARKER_PREFIX:
            pos += 1
        else:
            return pos


def _next_soi_from(stream: bytes, pos: int) -> int:
    following = stream.find(SOI, pos)
    return following if following >= 0 else len(stream)
