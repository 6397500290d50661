"""
Mapping demultiplexed frames back onto requested timestamps.

The raw stream carries no timing information, so by default the mapping is
positional: the i-th frame belongs to the i-th requested timestamp (in
ascending order, which is the order the decoder emits them).

If the decoder did report a presentation time for every frame, we match on
time instead. That handles the case positional matching gets wrong: two
requested timestamps closer than twice the tolerance whose windows
coalesced into a single emitted frame. Time matching lets both timestamps
share that frame rather than shifting every later color by one.

Either way, a timestamp with no frame is a hard failure. We never drop,
duplicate or guess.
"""

import bisect
import logging
from typing import Sequence

from .errors import PartialExtractionError
from .models import FrameRecord, FrameTimestampMap
from .predicate import DEFAULT_TOLERANCE_MS

logger = logging.getLogger(__name__)

# showinfo rounds pts_time, so allow a little slack at the window edges
_PTS_SLACK_MS = 0.5


def reconcile(
    timestamps_ms: Sequence[int],
    frames: Sequence[FrameRecord],
    tolerance_ms: float = DEFAULT_TOLERANCE_MS,
    use_presentation_time: bool = True,
) -> FrameTimestampMap:
    """
    Associate each requested timestamp with exactly one frame.

    Args:
        timestamps_ms: requested offsets, ascending, no duplicates
        frames: demultiplexed frames in stream order
        tolerance_ms: selection window half-width used for the decode
        use_presentation_time: match on reported frame times when every
            frame has one

    Raises:
        PartialExtractionError: some timestamps have no frame
    """
    has_times = bool(frames) and all(
        frame.presentation_time_ms is not None for frame in frames
    )

    if use_presentation_time and has_times:
        return _reconcile_by_time(timestamps_ms, frames, tolerance_ms)

    return _reconcile_by_position(timestamps_ms, frames)


def _reconcile_by_position(
    timestamps_ms: Sequence[int],
    frames: Sequence[FrameRecord],
) -> FrameTimestampMap:
    produced = len(frames)
    requested = len(timestamps_ms)

    if produced < requested:
        raise PartialExtractionError(
            missing_timestamps=timestamps_ms[produced:],
            produced=produced,
            requested=requested,
        )

    if produced > requested:
        logger.warning(
            "Decoder produced more frames than requested; ignoring extras",
            extra={"produced": produced, "requested": requested},
        )

    return FrameTimestampMap(pairs=tuple(zip(timestamps_ms, frames)))


def _reconcile_by_time(
    timestamps_ms: Sequence[int],
    frames: Sequence[FrameRecord],
    tolerance_ms: float,
) -> FrameTimestampMap:
    ordered = sorted(frames, key=lambda f: f.presentation_time_ms)
    times = [f.presentation_time_ms for f in ordered]
    reach = tolerance_ms + _PTS_SLACK_MS

    pairs = []
    missing = []
    used: set[int] = set()

    for ts in timestamps_ms:
        lo = bisect.bisect_left(times, ts - reach)
        hi = bisect.bisect_right(times, ts + reach)
        if lo == hi:
            missing.append(ts)
            continue

        best = min(
            ordered[lo:hi],
            key=lambda f: (abs(f.presentation_time_ms - ts), f.index),
        )
        pairs.append((ts, best))
        used.add(best.index)

    if missing:
        raise PartialExtractionError(
            missing_timestamps=missing,
            produced=len(frames),
            requested=len(timestamps_ms),
        )

    if len(used) < len(frames):
        logger.warning(
            "Some decoded frames matched no requested timestamp",
            extra={"unused": len(frames) - len(used), "produced": len(frames)},
        )

    shared = len(timestamps_ms) - len(used)
    if shared:
        logger.info(
            "Coalesced selection windows share frames",
            extra={"shared_timestamps": shared},
        )

    return FrameTimestampMap(pairs=tuple(pairs))
