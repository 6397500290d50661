"""
Frame-selection predicate for batched decoding.

Instead of seeking once per timestamp (one ffmpeg process each), we ask
ffmpeg to walk the video once and keep only the frames whose presentation
time falls inside a small window around any requested timestamp.

The window has to be wide enough that an encoded frame usually exists
inside it, and narrow enough that two requested timestamps rarely share a
frame. Timestamps closer than twice the tolerance can coalesce into one
emitted frame; the reconciler deals with that.
"""

from dataclasses import dataclass
from typing import Iterable

DEFAULT_TOLERANCE_MS = 10
DEFAULT_FRAME_WIDTH = 200


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive selection window in seconds."""
    start_seconds: float
    end_seconds: float

    def as_expression(self) -> str:
        return f"between(t,{_format_seconds(self.start_seconds)},{_format_seconds(self.end_seconds)})"


@dataclass(frozen=True)
class SelectionPredicate:
    """
    A disjunction of time windows plus the output width.

    Width is a constant (aspect ratio preserved) so decode and transfer
    cost stay bounded no matter the source resolution.
    """
    windows: tuple[TimeWindow, ...]
    width: int = DEFAULT_FRAME_WIDTH
    report_timing: bool = True

    def __post_init__(self) -> None:
        if not self.windows:
            raise ValueError("Selection predicate needs at least one window")
        if self.width <= 0:
            raise ValueError("Output width must be positive")

    @property
    def expression(self) -> str:
        """ffmpeg `select` expression; `+` acts as boolean OR."""
        return "+".join(window.as_expression() for window in self.windows)

    @property
    def filter_graph(self) -> str:
        """
        Full -vf argument.

        The select expression is single-quoted so its commas aren't read as
        filter separators. `showinfo` sits after `select` so it only reports
        the frames we keep, which gives us their presentation times on stderr.
        """
        filters = [f"select='{self.expression}'"]
        if self.report_timing:
            filters.append("showinfo")
        filters.append(f"scale={self.width}:-1")
        return ",".join(filters)


def build_selection_predicate(
    timestamps_ms: Iterable[int],
    tolerance_ms: float = DEFAULT_TOLERANCE_MS,
    width: int = DEFAULT_FRAME_WIDTH,
    report_timing: bool = True,
) -> SelectionPredicate:
    """
    Turn requested millisecond offsets into a selection predicate.

    One window per timestamp, in the order given. Windows are clipped at
    zero since presentation times are never negative.
    """
    if tolerance_ms < 0:
        raise ValueError("Tolerance cannot be negative")

    tolerance_s = tolerance_ms / 1000
    windows = []
    for ts in timestamps_ms:
        if ts < 0:
            raise ValueError(f"Timestamp cannot be negative: {ts}")
        center = ts / 1000
        windows.append(TimeWindow(
            start_seconds=max(0.0, center - tolerance_s),
            end_seconds=center + tolerance_s,
        ))

    return SelectionPredicate(
        windows=tuple(windows),
        width=width,
        report_timing=report_timing,
    )


def _format_seconds(value: float) -> str:
    # fixed-point keeps ffmpeg from seeing exponents like 1e-05
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"
