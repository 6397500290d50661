"""
Domain models for frame color extraction.

Everything here is request-scoped: created when a call starts, never
mutated, thrown away when the call ends. That's why nearly all of these
are frozen dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class PaletteCategory(Enum):
    """The six swatch categories a palette can fill."""
    VIBRANT = "Vibrant"
    MUTED = "Muted"
    DARK_VIBRANT = "DarkVibrant"
    DARK_MUTED = "DarkMuted"
    LIGHT_VIBRANT = "LightVibrant"
    LIGHT_MUTED = "LightMuted"


@dataclass(frozen=True)
class TimestampRequest:
    """
    Ordered millisecond offsets requested by the caller.

    Duplicates are allowed and order is significant: it defines the order
    of the results.
    """
    timestamps: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.timestamps:
            raise ValueError("At least one timestamp is required")
        if any(ts < 0 for ts in self.timestamps):
            raise ValueError("Timestamps cannot be negative")

    @classmethod
    def of(cls, timestamps) -> "TimestampRequest":
        return cls(timestamps=tuple(int(ts) for ts in timestamps))

    def __len__(self) -> int:
        return len(self.timestamps)

    def __iter__(self) -> Iterator[int]:
        return iter(self.timestamps)

    @property
    def distinct_ascending(self) -> tuple[int, ...]:
        """Unique timestamps in the order the decoder will emit their frames."""
        return tuple(sorted(set(self.timestamps)))


@dataclass(frozen=True)
class FrameRecord:
    """One encoded image cut out of the decoder's output stream."""
    index: int
    data: bytes
    presentation_time_ms: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("Frame data cannot be empty")


@dataclass(frozen=True)
class FrameTimestampMap:
    """
    Association between requested timestamps and the frames that serve them.

    Built once by the reconciler. Several timestamps may share a frame
    (duplicates in the request, or coalesced windows when presentation times
    are known), but every timestamp maps to exactly one frame.
    """
    pairs: tuple[tuple[int, FrameRecord], ...]
    _by_timestamp: dict[int, FrameRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_timestamp: dict[int, FrameRecord] = {}
        for ts, frame in self.pairs:
            by_timestamp.setdefault(ts, frame)
        object.__setattr__(self, "_by_timestamp", by_timestamp)

    def frame_for(self, timestamp_ms: int) -> FrameRecord:
        """Raises KeyError for a timestamp the map doesn't cover."""
        return self._by_timestamp[timestamp_ms]

    @property
    def timestamps(self) -> tuple[int, ...]:
        return tuple(ts for ts, _ in self.pairs)

    @property
    def frames(self) -> tuple[FrameRecord, ...]:
        """Distinct frames in first-use order."""
        seen: dict[int, FrameRecord] = {}
        for _, frame in self.pairs:
            seen.setdefault(frame.index, frame)
        return tuple(seen.values())

    def __len__(self) -> int:
        return len(self.pairs)


@dataclass(frozen=True)
class Swatch:
    """A representative color and the number of pixels behind it."""
    rgb: tuple[float, float, float]
    population: int


@dataclass(frozen=True)
class Palette:
    """Up to six categorized swatches for a single frame."""
    vibrant: Optional[Swatch] = None
    muted: Optional[Swatch] = None
    dark_vibrant: Optional[Swatch] = None
    dark_muted: Optional[Swatch] = None
    light_vibrant: Optional[Swatch] = None
    light_muted: Optional[Swatch] = None

    def get(self, category: PaletteCategory) -> Optional[Swatch]:
        return getattr(self, _CATEGORY_FIELDS[category])

    @classmethod
    def from_categories(cls, swatches: dict[PaletteCategory, Swatch]) -> "Palette":
        return cls(**{_CATEGORY_FIELDS[cat]: swatch for cat, swatch in swatches.items()})

    @property
    def is_empty(self) -> bool:
        return all(self.get(cat) is None for cat in PaletteCategory)


_CATEGORY_FIELDS = {
    PaletteCategory.VIBRANT: "vibrant",
    PaletteCategory.MUTED: "muted",
    PaletteCategory.DARK_VIBRANT: "dark_vibrant",
    PaletteCategory.DARK_MUTED: "dark_muted",
    PaletteCategory.LIGHT_VIBRANT: "light_vibrant",
    PaletteCategory.LIGHT_MUTED: "light_muted",
}


@dataclass(frozen=True)
class ColorResult:
    """The dominant color found at one requested timestamp."""
    timestamp: int
    hex_color: str
    decode_duration_ms: float
    extract_duration_ms: float


@dataclass(frozen=True)
class TimingBreakdown:
    """
    Where the time went for one call.

    In the batched path the decode duration is shared by every timestamp;
    extraction durations are per distinct frame.
    """
    decode_duration_ms: float
    extract_durations_ms: tuple[float, ...]
    total_duration_ms: float
    decoder_invocations: int = 1
    batched: bool = True

    @property
    def total_extract_duration_ms(self) -> float:
        return sum(self.extract_durations_ms)


@dataclass(frozen=True)
class ColorExtractionResult:
    """Ordered results for a call plus its timing breakdown."""
    results: tuple[ColorResult, ...]
    timing: TimingBreakdown
    frame_count: int = 0

    def __len__(self) -> int:
        return len(self.results)

    @property
    def colors(self) -> list[str]:
        return [r.hex_color for r in self.results]

