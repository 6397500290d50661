"""
Frame color extraction logic.

Contains the batch orchestrator, the selection predicate builder, the
frame stream demultiplexer, the timestamp reconciler and the dominant
color selection policy.
"""

from .color import PALETTE_PRIORITY, PaletteExtractor, rgb_to_hex, select_dominant_swatch
from .decoding import DecoderOutput, FrameDecoder
from .demux import DemuxMode, demultiplex
from .errors import (
    ColorExtractionError,
    DecodeError,
    NoFramesError,
    NoSwatchError,
    PartialExtractionError,
    SourceUnreachableError,
    UnsupportedSourceError,
)
from .models import (
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
from .predicate import SelectionPredicate, build_selection_predicate
from .reconcile import reconcile
from .service import ColorExtractionService

__all__ = [
    "PALETTE_PRIORITY",
    "PaletteExtractor",
    "rgb_to_hex",
    "select_dominant_swatch",
    "DecoderOutput",
    "FrameDecoder",
    "DemuxMode",
    "demultiplex",
    "ColorExtractionError",
    "DecodeError",
    "NoFramesError",
    "NoSwatchError",
    "PartialExtractionError",
    "SourceUnreachableError",
    "UnsupportedSourceError",
    "ColorExtractionResult",
    "ColorResult",
    "FrameRecord",
    "FrameTimestampMap",
    "Palette",
    "PaletteCategory",
    "Swatch",
    "TimestampRequest",
    "TimingBreakdown",
    "SelectionPredicate",
    "build_selection_predicate",
    "reconcile",
    "ColorExtractionService",
]
