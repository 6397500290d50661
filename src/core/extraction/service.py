"""
Batch color extraction: the one entry point the API layer calls.

The flow for N timestamps:
1. Collapse the request to distinct timestamps in ascending order, since
   that's the order the decoder emits frames in
2. Build one selection predicate covering all of them
3. Run the decoder exactly once
4. Split its output into frames and match them back to timestamps
5. Extract a palette per frame, concurrently, in worker threads
6. Fan the colors back out to the caller's original order (duplicates
   included)

A single timestamp skips steps 1, 2 and 4: it's one seek-and-grab decode,
which costs the same and has no demultiplexing edge cases.

The service is framework-agnostic. It doesn't know about HTTP, ffmpeg or
Pillow; those arrive through the FrameDecoder and PaletteExtractor
protocols.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Iterable, Sequence

from .color import PaletteExtractor, extract_dominant_color
from .decoding import DecoderOutput, FrameDecoder
from .demux import DemuxMode, demultiplex
from .errors import ColorExtractionError, NoFramesError
from .models import (
    ColorExtractionResult,
    ColorResult,
    FrameRecord,
    TimestampRequest,
    TimingBreakdown,
)
from .predicate import DEFAULT_FRAME_WIDTH, DEFAULT_TOLERANCE_MS, build_selection_predicate
from .reconcile import reconcile

logger = logging.getLogger(__name__)


class ColorExtractionService:
    """
    Extracts one dominant color per requested timestamp.

    Holds no per-call state, so a single instance can serve concurrent
    requests. Every call either returns a complete, correctly ordered
    result or raises exactly one ColorExtractionError.
    """

    def __init__(
        self,
        decoder: FrameDecoder,
        palette_extractor: PaletteExtractor,
        frame_width: int = DEFAULT_FRAME_WIDTH,
        tolerance_ms: float = DEFAULT_TOLERANCE_MS,
        demux_mode: DemuxMode = DemuxMode.SEGMENT_WALK,
        verify_presentation_time: bool = True,
    ):
        self.decoder = decoder
        self.palette_extractor = palette_extractor
        self.frame_width = frame_width
        self.tolerance_ms = tolerance_ms
        self.demux_mode = demux_mode
        self.verify_presentation_time = verify_presentation_time

    async def extract_colors(
        self,
        source_ref: str,
        timestamps: Iterable[int],
    ) -> ColorExtractionResult:
        """
        Extract the dominant color at each timestamp.

        Args:
            source_ref: anything the decoder accepts as input (URL or path)
            timestamps: millisecond offsets, already bounds-checked by the
                caller; duplicates allowed

        Returns:
            One ColorResult per input timestamp, in input order

        Raises:
            ValueError: timestamps is empty or has negatives
            ColorExtractionError: any decode, demux, reconcile or palette failure
        """
        request = TimestampRequest.of(timestamps)
        started = time.perf_counter()

        try:
            if len(request) == 1:
                result = await self._extract_single(source_ref, request, started)
            else:
                result = await self._extract_batch(source_ref, request, started)
        except ColorExtractionError as e:
            logger.warning(
                "Color extraction failed",
                extra={
                    "error_type": type(e).__name__,
                    "timestamp_count": len(request),
                    "error": str(e),
                },
            )
            raise

        logger.info(
            "Extracted colors",
            extra={
                "timestamp_count": len(request),
                "frame_count": result.frame_count,
                "batched": result.timing.batched,
                "decode_ms": round(result.timing.decode_duration_ms, 1),
                "total_ms": round(result.timing.total_duration_ms, 1),
            },
        )
        return result

    async def _extract_single(
        self,
        source_ref: str,
        request: TimestampRequest,
        started: float,
    ) -> ColorExtractionResult:
        timestamp = request.timestamps[0]

        decode_started = time.perf_counter()
        output = await self.decoder.decode_single(source_ref, timestamp, self.frame_width)
        decode_ms = _elapsed_ms(decode_started)

        output.raise_for_status()
        if not output.stdout:
            raise NoFramesError(f"Decoder produced no frame at {timestamp}ms")

        frame = FrameRecord(index=0, data=output.stdout)
        colors = await self._extract_frame_colors([frame])
        hex_color, extract_ms = colors[frame.index]

        return ColorExtractionResult(
            results=(ColorResult(
                timestamp=timestamp,
                hex_color=hex_color,
                decode_duration_ms=decode_ms,
                extract_duration_ms=extract_ms,
            ),),
            timing=TimingBreakdown(
                decode_duration_ms=decode_ms,
                extract_durations_ms=(extract_ms,),
                total_duration_ms=_elapsed_ms(started),
                decoder_invocations=1,
                batched=False,
            ),
            frame_count=1,
        )

    async def _extract_batch(
        self,
        source_ref: str,
        request: TimestampRequest,
        started: float,
    ) -> ColorExtractionResult:
        targets = request.distinct_ascending
        predicate = build_selection_predicate(
            targets,
            tolerance_ms=self.tolerance_ms,
            width=self.frame_width,
            report_timing=self.verify_presentation_time,
        )

        decode_started = time.perf_counter()
        output = await self.decoder.decode_batch(source_ref, predicate)
        decode_ms = _elapsed_ms(decode_started)

        output.raise_for_status()
        if not output.stdout:
            raise NoFramesError("Decoder produced an empty byte stream")

        frames = _with_presentation_times(demultiplex(output.stdout, self.demux_mode), output)
        mapping = reconcile(
            targets,
            frames,
            tolerance_ms=self.tolerance_ms,
            use_presentation_time=self.verify_presentation_time,
        )

        used_frames = mapping.frames
        colors = await self._extract_frame_colors(used_frames)

        results = []
        for timestamp in request:
            frame = mapping.frame_for(timestamp)
            hex_color, extract_ms = colors[frame.index]
            results.append(ColorResult(
                timestamp=timestamp,
                hex_color=hex_color,
                decode_duration_ms=decode_ms,
                extract_duration_ms=extract_ms,
            ))

        return ColorExtractionResult(
            results=tuple(results),
            timing=TimingBreakdown(
                decode_duration_ms=decode_ms,
                extract_durations_ms=tuple(colors[f.index][1] for f in used_frames),
                total_duration_ms=_elapsed_ms(started),
                decoder_invocations=1,
                batched=True,
            ),
            frame_count=len(frames),
        )

    async def _extract_frame_colors(
        self,
        frames: Sequence[FrameRecord],
    ) -> dict[int, tuple[str, float]]:
        """
        Run palette extraction for every frame concurrently.

        Palette work is CPU-bound, so each frame gets a worker thread.
        gather() re-raises the first failure; no partial results escape.
        """
        outcomes = await asyncio.gather(*(
            asyncio.to_thread(self._timed_color, frame) for frame in frames
        ))
        return {frame.index: outcome for frame, outcome in zip(frames, outcomes)}

    def _timed_color(self, frame: FrameRecord) -> tuple[str, float]:
        started = time.perf_counter()
        hex_color = extract_dominant_color(self.palette_extractor, frame.data)
        return hex_color, _elapsed_ms(started)


def _with_presentation_times(
    frames: list[FrameRecord],
    output: DecoderOutput,
) -> list[FrameRecord]:
    """Attach decoder-reported frame times, but only if they line up one to one."""
    times = output.presentation_times_ms
    if not times:
        return frames

    if len(times) != len(frames):
        logger.warning(
            "Decoder timing report doesn't match frame count; matching by position",
            extra={"reported": len(times), "frames": len(frames)},
        )
        return frames

    return [
        dataclasses.replace(frame, presentation_time_ms=pts)
        for frame, pts in zip(frames, times)
    ]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
