"""
Frame decoding with FFmpeg.

Frames come back over stdout as a raw JPEG stream (image2pipe) instead of
being written to temp files and read back. Nothing touches the
filesystem, so there's nothing to clean up when a decode fails halfway.

Two invocation shapes:
- batch: one pass over the video with a `select` filter that keeps the
  frames inside any requested time window
- single: fast input seek (-ss before -i) and grab one frame

The process is always reaped (see process.py). If the awaiting task is
cancelled or a timeout fires, ffmpeg is killed before the error propagates.
"""

import colorsys
import logging
from io import BytesIO
from typing import Optional

from PIL import Image

from src.core.extraction.decoding import DecoderOutput, FrameDecoder
from src.core.extraction.errors import DecodeError
from src.core.extraction.predicate import SelectionPredicate

from .process import run_process

logger = logging.getLogger(__name__)


class FFmpegFrameDecoder:
    """
    Frame decoder backed by the ffmpeg binary.

    One instance can be shared; every call spawns and owns its own process.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        jpeg_quality: int = 2,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Args:
            ffmpeg_path: path to the ffmpeg binary (default assumes it's in PATH)
            jpeg_quality: mjpeg -q:v value, 2-31, lower is better
            timeout_seconds: kill ffmpeg after this long; None waits forever
        """
        self._ffmpeg = ffmpeg_path
        self._quality = jpeg_quality
        self._timeout = timeout_seconds

    def build_batch_command(self, source_ref: str, predicate: SelectionPredicate) -> list[str]:
        # -fps_mode vfr stops ffmpeg duplicating frames to fill the gaps select leaves
        return [
            self._ffmpeg,
            "-hide_banner",
            "-nostdin",
            "-i", source_ref,
            "-vf", predicate.filter_graph,
            "-fps_mode", "vfr",
            *self._jpeg_output_args(),
        ]

    def build_single_command(self, source_ref: str, timestamp_ms: int, width: int) -> list[str]:
        return [
            self._ffmpeg,
            "-hide_banner",
            "-nostdin",
            "-ss", f"{timestamp_ms / 1000:.3f}",
            "-i", source_ref,
            "-frames:v", "1",
            "-vf", f"scale={width}:-1",
            *self._jpeg_output_args(),
        ]

    async def decode_batch(self, source_ref: str, predicate: SelectionPredicate) -> DecoderOutput:
        """Run one ffmpeg pass that emits every frame the predicate selects."""
        cmd = self.build_batch_command(source_ref, predicate)
        logger.debug(
            "Starting batched decode",
            extra={"windows": len(predicate.windows), "width": predicate.width},
        )
        return await self._run(cmd)

    async def decode_single(self, source_ref: str, timestamp_ms: int, width: int) -> DecoderOutput:
        """Seek to one timestamp and emit a single frame."""
        cmd = self.build_single_command(source_ref, timestamp_ms, width)
        logger.debug("Starting single-frame decode", extra={"timestamp_ms": timestamp_ms})
        return await self._run(cmd)

    async def is_available(self) -> bool:
        """Check ffmpeg can be started and reports a version."""
        try:
            output = await self._run([self._ffmpeg, "-version"])
        except DecodeError:
            return False
        return output.succeeded

    def _jpeg_output_args(self) -> list[str]:
        return [
            "-f", "image2pipe",
            "-c:v", "mjpeg",
            "-q:v", str(self._quality),
            "pipe:1",
        ]

    async def _run(self, cmd: list[str]) -> DecoderOutput:
        result = await run_process(cmd, "ffmpeg", timeout=self._timeout)
        return DecoderOutput(exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr)


class MockFrameDecoder:
    """
    Decoder for local development without FFmpeg.

    Produces real JPEGs: one solid-color frame per requested window, with a
    hue derived from the timestamp, so the whole pipeline (demux,
    reconcile, palette) runs for real. Reports showinfo-style timing on
    stderr the way ffmpeg does.
    """

    def __init__(self, width: int = 200, height: int = 112):
        self._width = width
        self._height = height
        self.invocations = 0
        logger.info("Initialized mock frame decoder")

    async def decode_batch(self, source_ref: str, predicate: SelectionPredicate) -> DecoderOutput:
        self.invocations += 1
        centers = sorted({
            round((w.start_seconds + w.end_seconds) / 2 * 1000) for w in predicate.windows
        })
        stream = b"".join(self.render_frame(ts) for ts in centers)
        stderr = "\n".join(
            f"[Parsed_showinfo_1 @ 0x0] n:{i:4d} pts:{ts:7d} pts_time:{ts / 1000:.3f}"
            for i, ts in enumerate(centers)
        )
        return DecoderOutput(exit_code=0, stdout=stream, stderr=stderr)

    async def decode_single(self, source_ref: str, timestamp_ms: int, width: int) -> DecoderOutput:
        self.invocations += 1
        return DecoderOutput(exit_code=0, stdout=self.render_frame(timestamp_ms))

    async def is_available(self) -> bool:
        return True

    def render_frame(self, timestamp_ms: int) -> bytes:
        # one full trip round the hue circle every 10 seconds
        hue = (timestamp_ms % 10_000) / 10_000
        r, g, b = colorsys.hls_to_rgb(hue, 0.5, 0.9)
        image = Image.new(
            "RGB",
            (self._width, self._height),
            (round(r * 255), round(g * 255), round(b * 255)),
        )
        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=95)
        return buffer.getvalue()


def create_frame_decoder(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    jpeg_quality: int = 2,
    timeout_seconds: Optional[float] = None,
) -> FrameDecoder:
    """
    Factory function for frame decoders.

    Args:
        mock_mode: If True, return mock decoder (no FFmpeg required)
    """
    if mock_mode:
        return MockFrameDecoder()

    return FFmpegFrameDecoder(
        ffmpeg_path=ffmpeg_path,
        jpeg_quality=jpeg_quality,
        timeout_seconds=timeout_seconds,
    )
