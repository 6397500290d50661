"""
Shared fixtures for the unit tests.

Two kinds of frames are used:
- real Pillow JPEGs, for the demultiplexer and the palette extractor
- tiny labelled JPEG shells (SOI, one comment segment, EOI), for the
  orchestrator, where the label tells the fake extractor which color the
  frame "contains"
"""

from io import BytesIO
from typing import Optional

import pytest
from PIL import Image

from src.core.extraction.decoding import DecoderOutput
from src.core.extraction.models import Palette, Swatch
from src.core.extraction.predicate import SelectionPredicate


def labelled_frame(label: int) -> bytes:
    """A structurally valid JPEG shell whose comment segment carries `label`."""
    payload = str(label).encode()
    return (
        b"\xff\xd8"
        + b"\xff\xfe" + (len(payload) + 2).to_bytes(2, "big") + payload
        + b"\xff\xd9"
    )


def label_color(label: int) -> str:
    """The hex color LabelPaletteExtractor reports for a labelled frame."""
    return f"#{(label >> 16) & 0xFF:02X}{(label >> 8) & 0xFF:02X}{label & 0xFF:02X}"


class LabelPaletteExtractor:
    """Reads the label out of a labelled frame and turns it into a Vibrant swatch."""

    def __init__(self) -> None:
        self.calls = 0

    def extract(self, image_data: bytes) -> Palette:
        self.calls += 1
        length = int.from_bytes(image_data[4:6], "big")
        label = int(image_data[6:4 + length])
        rgb = ((label >> 16) & 0xFF, (label >> 8) & 0xFF, label & 0xFF)
        return Palette(vibrant=Swatch(rgb=tuple(float(c) for c in rgb), population=1))


class RecordingDecoder:
    """
    Fake decoder that emits one labelled frame per selection window.

    Frames are labelled with the window's center timestamp and emitted in
    ascending order, like ffmpeg does. Knobs let tests drop frames, fail
    the run, or report presentation times.
    """

    def __init__(
        self,
        drop_last: int = 0,
        extra_frames: int = 0,
        exit_code: int = 0,
        stderr: str = "",
        stdout: Optional[bytes] = None,
        report_pts: bool = False,
        pts_override: Optional[list[int]] = None,
        available: bool = True,
    ):
        self.drop_last = drop_last
        self.extra_frames = extra_frames
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        self.report_pts = report_pts
        self.pts_override = pts_override
        self.available = available
        self.batch_calls: list[SelectionPredicate] = []
        self.single_calls: list[int] = []

    @property
    def invocations(self) -> int:
        return len(self.batch_calls) + len(self.single_calls)

    async def decode_batch(self, source_ref: str, predicate: SelectionPredicate) -> DecoderOutput:
        self.batch_calls.append(predicate)
        if self.exit_code != 0 or self.stdout is not None:
            return DecoderOutput(exit_code=self.exit_code, stdout=self.stdout or b"", stderr=self.stderr)

        labels = self.pts_override or sorted({
            round((w.start_seconds + w.end_seconds) / 2 * 1000) for w in predicate.windows
        })
        if self.drop_last:
            labels = labels[:-self.drop_last]
        labels = list(labels) + [labels[-1] + 1 + i for i in range(self.extra_frames)]

        stderr = self.stderr
        if self.report_pts:
            stderr += "\n".join(
                f"[Parsed_showinfo_1 @ 0x0] n:{i} pts:{ts} pts_time:{ts / 1000:.3f}"
                for i, ts in enumerate(labels)
            )

        return DecoderOutput(
            exit_code=0,
            stdout=b"".join(labelled_frame(ts) for ts in labels),
            stderr=stderr,
        )

    async def decode_single(self, source_ref: str, timestamp_ms: int, width: int) -> DecoderOutput:
        self.single_calls.append(timestamp_ms)
        if self.exit_code != 0 or self.stdout is not None:
            return DecoderOutput(exit_code=self.exit_code, stdout=self.stdout or b"", stderr=self.stderr)
        return DecoderOutput(exit_code=0, stdout=labelled_frame(timestamp_ms))

    async def is_available(self) -> bool:
        return self.available


@pytest.fixture
def make_jpeg():
    """Factory for real solid-color JPEGs."""
    def _make(color=(200, 30, 30), size=(64, 36), quality=95) -> bytes:
        buffer = BytesIO()
        Image.new("RGB", size, color).save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_striped_jpeg():
    """Factory for JPEGs split into vertical bands of the given colors."""
    def _make(colors, size=(120, 40)) -> bytes:
        image = Image.new("RGB", size)
        band = size[0] // len(colors)
        for i, color in enumerate(colors):
            image.paste(color, (i * band, 0, (i + 1) * band if i < len(colors) - 1 else size[0], size[1]))
        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=95)
        return buffer.getvalue()
    return _make


@pytest.fixture
def label_extractor() -> LabelPaletteExtractor:
    return LabelPaletteExtractor()


@pytest.fixture
def recording_decoder():
    """Factory for RecordingDecoder with per-test knobs."""
    return RecordingDecoder


@pytest.fixture
def expected_color():
    return label_color
