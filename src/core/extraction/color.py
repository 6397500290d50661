"""
Picking one dominant color out of a palette.

The palette extractor gives us up to six categorized swatches. We want a
single color per frame, chosen the same way every time, so the choice is a
fixed priority list: the first category that's present wins.
"""

from typing import Protocol

from .errors import NoSwatchError
from .models import Palette, PaletteCategory, Swatch


PALETTE_PRIORITY: tuple[PaletteCategory, ...] = (
    PaletteCategory.VIBRANT,
    PaletteCategory.MUTED,
    PaletteCategory.DARK_VIBRANT,
    PaletteCategory.DARK_MUTED,
    PaletteCategory.LIGHT_VIBRANT,
    PaletteCategory.LIGHT_MUTED,
)


class PaletteExtractor(Protocol):
    """
    Anything that can turn an encoded image into a categorized palette.

    The production implementation is Pillow-based; tests pass in fakes
    that return canned palettes.
    """

    def extract(self, image_data: bytes) -> Palette:
        """Build a palette for one encoded image."""
        ...


def select_dominant_swatch(palette: Palette) -> Swatch:
    """
    Return the highest-priority swatch present in the palette.

    Raises:
        NoSwatchError: no category is filled (solid frames can do this)
    """
    for category in PALETTE_PRIORITY:
        swatch = palette.get(category)
        if swatch is not None:
            return swatch

    raise NoSwatchError("No color swatch found in palette")


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """
    Format an RGB triple as `#RRGGBB`.

    Channels are rounded to the nearest integer and clamped to 0-255.
    """
    return "#" + "".join(f"{_channel(value):02X}" for value in (r, g, b))


def extract_dominant_color(extractor: PaletteExtractor, image_data: bytes) -> str:
    """Palette-extract one frame and return its dominant color as hex."""
    palette = extractor.extract(image_data)
    swatch = select_dominant_swatch(palette)
    return rgb_to_hex(*swatch.rgb)


def _channel(value: float) -> int:
    # halves round up; round() would send 127.5 to 128 but 126.5 to 126
    return min(255, max(0, int(float(value) + 0.5)))
