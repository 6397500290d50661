"""
Vibrant-style palette extraction using Pillow.

Given one small encoded frame, this:
1. Decodes it and scales it down further (`quality` is the shrink factor)
2. Drops near-white pixels, which otherwise swamp most frames
3. Median-cut quantizes the rest into `color_count` clusters
4. Scores every cluster against six luma/saturation targets and keeps the
   best one per category (Vibrant, LightVibrant, DarkVibrant, Muted,
   LightMuted, DarkMuted)
5. Optionally derives empty categories from filled ones

The targets and weights are the ones Vibrant.js popularised. They favour
saturated mid-luma colors, which is usually what people mean by "the color
of this frame".
"""

import colorsys
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from src.core.extraction.errors import UnsupportedSourceError
from src.core.extraction.models import Palette, PaletteCategory, Swatch

logger = logging.getLogger(__name__)


TARGET_DARK_LUMA = 0.26
MAX_DARK_LUMA = 0.45
MIN_LIGHT_LUMA = 0.55
TARGET_LIGHT_LUMA = 0.74
MIN_NORMAL_LUMA = 0.3
TARGET_NORMAL_LUMA = 0.5
MAX_NORMAL_LUMA = 0.7

TARGET_MUTED_SATURATION = 0.3
MAX_MUTED_SATURATION = 0.4
TARGET_VIBRANT_SATURATION = 1.0
MIN_VIBRANT_SATURATION = 0.35

WEIGHT_SATURATION = 3.0
WEIGHT_LUMA = 6.5
WEIGHT_POPULATION = 0.5

# pixels brighter than this on every channel are ignored
WHITE_THRESHOLD = 250


@dataclass(frozen=True)
class _Target:
    category: PaletteCategory
    target_luma: float
    min_luma: float
    max_luma: float
    target_saturation: float
    min_saturation: float
    max_saturation: float


# evaluation order matters: a cluster claimed by one category can't be reused
_TARGETS: tuple[_Target, ...] = (
    _Target(PaletteCategory.VIBRANT, TARGET_NORMAL_LUMA, MIN_NORMAL_LUMA, MAX_NORMAL_LUMA,
            TARGET_VIBRANT_SATURATION, MIN_VIBRANT_SATURATION, 1.0),
    _Target(PaletteCategory.LIGHT_VIBRANT, TARGET_LIGHT_LUMA, MIN_LIGHT_LUMA, 1.0,
            TARGET_VIBRANT_SATURATION, MIN_VIBRANT_SATURATION, 1.0),
    _Target(PaletteCategory.DARK_VIBRANT, TARGET_DARK_LUMA, 0.0, MAX_DARK_LUMA,
            TARGET_VIBRANT_SATURATION, MIN_VIBRANT_SATURATION, 1.0),
    _Target(PaletteCategory.MUTED, TARGET_NORMAL_LUMA, MIN_NORMAL_LUMA, MAX_NORMAL_LUMA,
            TARGET_MUTED_SATURATION, 0.0, MAX_MUTED_SATURATION),
    _Target(PaletteCategory.LIGHT_MUTED, TARGET_LIGHT_LUMA, MIN_LIGHT_LUMA, 1.0,
            TARGET_MUTED_SATURATION, 0.0, MAX_MUTED_SATURATION),
    _Target(PaletteCategory.DARK_MUTED, TARGET_DARK_LUMA, 0.0, MAX_DARK_LUMA,
            TARGET_MUTED_SATURATION, 0.0, MAX_MUTED_SATURATION),
)


@dataclass(frozen=True)
class _Cluster:
    """A quantized color with its HSL coordinates."""
    swatch: Swatch
    hue: float
    saturation: float
    luma: float

    @classmethod
    def from_rgb(cls, rgb: tuple[float, float, float], population: int) -> "_Cluster":
        r, g, b = (channel / 255 for channel in rgb)
        hue, luma, saturation = colorsys.rgb_to_hls(r, g, b)
        return cls(
            swatch=Swatch(rgb=rgb, population=population),
            hue=hue,
            saturation=saturation,
            luma=luma,
        )


class VibrantPaletteExtractor:
    """
    Builds six-category palettes from encoded images.

    Stateless apart from its settings, so one instance can serve any
    number of concurrent extractions from worker threads.
    """

    def __init__(
        self,
        color_count: int = 64,
        quality: int = 5,
        generate_missing: bool = True,
    ):
        """
        Args:
            color_count: number of clusters to quantize into (max 256)
            quality: downscale factor applied before quantizing; 1 keeps
                every pixel
            generate_missing: derive empty categories from filled ones
        """
        if not 1 <= color_count <= 256:
            raise ValueError("color_count must be between 1 and 256")
        if quality < 1:
            raise ValueError("quality must be at least 1")

        self.color_count = color_count
        self.quality = quality
        self.generate_missing = generate_missing

    def extract(self, image_data: bytes) -> Palette:
        """
        Build a palette for one encoded image.

        Raises:
            UnsupportedSourceError: the bytes aren't a decodable image
        """
        image = self._load(image_data)
        clusters = self._quantize(image)
        found = self._classify(clusters)

        if self.generate_missing:
            found = _fill_missing(found)

        logger.debug(
            "Extracted palette",
            extra={
                "clusters": len(clusters),
                "categories": [cat.value for cat in found],
            }
        )

        return Palette.from_categories(found)

    def _load(self, image_data: bytes) -> Image.Image:
        try:
            image = Image.open(BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise UnsupportedSourceError(f"Could not decode frame image: {e}")

        image = image.convert("RGB")

        if self.quality > 1:
            width = max(1, image.width // self.quality)
            height = max(1, image.height // self.quality)
            image = image.resize((width, height), Image.Resampling.BILINEAR)

        return image

    def _quantize(self, image: Image.Image) -> list[_Cluster]:
        raw = image.tobytes()
        kept = bytearray()
        for i in range(0, len(raw), 3):
            pixel = raw[i:i + 3]
            if min(pixel) <= WHITE_THRESHOLD:
                kept += pixel
        if not kept:
            return []

        # lay the surviving pixels out as a 1-row strip so Pillow can quantize them
        strip = Image.frombytes("RGB", (len(kept) // 3, 1), bytes(kept))

        quantized = strip.quantize(
            colors=self.color_count,
            method=Image.Quantize.MEDIANCUT,
        )
        palette = quantized.getpalette() or []
        colors = quantized.getcolors(maxcolors=256) or []

        clusters = []
        for population, index in colors:
            rgb = tuple(float(c) for c in palette[index * 3:index * 3 + 3])
            if len(rgb) == 3:
                clusters.append(_Cluster.from_rgb(rgb, population))
        return clusters

    def _classify(self, clusters: list[_Cluster]) -> dict[PaletteCategory, Swatch]:
        if not clusters:
            return {}

        max_population = max(c.swatch.population for c in clusters)
        claimed: set[int] = set()
        found: dict[PaletteCategory, Swatch] = {}

        for target in _TARGETS:
            best = _best_match(clusters, target, max_population, claimed)
            if best is not None:
                claimed.add(best)
                found[target.category] = clusters[best].swatch

        return found


def _best_match(
    clusters: list[_Cluster],
    target: _Target,
    max_population: int,
    claimed: set[int],
) -> Optional[int]:
    best_index = None
    best_score = -1.0

    for i, cluster in enumerate(clusters):
        if i in claimed:
            continue
        if not (target.min_saturation <= cluster.saturation <= target.max_saturation):
            continue
        if not (target.min_luma <= cluster.luma <= target.max_luma):
            continue

        score = _score(cluster, target, max_population)
        if score > best_score:
            best_index, best_score = i, score

    return best_index


def _score(cluster: _Cluster, target: _Target, max_population: int) -> float:
    saturation_fit = 1 - abs(cluster.saturation - target.target_saturation)
    luma_fit = 1 - abs(cluster.luma - target.target_luma)
    population_fit = cluster.swatch.population / max_population if max_population else 0

    return (
        saturation_fit * WEIGHT_SATURATION
        + luma_fit * WEIGHT_LUMA
        + population_fit * WEIGHT_POPULATION
    ) / (WEIGHT_SATURATION + WEIGHT_LUMA + WEIGHT_POPULATION)


def _fill_missing(found: dict[PaletteCategory, Swatch]) -> dict[PaletteCategory, Swatch]:
    """
    Derive empty categories from neighbours.

    Derived swatches keep the source hue, take the luma (and for muted
    ones, the saturation) of the category they fill, and have zero
    population.
    """
    filled = dict(found)
    vibrant = PaletteCategory.VIBRANT
    dark_vibrant = PaletteCategory.DARK_VIBRANT
    light_vibrant = PaletteCategory.LIGHT_VIBRANT

    if not any(cat in filled for cat in (vibrant, dark_vibrant, light_vibrant)):
        if PaletteCategory.DARK_MUTED in filled:
            filled[dark_vibrant] = _derive(filled[PaletteCategory.DARK_MUTED], luma=TARGET_DARK_LUMA)
        if PaletteCategory.LIGHT_MUTED in filled:
            filled[light_vibrant] = _derive(filled[PaletteCategory.LIGHT_MUTED], luma=TARGET_LIGHT_LUMA)

    if vibrant not in filled:
        source = filled.get(dark_vibrant) or filled.get(light_vibrant)
        if source is not None:
            filled[vibrant] = _derive(source, luma=TARGET_NORMAL_LUMA)

    if vibrant in filled:
        filled.setdefault(dark_vibrant, _derive(filled[vibrant], luma=TARGET_DARK_LUMA))
        filled.setdefault(light_vibrant, _derive(filled[vibrant], luma=TARGET_LIGHT_LUMA))
        filled.setdefault(
            PaletteCategory.MUTED,
            _derive(filled[vibrant], luma=TARGET_NORMAL_LUMA, saturation=TARGET_MUTED_SATURATION),
        )

    if dark_vibrant in filled:
        filled.setdefault(
            PaletteCategory.DARK_MUTED,
            _derive(filled[dark_vibrant], luma=TARGET_DARK_LUMA, saturation=TARGET_MUTED_SATURATION),
        )
    if light_vibrant in filled:
        filled.setdefault(
            PaletteCategory.LIGHT_MUTED,
            _derive(filled[light_vibrant], luma=TARGET_LIGHT_LUMA, saturation=TARGET_MUTED_SATURATION),
        )

    return filled


def _derive(source: Swatch, luma: float, saturation: Optional[float] = None) -> Swatch:
    r, g, b = (channel / 255 for channel in source.rgb)
    hue, _, source_saturation = colorsys.rgb_to_hls(r, g, b)
    if saturation is None:
        saturation = source_saturation
    r, g, b = colorsys.hls_to_rgb(hue, luma, saturation)
    return Swatch(rgb=(r * 255, g * 255, b * 255), population=0)
