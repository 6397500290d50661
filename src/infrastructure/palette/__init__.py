"""
Palette extraction infrastructure.

Turns encoded frames into categorized color palettes using Pillow.
"""

from .vibrant import VibrantPaletteExtractor

__all__ = ["VibrantPaletteExtractor"]
