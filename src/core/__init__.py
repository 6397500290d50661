"""
Core business logic for frame color extraction.

This module is framework-agnostic - it doesn't import FastAPI, FFmpeg
bindings, Pillow or any infrastructure concerns. The decoder and palette
extractor arrive through protocols, so the pipeline can be tested with
fakes and the backends swapped without touching it.
"""
