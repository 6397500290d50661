"""
Frame Colors - dominant color extraction from video frames.

This package contains the complete application:
- core: Framework-agnostic extraction pipeline
- infrastructure: FFmpeg, Pillow and persistence integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
