"""
Infrastructure layer - external tool and service integrations.

Each subdirectory wraps an external dependency:
- video: FFmpeg/FFprobe decoding, source resolution and probing
- palette: Pillow-based palette extraction
- history: Processing history persistence

These wrappers translate between external formats and our domain models.
"""
