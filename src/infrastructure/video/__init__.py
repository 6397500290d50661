"""
Video processing infrastructure.

Handles server-side video access using FFmpeg:
- Batched and single-frame JPEG decoding over an in-memory pipe
- Source URL validation and video page resolution
- Duration probing with FFprobe
"""

from .decoder import (
    FFmpegFrameDecoder,
    MockFrameDecoder,
    create_frame_decoder,
)
from .sources import (
    InvalidVideoUrlError,
    MockVideoSourceResolver,
    SourcePolicy,
    VideoSourceResolver,
)

__all__ = [
    "FFmpegFrameDecoder",
    "MockFrameDecoder",
    "create_frame_decoder",
    "InvalidVideoUrlError",
    "MockVideoSourceResolver",
    "SourcePolicy",
    "VideoSourceResolver",
]
