"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests via app.dependency_overrides
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.extraction.decoding import FrameDecoder
from ..core.extraction.service import ColorExtractionService
from ..infrastructure.history.repository import HistoryRepository, InMemoryHistoryRepository
from ..infrastructure.palette.vibrant import VibrantPaletteExtractor
from ..infrastructure.video.decoder import create_frame_decoder
from ..infrastructure.video.sources import (
    MockVideoSourceResolver,
    SourcePolicy,
    VideoSourceResolver,
)

logger = logging.getLogger(__name__)

# History is process-wide so records survive across requests
_history_repository: Optional[InMemoryHistoryRepository] = None


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_frame_decoder(
    settings: Annotated[Settings, Depends(get_settings)],
) -> FrameDecoder:
    """
    Provide the frame decoder.

    Decoders hold no per-call state (each call owns its own process),
    so a new instance per request costs nothing.
    """
    return create_frame_decoder(
        mock_mode=settings.decoder_mock_mode,
        ffmpeg_path=settings.ffmpeg_path,
        jpeg_quality=settings.jpeg_quality,
        timeout_seconds=settings.decoder_timeout_seconds,
    )


def get_palette_extractor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VibrantPaletteExtractor:
    return VibrantPaletteExtractor(
        color_count=settings.palette_color_count,
        quality=settings.palette_quality,
        generate_missing=settings.palette_generate_missing,
    )


def get_extraction_service(
    settings: Annotated[Settings, Depends(get_settings)],
    decoder: Annotated[FrameDecoder, Depends(get_frame_decoder)],
    palette_extractor: Annotated[VibrantPaletteExtractor, Depends(get_palette_extractor)],
) -> ColorExtractionService:
    """Provide the extraction service wired with configured collaborators."""
    return ColorExtractionService(
        decoder=decoder,
        palette_extractor=palette_extractor,
        frame_width=settings.frame_width,
        tolerance_ms=settings.selection_tolerance_ms,
        demux_mode=settings.demux_mode,
        verify_presentation_time=settings.verify_presentation_time,
    )


def get_source_resolver(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoSourceResolver:
    """
    Provide the video source resolver.

    In mock mode there's no ffprobe and no network: every accepted URL
    resolves to itself with a fixed duration.
    """
    policy = SourcePolicy(
        video_extensions=tuple(settings.allowed_video_extensions_list),
        trusted_domains=tuple(settings.trusted_video_domains_list),
    )

    if settings.decoder_mock_mode:
        return MockVideoSourceResolver(
            duration_ms=settings.mock_video_duration_ms,
            policy=policy,
        )

    return VideoSourceResolver(
        policy=policy,
        ffprobe_path=settings.ffprobe_path,
        probe_timeout_seconds=settings.probe_timeout_seconds,
    )


def get_history_repository() -> HistoryRepository:
    """
    Provide the processing history repository.

    Shared across requests so that history persists for the process lifetime.
    """
    global _history_repository

    if _history_repository is None:
        _history_repository = InMemoryHistoryRepository()
    return _history_repository


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
FrameDecoderDep = Annotated[FrameDecoder, Depends(get_frame_decoder)]
ExtractionServiceDep = Annotated[ColorExtractionService, Depends(get_extraction_service)]
SourceResolverDep = Annotated[VideoSourceResolver, Depends(get_source_resolver)]
HistoryRepositoryDep = Annotated[HistoryRepository, Depends(get_history_repository)]
