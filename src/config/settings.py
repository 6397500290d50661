"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without FFmpeg installed.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.extraction.demux import DemuxMode


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Frame Colors API"
    api_version: str = "v1"

    # Decoder Configuration
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to the ffmpeg binary. Default assumes it's on PATH."
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to the ffprobe binary, used for duration probing."
    )
    frame_width: int = Field(
        default=200,
        gt=0,
        description="Width frames are scaled to before palette extraction. Aspect ratio is kept."
    )
    jpeg_quality: int = Field(
        default=2,
        ge=2,
        le=31,
        description="ffmpeg -q:v for emitted JPEGs. 2 is near-lossless."
    )
    selection_tolerance_ms: float = Field(
        default=10.0,
        gt=0,
        description="Half-width of the time window around each requested timestamp."
    )
    decoder_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Kill ffmpeg after this many seconds. Unset means no limit."
    )
    decoder_mock_mode: bool = Field(
        default=False,
        description="Use synthetic frames instead of ffmpeg/ffprobe. Enables local dev without FFmpeg."
    )
    mock_video_duration_ms: int = Field(
        default=30_000,
        ge=0,
        description="Duration the mock source resolver reports."
    )

    # Demultiplexing / Reconciliation
    demux_mode: DemuxMode = Field(
        default=DemuxMode.SEGMENT_WALK,
        description="How frame boundaries are found: 'segment_walk' or 'soi_scan'."
    )
    verify_presentation_time: bool = Field(
        default=True,
        description="Match frames to timestamps by decoder-reported time when available."
    )

    # Palette Extraction
    palette_color_count: int = Field(
        default=64,
        ge=1,
        le=256,
        description="Number of clusters frames are quantized into."
    )
    palette_quality: int = Field(
        default=5,
        ge=1,
        description="Downscale factor before quantizing. 1 keeps every pixel."
    )
    palette_generate_missing: bool = Field(
        default=True,
        description="Derive empty palette categories from filled ones."
    )

    # Video Sources
    allowed_video_extensions: str = Field(
        default=".mp4,.avi,.mov,.mkv,.webm,.flv,.wmv,.m4v",
        description="Comma-separated file extensions accepted in video URLs."
    )
    trusted_video_domains: str = Field(
        default="s3.,amazonaws.com,cloudfront.net,cdn.,storage.googleapis.com",
        description="Comma-separated domain fragments accepted regardless of extension."
    )
    probe_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for ffprobe duration checks."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_video_extensions_list(self) -> list[str]:
        return [ext.strip().lower() for ext in self.allowed_video_extensions.split(",") if ext.strip()]

    @property
    def trusted_video_domains_list(self) -> list[str]:
        return [d.strip().lower() for d in self.trusted_video_domains.split(",") if d.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that depend on each other.

        Returns a list of problems. This is separate from Pydantic
        validation because most of these only matter outside mock mode.
        """
        problems = []

        if not self.decoder_mock_mode:
            if not self.ffmpeg_path:
                problems.append("FFMPEG_PATH")
            if not self.ffprobe_path:
                problems.append("FFPROBE_PATH")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
