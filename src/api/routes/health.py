"""
Health check endpoints.

Health checks are essential for:
- Load balancers to know if the service is alive
- Deployment systems to verify rollouts
- Catching a container image that shipped without FFmpeg

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (are ffmpeg and ffprobe usable?)
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import FrameDecoderDep, SettingsDep, SourceResolverDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    ffmpeg_available: bool
    message: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    Fast and doesn't spawn anything.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": settings.decoder_mock_mode,
            "demux_mode": settings.demux_mode.value,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if FFmpeg and FFprobe are installed and configuration is valid.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    decoder: FrameDecoderDep,
    resolver: SourceResolverDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Spawns `ffmpeg -version` and `ffprobe -version`. Returns 503 if either
    fails or the configuration is inconsistent, which tells load
    balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    problems = settings.validate_required_fields()
    checks.append(ReadinessCheck(
        name="configuration",
        status="error" if problems else "ok",
        error=f"Invalid settings: {', '.join(problems)}" if problems else None,
    ))

    ffmpeg_ok = await decoder.is_available()
    checks.append(ReadinessCheck(
        name="ffmpeg",
        status="ok" if ffmpeg_ok else "error",
        error=None if ffmpeg_ok else f"Could not run {settings.ffmpeg_path}",
    ))

    ffprobe_ok = await resolver.is_available()
    checks.append(ReadinessCheck(
        name="ffprobe",
        status="ok" if ffprobe_ok else "error",
        error=None if ffprobe_ok else f"Could not run {settings.ffprobe_path}",
    ))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        ffmpeg_available=ffmpeg_ok,
        message=(
            "FFmpeg is installed and accessible"
            if ffmpeg_ok
            else "FFmpeg is not available. Please install FFmpeg."
        ),
        checks=checks,
    )
