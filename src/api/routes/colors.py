"""
Color extraction API endpoints.

The flow for one request:
1. Validate the URL against the source policy
2. Resolve video page URLs to the actual video file
3. Probe the duration and reject out-of-range timestamps
4. Hand off to the extraction service (one decoder run for the batch)
5. Record the request in processing history

Everything from step 4 onwards either fully succeeds or fails with one
typed error; this module's job is turning those errors into HTTP
responses.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.extraction.errors import (
    ColorExtractionError,
    PartialExtractionError,
    SourceUnreachableError,
    UnsupportedSourceError,
)
from ...infrastructure.history.repository import ProcessingRecord
from ...infrastructure.video.sources import InvalidVideoUrlError
from ..dependencies import ExtractionServiceDep, HistoryRepositoryDep, SourceResolverDep

logger = logging.getLogger(__name__)

router = APIRouter()

_UNPROCESSABLE_CONTENT = 422


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ExtractColorsRequest(BaseModel):
    """Request body for color extraction."""
    video_url: str = Field(
        description="URL of the video file or video page (e.g. a Pexels video page)",
        examples=["https://example.com/video.mp4"],
    )
    timestamps: list[Annotated[int, Field(ge=0)]] = Field(
        min_length=1,
        description="Timestamps in milliseconds to extract frames from",
        examples=[[2000, 8000]],
    )


class ColorResultResponse(BaseModel):
    """Dominant color at one timestamp."""
    timestamp: int = Field(description="Timestamp in milliseconds")
    color: str = Field(description="Dominant color in HEX format", examples=["#FF7850"])
    decode_duration_ms: float = Field(description="Decoder time (shared across a batch)")
    extract_duration_ms: float = Field(description="Palette extraction time for this frame")


class TimingResponse(BaseModel):
    """Where the time went for the whole request."""
    decode_duration_ms: float
    total_extract_duration_ms: float
    total_duration_ms: float
    decoder_invocations: int
    batched: bool


class ExtractColorsResponse(BaseModel):
    """Colors for every requested timestamp, in request order."""
    video_url: str = Field(description="URL of the processed video")
    results: list[ColorResultResponse]
    timing: TimingResponse


class ProcessingRecordResponse(BaseModel):
    """One entry in the processing history."""
    id: str
    video_url: str
    timestamps: list[int]
    colors: list[str]
    processed_at: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/extract-colors",
    response_model=ExtractColorsResponse,
    status_code=status.HTTP_200_OK,
    summary="Extract dominant colors from video frames",
    description=(
        "Accepts a video URL and array of timestamps, extracts frames at those "
        "timestamps, and returns the dominant color for each frame in HEX format."
    ),
    responses={
        400: {"description": "Invalid request or processing error"},
        422: {"description": "Video is corrupt or in an unsupported format"},
        502: {"description": "Video source could not be reached"},
    },
)
async def extract_colors(
    request: ExtractColorsRequest,
    service: ExtractionServiceDep,
    resolver: SourceResolverDep,
    history: HistoryRepositoryDep,
) -> ExtractColorsResponse:
    """
    Extract the dominant color at each requested timestamp.

    All timestamps are served by a single decoder run. Results come back
    in the order the timestamps were given, duplicates included.
    """
    try:
        resolver.validate(request.video_url)
    except InvalidVideoUrlError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        "Color extraction requested",
        extra={"video_url": request.video_url, "timestamp_count": len(request.timestamps)},
    )

    try:
        source = await resolver.resolve(request.video_url)
        duration_ms = await resolver.probe_duration_ms(source)

        beyond = [ts for ts in request.timestamps if ts > duration_ms]
        if beyond:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Timestamps {', '.join(str(ts) for ts in beyond)} exceed "
                    f"video duration of {duration_ms}ms"
                ),
            )

        extraction = await service.extract_colors(source, request.timestamps)
    except ColorExtractionError as e:
        raise _to_http_error(e)

    await history.save_processing_record(ProcessingRecord(
        video_url=request.video_url,
        timestamps=tuple(request.timestamps),
        colors=tuple(extraction.colors),
    ))

    timing = extraction.timing
    return ExtractColorsResponse(
        video_url=request.video_url,
        results=[
            ColorResultResponse(
                timestamp=r.timestamp,
                color=r.hex_color,
                decode_duration_ms=round(r.decode_duration_ms, 2),
                extract_duration_ms=round(r.extract_duration_ms, 2),
            )
            for r in extraction.results
        ],
        timing=TimingResponse(
            decode_duration_ms=round(timing.decode_duration_ms, 2),
            total_extract_duration_ms=round(timing.total_extract_duration_ms, 2),
            total_duration_ms=round(timing.total_duration_ms, 2),
            decoder_invocations=timing.decoder_invocations,
            batched=timing.batched,
        ),
    )


@router.get(
    "/history",
    response_model=list[ProcessingRecordResponse],
    summary="Processing history for a video",
)
async def get_history(
    history: HistoryRepositoryDep,
    video_url: str = Query(description="Video URL as originally submitted"),
) -> list[ProcessingRecordResponse]:
    records = await history.get_processing_history(video_url)
    return [
        ProcessingRecordResponse(
            id=str(r.id),
            video_url=r.video_url,
            timestamps=list(r.timestamps),
            colors=list(r.colors),
            processed_at=r.processed_at.isoformat(),
        )
        for r in records
    ]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def _to_http_error(error: ColorExtractionError) -> HTTPException:
    """Translate an extraction failure into a client-facing HTTP error."""
    if isinstance(error, SourceUnreachableError):
        status_code = status.HTTP_502_BAD_GATEWAY
        detail = (
            "Video URL is not accessible. Verify the URL is correct, publicly "
            "accessible, and points to a valid video file."
        )
    elif isinstance(error, UnsupportedSourceError):
        status_code = _UNPROCESSABLE_CONTENT
        detail = (
            "Invalid video format or corrupted file. Ensure the URL is a direct "
            "link to a valid video file (e.g. .mp4, .avi, .mov)."
        )
    elif isinstance(error, PartialExtractionError):
        status_code = status.HTTP_400_BAD_REQUEST
        missing = ", ".join(str(ts) for ts in error.missing_timestamps)
        detail = (
            f"Could not extract frames for timestamps {missing}. Timestamps closer "
            f"than 20ms apart may resolve to the same frame."
        )
    else:
        status_code = status.HTTP_400_BAD_REQUEST
        detail = f"Failed to extract colors: {error}"

    logger.error(
        "Color extraction request failed",
        extra={"error_type": type(error).__name__, "status_code": status_code, "error": str(error)},
    )
    return HTTPException(status_code=status_code, detail=detail)
