"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload

Without FFmpeg installed:
    DECODER_MOCK_MODE=true uvicorn src.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import colors, health
from .config.settings import get_settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs startup configuration and reports invalid settings. We don't
    refuse to start: /health/ready reports the same problems as 503.
    """
    settings = get_settings()

    logger.info(
        "Frame Colors API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.decoder_mock_mode,
            "demux_mode": settings.demux_mode.value,
            "frame_width": settings.frame_width,
        }
    )

    problems = settings.validate_required_fields()
    if problems:
        logger.error(
            "Invalid configuration",
            extra={"problems": problems}
        )

    yield

    logger.info("Frame Colors API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Dominant color extraction from video frames.

        ## Workflow

        `POST /api/v1/video/extract-colors` with a video URL and a list of
        millisecond timestamps. All timestamps are decoded in a single
        FFmpeg run; the response holds one HEX color per timestamp, in
        request order, plus a timing breakdown.

        `GET /api/v1/video/history?video_url=...` lists earlier requests
        for the same video.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        colors.router,
        prefix="/api/v1/video",
        tags=["Colors"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at docs."""
        return {
            "message": "Frame Colors API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
