"""
Error taxonomy for color extraction.

Every component raises one of these and lets it propagate unchanged to the
orchestrator boundary. Nothing in the core catches them to recover. A call
either returns a complete result set or raises exactly one of these.
Translating them into user-facing messages is the API layer's job.
"""

from typing import Optional, Sequence


class ColorExtractionError(Exception):
    """Base class for all color extraction failures."""
    pass


class DecodeError(ColorExtractionError):
    """
    The decoder invocation failed.

    Covers non-zero exit, crash, spawn failure and timeout. The captured
    diagnostic text is kept so the service layer can log it.
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        diagnostics: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class SourceUnreachableError(DecodeError):
    """The video source could not be reached (404, 403, connection refused)."""
    pass


class UnsupportedSourceError(DecodeError):
    """The video source is corrupt or in a format the decoder can't read."""
    pass


class NoFramesError(ColorExtractionError):
    """The decoder produced zero usable frames."""
    pass


class PartialExtractionError(ColorExtractionError):
    """Fewer frames were produced than timestamps were requested."""

    def __init__(self, missing_timestamps: Sequence[int], produced: int, requested: int) -> None:
        self.missing_timestamps = list(missing_timestamps)
        self.produced = produced
        self.requested = requested
        missing = ", ".join(f"{ts}ms" for ts in self.missing_timestamps)
        super().__init__(
            f"Decoder produced {produced} of {requested} frames; "
            f"no frame for timestamps: {missing}"
        )


class NoSwatchError(ColorExtractionError):
    """Palette extraction found no usable color category for a frame."""
    pass
