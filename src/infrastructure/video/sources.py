"""
Video source handling for the API layer.

Before a request reaches the extraction service we need to know three
things about the URL:
1. Is it something we're willing to fetch? (direct video file, trusted
   storage/CDN domain, or a supported video page)
2. Where's the actual video? (Pexels page URLs get resolved to their CDN mp4)
3. How long is it? (ffprobe, so timestamps can be bounds-checked)

None of this is part of frame extraction itself, which is why it lives
beside the decoder rather than in core.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from src.core.extraction.decoding import classify_decoder_failure
from src.core.extraction.errors import DecodeError

from .process import run_process

logger = logging.getLogger(__name__)


DEFAULT_VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv", ".wmv", ".m4v")
DEFAULT_TRUSTED_DOMAINS = ("s3.", "amazonaws.com", "cloudfront.net", "cdn.", "storage.googleapis.com")

_PEXELS_VIDEO_SRC = re.compile(r'src="(https://cdn\.pexels\.com/videos/[^"]+\.mp4)"')
_BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class InvalidVideoUrlError(ValueError):
    """Raised when a URL isn't one we accept as a video source."""
    pass


@dataclass(frozen=True)
class SourcePolicy:
    """Which URLs are accepted as video sources."""
    video_extensions: tuple[str, ...] = DEFAULT_VIDEO_EXTENSIONS
    trusted_domains: tuple[str, ...] = DEFAULT_TRUSTED_DOMAINS
    resolvable_pages: tuple[str, ...] = field(default=("pexels.com",))

    def is_allowed(self, video_url: str) -> bool:
        parsed = urlparse(video_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False

        lower = video_url.lower()

        if any(ext in lower for ext in self.video_extensions):
            return True

        if any(domain in lower for domain in self.trusted_domains):
            return True

        return is_video_page(lower, self.resolvable_pages)


def is_video_page(url: str, pages: tuple[str, ...] = ("pexels.com",)) -> bool:
    lower = url.lower()
    return any(page in lower for page in pages) and "/video/" in lower


class VideoSourceResolver:
    """
    Validates, resolves and probes video URLs.

    Resolution failures are logged and fall back to the original URL;
    ffprobe will then report whatever is actually wrong with it.
    """

    def __init__(
        self,
        policy: Optional[SourcePolicy] = None,
        ffprobe_path: str = "ffprobe",
        probe_timeout_seconds: float = 30.0,
    ):
        self.policy = policy or SourcePolicy()
        self._ffprobe = ffprobe_path
        self._probe_timeout = probe_timeout_seconds

    def validate(self, video_url: str) -> None:
        """
        Raises:
            InvalidVideoUrlError: the URL isn't an accepted video source
        """
        if not self.policy.is_allowed(video_url):
            raise InvalidVideoUrlError(
                "Invalid video URL. Provide a direct link to a video file "
                "(e.g. .mp4, .avi, .mov), an S3/CDN URL, or a Pexels video page URL."
            )

    async def resolve(self, video_url: str) -> str:
        """Return a directly decodable URL for the given source."""
        if not is_video_page(video_url, self.policy.resolvable_pages):
            return video_url

        try:
            timeout = aiohttp.ClientTimeout(total=15)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    video_url,
                    headers={"User-Agent": _BROWSER_USER_AGENT},
                ) as response:
                    response.raise_for_status()
                    html = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                "Failed to resolve video page URL",
                extra={"video_url": video_url, "error": str(e)},
            )
            return video_url

        match = _PEXELS_VIDEO_SRC.search(html)
        if match:
            logger.info("Resolved video page", extra={"video_url": video_url})
            return match.group(1)

        logger.warning("No video link found on page", extra={"video_url": video_url})
        return video_url

    async def probe_duration_ms(self, video_url: str) -> int:
        """
        Get the video duration in milliseconds using ffprobe.

        Raises:
            SourceUnreachableError: ffprobe couldn't fetch the source
            UnsupportedSourceError: the source isn't a readable video
            DecodeError: ffprobe failed otherwise or reported no duration
        """
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            video_url,
        ]

        result = await run_process(cmd, "ffprobe", timeout=self._probe_timeout)
        diagnostics = result.stderr
        if result.exit_code != 0:
            logger.error(
                "ffprobe failed",
                extra={"video_url": video_url, "exit_code": result.exit_code},
            )
            raise classify_decoder_failure(result.exit_code, diagnostics)

        try:
            info = json.loads(result.stdout or b"{}")
            duration_seconds = float(info.get("format", {}).get("duration", 0))
        except (ValueError, TypeError) as e:
            raise DecodeError(f"Failed to parse ffprobe output: {e}", diagnostics=diagnostics)

        if duration_seconds <= 0:
            raise DecodeError("Could not determine video duration from the file")

        return int(duration_seconds * 1000)

    async def is_available(self) -> bool:
        """Check ffprobe can be started."""
        try:
            result = await run_process([self._ffprobe, "-version"], "ffprobe", timeout=self._probe_timeout)
        except DecodeError:
            return False
        return result.exit_code == 0


class MockVideoSourceResolver(VideoSourceResolver):
    """
    Resolver for local development without FFprobe or network access.

    Accepts the same URLs, never resolves pages, and reports a fixed duration.
    """

    def __init__(self, duration_ms: int = 30_000, policy: Optional[SourcePolicy] = None):
        super().__init__(policy=policy)
        self.duration_ms = duration_ms

    async def resolve(self, video_url: str) -> str:
        return video_url

    async def probe_duration_ms(self, video_url: str) -> int:
        return self.duration_ms

    async def is_available(self) -> bool:
        return True
