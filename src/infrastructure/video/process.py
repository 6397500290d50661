"""
Child processes for the FFmpeg tools.

ffmpeg (frame decoding) and ffprobe (duration lookup) are both run the
same way: spawned with in-memory pipes, optionally bounded by a timeout,
and killed and reaped on every exit path, including cancellation of the
awaiting task.
"""

import asyncio
import logging
import subprocess
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from src.core.extraction.errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """What a finished process left behind."""
    exit_code: Optional[int]
    stdout: bytes
    stderr: str


@asynccontextmanager
async def spawn_process(cmd: list[str], name: str) -> AsyncIterator[asyncio.subprocess.Process]:
    """
    Start `cmd` and guarantee it's gone when the block exits.

    Raises:
        DecodeError: the binary couldn't be started
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise DecodeError(
            f"Could not start {name} ({cmd[0]}): {e}. "
            "Install with: apt-get install ffmpeg"
        )

    try:
        yield process
    finally:
        if process.returncode is None:
            logger.warning("Killing unfinished process", extra={"tool": name, "pid": process.pid})
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()


async def run_process(
    cmd: list[str],
    name: str,
    timeout: Optional[float] = None,
) -> ProcessResult:
    """
    Run `cmd` to completion and collect its output.

    Args:
        cmd: program and arguments
        name: tool name used in log lines and error messages
        timeout: seconds to wait before killing the process; None waits forever

    Raises:
        DecodeError: the binary couldn't be started or ran past the timeout
    """
    async with spawn_process(cmd, name) as process:
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            raise DecodeError(f"{name} did not finish within {timeout}s", exit_code=None)

    return ProcessResult(
        exit_code=process.returncode,
        stdout=stdout or b"",
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
    )
