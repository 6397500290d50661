"""
The frame decoder contract.

The orchestrator doesn't know it's talking to ffmpeg. It needs something
that, given a source and either a selection predicate or a single
timestamp, hands back an exit status, the encoded frames as one byte
stream, and whatever diagnostic text the decoder wrote.

Classifying failures lives here too. The decoder only gives us free text,
and which typed error a failure becomes is a core decision.
"""

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import DecodeError, SourceUnreachableError, UnsupportedSourceError
from .predicate import SelectionPredicate


# showinfo reports one line per kept frame, e.g.
# [Parsed_showinfo_1 @ 0x55d0] n:   0 pts:  30030 pts_time:1.001   duration:...
_SHOWINFO_PTS = re.compile(r"showinfo.*?\bpts_time:\s*(-?\d+(?:\.\d+)?)")

_UNREACHABLE_HINTS = (
    "not found",
    "forbidden",
    "unauthorized",
    "connection refused",
    "connection reset",
    "connection timed out",
    "failed to resolve",
    "name or service not known",
    "no such file",
    "does not exist",
    "network is unreachable",
)

_UNSUPPORTED_HINTS = (
    "moov atom not found",
    "invalid data found",
    "could not find codec parameters",
    "unknown format",
    "does not contain any stream",
    "output file does not contain any stream",
)

# status codes only count when ffmpeg says they came from the server
_HTTP_CLIENT_ERROR = re.compile(r"(?:http error|server returned)\s+40[134]\b")

# per-frame and progress lines carry arbitrary numbers and never the error
_NOISE_LINE = re.compile(r"showinfo|^\s*frame=")


@dataclass(frozen=True)
class DecoderOutput:
    """Everything one decoder invocation produced."""
    exit_code: Optional[int]
    stdout: bytes
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def presentation_times_ms(self) -> list[float]:
        """Frame times reported by ffmpeg's showinfo filter, in stream order."""
        return [float(m.group(1)) * 1000 for m in _SHOWINFO_PTS.finditer(self.stderr)]

    def raise_for_status(self) -> None:
        """
        Raise the typed error matching a failed invocation.

        Raises:
            SourceUnreachableError: the source couldn't be fetched
            UnsupportedSourceError: the source couldn't be parsed
            DecodeError: anything else
        """
        if self.succeeded:
            return
        raise classify_decoder_failure(self.exit_code, self.stderr)


class FrameDecoder(Protocol):
    """
    Interface for the external frame decoder.

    Implementations must release the decoder process on every exit path,
    including cancellation of the awaiting task.
    """

    async def decode_batch(
        self,
        source_ref: str,
        predicate: SelectionPredicate,
    ) -> DecoderOutput:
        """Emit every frame matching the predicate as concatenated JPEGs."""
        ...

    async def decode_single(
        self,
        source_ref: str,
        timestamp_ms: int,
        width: int,
    ) -> DecoderOutput:
        """Emit exactly one frame at (or just after) the timestamp."""
        ...

    async def is_available(self) -> bool:
        """Whether the decoder can be started at all."""
        ...


def classify_decoder_failure(exit_code: Optional[int], diagnostics: str) -> DecodeError:
    """
    Map decoder diagnostics onto the error taxonomy.

    Only message lines are inspected. showinfo and progress lines are
    dropped first, since their frame numbers and timestamps can contain
    digits that look like HTTP status codes.
    """
    lines = _message_lines(diagnostics)
    text = "\n".join(lines).lower()
    tail = _diagnostic_tail(lines)
    unreachable = (
        any(hint in text for hint in _UNREACHABLE_HINTS)
        or _HTTP_CLIENT_ERROR.search(text) is not None
    )

    if any(hint in text for hint in _UNSUPPORTED_HINTS):
        return UnsupportedSourceError(
            f"Video is corrupt or in an unsupported format: {tail}",
            exit_code=exit_code,
            diagnostics=diagnostics,
        )

    if unreachable:
        return SourceUnreachableError(
            f"Video source is not accessible: {tail}",
            exit_code=exit_code,
            diagnostics=diagnostics,
        )

    return DecodeError(
        f"Decoder exited with status {exit_code}: {tail}",
        exit_code=exit_code,
        diagnostics=diagnostics,
    )


def _message_lines(diagnostics: str) -> list[str]:
    return [
        line for line in diagnostics.splitlines()
        if line.strip() and not _NOISE_LINE.search(line)
    ]


def _diagnostic_tail(lines: list[str]) -> str:
    # ffmpeg puts the actual error at the end
    return "\n".join(lines[-5:])
