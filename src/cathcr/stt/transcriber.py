"""Transcriber protocols and data classes.

Defines the interfaces for live (streaming) recognition and batch
transcription, and the outcome type the transcription strategy returns.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..audio.capture import AudioChunk


class TranscriptKind(Enum):
    """Where a final transcript came from."""

    LIVE = "live"
    BATCH = "batch"
    EMPTY = "empty"


@dataclass
class TranscriptOutcome:
    """The one authoritative transcript for a capture session.

    An EMPTY outcome means nothing was said. It is a valid result, not an
    error.

    Attributes:
        text: Final transcript ("" when empty)
        kind: Which path produced it
        attempts: Batch attempts made (0 when the live path was used)
        confidence: Confidence reported by the batch service, if any
        latency_ms: Time spent resolving the transcript
    """

    text: str
    kind: TranscriptKind
    attempts: int = 0
    confidence: float | None = None
    latency_ms: int = 0

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to turn into a note."""
        return self.kind == TranscriptKind.EMPTY or not self.text.strip()

    @classmethod
    def empty(cls, attempts: int = 0, latency_ms: int = 0) -> "TranscriptOutcome":
        """Build an empty outcome."""
        return cls(text="", kind=TranscriptKind.EMPTY, attempts=attempts, latency_ms=latency_ms)


@dataclass
class TranscriptionResult:
    """Response of the batch transcription service.

    Attributes:
        text: Transcribed text
        confidence: Confidence score (0.0 to 1.0) if reported
        duration_ms: Duration of audio submitted in milliseconds
    """

    text: str
    confidence: float | None = None
    duration_ms: int = 0


class RecognitionEventKind(Enum):
    """Events a live recognizer emits."""

    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


@dataclass
class RecognitionEvent:
    """One event from a live recognizer.

    Attributes:
        kind: Partial text, final text or error
        text: Recognized text for PARTIAL/FINAL events
        error: Error code for ERROR events (e.g. "network")
    """

    kind: RecognitionEventKind
    text: str = ""
    error: str | None = None


class LiveRecognizer(Protocol):
    """Interface for a streaming speech recognizer.

    Events are delivered through the callback given to ``start``. Any
    error, including a "network" error, only disables the live path; the
    recording is still transcribed by the batch service.
    """

    async def start(
        self, sample_rate: int, on_event: Callable[[RecognitionEvent], None]
    ) -> None:
        """Begin a recognition stream."""
        ...

    async def feed(self, chunk: "AudioChunk") -> None:
        """Send one chunk of audio to the recognizer."""
        ...

    async def stop(self) -> None:
        """End the stream, delivering any remaining FINAL events first."""
        ...

    async def abort(self) -> None:
        """Drop the stream without waiting for results."""
        ...


class BatchTranscriber(Protocol):
    """Interface for request/response transcription of a whole recording."""

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        channels: int = 1,
        sample_width: int = 2,
    ) -> TranscriptionResult:
        """Transcribe a complete audio buffer.

        Raises:
            TranscriptionServiceError: Non-2xx response (retryable if 5xx)
            TranscriptionRejected: Client-class failure, never retried
            DeviceOrNetworkError: Transport failure or timeout
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


__all__ = [
    "BatchTranscriber",
    "LiveRecognizer",
    "RecognitionEvent",
    "RecognitionEventKind",
    "TranscriptKind",
    "TranscriptOutcome",
    "TranscriptionResult",
]
