"""Mock recognizers for testing.

Provides controllable mock implementations of the live recognizer and
the batch transcription service.
"""

import asyncio
from collections.abc import Callable

from ..audio.capture import AudioChunk
from .transcriber import RecognitionEvent, RecognitionEventKind, TranscriptionResult


class MockLiveRecognizer:
    """Mock live recognizer.

    Emits the preset transcript as growing PARTIAL events while audio is
    fed and a FINAL event on stop. Can be told to fail like a browser
    recognizer losing its connection.
    """

    def __init__(self, transcript: str = "") -> None:
        """Initialize mock recognizer.

        Args:
            transcript: Text to "recognize"
        """
        self._transcript = transcript
        self._on_event: Callable[[RecognitionEvent], None] | None = None
        self._error: str | None = None
        self._start_error: Exception | None = None
        self._words_sent = 0
        self.chunks_fed = 0
        self.started = False
        self.stopped = False
        self.aborted = False

    def set_transcript(self, transcript: str) -> None:
        """Set the text the recognizer will produce."""
        self._transcript = transcript

    def fail_with(self, error: str = "network") -> None:
        """Emit an ERROR event on the first fed chunk."""
        self._error = error

    def fail_on_start(self, error: Exception) -> None:
        """Raise from start(), as when the platform has no recognizer."""
        self._start_error = error

    async def start(
        self, sample_rate: int, on_event: Callable[[RecognitionEvent], None]
    ) -> None:
        """Begin a mock stream."""
        if self._start_error is not None:
            raise self._start_error
        self._on_event = on_event
        self._words_sent = 0
        self.started = True

    async def feed(self, chunk: AudioChunk) -> None:
        """Consume a chunk and maybe emit a partial."""
        self.chunks_fed += 1
        if self._on_event is None:
            return

        if self._error is not None:
            self._on_event(RecognitionEvent(kind=RecognitionEventKind.ERROR, error=self._error))
            self._on_event = None
            return

        words = self._transcript.split()
        if self._words_sent < len(words):
            self._words_sent += 1
            self._on_event(
                RecognitionEvent(
                    kind=RecognitionEventKind.PARTIAL,
                    text=" ".join(words[: self._words_sent]),
                )
            )

    async def stop(self) -> None:
        """End the stream, emitting the final transcript."""
        self.stopped = True
        if self._on_event is not None and self._transcript.strip():
            self._on_event(RecognitionEvent(kind=RecognitionEventKind.FINAL, text=self._transcript))
        self._on_event = None

    async def abort(self) -> None:
        """Drop the stream."""
        self.aborted = True
        self._on_event = None


class MockBatchTranscriber:
    """Mock batch transcription service.

    Allows setting predetermined responses, queued failures and latency.
    """

    def __init__(self, text: str = "") -> None:
        """Initialize mock transcriber."""
        self._response_text = text
        self._response_confidence: float | None = 1.0
        self._errors: list[Exception] = []
        self._latency_seconds = 0.0
        self.call_count = 0
        self.last_audio: bytes | None = None
        self.closed = False

    def set_response(self, text: str, confidence: float | None = 1.0) -> None:
        """Set the text returned by successful calls."""
        self._response_text = text
        self._response_confidence = confidence

    def queue_errors(self, *errors: Exception) -> None:
        """Fail the next calls with these errors, in order."""
        self._errors.extend(errors)

    def set_latency(self, seconds: float) -> None:
        """Delay every call, e.g. to trigger timeouts."""
        self._latency_seconds = seconds

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        channels: int = 1,
        sample_width: int = 2,
    ) -> TranscriptionResult:
        """Return the preset response or raise the next queued error."""
        self.call_count += 1
        self.last_audio = audio

        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)

        if self._errors:
            raise self._errors.pop(0)

        duration_ms = int(len(audio) / (sample_rate * sample_width * channels) * 1000)
        return TranscriptionResult(
            text=self._response_text,
            confidence=self._response_confidence,
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        """Mark closed."""
        self.closed = True


__all__ = ["MockBatchTranscriber", "MockLiveRecognizer"]
