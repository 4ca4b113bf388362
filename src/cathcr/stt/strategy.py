"""Primary/fallback transcription strategy.

Resolves one authoritative transcript for a capture session:

1. A non-empty final transcript from a healthy live recognizer wins.
2. Otherwise the recording goes to the batch service, retried on
   server-class and transport failures with linear backoff.
3. If neither path yields text the outcome is EMPTY ("no speech").

Finals from a recognizer that failed mid-recording cover only part of the
audio. They are used only when batch transcription fails or hears nothing.
"""

import logging
import time
from typing import TYPE_CHECKING

from ..errors import (
    DeviceOrNetworkError,
    TranscriptionError,
    TranscriptionServiceError,
    TranscriptionUnavailable,
)
from ..retry import RetryExhausted, retry_async
from .transcriber import BatchTranscriber, TranscriptionResult, TranscriptKind, TranscriptOutcome

if TYPE_CHECKING:
    from ..audio.capture import CaptureResult
    from ..config import TranscriptionConfig

logger = logging.getLogger(__name__)


def is_retryable_transcription_error(error: BaseException) -> bool:
    """Transport failures and 5xx responses are worth another attempt."""
    if isinstance(error, DeviceOrNetworkError):
        return True
    if isinstance(error, TranscriptionServiceError):
        return error.retryable
    return False


class TranscriptionStrategy:
    """Chooses between live recognition and batch transcription."""

    def __init__(
        self,
        batch: BatchTranscriber | None,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        attempt_timeout: float | None = 60.0,
    ) -> None:
        """Initialize strategy.

        Args:
            batch: Batch transcription service, None to rely on live only
            max_attempts: Batch attempts including the first
            backoff_seconds: Backoff base between attempts
            attempt_timeout: Per-attempt timeout in seconds
        """
        self._batch = batch
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._attempt_timeout = attempt_timeout

    @classmethod
    def from_config(
        cls, config: "TranscriptionConfig", batch: BatchTranscriber | None
    ) -> "TranscriptionStrategy":
        """Build a strategy from configuration."""
        return cls(
            batch,
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
            attempt_timeout=config.timeout_seconds,
        )

    async def resolve(self, capture: "CaptureResult") -> TranscriptOutcome:
        """Produce the final transcript for a stopped capture.

        Returns:
            TranscriptOutcome; EMPTY when nothing was said

        Raises:
            TranscriptionUnavailable: Every batch attempt failed
            TranscriptionRejected: The service refused the audio
        """
        start_time = time.time()
        live_text = capture.live_transcript.strip()

        def elapsed_ms() -> int:
            return int((time.time() - start_time) * 1000)

        if live_text and not capture.live_failed:
            logger.info(f"Using live transcript: '{live_text[:50]}'")
            return TranscriptOutcome(text=live_text, kind=TranscriptKind.LIVE)

        if self._batch is not None and capture.has_audio:
            try:
                result, attempts = await self._transcribe_batch(capture)
            except TranscriptionError:
                if not live_text:
                    raise
                logger.warning("Batch transcription failed, keeping partial live transcript")
                return TranscriptOutcome(
                    text=live_text, kind=TranscriptKind.LIVE, latency_ms=elapsed_ms()
                )

            if result.text.strip():
                logger.info(
                    f"Using batch transcript after {attempts} attempt(s): '{result.text[:50]}'"
                )
                return TranscriptOutcome(
                    text=result.text.strip(),
                    kind=TranscriptKind.BATCH,
                    attempts=attempts,
                    confidence=result.confidence,
                    latency_ms=elapsed_ms(),
                )
            if live_text:
                return TranscriptOutcome(
                    text=live_text, kind=TranscriptKind.LIVE, attempts=attempts, latency_ms=elapsed_ms()
                )
            logger.info("Batch transcription returned no speech")
            return TranscriptOutcome.empty(attempts=attempts, latency_ms=elapsed_ms())

        if live_text:
            return TranscriptOutcome(text=live_text, kind=TranscriptKind.LIVE, latency_ms=elapsed_ms())

        logger.info("No speech captured")
        return TranscriptOutcome.empty(latency_ms=elapsed_ms())

    async def _transcribe_batch(self, capture: "CaptureResult") -> tuple[TranscriptionResult, int]:
        assert self._batch is not None
        batch = self._batch
        attempts = 0

        async def attempt() -> TranscriptionResult:
            nonlocal attempts
            attempts += 1
            return await batch.transcribe(
                capture.audio,
                capture.sample_rate,
                channels=capture.channels,
                sample_width=capture.sample_width,
            )

        try:
            result = await retry_async(
                attempt,
                max_attempts=self._max_attempts,
                base_delay=self._backoff_seconds,
                timeout=self._attempt_timeout,
                is_retryable=is_retryable_transcription_error,
                description="Batch transcription",
            )
        except RetryExhausted as e:
            raise TranscriptionUnavailable(
                f"Transcription unavailable after {e.attempts} attempts", attempts=e.attempts
            ) from e.last_error

        return result, attempts

    async def aclose(self) -> None:
        """Close the batch transcription service."""
        if self._batch is not None:
            await self._batch.aclose()


__all__ = ["TranscriptionStrategy", "is_retryable_transcription_error"]
