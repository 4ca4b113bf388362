"""Batch transcription over HTTP.

Posts a WAV-encoded recording to the transcription endpoint and parses
``{"transcript": str, "confidence": float?}``. Retries are the caller's
job; this client makes exactly one request per call.
"""

import io
import logging
import os
import time
import wave

import httpx

from ..errors import (
    DeviceOrNetworkError,
    TranscriptionRejected,
    TranscriptionServiceError,
)
from .transcriber import TranscriptionResult

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def encode_wav(audio: bytes, sample_rate: int, channels: int = 1, sample_width: int = 2) -> bytes:
    """Wrap raw PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(audio)
    return buffer.getvalue()


class HttpBatchTranscriber:
    """Client for the batch transcription service.

    Implements the BatchTranscriber protocol.
    """

    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        timeout: float = 60.0,
        language: str = "en",
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize transcription client.

        Args:
            endpoint: URL of the transcribe endpoint
            token: Bearer token. Falls back to CATHCR_TRANSCRIBE_TOKEN.
            timeout: Request timeout in seconds
            language: Expected spoken language
            max_upload_bytes: Largest WAV payload the service accepts
            client: Optional preconfigured httpx client
        """
        self._endpoint = endpoint
        self._token = token or os.environ.get("CATHCR_TRANSCRIBE_TOKEN")
        self._timeout = timeout
        self._language = language
        self._max_upload_bytes = max_upload_bytes
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        channels: int = 1,
        sample_width: int = 2,
    ) -> TranscriptionResult:
        """Transcribe a recording with one request."""
        payload = encode_wav(audio, sample_rate, channels, sample_width)
        if len(payload) > self._max_upload_bytes:
            raise TranscriptionRejected(
                f"Recording is {len(payload)} bytes, limit is {self._max_upload_bytes}"
            )

        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        start_time = time.time()
        try:
            response = await self._client.post(
                self._endpoint,
                headers=headers,
                files={"audio": ("recording.wav", payload, "audio/wav")},
                data={"language": self._language},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise DeviceOrNetworkError(
                f"Transcription request timed out after {self._timeout} seconds"
            ) from e
        except httpx.TransportError as e:
            raise DeviceOrNetworkError(f"Failed to reach transcription service: {e}") from e

        if 400 <= response.status_code < 500:
            raise TranscriptionRejected(
                f"Transcription rejected: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise TranscriptionServiceError(
                f"Transcription service error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TranscriptionServiceError(f"Transcription response is not JSON: {e}") from e

        transcript = data.get("transcript") if isinstance(data, dict) else None
        if not isinstance(transcript, str):
            raise TranscriptionServiceError("Transcription response has no transcript field")

        confidence = data.get("confidence")
        latency_ms = int((time.time() - start_time) * 1000)
        duration_ms = int(len(audio) / (sample_rate * sample_width * channels) * 1000)

        logger.debug(
            f"Transcribed {duration_ms}ms audio in {latency_ms}ms: '{transcript[:50]}'"
        )

        return TranscriptionResult(
            text=transcript.strip(),
            confidence=float(confidence) if isinstance(confidence, int | float) else None,
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this object created it."""
        if self._owns_client:
            await self._client.aclose()


__all__ = ["HttpBatchTranscriber", "MAX_UPLOAD_BYTES", "encode_wav"]
