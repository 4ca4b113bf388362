"""Speech-to-text module for Cathcr.

Provides the live/batch transcription strategy, the HTTP batch client and
mock implementations.
"""

import os
from typing import TYPE_CHECKING

from .mock import MockBatchTranscriber, MockLiveRecognizer
from .strategy import TranscriptionStrategy
from .transcriber import (
    BatchTranscriber,
    LiveRecognizer,
    RecognitionEvent,
    RecognitionEventKind,
    TranscriptionResult,
    TranscriptKind,
    TranscriptOutcome,
)

if TYPE_CHECKING:
    from ..config import TranscriptionConfig


def create_batch_transcriber(
    config: "TranscriptionConfig | None" = None,
    use_mock: bool = False,
    mock_transcript: str = "",
) -> BatchTranscriber:
    """Create a batch transcriber instance.

    Args:
        config: Transcription configuration
        use_mock: If True, return mock implementation for testing
        mock_transcript: Text the mock returns

    Returns:
        BatchTranscriber implementation
    """
    if use_mock:
        return MockBatchTranscriber(mock_transcript)

    from .http import HttpBatchTranscriber

    endpoint = os.environ.get("CATHCR_TRANSCRIBE_URL", "").strip()
    if config is None:
        return HttpBatchTranscriber(endpoint or "http://localhost:3000/api/voice/transcribe")

    return HttpBatchTranscriber(
        endpoint or config.endpoint,
        timeout=config.timeout_seconds,
        language=config.language,
        max_upload_bytes=config.max_upload_bytes,
    )


__all__ = [
    "BatchTranscriber",
    "LiveRecognizer",
    "MockBatchTranscriber",
    "MockLiveRecognizer",
    "RecognitionEvent",
    "RecognitionEventKind",
    "TranscriptKind",
    "TranscriptOutcome",
    "TranscriptionResult",
    "TranscriptionStrategy",
    "create_batch_transcriber",
]
