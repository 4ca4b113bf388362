"""Audio module for Cathcr.

Provides microphone input and the capture session that turns it into a
recording plus live recognizer events.

Usage:
    device = create_input_device(config.audio)
    session = AudioCaptureSession(device, recognizer)

    # For testing, use the mock implementation
    from cathcr.audio.mock_capture import MockAudioDevice
"""

from typing import TYPE_CHECKING

from .capture import (
    AudioCaptureSession,
    AudioChunk,
    AudioInputDevice,
    AudioLevel,
    CaptureEvent,
    CaptureResult,
    PartialTranscript,
    SessionState,
    calculate_energy,
)

if TYPE_CHECKING:
    from ..config import AudioConfig


def create_input_device(
    config: "AudioConfig | None" = None,
    use_mock: bool = False,
) -> AudioInputDevice:
    """Create a microphone input device.

    Args:
        config: Audio configuration (uses defaults if None)
        use_mock: If True, return mock implementation for testing

    Returns:
        AudioInputDevice implementation

    Raises:
        RuntimeError: If no suitable audio backend is available
    """
    device_name = "default"
    sample_rate = 16000
    channels = 1
    chunk_size = 1024

    if config is not None:
        device_name = config.input_device
        sample_rate = config.sample_rate
        channels = config.channels
        chunk_size = config.chunk_size

    if use_mock:
        from .mock_capture import MockAudioDevice

        return MockAudioDevice(sample_rate=sample_rate, channels=channels)

    from .backends.pyaudio_input import PyAudioInputDevice

    return PyAudioInputDevice(
        device_name=device_name,
        sample_rate=sample_rate,
        channels=channels,
        chunk_size=chunk_size,
    )


__all__ = [
    "AudioCaptureSession",
    "AudioChunk",
    "AudioInputDevice",
    "AudioLevel",
    "CaptureEvent",
    "CaptureResult",
    "PartialTranscript",
    "SessionState",
    "calculate_energy",
    "create_input_device",
]
