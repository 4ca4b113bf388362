"""Mock audio input for testing.

Provides a mock implementation of AudioInputDevice that can be used for
testing without requiring actual audio hardware.
"""

import asyncio
import math
import struct
import time
import wave
from pathlib import Path

from ..errors import DeviceDenied, DeviceUnavailable
from .capture import AudioChunk


def generate_tone(
    seconds: float,
    sample_rate: int = 16000,
    frequency: float = 440.0,
    amplitude: int = 8000,
) -> bytes:
    """Generate a mono 16-bit sine tone, loud enough to count as speech."""
    count = int(seconds * sample_rate)
    samples = (
        int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate)) for i in range(count)
    )
    return struct.pack(f"<{count}h", *samples)


class MockAudioDevice:
    """Mock microphone for testing.

    Can simulate audio capture from:
    - Silence (generates empty audio chunks)
    - WAV files (plays back pre-recorded audio)
    - Custom audio data (for programmatic testing)

    Can also simulate refused permission or a missing device.
    Implements the AudioInputDevice protocol.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        sample_width: int = 2,
        realtime: bool = False,
    ) -> None:
        """Initialize mock device.

        Args:
            sample_rate: Sample rate in Hz
            channels: Number of audio channels
            sample_width: Bytes per sample
            realtime: Pace reads of the audio source at the real rate
        """
        self._sample_rate = sample_rate
        self._channels = channels
        self._sample_width = sample_width
        self._realtime = realtime
        self._is_open = False
        self._audio_source: bytes | None = None
        self._source_position = 0
        self._start_time_ms = 0
        self._denied = False
        self._unavailable = False
        self.open_count = 0
        self.close_count = 0

    def set_audio_file(self, path: Path | str) -> None:
        """Play back a WAV recording matching the device format.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the recording's format differs from the device's
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        with wave.open(str(path), "rb") as wf:
            actual = (wf.getframerate(), wf.getnchannels(), wf.getsampwidth())
            expected = (self._sample_rate, self._channels, self._sample_width)
            if actual != expected:
                raise ValueError(
                    f"{path.name} is {actual[0]} Hz, {actual[1]} ch, {actual[2]} bytes; "
                    f"device expects {expected[0]} Hz, {expected[1]} ch, {expected[2]} bytes"
                )
            self.set_audio_data(wf.readframes(wf.getnframes()))

    def set_audio_data(self, data: bytes) -> None:
        """Set raw audio data for playback."""
        self._audio_source = data
        self._source_position = 0

    def deny_permission(self) -> None:
        """Make the next open() fail as if the user refused access."""
        self._denied = True

    def remove_device(self) -> None:
        """Make the next open() fail as if no microphone were attached."""
        self._unavailable = True

    async def open(self) -> None:
        """Open mock device."""
        if self._denied:
            raise DeviceDenied("Microphone permission denied")
        if self._unavailable:
            raise DeviceUnavailable("No audio input device found")
        if self._is_open:
            raise DeviceUnavailable("Microphone is already in use")
        self._is_open = True
        self._source_position = 0
        self._start_time_ms = int(time.time() * 1000)
        self.open_count += 1

    async def close(self) -> None:
        """Close mock device."""
        if self._is_open:
            self.close_count += 1
        self._is_open = False

    async def read(self, frames: int) -> AudioChunk:
        """Read audio frames.

        Reads from the audio source while it lasts, then yields silence
        paced at the real rate, like an idle microphone.
        """
        if not self._is_open:
            raise RuntimeError("Device not open")

        bytes_needed = frames * self._sample_width * self._channels
        chunk_seconds = frames / self._sample_rate
        timestamp = int(time.time() * 1000) - self._start_time_ms

        available = 0
        if self._audio_source is not None:
            available = len(self._audio_source) - self._source_position

        if available > 0:
            bytes_to_read = min(bytes_needed, available)
            data = self._audio_source[  # type: ignore[index]
                self._source_position : self._source_position + bytes_to_read
            ]
            self._source_position += bytes_to_read
            await asyncio.sleep(chunk_seconds if self._realtime else 0)
        else:
            data = bytes(bytes_needed)
            await asyncio.sleep(chunk_seconds)

        return AudioChunk(
            data=data,
            sample_rate=self._sample_rate,
            channels=self._channels,
            sample_width=self._sample_width,
            timestamp_ms=timestamp,
        )

    @property
    def is_open(self) -> bool:
        """Return True if device is open."""
        return self._is_open

    @property
    def sample_rate(self) -> int:
        """Get sample rate."""
        return self._sample_rate

    @property
    def channels(self) -> int:
        """Get channel count."""
        return self._channels

    @property
    def sample_width(self) -> int:
        """Get sample width."""
        return self._sample_width

    @property
    def has_audio_remaining(self) -> bool:
        """Check if there's audio remaining in the source."""
        if self._audio_source is None:
            return False
        return self._source_position < len(self._audio_source)


__all__ = ["MockAudioDevice", "generate_tone"]
