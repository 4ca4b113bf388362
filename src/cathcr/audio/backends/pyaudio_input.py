"""Microphone backend using PyAudio.

Provides an AudioInputDevice implementation on top of PyAudio (PortAudio
wrapper). PortAudio calls block, so they run in a worker thread.
"""

import asyncio
import threading
import time
from typing import Any

from ...errors import DeviceDenied, DeviceUnavailable
from ..capture import AudioChunk

try:
    import pyaudio

    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

# PortAudio "unanticipated host error", reported when the OS refuses access
PA_HOST_ERROR = -9999


class PyAudioInputDevice:
    """Microphone input using PyAudio.

    Implements the AudioInputDevice protocol.
    """

    def __init__(
        self,
        device_name: str = "default",
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_size: int = 1024,
    ) -> None:
        """Initialize PyAudio input.

        Args:
            device_name: Audio input device name or "default"
            sample_rate: Sample rate in Hz
            channels: Number of channels (1 for mono)
            chunk_size: Frames per buffer

        Raises:
            RuntimeError: If PyAudio is not available
        """
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")

        self._device_name = device_name
        self._sample_rate = sample_rate
        self._channels = channels
        self._chunk_size = chunk_size
        self._sample_width = 2  # 16-bit audio

        self._pa: Any = None
        self._stream: Any = None
        self._start_time_ms = 0
        # Held from the start of open() so a concurrent open is refused
        self._opening = False
        # Serializes reads against close so a stream is never closed mid-read
        self._lock = threading.Lock()

    def _get_device_index(self) -> int | None:
        """Get device index for configured device name."""
        if self._device_name == "default" or self._pa is None:
            return None

        for i in range(self._pa.get_device_count()):
            info = self._pa.get_device_info_by_index(i)
            if self._device_name.lower() in info["name"].lower() and info["maxInputChannels"] > 0:
                return i

        return None

    def _open_blocking(self) -> None:
        self._pa = pyaudio.PyAudio()
        try:
            if self._pa.get_device_count() == 0:
                raise DeviceUnavailable("No audio input device found")
            self._stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=self._channels,
                rate=self._sample_rate,
                input=True,
                input_device_index=self._get_device_index(),
                frames_per_buffer=self._chunk_size,
            )
        except OSError as e:
            self._terminate_unlocked()
            if getattr(e, "errno", None) == PA_HOST_ERROR:
                raise DeviceDenied(f"Microphone access refused: {e}") from e
            raise DeviceUnavailable(f"Cannot open audio input: {e}") from e
        except BaseException:
            self._terminate_unlocked()
            raise

    def _terminate_blocking(self) -> None:
        with self._lock:
            self._terminate_unlocked()

    def _terminate_unlocked(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop_stream()
            finally:
                self._stream.close()
                self._stream = None

        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    def _read_blocking(self, frames: int) -> bytes:
        with self._lock:
            if self._stream is None:
                raise RuntimeError("Device closed during read")
            return self._stream.read(frames, exception_on_overflow=False)

    async def open(self) -> None:
        """Acquire the microphone."""
        if self._opening or self._stream is not None:
            raise DeviceUnavailable("Microphone is already in use")
        self._opening = True
        try:
            await asyncio.to_thread(self._open_blocking)
        finally:
            self._opening = False
        self._start_time_ms = int(time.time() * 1000)

    async def close(self) -> None:
        """Release the microphone."""
        await asyncio.to_thread(self._terminate_blocking)

    async def read(self, frames: int) -> AudioChunk:
        """Read audio frames from input."""
        if self._stream is None:
            raise RuntimeError("Device not open")

        data = await asyncio.to_thread(self._read_blocking, frames)
        timestamp = int(time.time() * 1000) - self._start_time_ms

        return AudioChunk(
            data=data,
            sample_rate=self._sample_rate,
            channels=self._channels,
            sample_width=self._sample_width,
            timestamp_ms=timestamp,
        )

    @property
    def is_open(self) -> bool:
        """Return True if the stream is open or being opened."""
        return self._opening or self._stream is not None

    @property
    def sample_rate(self) -> int:
        """Get the configured sample rate."""
        return self._sample_rate

    @property
    def channels(self) -> int:
        """Get the number of channels."""
        return self._channels

    @property
    def sample_width(self) -> int:
        """Get bytes per sample."""
        return self._sample_width


__all__ = ["PyAudioInputDevice"]
