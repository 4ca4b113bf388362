"""Audio capture protocol, data classes and the capture session.

Defines the interface for microphone input devices and the
AudioCaptureSession that owns a device for the span of one recording.
"""

import asyncio
import contextlib
import logging
import struct
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from ..errors import DeviceUnavailable

if TYPE_CHECKING:
    from ..stt.transcriber import LiveRecognizer, RecognitionEvent

logger = logging.getLogger(__name__)

MAX_SAMPLE_VALUE = 32767


def calculate_energy(audio_data: bytes) -> float:
    """Calculate RMS energy of audio data.

    Args:
        audio_data: Raw PCM audio bytes (16-bit, mono)

    Returns:
        RMS energy value
    """
    if len(audio_data) < 2:
        return 0.0

    num_samples = len(audio_data) // 2
    try:
        samples = struct.unpack(f"<{num_samples}h", audio_data[: num_samples * 2])
    except struct.error:
        return 0.0

    if not samples:
        return 0.0

    sum_squares = sum(s * s for s in samples)
    return float((sum_squares / num_samples) ** 0.5)


@dataclass
class AudioChunk:
    """Raw audio data chunk.

    Attributes:
        data: Raw PCM audio bytes
        sample_rate: Sample rate in Hz (e.g., 16000)
        channels: Number of audio channels (1=mono, 2=stereo)
        sample_width: Bytes per sample (2 for 16-bit audio)
        timestamp_ms: Milliseconds since capture started
    """

    data: bytes
    sample_rate: int
    channels: int
    sample_width: int
    timestamp_ms: int

    @property
    def duration_ms(self) -> float:
        """Calculate duration of this chunk in milliseconds."""
        if self.sample_rate == 0 or self.sample_width == 0 or self.channels == 0:
            return 0.0
        num_samples = len(self.data) / (self.sample_width * self.channels)
        return (num_samples / self.sample_rate) * 1000

    @property
    def energy(self) -> float:
        """RMS energy of the chunk."""
        return calculate_energy(self.data)

    @property
    def level(self) -> float:
        """Energy normalized to 0.0-1.0 for level meters."""
        return min(1.0, self.energy / MAX_SAMPLE_VALUE)


class AudioInputDevice(Protocol):
    """Interface for a microphone.

    Implementations must release the underlying hardware in ``close()``
    and tolerate ``close()`` being called more than once.
    """

    async def open(self) -> None:
        """Acquire the device.

        Raises:
            DeviceDenied: If permission to record is refused
            DeviceUnavailable: If no input device exists
        """
        ...

    async def read(self, frames: int) -> AudioChunk:
        """Read the next chunk of ``frames`` frames."""
        ...

    async def close(self) -> None:
        """Release the device. Safe to call when not open."""
        ...

    @property
    def is_open(self) -> bool:
        """Return True while the device is held."""
        ...

    @property
    def sample_rate(self) -> int:
        """Get the configured sample rate in Hz."""
        ...

    @property
    def channels(self) -> int:
        """Get the number of channels."""
        ...

    @property
    def sample_width(self) -> int:
        """Get bytes per sample."""
        ...


@dataclass
class PartialTranscript:
    """Live recognizer text surfaced while recording."""

    text: str
    is_final: bool = False


@dataclass
class AudioLevel:
    """Input level for waveform display (0.0 to 1.0)."""

    level: float


CaptureEvent = PartialTranscript | AudioLevel


@dataclass
class CaptureResult:
    """Everything a stopped capture session produced.

    Attributes:
        audio: Recorded PCM audio (may be empty)
        sample_rate: Sample rate of ``audio``
        channels: Channel count of ``audio``
        sample_width: Bytes per sample of ``audio``
        live_transcript: Concatenated final text from the live recognizer
        live_failed: True if the live recognizer errored or was unavailable
        live_error: Recognizer error description, if any
        peak_energy: Highest chunk RMS energy seen
        silence_threshold: Energy a chunk must exceed to count as speech
    """

    audio: bytes = b""
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2
    live_transcript: str = ""
    live_failed: bool = False
    live_error: str | None = None
    peak_energy: float = 0.0
    silence_threshold: float = 0.0

    @property
    def duration_ms(self) -> int:
        """Duration of the recorded audio in milliseconds."""
        frame_bytes = self.sample_width * self.channels
        if not frame_bytes or not self.sample_rate:
            return 0
        return int(len(self.audio) / frame_bytes / self.sample_rate * 1000)

    @property
    def has_audio(self) -> bool:
        """True if the buffer holds anything louder than silence."""
        return bool(self.audio) and self.peak_energy > self.silence_threshold


class SessionState(Enum):
    """Lifecycle of a capture session."""

    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


class AudioCaptureSession:
    """Owns one microphone for the span of one recording.

    Reads audio in a background task, keeps the full buffer for batch
    transcription and forwards every chunk to an optional live recognizer.
    The device is released on ``stop()``, ``abort()`` and on any error
    during ``start()``. A session is single-use.

    Usage:
        async with AudioCaptureSession(device, recognizer) as session:
            ...
            result = await session.stop()
    """

    def __init__(
        self,
        device: AudioInputDevice,
        recognizer: "LiveRecognizer | None" = None,
        chunk_size: int = 1024,
        silence_threshold: float = 300.0,
        flush_timeout: float = 2.0,
    ) -> None:
        """Initialize capture session.

        Args:
            device: Microphone to record from
            recognizer: Optional live speech recognizer
            chunk_size: Frames per read
            silence_threshold: RMS energy below which audio counts as silence
            flush_timeout: Seconds to wait for the recognizer's last final event
        """
        self._device = device
        self._recognizer = recognizer
        self._chunk_size = chunk_size
        self._silence_threshold = silence_threshold
        self._flush_timeout = flush_timeout

        self._state = SessionState.IDLE
        self._frames: list[bytes] = []
        self._peak_energy = 0.0
        self._finals: list[str] = []
        self._live_failed = recognizer is None
        self._live_error: str | None = None
        self._reader: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[CaptureEvent], None]] = []
        self._result: CaptureResult | None = None

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_recording(self) -> bool:
        """True while the device is held and audio is being read."""
        return self._state == SessionState.RECORDING

    def add_listener(self, listener: Callable[[CaptureEvent], None]) -> Callable[[], None]:
        """Register a listener for partial transcripts and audio levels.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self) -> None:
        """Acquire the microphone and begin recording.

        Raises:
            DeviceDenied: If permission is refused
            DeviceUnavailable: If no device exists or it is already held
            RuntimeError: If the session was already started
        """
        if self._state != SessionState.IDLE:
            raise RuntimeError(f"Capture session already {self._state.value}")

        if self._device.is_open:
            raise DeviceUnavailable("Microphone is already in use")

        await self._device.open()

        try:
            if self._recognizer is not None:
                try:
                    await self._recognizer.start(
                        self._device.sample_rate, self._on_recognition_event
                    )
                except Exception as e:
                    self._mark_live_failed(f"recognizer failed to start: {e}")

            self._reader = asyncio.create_task(self._read_loop())
        except BaseException:
            await self._release()
            raise

        self._state = SessionState.RECORDING
        logger.info("Capture started (live recognizer: %s)", not self._live_failed)

    async def stop(self) -> CaptureResult:
        """End capture and return what was recorded.

        Always terminates cleanly. Calling stop on a session that never
        recorded returns an empty result.
        """
        if self._state != SessionState.RECORDING:
            if self._result is None:
                self._result = self._build_result()
            self._state = SessionState.STOPPED
            return self._result

        try:
            await self._cancel_reader()
            if self._recognizer is not None and not self._live_failed:
                try:
                    # Recognizers flush their last final event during stop
                    await asyncio.wait_for(self._recognizer.stop(), timeout=self._flush_timeout)
                except TimeoutError:
                    self._mark_live_failed(
                        f"recognizer did not finish within {self._flush_timeout:.1f}s"
                    )
                    await self._abort_recognizer()
                except asyncio.CancelledError:
                    await self._abort_recognizer()
                    raise
                except Exception as e:
                    self._mark_live_failed(f"recognizer failed to stop: {e}")
        finally:
            await self._release()

        self._result = self._build_result()
        logger.info(
            "Capture stopped: %dms audio, peak energy %.0f, live transcript %d chars",
            self._result.duration_ms,
            self._result.peak_energy,
            len(self._result.live_transcript),
        )
        return self._result

    async def abort(self) -> None:
        """Discard the recording and release the microphone."""
        if self._state != SessionState.RECORDING:
            self._state = SessionState.STOPPED
            return

        try:
            await self._cancel_reader()
            await self._abort_recognizer()
        finally:
            await self._release()
            self._frames.clear()
            self._finals.clear()
        logger.info("Capture aborted")

    async def __aenter__(self) -> "AudioCaptureSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._state == SessionState.RECORDING:
            await self.abort()

    async def _read_loop(self) -> None:
        """Pull chunks from the device until cancelled."""
        try:
            while True:
                chunk = await self._device.read(self._chunk_size)
                self._frames.append(chunk.data)
                energy = chunk.energy
                if energy > self._peak_energy:
                    self._peak_energy = energy
                self._notify(AudioLevel(level=min(1.0, energy / MAX_SAMPLE_VALUE)))

                if self._recognizer is not None and not self._live_failed:
                    try:
                        await self._recognizer.feed(chunk)
                    except Exception as e:
                        self._mark_live_failed(str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Keep what was recorded so far; stop() still returns it
            logger.error(f"Audio read failed, recording ended early: {e}")

    async def _cancel_reader(self) -> None:
        if self._reader is None:
            return
        self._reader.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._reader
        self._reader = None

    async def _abort_recognizer(self) -> None:
        if self._recognizer is None:
            return
        try:
            await asyncio.wait_for(self._recognizer.abort(), timeout=self._flush_timeout)
        except Exception as e:
            logger.debug(f"Recognizer abort failed: {e}")

    async def _release(self) -> None:
        self._state = SessionState.STOPPED
        try:
            await self._device.close()
        except Exception as e:
            logger.warning(f"Failed to release microphone cleanly: {e}")

    def _on_recognition_event(self, event: "RecognitionEvent") -> None:
        from ..stt.transcriber import RecognitionEventKind

        if event.kind == RecognitionEventKind.ERROR:
            self._mark_live_failed(event.error or "unknown recognizer error")
        elif event.kind == RecognitionEventKind.FINAL:
            if event.text.strip():
                self._finals.append(event.text.strip())
            self._notify(PartialTranscript(text=self.live_transcript, is_final=True))
        else:
            prefix = self.live_transcript
            text = f"{prefix} {event.text}".strip() if prefix else event.text
            self._notify(PartialTranscript(text=text, is_final=False))

    def _mark_live_failed(self, reason: str) -> None:
        if not self._live_failed:
            logger.warning(f"Live recognizer failed, batch transcription will be used: {reason}")
        self._live_failed = True
        self._live_error = reason

    @property
    def live_transcript(self) -> str:
        """Final text produced by the live recognizer so far."""
        return " ".join(self._finals).strip()

    def _notify(self, event: CaptureEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.debug(f"Capture listener raised: {e}")

    def _build_result(self) -> CaptureResult:
        return CaptureResult(
            audio=b"".join(self._frames),
            sample_rate=self._device.sample_rate,
            channels=self._device.channels,
            sample_width=self._device.sample_width,
            live_transcript=self.live_transcript,
            live_failed=self._live_failed,
            live_error=self._live_error,
            peak_energy=self._peak_energy,
            silence_threshold=self._silence_threshold,
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
]
