"""Voice capture pipeline.

Drives one capture session through recording, transcription,
categorization and persistence:

    IDLE -> RECORDING -> TRANSCRIBING -> CATEGORIZING -> PERSISTING -> SETTLED

Every stage is bounded by a timeout so the pipeline always settles. Only
persistence failures are fatal, and they keep the transcript so the save
can be retried without recording again. Categorization failures are
absorbed. Cancellation is honored in every state.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..audio.capture import (
    AudioCaptureSession,
    AudioInputDevice,
    AudioLevel,
    CaptureEvent,
    CaptureResult,
    PartialTranscript,
)
from ..config import PipelineConfig
from ..errors import (
    CathcrError,
    DeviceDenied,
    DeviceUnavailable,
    InvalidTransition,
    TranscriptionError,
    TranscriptionRejected,
)
from ..notes.categorizer import Categorizer
from ..notes.models import Categorization, Note, NoteDraft
from ..notes.store import NoteStore
from ..stt.strategy import TranscriptionStrategy
from ..stt.transcriber import LiveRecognizer, TranscriptOutcome
from .state import USER_MESSAGES, CaptureOutcome, CaptureState, CaptureStatus, SettleReason

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

    from ..config import CathcrConfig
    from ..logger.capture_log import CaptureLogger

logger = logging.getLogger(__name__)

StatusListener = Callable[[CaptureStatus], None]


class CapturePipeline:
    """State machine for turning speech into a saved note.

    One pipeline runs one capture session at a time. After it settles,
    call ``reset()`` before starting the next one.

    Example:
        pipeline = CapturePipeline(device, store, strategy, categorizer)
        await pipeline.start()
        ...
        status = await pipeline.stop()
        if status.can_retry:
            status = await pipeline.retry_persist()
    """

    def __init__(
        self,
        device: AudioInputDevice,
        store: NoteStore,
        strategy: TranscriptionStrategy,
        categorizer: Categorizer,
        recognizer_factory: Callable[[], LiveRecognizer | None] | None = None,
        config: PipelineConfig | None = None,
        chunk_size: int = 1024,
        silence_threshold: float = 300.0,
        capture_logger: "CaptureLogger | None" = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            device: Microphone shared by all sessions
            store: Note store that receives created notes
            strategy: Live/batch transcription strategy
            categorizer: Best-effort categorizer
            recognizer_factory: Builds a fresh live recognizer per session
            config: Stage time budgets
            chunk_size: Frames per microphone read
            silence_threshold: RMS energy below which audio counts as silence
            capture_logger: Optional per-session JSONL log
        """
        self._device = device
        self._store = store
        self._strategy = strategy
        self._categorizer = categorizer
        self._recognizer_factory = recognizer_factory
        self._config = config or PipelineConfig()
        self._chunk_size = chunk_size
        self._silence_threshold = silence_threshold
        self._capture_logger = capture_logger

        self._listeners: list[StatusListener] = []
        self._state = CaptureState.IDLE
        self._clear_session()

    def _clear_session(self) -> None:
        self._session_id: str | None = None
        self._session: AudioCaptureSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._auto_stop_task: asyncio.Task[None] | None = None
        self._settled_event: asyncio.Event | None = None
        self._cancel_requested = False
        self._outcome: CaptureOutcome | None = None
        self._reason: SettleReason | None = None
        self._error: BaseException | None = None
        self._partial = ""
        self._level = 0.0
        self._transcript: TranscriptOutcome | None = None
        self._categorization: Categorization | None = None
        self._draft: NoteDraft | None = None
        self._note: Note | None = None
        self._latency_ms: dict[str, int] = {}
        self._stage_started = time.time()

    @classmethod
    def from_config(
        cls,
        config: "CathcrConfig",
        store: NoteStore,
        use_mock: bool = False,
    ) -> "CapturePipeline":
        """Assemble a pipeline and its collaborators from configuration.

        Args:
            config: Full application configuration
            store: Opened note store
            use_mock: Use mock audio and transcription services
        """
        from ..audio import create_input_device
        from ..logger.capture_log import CaptureLogger
        from ..notes.categorizer import create_categorizer
        from ..stt import create_batch_transcriber

        use_mock = use_mock or config.testing.mock_audio_enabled
        mock_transcript = config.testing.mock_transcript

        device = create_input_device(config.audio, use_mock=use_mock)
        batch = create_batch_transcriber(
            config.transcription, use_mock=use_mock, mock_transcript=mock_transcript
        )
        recognizer_factory = None

        if use_mock:
            from ..audio.mock_capture import MockAudioDevice, generate_tone
            from ..stt.mock import MockLiveRecognizer

            if isinstance(device, MockAudioDevice) and mock_transcript:
                device.set_audio_data(generate_tone(2.0, config.audio.sample_rate))
            if config.transcription.live_enabled:
                recognizer_factory = lambda: MockLiveRecognizer(mock_transcript)  # noqa: E731

        capture_logger = None
        if config.logging.capture_log_enabled:
            capture_logger = CaptureLogger(config.logging.log_dir)

        return cls(
            device,
            store,
            TranscriptionStrategy.from_config(config.transcription, batch),
            create_categorizer(config.categorizer, use_mock=use_mock),
            recognizer_factory=recognizer_factory,
            config=config.pipeline,
            chunk_size=config.audio.chunk_size,
            silence_threshold=config.audio.silence_threshold,
            capture_logger=capture_logger,
        )

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def status(self) -> CaptureStatus:
        """Snapshot of the current session."""
        message = USER_MESSAGES.get(self._reason) if self._reason else None
        return CaptureStatus(
            state=self._state,
            session_id=self._session_id,
            outcome=self._outcome,
            reason=self._reason,
            message=message,
            partial_transcript=self._partial,
            level=self._level,
            transcript=self._transcript.text if self._transcript else None,
            transcript_source=self._transcript.kind.value if self._transcript else None,
            note=self._note,
            categorization_degraded=bool(self._categorization and self._categorization.degraded),
            can_retry=self._can_retry(),
        )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener for status changes.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> CaptureStatus:
        """Acquire the microphone and begin recording.

        Device errors settle the session as FAILED instead of raising.

        Raises:
            InvalidTransition: If not idle
        """
        if self._state != CaptureState.IDLE:
            raise InvalidTransition(f"Cannot start while {self._state.value}")

        self._clear_session()
        self._session_id = uuid.uuid4().hex
        self._settled_event = asyncio.Event()

        recognizer = self._recognizer_factory() if self._recognizer_factory else None
        session = AudioCaptureSession(
            self._device,
            recognizer,
            chunk_size=self._chunk_size,
            silence_threshold=self._silence_threshold,
            flush_timeout=self._config.recognizer_flush_seconds,
        )
        session.add_listener(self._on_capture_event)
        self._session = session

        try:
            await session.start()
        except DeviceDenied as e:
            self._settle(CaptureOutcome.FAILED, SettleReason.DEVICE_DENIED, e)
            return self.status
        except DeviceUnavailable as e:
            self._settle(CaptureOutcome.FAILED, SettleReason.DEVICE_UNAVAILABLE, e)
            return self.status

        self._stage_started = time.time()
        self._transition(CaptureState.RECORDING)

        if self._config.max_recording_seconds > 0:
            self._auto_stop_task = asyncio.create_task(
                self._auto_stop(self._config.max_recording_seconds)
            )
        return self.status

    async def stop(self) -> CaptureStatus:
        """Stop recording and process the capture to a settled state.

        Returns:
            Status once the session has settled

        Raises:
            InvalidTransition: If not recording
        """
        if self._state != CaptureState.RECORDING or self._cancel_requested:
            raise InvalidTransition(f"Cannot stop while {self._state.value}")

        self._cancel_auto_stop()
        self._transition(CaptureState.TRANSCRIBING)
        return await self._run(self._finish_recording())

    async def cancel(self) -> CaptureStatus:
        """Abort the session from any state.

        Releases the microphone, abandons in-flight service calls and
        settles as ABORTED without touching the note store. Does nothing
        when idle or already settled.
        """
        state = self._state
        if state in (CaptureState.IDLE, CaptureState.SETTLED):
            return self.status

        logger.info("Capture cancel requested while %s", state.value)
        self._cancel_requested = True

        if state == CaptureState.RECORDING:
            self._cancel_auto_stop()
            assert self._session is not None
            await self._session.abort()
            self._settle(CaptureOutcome.ABORTED, SettleReason.CANCELLED)
        elif self._task is not None:
            self._task.cancel()
        else:
            if self._session is not None:
                await self._session.abort()
            self._settle(CaptureOutcome.ABORTED, SettleReason.CANCELLED)

        assert self._settled_event is not None
        await self._settled_event.wait()
        return self.status

    async def retry_persist(self) -> CaptureStatus:
        """Save the preserved transcript again after a persistence failure.

        The retry reuses the session's idempotency key, so a save that
        actually reached storage is not duplicated.

        Raises:
            InvalidTransition: If there is nothing to retry
        """
        if not self._can_retry():
            raise InvalidTransition("No failed save to retry")

        logger.info("Retrying save for capture %s", self._session_id)
        self._outcome = None
        self._reason = None
        self._error = None
        self._cancel_requested = False
        self._settled_event = asyncio.Event()
        return await self._run(self._persist())

    def reset(self) -> CaptureStatus:
        """Return a settled pipeline to IDLE.

        Raises:
            InvalidTransition: If a session is still in progress
        """
        if self._state == CaptureState.IDLE:
            return self.status
        if self._state != CaptureState.SETTLED:
            raise InvalidTransition(f"Cannot reset while {self._state.value}")
        self._clear_session()
        self._transition(CaptureState.IDLE)
        return self.status

    async def wait_settled(self) -> CaptureStatus:
        """Wait until the current session settles."""
        if self._settled_event is not None:
            await self._settled_event.wait()
        return self.status

    async def close(self) -> None:
        """Cancel any session in progress and close the service clients."""
        await self.cancel()
        self._cancel_auto_stop()
        try:
            await self._strategy.aclose()
        finally:
            await self._categorizer.aclose()

    async def _run(self, stages: "Coroutine[Any, Any, None]") -> CaptureStatus:
        """Run stages as a cancellable task and wait for it to settle."""
        self._task = asyncio.create_task(self._guarded(stages))
        try:
            await asyncio.wait([self._task])
        except asyncio.CancelledError:
            # The caller went away; the session must not be left running
            await self.cancel()
            raise
        return self.status

    async def _guarded(self, stages: "Coroutine[Any, Any, None]") -> None:
        try:
            await stages
        except asyncio.CancelledError:
            self._settle(CaptureOutcome.ABORTED, SettleReason.CANCELLED)
            raise
        except Exception as e:
            logger.exception("Capture pipeline failed unexpectedly")
            self._settle(CaptureOutcome.FAILED, SettleReason.INTERNAL_ERROR, e)

    async def _finish_recording(self) -> None:
        assert self._session is not None
        capture = await self._session.stop()
        self._record_latency("recording")
        await self._process(capture)

    async def _process(self, capture: CaptureResult) -> None:
        self._stage_started = time.time()
        try:
            transcript = await asyncio.wait_for(
                self._strategy.resolve(capture),
                timeout=self._config.transcription_budget_seconds,
            )
        except TranscriptionRejected as e:
            self._settle(CaptureOutcome.FAILED, SettleReason.TRANSCRIPTION_REJECTED, e)
            return
        except (TranscriptionError, TimeoutError) as e:
            self._settle(CaptureOutcome.FAILED, SettleReason.TRANSCRIPTION_UNAVAILABLE, e)
            return
        finally:
            self._record_latency("transcription")

        if transcript.is_empty:
            self._transcript = transcript
            self._settle(CaptureOutcome.ABORTED, SettleReason.NO_SPEECH)
            return

        self._transcript = transcript
        self._transition(CaptureState.CATEGORIZING)

        try:
            categorization = await asyncio.wait_for(
                self._categorizer.categorize(transcript.text),
                timeout=self._config.categorization_budget_seconds,
            )
        except TimeoutError:
            logger.warning("Categorization exceeded its budget, using defaults")
            categorization = Categorization.defaults("timeout")
        self._record_latency("categorization")

        self._categorization = categorization
        self._draft = NoteDraft.from_transcript(
            transcript.text, categorization, idempotency_key=self._session_id
        )
        await self._persist()

    async def _persist(self) -> None:
        assert self._draft is not None
        self._stage_started = time.time()
        self._transition(CaptureState.PERSISTING)

        try:
            note = await asyncio.wait_for(
                self._store.create(self._draft),
                timeout=self._config.persistence_budget_seconds,
            )
        except (CathcrError, TimeoutError) as e:
            self._settle(CaptureOutcome.FAILED, SettleReason.PERSISTENCE_FAILED, e)
            return
        finally:
            self._record_latency("persistence")

        self._note = note
        self._settle(CaptureOutcome.SUCCESS, SettleReason.SAVED)

    async def _auto_stop(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        if self._state == CaptureState.RECORDING and not self._cancel_requested:
            logger.info("Maximum recording length of %.0fs reached, stopping", seconds)
            await self.stop()

    def _cancel_auto_stop(self) -> None:
        task = self._auto_stop_task
        self._auto_stop_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _can_retry(self) -> bool:
        return (
            self._state == CaptureState.SETTLED
            and self._reason == SettleReason.PERSISTENCE_FAILED
            and self._draft is not None
        )

    def _transition(self, state: CaptureState) -> None:
        logger.info("Capture state: %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _settle(
        self,
        outcome: CaptureOutcome,
        reason: SettleReason,
        error: BaseException | None = None,
    ) -> None:
        if self._state == CaptureState.SETTLED:
            return

        self._state = CaptureState.SETTLED
        self._outcome = outcome
        self._reason = reason
        self._error = error

        if outcome == CaptureOutcome.FAILED:
            logger.warning(
                "Capture %s failed (%s): %s", self._session_id, reason.value, error or "unknown"
            )
        else:
            logger.info("Capture %s settled: %s (%s)", self._session_id, outcome.value, reason.value)

        self._write_capture_log()
        if self._settled_event is not None:
            self._settled_event.set()
        self._notify()

    def _record_latency(self, stage: str) -> None:
        self._latency_ms[stage] = int((time.time() - self._stage_started) * 1000)
        self._stage_started = time.time()

    def _write_capture_log(self) -> None:
        if self._capture_logger is None or self._session_id is None:
            return

        from ..logger.capture_log import CaptureRecord

        transcript = self._transcript
        self._capture_logger.write(
            CaptureRecord(
                session_id=self._session_id,
                outcome=self._outcome.value if self._outcome else "unknown",
                transcript_source=transcript.kind.value if transcript else None,
                transcript_chars=len(transcript.text) if transcript else 0,
                transcription_attempts=transcript.attempts if transcript else 0,
                latency_ms=dict(self._latency_ms),
                degraded=bool(self._categorization and self._categorization.degraded),
                note_id=self._note.id if self._note else None,
                error=str(self._error) if self._error else None,
            )
        )

    def _on_capture_event(self, event: CaptureEvent) -> None:
        if isinstance(event, PartialTranscript):
            self._partial = event.text
        elif isinstance(event, AudioLevel):
            self._level = event.level
        self._notify()

    def _notify(self) -> None:
        status = self.status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.debug(f"Status listener raised: {e}")


__all__ = ["CapturePipeline", "StatusListener"]
