"""States, outcomes and status snapshots for the capture pipeline."""

from dataclasses import dataclass
from enum import Enum

from ..notes.models import Note


class CaptureState(Enum):
    """Pipeline states, in the order a capture moves through them."""

    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    CATEGORIZING = "categorizing"
    PERSISTING = "persisting"
    SETTLED = "settled"


class CaptureOutcome(Enum):
    """Terminal result of a capture session."""

    SUCCESS = "success"
    ABORTED = "aborted"
    FAILED = "failed"


class SettleReason(Enum):
    """Why a session settled the way it did."""

    SAVED = "saved"
    CANCELLED = "cancelled"
    NO_SPEECH = "no_speech"
    DEVICE_DENIED = "device_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    TRANSCRIPTION_UNAVAILABLE = "transcription_unavailable"
    TRANSCRIPTION_REJECTED = "transcription_rejected"
    PERSISTENCE_FAILED = "persistence_failed"
    INTERNAL_ERROR = "internal_error"


# Short, non-technical text shown to the user
USER_MESSAGES: dict[SettleReason, str] = {
    SettleReason.SAVED: "Note saved.",
    SettleReason.CANCELLED: "Recording cancelled.",
    SettleReason.NO_SPEECH: "Nothing was captured. Try speaking a little louder.",
    SettleReason.DEVICE_DENIED: "Microphone access was denied.",
    SettleReason.DEVICE_UNAVAILABLE: "No microphone is available right now.",
    SettleReason.TRANSCRIPTION_UNAVAILABLE: "Transcription is unavailable. Please try again later.",
    SettleReason.TRANSCRIPTION_REJECTED: "The recording could not be transcribed.",
    SettleReason.PERSISTENCE_FAILED: "Your note could not be saved. Your words are kept, try saving again.",
    SettleReason.INTERNAL_ERROR: "Something went wrong. Please try again.",
}


@dataclass(frozen=True)
class CaptureStatus:
    """Immutable snapshot of the pipeline for display.

    Attributes:
        state: Current state
        session_id: Current capture session id, None when idle
        outcome: Terminal result once settled
        reason: Why the session settled
        message: User-facing text for the outcome
        partial_transcript: Live recognizer text while recording
        level: Latest input level (0.0 to 1.0)
        transcript: Resolved transcript, once known
        transcript_source: live or batch
        note: The created note on success
        categorization_degraded: Whether metadata fell back to defaults
        can_retry: Whether retry_persist() may be called
    """

    state: CaptureState
    session_id: str | None = None
    outcome: CaptureOutcome | None = None
    reason: SettleReason | None = None
    message: str | None = None
    partial_transcript: str = ""
    level: float = 0.0
    transcript: str | None = None
    transcript_source: str | None = None
    note: Note | None = None
    categorization_degraded: bool = False
    can_retry: bool = False

    @property
    def is_settled(self) -> bool:
        return self.state == CaptureState.SETTLED

    @property
    def is_busy(self) -> bool:
        """True while transcribing, categorizing or persisting."""
        return self.state in (
            CaptureState.TRANSCRIBING,
            CaptureState.CATEGORIZING,
            CaptureState.PERSISTING,
        )


__all__ = [
    "CaptureOutcome",
    "CaptureState",
    "CaptureStatus",
    "SettleReason",
    "USER_MESSAGES",
]
