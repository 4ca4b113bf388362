"""Error types for the capture pipeline.

Custom exceptions for capture, transcription, categorization and
persistence. ``EmptyTranscript`` is not here: an empty transcript is a
valid outcome, not an error.
"""

from typing import Any


class CathcrError(Exception):
    """Base exception for all Cathcr errors."""

    pass


class DeviceDenied(CathcrError):
    """Raised when microphone permission is refused."""

    pass


class DeviceUnavailable(CathcrError):
    """Raised when no input device exists or it is already in use."""

    pass


class TranscriptionError(CathcrError):
    """Base exception for transcription failures."""

    pass


class DeviceOrNetworkError(TranscriptionError):
    """Raised when the transport to the transcription service fails."""

    pass


class TranscriptionServiceError(TranscriptionError):
    """Raised when the transcription service returns a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize service error.

        Args:
            message: Error message.
            status_code: HTTP status code if available.
        """
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Server-class failures may succeed on a later attempt."""
        return self.status_code is None or self.status_code >= 500


class TranscriptionRejected(TranscriptionServiceError):
    """Raised for client-class failures (4xx, invalid or oversize audio)."""

    @property
    def retryable(self) -> bool:
        return False


class TranscriptionUnavailable(TranscriptionError):
    """Raised when every transcription attempt has failed."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class CategorizationDegraded(CathcrError):
    """Categorization fell back to defaults. Always absorbed."""

    pass


class PersistenceFailed(CathcrError):
    """Raised when a durable write fails after all retries.

    The draft (or patch) that was being written is kept so the caller
    can retry without re-recording.
    """

    def __init__(self, message: str, draft: Any = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.draft = draft
        self.attempts = attempts


class NotFound(CathcrError):
    """Raised when a mutation targets an id that is not in the collection."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


class OwnershipViolation(CathcrError):
    """Raised when the durable store returns a note for a different owner."""

    pass


class StoreClosed(CathcrError):
    """Raised when a closed NoteStore is used."""

    pass


class InvalidTransition(CathcrError):
    """Raised when a pipeline operation is not valid in its current state."""

    pass


__all__ = [
    "CategorizationDegraded",
    "CathcrError",
    "DeviceDenied",
    "DeviceOrNetworkError",
    "DeviceUnavailable",
    "InvalidTransition",
    "NotFound",
    "OwnershipViolation",
    "PersistenceFailed",
    "StoreClosed",
    "TranscriptionError",
    "TranscriptionRejected",
    "TranscriptionServiceError",
    "TranscriptionUnavailable",
]
