"""Capture session log.

Writes one JSON line per settled capture session to daily log files.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CaptureRecord:
    """Summary of one capture session.

    Attributes:
        session_id: Capture session (and idempotency key) id
        outcome: success, aborted or failed
        timestamp: When the session settled
        transcript_source: live, batch or empty, None if never transcribed
        transcript_chars: Transcript length
        transcription_attempts: Batch transcription attempts made
        latency_ms: Per-stage latency keyed by stage name
        degraded: Whether categorization fell back to defaults
        note_id: Created note id on success
        error: Failure or abort reason
    """

    session_id: str
    outcome: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    transcript_source: str | None = None
    transcript_chars: int = 0
    transcription_attempts: int = 0
    latency_ms: dict[str, int] = field(default_factory=dict)
    degraded: bool = False
    note_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "outcome": self.outcome,
            "timestamp": self.timestamp.isoformat(),
            "transcript_source": self.transcript_source,
            "transcript_chars": self.transcript_chars,
            "transcription_attempts": self.transcription_attempts,
            "latency_ms": dict(self.latency_ms),
            "degraded": self.degraded,
            "note_id": self.note_id,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureRecord":
        return cls(
            session_id=data["session_id"],
            outcome=data["outcome"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            transcript_source=data.get("transcript_source"),
            transcript_chars=data.get("transcript_chars", 0),
            transcription_attempts=data.get("transcription_attempts", 0),
            latency_ms=data.get("latency_ms", {}),
            degraded=data.get("degraded", False),
            note_id=data.get("note_id"),
            error=data.get("error"),
        )


class CaptureLogger:
    """JSONL writer for capture session records.

    Write failures are logged and swallowed; the log never affects a
    capture.
    """

    def __init__(self, log_dir: Path | str) -> None:
        """Initialize capture logger.

        Args:
            log_dir: Directory for log files, ``~`` is expanded.
        """
        self._log_dir = Path(log_dir).expanduser()

    @property
    def log_dir(self) -> Path:
        """Get the log directory."""
        return self._log_dir

    def _file_for(self, day: date) -> Path:
        return self._log_dir / f"captures-{day.strftime('%Y-%m-%d')}.jsonl"

    def write(self, record: CaptureRecord) -> None:
        """Append a record to the daily log file."""
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            with open(self._file_for(record.timestamp.date()), "a") as f:
                json.dump(record.to_dict(), f)
                f.write("\n")
        except OSError as e:
            logger.debug(f"Could not write capture log: {e}")

    def read(self, target_date: date) -> list[CaptureRecord]:
        """Read records from a daily log file.

        Args:
            target_date: The date to read.

        Returns:
            List of records, oldest first.
        """
        log_file = self._file_for(target_date)
        if not log_file.exists():
            return []

        records = []
        with open(log_file) as f:
            for line in f:
                if line.strip():
                    records.append(CaptureRecord.from_dict(json.loads(line)))
        return records


__all__ = ["CaptureLogger", "CaptureRecord"]
