"""Unit tests for the capture session log."""

import json
from datetime import UTC, date, datetime
from pathlib import Path

from cathcr.logger import CaptureLogger, CaptureRecord


class TestCaptureLogger:
    """Tests for CaptureLogger."""

    def test_write_and_read(self, tmp_path: Path) -> None:
        """Test that a record round-trips through the daily file."""
        logger = CaptureLogger(tmp_path)
        record = CaptureRecord(
            session_id="abc",
            outcome="success",
            timestamp=datetime(2026, 3, 1, 9, 30, tzinfo=UTC),
            transcript_source="live",
            transcript_chars=12,
            latency_ms={"transcription": 40, "persistence": 12},
            note_id="n1",
        )

        logger.write(record)

        assert (tmp_path / "captures-2026-03-01.jsonl").exists()
        assert logger.read(date(2026, 3, 1)) == [record]

    def test_one_line_per_record(self, tmp_path: Path) -> None:
        """Test that records are appended as JSON lines."""
        logger = CaptureLogger(tmp_path)
        stamp = datetime(2026, 3, 1, tzinfo=UTC)
        logger.write(CaptureRecord(session_id="a", outcome="aborted", timestamp=stamp, error="cancelled"))
        logger.write(CaptureRecord(session_id="b", outcome="failed", timestamp=stamp))

        lines = (tmp_path / "captures-2026-03-01.jsonl").read_text().splitlines()
        assert [json.loads(line)["session_id"] for line in lines] == ["a", "b"]
        assert json.loads(lines[0])["error"] == "cancelled"

    def test_read_missing_day(self, tmp_path: Path) -> None:
        """Test that a day without captures reads as empty."""
        assert CaptureLogger(tmp_path).read(date(2020, 1, 1)) == []

    def test_unwritable_directory_ignored(self, tmp_path: Path) -> None:
        """Test that a log failure never raises."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        CaptureLogger(blocker / "logs").write(CaptureRecord(session_id="a", outcome="success"))
