"""Configuration module for Cathcr.

This module provides configuration loading and profile management.
"""

from dataclasses import dataclass, field


@dataclass
class AudioConfig:
    """Audio input configuration."""

    input_device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    chunk_size: int = 1024
    # RMS energy (16-bit scale) below which a buffer counts as silence
    silence_threshold: float = 300.0


@dataclass
class TranscriptionConfig:
    """Live recognizer and batch transcription configuration."""

    endpoint: str = "http://localhost:3000/api/voice/transcribe"
    timeout_seconds: float = 60.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    max_upload_bytes: int = 25 * 1024 * 1024
    language: str = "en"
    live_enabled: bool = True


@dataclass
class CategorizerConfig:
    """AI categorization configuration."""

    provider: str = "claude"
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 600
    temperature: float = 0.3
    timeout_seconds: float = 5.0


@dataclass
class StorageConfig:
    """Durable store configuration."""

    uri: str = "mongodb://localhost:27017"
    database: str = "cathcr"
    collection: str = "notes"
    server_selection_timeout_ms: int = 5000
    write_attempts: int = 3
    backoff_seconds: float = 1.0
    write_timeout_seconds: float = 10.0


@dataclass
class PipelineConfig:
    """Capture pipeline timing configuration."""

    max_recording_seconds: float = 120.0
    transcription_budget_seconds: float = 200.0
    categorization_budget_seconds: float = 8.0
    persistence_budget_seconds: float = 45.0
    recognizer_flush_seconds: float = 2.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    capture_log_enabled: bool = True
    log_dir: str = "~/.cathcr/logs"


@dataclass
class TestingConfig:
    """Testing configuration."""

    mock_audio_enabled: bool = False
    mock_transcript: str = ""


@dataclass
class CathcrConfig:
    """Main Cathcr configuration."""

    audio: AudioConfig = field(default_factory=AudioConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    categorizer: CategorizerConfig = field(default_factory=CategorizerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    testing: TestingConfig = field(default_factory=TestingConfig)


__all__ = [
    "AudioConfig",
    "CategorizerConfig",
    "CathcrConfig",
    "LoggingConfig",
    "PipelineConfig",
    "StorageConfig",
    "TestingConfig",
    "TranscriptionConfig",
]
