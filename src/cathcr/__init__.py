"""Cathcr - voice-to-note capture.

Cathcr turns speech into structured, categorized notes:
- Microphone capture with live recognition
- Batch transcription fallback with bounded retries
- Best-effort AI categorization (Claude)
- Idempotent, owner-scoped persistence (MongoDB)

Usage:
    python -m cathcr capture
    python -m cathcr --profile prod list
"""

__version__ = "0.1.0"

from .config import CathcrConfig
from .config.loader import load_config

__all__ = [
    "CathcrConfig",
    "__version__",
    "load_config",
]
