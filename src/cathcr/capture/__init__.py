"""Capture pipeline module for Cathcr.

Provides the state machine that turns a recording into a saved note.
"""

from .pipeline import CapturePipeline, StatusListener
from .state import USER_MESSAGES, CaptureOutcome, CaptureState, CaptureStatus, SettleReason

__all__ = [
    "CaptureOutcome",
    "CapturePipeline",
    "CaptureState",
    "CaptureStatus",
    "SettleReason",
    "StatusListener",
    "USER_MESSAGES",
]
