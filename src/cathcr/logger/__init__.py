"""Logger module for Cathcr.

Provides the per-session capture log.
"""

from cathcr.logger.capture_log import CaptureLogger, CaptureRecord

__all__ = ["CaptureLogger", "CaptureRecord"]
