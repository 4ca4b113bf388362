"""Mock categorization service for testing.

Returns queued payloads or failures without calling the API.
"""

import asyncio
from typing import Any


class MockCategorizationService:
    """Stand-in for ClaudeCategorizationClient."""

    def __init__(self, payload: dict[str, Any] | None = None, model: str = "mock-categorizer") -> None:
        self._payload = payload if payload is not None else {}
        self._errors: list[BaseException] = []
        self._latency = 0.0
        self.model = model
        self.call_count = 0
        self.last_transcript: str | None = None
        self.cancelled = False
        self.closed = False

    def set_payload(self, payload: Any) -> None:
        """Set the payload returned by later calls."""
        self._payload = payload

    def queue_errors(self, *errors: BaseException) -> None:
        """Raise these errors, one per call, before succeeding."""
        self._errors.extend(errors)

    def set_latency(self, seconds: float) -> None:
        """Delay each call, to exercise timeouts."""
        self._latency = seconds

    async def categorize(self, transcript: str) -> Any:
        self.call_count += 1
        self.last_transcript = transcript
        if self._latency:
            try:
                await asyncio.sleep(self._latency)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self._errors:
            raise self._errors.pop(0)
        return self._payload

    async def aclose(self) -> None:
        self.closed = True


__all__ = ["MockCategorizationService"]
