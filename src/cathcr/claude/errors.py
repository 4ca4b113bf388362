"""Errors raised by the Claude categorization client.

Each error carries a short ``reason`` code that ends up as the
``degraded_reason`` of the fallback categorization.
"""

from ..errors import CathcrError


class ClaudeError(CathcrError):
    """Base exception for Claude categorization failures."""

    reason = "claude_error"


class ClaudeTimeoutError(ClaudeError):
    """The request did not finish within the client timeout."""

    reason = "timeout"


class ClaudeAPIError(ClaudeError):
    """The API answered with an error status."""

    reason = "api_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message.
            status_code: HTTP status code if available.
        """
        super().__init__(message)
        self.status_code = status_code


class ClaudeAuthError(ClaudeError):
    """The API key was rejected."""

    reason = "auth"


class ClaudeConnectivityError(ClaudeError):
    """The API could not be reached."""

    reason = "offline"


class ClaudeContractError(ClaudeError):
    """A response did not honor the requested contract.

    Raised when another model answered, when the forced tool call is
    missing, or when the output was cut off by the token limit.
    """

    reason = "contract"

    def __init__(self, message: str, requested: str | None = None, received: str | None = None) -> None:
        super().__init__(message)
        self.requested = requested
        self.received = received


__all__ = [
    "ClaudeAPIError",
    "ClaudeAuthError",
    "ClaudeConnectivityError",
    "ClaudeContractError",
    "ClaudeError",
    "ClaudeTimeoutError",
]
