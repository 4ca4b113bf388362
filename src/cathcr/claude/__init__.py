"""Claude categorization module.

Provides structured note metadata from the Claude API.
"""

from cathcr.claude.client import (
    ClaudeCategorizationClient,
    ClaudeClientConfig,
    model_matches,
)
from cathcr.claude.errors import (
    ClaudeAPIError,
    ClaudeAuthError,
    ClaudeConnectivityError,
    ClaudeContractError,
    ClaudeError,
    ClaudeTimeoutError,
)
from cathcr.claude.mock import MockCategorizationService

__all__ = [
    "ClaudeAPIError",
    "ClaudeAuthError",
    "ClaudeCategorizationClient",
    "ClaudeClientConfig",
    "ClaudeConnectivityError",
    "ClaudeContractError",
    "ClaudeError",
    "ClaudeTimeoutError",
    "MockCategorizationService",
    "model_matches",
]
