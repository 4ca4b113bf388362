"""Claude API client for transcript categorization.

Asks Claude for structured note metadata through a forced tool call and
verifies that the answer came from the model that was asked.
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any

import anthropic

from cathcr.claude.errors import (
    ClaudeAPIError,
    ClaudeAuthError,
    ClaudeConnectivityError,
    ClaudeContractError,
    ClaudeTimeoutError,
)

logger = logging.getLogger(__name__)

TOOL_NAME = "record_note_metadata"

SYSTEM_PROMPT = """You categorize short voice notes captured by a user.

Given a transcript, call the record_note_metadata tool exactly once with:
- title: a concise title of at most 8 words
- tags: up to 5 lowercase topical tags
- category: one of task, idea, note, reminder, meeting, learning, personal
- priority: one of low, medium, high (use high for anything urgent or time-bound)
- actionItems: concrete follow-ups mentioned in the note, if any
- entities: people, places, dates and organizations mentioned

Do not invent information that is not in the transcript."""

NOTE_METADATA_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "category": {
            "type": "string",
            "enum": ["task", "idea", "note", "reminder", "meeting", "learning", "personal"],
        },
        "priority": {"type": "string", "enum": ["low", "medium", "high"]},
        "actionItems": {"type": "array", "items": {"type": "string"}},
        "entities": {
            "type": "object",
            "properties": {
                "people": {"type": "array", "items": {"type": "string"}},
                "places": {"type": "array", "items": {"type": "string"}},
                "dates": {"type": "array", "items": {"type": "string"}},
                "organizations": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
    "required": ["title", "tags", "category", "priority"],
}

_DATED_SUFFIX = re.compile(r"-\d{8}$")


def model_matches(requested: str, received: str | None) -> bool:
    """Check that the responding model is the one that was requested.

    An alias (``-latest`` or undated) matches any dated snapshot of the
    same model family.
    """
    if not received:
        return False
    if received == requested:
        return True
    base = requested.removesuffix("-latest")
    if _DATED_SUFFIX.search(base):
        return False
    return _DATED_SUFFIX.sub("", received) == base


@dataclass
class ClaudeClientConfig:
    """Configuration for Claude client."""

    api_key: str
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 600
    temperature: float = 0.3
    timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClaudeClientConfig":
        """Create config from environment variables.

        Args:
            **overrides: Non-secret settings such as model or timeout.

        Returns:
            ClaudeClientConfig with API key from environment.

        Raises:
            ValueError: If ANTHROPIC_API_KEY is not set.
        """
        api_key = os.environ.get("ANTHROPIC_API_KEY", "").strip()
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Set it to use AI categorization."
            )
        return cls(api_key=api_key, **overrides)


class ClaudeCategorizationClient:
    """Client that turns a transcript into a raw metadata payload."""

    def __init__(self, config: ClaudeClientConfig, client: anthropic.AsyncAnthropic | None = None) -> None:
        """Initialize Claude client.

        Args:
            config: Configuration for the client.
            client: Pre-built SDK client, mainly for tests.
        """
        self._config = config
        # Retries are bounded by the caller's deadline, not the SDK.
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

    @property
    def model(self) -> str:
        """Requested model id."""
        return self._config.model

    async def categorize(self, transcript: str) -> dict[str, Any]:
        """Request structured metadata for a transcript.

        Args:
            transcript: Non-empty transcript text.

        Returns:
            The tool input payload, not yet validated.

        Raises:
            ClaudeTimeoutError: If the request times out.
            ClaudeAPIError: If the API returns an error.
            ClaudeAuthError: If authentication fails.
            ClaudeConnectivityError: If network is unavailable.
            ClaudeContractError: If the response breaks the contract.
        """
        start_time = time.time()

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=SYSTEM_PROMPT,
                tools=[
                    {
                        "name": TOOL_NAME,
                        "description": "Record structured metadata for a voice note.",
                        "input_schema": NOTE_METADATA_SCHEMA,
                    }
                ],
                tool_choice={"type": "tool", "name": TOOL_NAME},
                messages=[{"role": "user", "content": f"Transcript:\n{transcript}"}],
            )
        except anthropic.AuthenticationError as e:
            raise ClaudeAuthError(
                "Invalid API key. Please check your ANTHROPIC_API_KEY."
            ) from e
        except anthropic.APITimeoutError as e:
            # Catch timeout BEFORE connection error (timeout is a subclass)
            raise ClaudeTimeoutError(
                f"Request timed out after {self._config.timeout_seconds} seconds."
            ) from e
        except anthropic.APIConnectionError as e:
            raise ClaudeConnectivityError(f"Failed to connect to Claude API: {e}") from e
        except anthropic.APIStatusError as e:
            raise ClaudeAPIError(f"API error: {e.message}", status_code=e.status_code) from e

        payload = self._extract_payload(response)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.debug("Categorization by %s completed in %dms", response.model, latency_ms)
        return payload

    def _extract_payload(self, response: Any) -> dict[str, Any]:
        """Verify the response and return the forced tool's input."""
        requested = self._config.model
        received = getattr(response, "model", None)
        if not model_matches(requested, received):
            logger.error(
                "Categorization answered by %r but %r was requested", received, requested
            )
            raise ClaudeContractError(
                f"Model mismatch: requested {requested}, received {received}",
                requested=requested,
                received=received,
            )

        if getattr(response, "stop_reason", None) == "max_tokens":
            raise ClaudeContractError("Categorization output was truncated")

        for block in response.content or []:
            if getattr(block, "type", None) == "tool_use" and getattr(block, "name", None) == TOOL_NAME:
                if not isinstance(block.input, dict):
                    raise ClaudeContractError("Tool input is not an object")
                return block.input

        logger.error("Categorization response has no %s tool call", TOOL_NAME)
        raise ClaudeContractError(f"Response did not call {TOOL_NAME}")

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()


__all__ = [
    "ClaudeCategorizationClient",
    "ClaudeClientConfig",
    "NOTE_METADATA_SCHEMA",
    "SYSTEM_PROMPT",
    "TOOL_NAME",
    "model_matches",
]
