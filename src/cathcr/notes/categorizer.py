"""AI categorization for voice notes.

Wraps a categorization service so that a transcript always gets usable
metadata: any failure, timeout or malformed payload yields defaults.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

from .models import Categorization

if TYPE_CHECKING:
    from ..config import CategorizerConfig

logger = logging.getLogger(__name__)


class CategorizationService(Protocol):
    """Protocol for services returning a raw metadata payload."""

    async def categorize(self, transcript: str) -> Any:
        """Return an unvalidated metadata payload for the transcript."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class Categorizer:
    """Bounded, non-raising transcript categorizer.

    One attempt per transcript under a short timeout. Cancellation of
    the calling task is not absorbed.
    """

    def __init__(self, service: CategorizationService | None, timeout: float = 5.0) -> None:
        """Initialize categorizer.

        Args:
            service: Categorization service, None to always use defaults
            timeout: Seconds to wait for the service
        """
        self._service = service
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        """Whether a categorization service is configured."""
        return self._service is not None

    async def categorize(self, transcript: str) -> Categorization:
        """Categorize a transcript.

        Args:
            transcript: Transcript text

        Returns:
            Validated metadata, or defaults marked as degraded
        """
        if not transcript or not transcript.strip():
            return Categorization.defaults("empty transcript")
        if self._service is None:
            return Categorization.defaults("no categorization service")

        try:
            payload = await asyncio.wait_for(
                self._service.categorize(transcript), timeout=self._timeout
            )
        except TimeoutError:
            logger.warning("Categorization timed out after %.1fs, using defaults", self._timeout)
            return Categorization.defaults("timeout")
        except Exception as e:
            logger.warning("Categorization failed, using defaults: %s", e)
            return Categorization.defaults(getattr(e, "reason", type(e).__name__))

        result = Categorization.from_payload(payload)
        if result.degraded:
            logger.warning("Categorization payload rejected: %s", result.degraded_reason)
        else:
            logger.debug(
                "Categorized as %s/%s with %d tags",
                result.category.main.value,
                result.priority.value,
                len(result.tags),
            )
        return result

    async def aclose(self) -> None:
        """Close the categorization service."""
        if self._service is not None:
            await self._service.aclose()


def create_categorizer(
    config: "CategorizerConfig | None" = None,
    use_mock: bool = False,
) -> Categorizer:
    """Create a categorizer for the configured provider.

    A missing API key disables categorization instead of failing, since
    every note can be saved with default metadata.

    Args:
        config: Categorizer configuration
        use_mock: Use the mock service

    Returns:
        Configured Categorizer
    """
    from ..config import CategorizerConfig

    config = config or CategorizerConfig()

    if use_mock or config.provider == "mock":
        from ..claude.mock import MockCategorizationService

        return Categorizer(MockCategorizationService(), timeout=config.timeout_seconds)

    if config.provider in ("none", "disabled"):
        return Categorizer(None, timeout=config.timeout_seconds)

    if config.provider != "claude":
        raise ValueError(f"Unknown categorizer provider: {config.provider}")

    from ..claude.client import ClaudeCategorizationClient, ClaudeClientConfig

    try:
        client_config = ClaudeClientConfig.from_env(
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout_seconds=config.timeout_seconds,
        )
    except ValueError as e:
        logger.warning("AI categorization disabled: %s", e)
        return Categorizer(None, timeout=config.timeout_seconds)

    return Categorizer(ClaudeCategorizationClient(client_config), timeout=config.timeout_seconds)


__all__ = ["CategorizationService", "Categorizer", "create_categorizer"]
