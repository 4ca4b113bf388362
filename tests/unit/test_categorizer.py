"""Unit tests for best-effort categorization."""

import asyncio
import os
from unittest.mock import patch

import pytest

from cathcr.claude.client import ClaudeCategorizationClient
from cathcr.claude.errors import ClaudeContractError
from cathcr.claude.mock import MockCategorizationService
from cathcr.config import CategorizerConfig
from cathcr.notes.categorizer import Categorizer, create_categorizer
from cathcr.notes.models import Category, Priority


class TestCategorizer:
    """Tests for Categorizer.categorize()."""

    @pytest.fixture
    def service(self) -> MockCategorizationService:
        """Create mock categorization service."""
        return MockCategorizationService(
            {
                "title": "Call John",
                "tags": ["calls"],
                "category": "reminder",
                "priority": "high",
                "actionItems": ["Call John"],
                "entities": {"people": ["John"]},
            }
        )

    @pytest.mark.asyncio
    async def test_valid_payload(self, service: MockCategorizationService) -> None:
        """Test that a good payload is used as-is."""
        result = await Categorizer(service).categorize("Reminder to call John")

        assert result.title == "Call John"
        assert result.category.main == Category.REMINDER
        assert result.priority == Priority.HIGH
        assert not result.degraded
        assert service.last_transcript == "Reminder to call John"

    @pytest.mark.asyncio
    async def test_aclose_closes_service(self, service: MockCategorizationService) -> None:
        """Test that closing the categorizer closes its service."""
        await Categorizer(service).aclose()
        assert service.closed
        await Categorizer(None).aclose()

    @pytest.mark.asyncio
    async def test_timeout_returns_defaults(self, service: MockCategorizationService) -> None:
        """Test that a slow service yields defaults within the timeout."""
        service.set_latency(5.0)
        categorizer = Categorizer(service, timeout=0.05)

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await categorizer.categorize("text")

        assert loop.time() - started < 1.0
        assert result.degraded
        assert result.degraded_reason == "timeout"
        assert result.tags == []
        assert result.category.main == Category.NOTE
        assert result.priority == Priority.MEDIUM
        assert service.cancelled

    @pytest.mark.parametrize(
        "error",
        [
            ClaudeContractError("model mismatch"),
            ConnectionError("offline"),
            RuntimeError("unexpected"),
        ],
    )
    @pytest.mark.asyncio
    async def test_errors_return_defaults(
        self, service: MockCategorizationService, error: Exception
    ) -> None:
        """Test that no service failure escapes the categorizer."""
        service.queue_errors(error)
        result = await Categorizer(service).categorize("text")

        assert result.degraded
        assert result.category.main == Category.NOTE
        assert result.priority == Priority.MEDIUM

    @pytest.mark.asyncio
    async def test_reason_recorded(self, service: MockCategorizationService) -> None:
        """Test that a client error code becomes the degraded reason."""
        service.queue_errors(ClaudeContractError("model mismatch"))
        result = await Categorizer(service).categorize("text")
        assert result.degraded_reason == "contract"

    @pytest.mark.asyncio
    async def test_single_attempt(self, service: MockCategorizationService) -> None:
        """Test that a failure is not retried."""
        service.queue_errors(ConnectionError("offline"))
        await Categorizer(service).categorize("text")
        assert service.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_payload(self, service: MockCategorizationService) -> None:
        """Test that a malformed payload yields a complete result."""
        service.set_payload(["not", "an", "object"])
        result = await Categorizer(service).categorize("text")

        assert result.degraded
        assert result.tags == []
        assert result.action_items == []
        assert result.entities == {}

    @pytest.mark.asyncio
    async def test_no_service(self) -> None:
        """Test that a missing service yields defaults."""
        categorizer = Categorizer(None)
        assert not categorizer.is_available
        result = await categorizer.categorize("text")
        assert result.degraded

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_service(self, service: MockCategorizationService) -> None:
        """Test that blank text is never sent."""
        await Categorizer(service).categorize("   ")
        assert service.call_count == 0

    @pytest.mark.asyncio
    async def test_cancellation_not_absorbed(self, service: MockCategorizationService) -> None:
        """Test that cancelling the caller still cancels the categorizer."""
        service.set_latency(5.0)
        task = asyncio.create_task(Categorizer(service, timeout=10.0).categorize("text"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestCreateCategorizer:
    """Tests for create_categorizer factory."""

    def test_mock_provider(self) -> None:
        """Test that use_mock uses the mock service."""
        categorizer = create_categorizer(use_mock=True)
        assert isinstance(categorizer._service, MockCategorizationService)

    def test_missing_key_disables_categorization(self) -> None:
        """Test that a missing API key degrades instead of failing."""
        with patch.dict(os.environ, {}, clear=True):
            categorizer = create_categorizer(CategorizerConfig(provider="claude"))
        assert not categorizer.is_available

    def test_claude_provider(self) -> None:
        """Test that the Claude client is used when a key is set."""
        with (
            patch.dict(os.environ, {"ANTHROPIC_API_KEY": "k"}),
            patch("cathcr.claude.client.anthropic.AsyncAnthropic"),
        ):
            categorizer = create_categorizer(CategorizerConfig(provider="claude"))
        assert isinstance(categorizer._service, ClaudeCategorizationClient)

    def test_unknown_provider(self) -> None:
        """Test that an unknown provider is a configuration error."""
        with pytest.raises(ValueError, match="provider"):
            create_categorizer(CategorizerConfig(provider="nope"))
