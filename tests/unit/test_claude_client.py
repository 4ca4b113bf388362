"""Unit tests for the Claude categorization client.

Tests config loading, the forced-tool request and contract verification.
"""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import pytest

from cathcr.claude.client import (
    TOOL_NAME,
    ClaudeCategorizationClient,
    ClaudeClientConfig,
    model_matches,
)
from cathcr.claude.errors import (
    ClaudeAPIError,
    ClaudeAuthError,
    ClaudeConnectivityError,
    ClaudeContractError,
    ClaudeTimeoutError,
)

MODEL = "claude-3-5-haiku-20241022"
PAYLOAD = {"title": "Call John", "tags": ["calls"], "category": "reminder", "priority": "high"}


def make_response(
    model: str = MODEL,
    payload: object = PAYLOAD,
    tool_name: str = TOOL_NAME,
    stop_reason: str = "tool_use",
) -> SimpleNamespace:
    """Build a Messages API response carrying one tool call."""
    return SimpleNamespace(
        model=model,
        stop_reason=stop_reason,
        content=[SimpleNamespace(type="tool_use", name=tool_name, input=payload)],
    )


class TestClaudeClientConfig:
    """Tests for ClaudeClientConfig."""

    def test_from_env_returns_config_with_api_key(self) -> None:
        """Test that from_env() returns config with API key from environment."""
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-api-key"}):
            config = ClaudeClientConfig.from_env()
        assert config.api_key == "test-api-key"
        assert config.model == MODEL
        assert config.timeout_seconds == 5.0

    def test_from_env_applies_overrides(self) -> None:
        """Test that non-secret settings can be overridden."""
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "k"}):
            config = ClaudeClientConfig.from_env(model="claude-x", timeout_seconds=2.0)
        assert config.model == "claude-x"
        assert config.timeout_seconds == 2.0

    def test_from_env_raises_when_api_key_missing(self) -> None:
        """Test that from_env() raises ValueError when API key not set."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
                ClaudeClientConfig.from_env()

    def test_from_env_raises_when_api_key_blank(self) -> None:
        """Test that a whitespace-only key counts as missing."""
        with (
            patch.dict(os.environ, {"ANTHROPIC_API_KEY": "  "}),
            pytest.raises(ValueError, match="ANTHROPIC_API_KEY"),
        ):
            ClaudeClientConfig.from_env()


class TestModelMatches:
    """Tests for echoed model verification."""

    def test_exact(self) -> None:
        """Test that the identical id matches."""
        assert model_matches(MODEL, MODEL)

    def test_alias_matches_snapshot(self) -> None:
        """Test that an alias matches a dated snapshot of the same model."""
        assert model_matches("claude-3-5-haiku-latest", MODEL)
        assert model_matches("claude-3-5-haiku", MODEL)

    def test_substituted_model_rejected(self) -> None:
        """Test that a different model does not match."""
        assert not model_matches(MODEL, "claude-3-haiku-20240307")
        assert not model_matches("claude-3-5-haiku-latest", "claude-3-haiku-20240307")

    def test_other_snapshot_rejected(self) -> None:
        """Test that a pinned snapshot does not accept another snapshot."""
        assert not model_matches(MODEL, "claude-3-5-haiku-20250101")

    def test_missing_model_rejected(self) -> None:
        """Test that a response without a model id fails."""
        assert not model_matches(MODEL, None)
        assert not model_matches(MODEL, "")


class TestClaudeCategorizationClient:
    """Tests for ClaudeCategorizationClient.categorize()."""

    @pytest.fixture
    def mock_anthropic(self) -> MagicMock:
        """Create mock AsyncAnthropic client."""
        mock = MagicMock()
        mock.messages.create = AsyncMock(return_value=make_response())
        mock.close = AsyncMock()
        return mock

    @pytest.fixture
    def client(self, mock_anthropic: MagicMock) -> ClaudeCategorizationClient:
        """Create client around the mock SDK."""
        return ClaudeCategorizationClient(ClaudeClientConfig(api_key="k"), client=mock_anthropic)

    @pytest.mark.asyncio
    async def test_returns_tool_input(self, client: ClaudeCategorizationClient) -> None:
        """Test that the forced tool's input is returned."""
        assert await client.categorize("Reminder to call John") == PAYLOAD

    @pytest.mark.asyncio
    async def test_forces_structured_output(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that the request declares and forces the metadata tool."""
        await client.categorize("Reminder to call John")

        kwargs = mock_anthropic.messages.create.call_args.kwargs
        assert kwargs["model"] == MODEL
        assert kwargs["tool_choice"] == {"type": "tool", "name": TOOL_NAME}
        assert kwargs["tools"][0]["name"] == TOOL_NAME
        assert "category" in kwargs["tools"][0]["input_schema"]["properties"]
        assert "Reminder to call John" in kwargs["messages"][0]["content"]

    def test_sdk_retries_disabled(self) -> None:
        """Test that the SDK client is built without its own retries."""
        with patch("cathcr.claude.client.anthropic.AsyncAnthropic") as mock_cls:
            ClaudeCategorizationClient(ClaudeClientConfig(api_key="k", timeout_seconds=3.0))
        kwargs = mock_cls.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 3.0

    @pytest.mark.asyncio
    async def test_model_substitution_fails_loudly(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock, caplog
    ) -> None:
        """Test that an answer from another model is a contract error."""
        mock_anthropic.messages.create.return_value = make_response(model="claude-3-haiku-20240307")

        with pytest.raises(ClaudeContractError) as exc_info:
            await client.categorize("text")
        assert exc_info.value.requested == MODEL
        assert exc_info.value.received == "claude-3-haiku-20240307"
        assert any(r.levelname == "ERROR" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_tool_call(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that a plain-text answer is a contract error."""
        mock_anthropic.messages.create.return_value = SimpleNamespace(
            model=MODEL,
            stop_reason="end_turn",
            content=[SimpleNamespace(type="text", text='{"title": "x"}')],
        )
        with pytest.raises(ClaudeContractError):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_wrong_tool_name(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that a call to another tool is a contract error."""
        mock_anthropic.messages.create.return_value = make_response(tool_name="something_else")
        with pytest.raises(ClaudeContractError):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_truncated_output(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that output cut off by max_tokens is a contract error."""
        mock_anthropic.messages.create.return_value = make_response(stop_reason="max_tokens")
        with pytest.raises(ClaudeContractError, match="truncated"):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_handles_timeout(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that SDK timeouts are raised as ClaudeTimeoutError."""
        mock_anthropic.messages.create.side_effect = anthropic.APITimeoutError(request=MagicMock())
        with pytest.raises(ClaudeTimeoutError):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_handles_connection_error(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that connection failures are raised as ClaudeConnectivityError."""
        mock_anthropic.messages.create.side_effect = anthropic.APIConnectionError(
            request=MagicMock()
        )
        with pytest.raises(ClaudeConnectivityError):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_handles_api_error(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that API errors are raised as ClaudeAPIError."""
        mock_anthropic.messages.create.side_effect = anthropic.APIStatusError(
            message="Server error",
            response=MagicMock(status_code=500),
            body=None,
        )
        with pytest.raises(ClaudeAPIError) as exc_info:
            await client.categorize("text")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_handles_auth_error(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that auth errors are raised as ClaudeAuthError."""
        mock_anthropic.messages.create.side_effect = anthropic.AuthenticationError(
            message="Invalid API key",
            response=MagicMock(status_code=401),
            body=None,
        )
        with pytest.raises(ClaudeAuthError):
            await client.categorize("text")

    @pytest.mark.asyncio
    async def test_aclose_closes_sdk_client(
        self, client: ClaudeCategorizationClient, mock_anthropic: MagicMock
    ) -> None:
        """Test that aclose releases the SDK's HTTP client."""
        await client.aclose()
        mock_anthropic.close.assert_awaited_once()
