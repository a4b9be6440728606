"""
Tests for enrichment/retry.py

Tests cover:
- Transient error detection
- Retry with exponential backoff
- Immediate failure for permanent errors
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from enrichment.retry import is_transient_provider_error, retry_with_backoff


class TestIsTransientProviderError:
    """Test transient error classification."""

    @pytest.mark.parametrize(
        "error",
        [
            asyncio.TimeoutError(),
            ConnectionError("reset"),
            RuntimeError("Service Unavailable"),
            RuntimeError("network unreachable"),
        ],
    )
    def test_transient(self, error: Exception) -> None:
        assert is_transient_provider_error(error) is True

    @pytest.mark.parametrize("error", [ValueError("unknown company id"), KeyError("name")])
    def test_permanent(self, error: Exception) -> None:
        assert is_transient_provider_error(error) is False


class TestRetryWithBackoff:
    """Test retry_with_backoff()."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self) -> None:
        operation = AsyncMock(return_value="ok")

        assert await retry_with_backoff(operation) == "ok"
        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_with_doubling_delay(self) -> None:
        operation = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])

        with patch("enrichment.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            result = await retry_with_backoff(operation, max_retries=3, retry_delay=0.5)

        assert result == "ok"
        assert [call.args[0] for call in mock_sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_raises_after_exhausting_retries(self) -> None:
        operation = AsyncMock(side_effect=ConnectionError("down"))

        with pytest.raises(ConnectionError, match="down"):
            await retry_with_backoff(operation, max_retries=2, retry_delay=0)

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_raised_immediately(self) -> None:
        operation = AsyncMock(side_effect=ValueError("bad request"))

        with pytest.raises(ValueError, match="bad request"):
            await retry_with_backoff(operation, max_retries=3, retry_delay=0)

        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_custom_classifier(self) -> None:
        operation = AsyncMock(side_effect=[KeyError("x"), "ok"])

        result = await retry_with_backoff(
            operation, max_retries=1, retry_delay=0, is_transient_error=lambda e: True
        )

        assert result == "ok"

    @pytest.mark.asyncio
    async def test_negative_arguments_rejected(self) -> None:
        with pytest.raises(ValueError):
            await retry_with_backoff(AsyncMock(), max_retries=-1)
        with pytest.raises(ValueError):
            await retry_with_backoff(AsyncMock(), retry_delay=-1)
