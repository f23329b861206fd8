"""
Unit tests for rate limiting.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from eventgate.core import redis as redis_store
from eventgate.core.rate_limit import (
    RateLimitExceeded,
    check_rate_limit,
    enforce_rate_limit,
    reset_memory_store,
)


@pytest.fixture(autouse=True)
def _clean_store():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def mock_redis():
    """Create a mock Redis client with a pipeline."""
    redis = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 0, 1, True])
    redis.pipeline.return_value = pipe
    return redis


class TestMemoryFallback:
    """Rate limiting without Redis."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=None)):
            results = [await check_rate_limit("scan:v1", 3, 60) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=None)):
            for _ in range(2):
                await check_rate_limit("scan:v1", 2, 60)

            assert await check_rate_limit("scan:v1", 2, 60) is False
            assert await check_rate_limit("scan:v2", 2, 60) is True

    @pytest.mark.asyncio
    async def test_enforce_raises_429(self):
        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=None)):
            await enforce_rate_limit("approve:o1", 1, 30)

            with pytest.raises(RateLimitExceeded) as exc_info:
                await enforce_rate_limit("approve:o1", 1, 30)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "30"
        assert exc_info.value.detail["error"] == "RATE_LIMIT_EXCEEDED"


class TestRedis:
    """Rate limiting backed by Redis."""

    @pytest.mark.asyncio
    async def test_under_limit(self, mock_redis):
        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=mock_redis)):
            assert await check_rate_limit("scan:v1", 5, 60) is True

        pipe = mock_redis.pipeline.return_value
        pipe.zadd.assert_called_once()
        pipe.expire.assert_called_once_with("scan:v1", 60)

    @pytest.mark.asyncio
    async def test_over_limit(self, mock_redis):
        mock_redis.pipeline.return_value.execute = AsyncMock(return_value=[0, 5, 1, True])

        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=mock_redis)):
            assert await check_rate_limit("scan:v1", 5, 60) is False

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_memory(self, mock_redis):
        mock_redis.pipeline.return_value.execute = AsyncMock(side_effect=ConnectionError("down"))

        with patch("eventgate.core.rate_limit.get_redis", AsyncMock(return_value=mock_redis)):
            assert await check_rate_limit("scan:v1", 1, 60) is True
            assert await check_rate_limit("scan:v1", 1, 60) is False


class TestRedisClient:
    """Lifecycle of the shared rate limit client."""

    @pytest.mark.asyncio
    async def test_init_then_close(self):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()

        with patch("eventgate.core.redis.from_url", return_value=client):
            await redis_store.init_redis()
            connected = await redis_store.get_redis()
            await redis_store.close_redis()

        assert connected is client
        client.ping.assert_awaited_once()
        client.aclose.assert_awaited_once()
        assert await redis_store.get_redis() is None
        assert redis_store.is_redis_available() is False

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=ConnectionError("refused"))
        client.aclose = AsyncMock()

        with patch("eventgate.core.redis.from_url", return_value=client):
            with pytest.raises(ConnectionError):
                await redis_store.init_redis()
            await redis_store.close_redis()

        assert redis_store.is_redis_available() is False
