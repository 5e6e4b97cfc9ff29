"""
Tests for brute-force protection.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from redis.exceptions import ConnectionError as RedisConnectionError

from authserver.services.brute_force_protection import BruteForceProtection


@pytest.fixture
def enabled():
    with patch("authserver.services.brute_force_protection.settings.enable_brute_force_protection", True):
        yield


@pytest.fixture
def protection():
    service = BruteForceProtection()
    service._redis = MagicMock()
    return service


class TestBruteForceProtection:
    """Tests for BruteForceProtection"""

    @pytest.mark.asyncio
    async def test_disabled_never_touches_redis(self, protection):
        with patch("authserver.services.brute_force_protection.settings.enable_brute_force_protection", False):
            assert await protection.is_locked_out("alice", "1.2.3.4") == (False, None)
            await protection.record_failed_attempt("alice", "1.2.3.4")

        protection._redis.get.assert_not_called()
        protection._redis.incr.assert_not_called()

    @pytest.mark.asyncio
    async def test_first_failure_sets_expiry(self, enabled, protection):
        protection._redis.incr = AsyncMock(return_value=1)
        protection._redis.expire = AsyncMock()

        await protection.record_failed_attempt("alice", "1.2.3.4")

        assert protection._redis.expire.await_count == 2

    @pytest.mark.asyncio
    async def test_locked_after_threshold(self, enabled, protection):
        protection._redis.get = AsyncMock(return_value="5")
        protection._redis.ttl = AsyncMock(return_value=120)

        is_locked, reason = await protection.is_locked_out("alice", "1.2.3.4")

        assert is_locked
        assert "120" in reason

    @pytest.mark.asyncio
    async def test_below_threshold(self, enabled, protection):
        protection._redis.get = AsyncMock(return_value="2")

        assert await protection.is_locked_out("alice", "1.2.3.4") == (False, None)

    @pytest.mark.asyncio
    async def test_redis_down_fails_open(self, enabled, protection):
        protection._redis.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        protection._redis.incr = AsyncMock(side_effect=RedisConnectionError("refused"))

        assert await protection.is_locked_out("alice", "1.2.3.4") == (False, None)
        await protection.record_failed_attempt("alice", "1.2.3.4")

    @pytest.mark.asyncio
    async def test_reset(self, enabled, protection):
        protection._redis.delete = AsyncMock()

        await protection.reset_failed_attempts("alice", "1.2.3.4")

        protection._redis.delete.assert_awaited_once_with(
            "failed_attempts:username:alice", "failed_attempts:ip:1.2.3.4"
        )
