"""Brute-force protection service"""

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from authserver.core.config import logger, settings


class BruteForceProtection:
    """
    Failed-login counters in Redis, per username and per IP.

    Every Redis failure is logged and treated as "not locked out", so an
    unavailable Redis never blocks logins.
    """

    def __init__(self):
        self._redis: aioredis.Redis | None = None

    def get_redis(self) -> aioredis.Redis:
        """Get Redis connection (connects lazily on first command)"""
        if self._redis is None:
            self._redis = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    @staticmethod
    def _keys(username: str, ip_address: str) -> tuple[str, str]:
        return f"failed_attempts:username:{username}", f"failed_attempts:ip:{ip_address}"

    async def record_failed_attempt(self, username: str, ip_address: str) -> None:
        """
        Record a failed login attempt

        Args:
            username: Username that failed
            ip_address: IP address of the request
        """
        if not settings.enable_brute_force_protection:
            return

        username_key, ip_key = self._keys(username, ip_address)
        try:
            redis = self.get_redis()
            username_count = await redis.incr(username_key)
            ip_count = await redis.incr(ip_key)

            # Counters reset after the lockout duration
            if username_count == 1:
                await redis.expire(username_key, settings.brute_force_lockout_duration)
            if ip_count == 1:
                await redis.expire(ip_key, settings.brute_force_lockout_duration)

            logger.warning(
                f"Failed login attempt: username={username}, ip={ip_address}, "
                f"username_count={username_count}, ip_count={ip_count}"
            )

        except RedisError as e:
            logger.error(f"Failed to record failed attempt: {e}")

    async def is_locked_out(self, username: str, ip_address: str) -> tuple[bool, str | None]:
        """
        Check if username or IP is locked out

        Returns:
            Tuple of (is_locked, reason)
        """
        if not settings.enable_brute_force_protection:
            return False, None

        username_key, ip_key = self._keys(username, ip_address)
        try:
            redis = self.get_redis()

            username_count = await redis.get(username_key)
            if username_count and int(username_count) >= settings.brute_force_threshold:
                ttl = await redis.ttl(username_key)
                logger.warning(f"Username locked out: {username} ({username_count} attempts)")
                return True, f"Too many failed attempts. Try again in {ttl} seconds."

            ip_count = await redis.get(ip_key)
            if ip_count and int(ip_count) >= settings.brute_force_threshold * 2:
                ttl = await redis.ttl(ip_key)
                logger.warning(f"IP locked out: {ip_address} ({ip_count} attempts)")
                return True, f"Too many failed attempts from this IP. Try again in {ttl} seconds."

            return False, None

        except RedisError as e:
            logger.error(f"Failed to check lockout: {e}")
            return False, None

    async def reset_failed_attempts(self, username: str, ip_address: str) -> None:
        """Reset failed attempt counters after a successful login"""
        if not settings.enable_brute_force_protection:
            return

        try:
            await self.get_redis().delete(*self._keys(username, ip_address))
        except RedisError as e:
            logger.error(f"Failed to reset failed attempts: {e}")

    async def close(self) -> None:
        """Close Redis connection"""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global instance
brute_force_protection = BruteForceProtection()
