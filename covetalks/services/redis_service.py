"""
Redis Service

Short-lived key storage. Used to remember consumed auto-login tokens until
they would have expired anyway.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from covetalks.utils.exceptions import CacheException
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

USED_TOKEN_PREFIX = "auto-login:jti:"


class RedisService:
    """Redis key operations service"""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.redis_client: Optional[Redis] = None
        self._pool = None

    @property
    def connected(self) -> bool:
        return self.redis_client is not None

    async def connect(self) -> None:
        """Establish connection to Redis"""
        try:
            self._pool = aioredis.ConnectionPool.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10,
            )
            self.redis_client = aioredis.Redis(connection_pool=self._pool)
            await self.redis_client.ping()
            logger.info("Successfully connected to Redis")
        except Exception as e:
            self.redis_client = None
            logger.error(f"Failed to connect to Redis: {e}")
            raise CacheException(f"Redis connection failed: {e}")

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
            if self._pool:
                await self._pool.disconnect()
            self.redis_client = None
            logger.info("Disconnected from Redis")

    async def ping(self) -> bool:
        if not self.redis_client:
            return False
        try:
            return bool(await self.redis_client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """
        Set a key only if it does not exist yet.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds

        Returns:
            True if the key was created, False if it already existed
        """
        try:
            if not self.redis_client:
                raise CacheException("Redis client not connected")

            created = await self.redis_client.set(key, value, nx=True, ex=ttl)
            logger.debug(f"SET NX for key: {key} created={bool(created)}")
            return bool(created)
        except CacheException:
            raise
        except Exception as e:
            logger.error(f"Error setting key {key} in Redis: {e}")
            raise CacheException(f"Failed to set key in cache: {e}")

    async def mark_token_used(self, jti: str, ttl: int) -> bool:
        """
        Record a token id as consumed.

        Returns:
            True on first use, False if the token was already used

        Raises:
            CacheException: If Redis is unavailable; callers reject the token
        """
        return await self.set_if_absent(f"{USED_TOKEN_PREFIX}{jti}", "1", max(ttl, 1))
