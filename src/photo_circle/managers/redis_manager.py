"""
Redis manager for handling Redis connections and related utilities.

This module provides the RedisManager class, which lazily opens a single
asynchronous Redis connection and exposes JSON helpers used by the shared
relationship cache backend.

Logging:
    - Uses the centralized logging manager.
    - Logs connection attempts, successes, and failures.
"""

import json
from typing import Any, Optional

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from photo_circle.config import settings
from photo_circle.managers.logging_manager import get_logger

logger = get_logger(prefix="[RedisManager]")


class RedisManager:
    """
    Manages a single Redis connection for the application.

    Attributes:
        redis_url: The Redis connection URL.
        _redis: The cached Redis connection instance.
    """

    def __init__(self, redis_url: Optional[str] = None) -> None:
        self.redis_url = redis_url or settings.REDIS_URL
        self._redis: Optional[redis_async.Redis] = None
        self.logger = logger

    async def get_redis(self) -> redis_async.Redis:
        """
        Get or create the Redis connection.

        Raises:
            RedisError: If Redis is unavailable.
        """
        if self._redis is None:
            self.logger.info("Attempting async connection to Redis at %s", self.redis_url)
            client = redis_async.from_url(self.redis_url, decode_responses=True)
            try:
                await client.ping()
            except RedisError as conn_exc:
                self.logger.error("Failed to create async Redis connection: %s", conn_exc, exc_info=True)
                await client.aclose()
                raise
            self._redis = client
            self.logger.info("Successfully connected (async) to Redis at %s", self.redis_url)
        return self._redis

    async def get_json(self, key: str) -> Any:
        """Get a JSON value by key, or None if the key is missing."""
        redis_client = await self.get_redis()
        value = await redis_client.get(key)
        if value is None:
            return None
        return json.loads(value)

    async def set_json(self, key: str, value: Any, expiry: Optional[int] = None) -> None:
        """Set a JSON value with optional expiration in seconds."""
        redis_client = await self.get_redis()
        serialized_value = json.dumps(value, default=str)
        if expiry:
            await redis_client.setex(key, expiry, serialized_value)
        else:
            await redis_client.set(key, serialized_value)
        self.logger.debug("Set JSON key %s%s", key, f" with expiry {expiry}s" if expiry else "")

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        redis_client = await self.get_redis()
        await redis_client.delete(*keys)
        self.logger.debug("Deleted keys %s", keys)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


redis_manager = RedisManager()
