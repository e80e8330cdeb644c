"""
Read-side cache for resolved relationship lists.

Resolved lists (friend profiles, pending-request profiles, family members,
received family invitations) are cached per ``(namespace, key)`` for a short
TTL. The cache is never authoritative: the relationship managers invalidate
every participant after each mutation, and dropping the whole cache at any time
only costs a re-resolution.

Two backends share one async interface:

- `ResolvedListCache`: in-process dict with an injectable clock.
- `RedisResolvedListCache`: JSON values in Redis with ``SETEX`` expiry, for
  deployments running several workers.
"""

import time
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

from redis.exceptions import RedisError

from photo_circle.config import settings
from photo_circle.managers.logging_manager import get_logger
from photo_circle.managers.redis_manager import RedisManager, redis_manager

logger = get_logger(prefix="[RelationshipCache]")

FRIENDS_NAMESPACE = "friends"
FRIEND_REQUESTS_NAMESPACE = "friend_requests"
FAMILY_MEMBERS_NAMESPACE = "family_members"
FAMILY_REQUESTS_NAMESPACE = "family_requests"

USER_NAMESPACES: Tuple[str, ...] = (FRIENDS_NAMESPACE, FRIEND_REQUESTS_NAMESPACE, FAMILY_REQUESTS_NAMESPACE)
ALL_NAMESPACES: Tuple[str, ...] = USER_NAMESPACES + (FAMILY_MEMBERS_NAMESPACE,)


class ResolvedListCache:
    """In-process TTL cache. Values are stored as given; callers store JSON-ready data."""

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.FRIENDS_CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[Any, float]] = {}

    def _is_fresh(self, fetched_at: float) -> bool:
        return self._clock() - fetched_at < self.ttl_seconds

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        entry = self._entries.get((namespace, key))
        if entry is None:
            return None
        value, fetched_at = entry
        if not self._is_fresh(fetched_at):
            logger.debug("Cache entry %s:%s expired", namespace, key)
            return None
        return value

    async def get_stale(self, namespace: str, key: str) -> Optional[Any]:
        """Return the last value stored for the key regardless of age (read-error fallback)."""
        entry = self._entries.get((namespace, key))
        return entry[0] if entry else None

    async def set(self, namespace: str, key: str, value: Any) -> None:
        self._entries[(namespace, key)] = (value, self._clock())

    async def invalidate(self, key: str, namespaces: Optional[Iterable[str]] = None) -> None:
        for namespace in namespaces or ALL_NAMESPACES:
            self._entries.pop((namespace, key), None)
        logger.debug("Invalidated cache entries for %s", key)

    async def clear(self) -> None:
        self._entries.clear()


class RedisResolvedListCache:
    """
    Redis-backed variant. Redis errors degrade to cache misses.

    Keys whose delete failed are remembered in-process and read as misses until
    a later delete or write for the key succeeds, so a failed invalidation never
    serves the pre-mutation list from this worker.
    """

    def __init__(
        self,
        redis_manager: RedisManager,
        ttl_seconds: Optional[int] = None,
        key_prefix: Optional[str] = None,
    ) -> None:
        self.redis_manager = redis_manager
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.FRIENDS_CACHE_TTL_SECONDS
        self.key_prefix = key_prefix or settings.CACHE_KEY_PREFIX
        self._failed_invalidations: Set[str] = set()

    def _key(self, namespace: str, key: str) -> str:
        return f"{self.key_prefix}:{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        redis_key = self._key(namespace, key)
        if redis_key in self._failed_invalidations:
            await self._retry_delete(redis_key)
            return None
        try:
            return await self.redis_manager.get_json(redis_key)
        except (RedisError, ValueError) as e:
            logger.warning("Redis cache read failed for %s:%s: %s", namespace, key, e)
            return None

    async def get_stale(self, namespace: str, key: str) -> Optional[Any]:
        return await self.get(namespace, key)

    async def set(self, namespace: str, key: str, value: Any) -> None:
        redis_key = self._key(namespace, key)
        try:
            await self.redis_manager.set_json(redis_key, value, expiry=self.ttl_seconds)
            self._failed_invalidations.discard(redis_key)
        except RedisError as e:
            logger.warning("Redis cache write failed for %s:%s: %s", namespace, key, e)

    async def invalidate(self, key: str, namespaces: Optional[Iterable[str]] = None) -> None:
        keys = [self._key(namespace, key) for namespace in namespaces or ALL_NAMESPACES]
        try:
            await self.redis_manager.delete(*keys)
        except RedisError as e:
            self._failed_invalidations.update(keys)
            logger.error("Redis cache invalidation failed for %s: %s", key, e, exc_info=True)
            return
        self._failed_invalidations.difference_update(keys)

    async def _retry_delete(self, redis_key: str) -> None:
        try:
            await self.redis_manager.delete(redis_key)
        except RedisError as e:
            logger.warning("Redis cache delete retry failed for %s: %s", redis_key, e)
            return
        self._failed_invalidations.discard(redis_key)

    async def clear(self) -> None:
        try:
            redis_client = await self.redis_manager.get_redis()
            keys = [k async for k in redis_client.scan_iter(match=f"{self.key_prefix}:*")]
            if keys:
                await redis_client.delete(*keys)
            self._failed_invalidations.clear()
        except RedisError as e:
            logger.warning("Redis cache clear failed: %s", e)


def build_cache(backend: Optional[str] = None):
    """Construct the cache selected by ``CACHE_BACKEND``."""
    backend = backend or settings.CACHE_BACKEND
    if backend == "redis":
        return RedisResolvedListCache(redis_manager)
    return ResolvedListCache()
