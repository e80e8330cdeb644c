"""
Shared machinery for the friend and family relationship protocols.

A protocol transition is a list of named, idempotent document writes. They run
either inside one MongoDB transaction (when enabled and supported by the
deployment) or one after another. In the sequential case a failure after at
least one applied write raises `PartialMutation` listing the writes that
landed; calling the same operation again completes the transition because
every write is a set union or set removal.

Cache invalidation and notifications are handled here as well:

- `_invalidate` is called from ``finally`` blocks so participants are
  invalidated whether or not the writes succeeded.
- `_safe_notify` logs and swallows notification failures.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from pymongo.errors import PyMongoError

from photo_circle.config import settings
from photo_circle.database import db_manager as default_db_manager
from photo_circle.exceptions import PartialMutation, StoreUnavailable
from photo_circle.managers.logging_manager import get_logger
from photo_circle.managers.notification_manager import NotificationManager
from photo_circle.managers.profile_manager import ProfileResolver
from photo_circle.managers.relationship_cache import USER_NAMESPACES, ResolvedListCache
from photo_circle.models.relationship_models import UserProfile

Write = Tuple[str, Callable[[object], Awaitable[object]]]


class RelationshipProtocol:
    """Base class for managers that mutate two or more relationship documents together."""

    def __init__(
        self,
        db_manager=None,
        profile_resolver: Optional[ProfileResolver] = None,
        notification_manager: Optional[NotificationManager] = None,
        cache=None,
        use_transactions: Optional[bool] = None,
        batch_size: Optional[int] = None,
        logger=None,
    ) -> None:
        self.db_manager = db_manager or default_db_manager
        self.profiles = profile_resolver or ProfileResolver(self.db_manager)
        self.notifications = notification_manager or NotificationManager(self.db_manager)
        self.cache = cache if cache is not None else ResolvedListCache()
        self.use_transactions = (
            settings.RELATIONSHIP_TRANSACTIONS_ENABLED if use_transactions is None else use_transactions
        )
        self.batch_size = batch_size or settings.PROFILE_RESOLVE_BATCH_SIZE
        self.logger = logger or get_logger(prefix="[RelationshipProtocol]")

    def _transactions_available(self) -> bool:
        return bool(
            self.use_transactions
            and getattr(self.db_manager, "transactions_supported", False)
            and getattr(self.db_manager, "client", None) is not None
        )

    async def _run_writes(self, operation: str, writes: Sequence[Write]) -> None:
        if self._transactions_available():
            await self._run_writes_in_transaction(operation, writes)
            return

        applied: List[str] = []
        for name, write in writes:
            try:
                await write(None)
            except StoreUnavailable as e:
                if not applied:
                    raise
                self.logger.error(
                    "%s partially applied: %s succeeded, %s failed. Retrying %s completes it.",
                    operation,
                    applied,
                    name,
                    operation,
                )
                raise PartialMutation(
                    f"{operation} was only partially applied; retry the operation to complete it",
                    operation=operation,
                    applied=applied,
                ) from e
            applied.append(name)

    async def _run_writes_in_transaction(self, operation: str, writes: Sequence[Write]) -> None:
        try:
            async with await self.db_manager.client.start_session() as session:
                async with session.start_transaction():
                    for _name, write in writes:
                        await write(session)
        except PyMongoError as e:
            self.logger.error("%s transaction failed: %s", operation, e, exc_info=True)
            raise StoreUnavailable(f"{operation} transaction failed", operation=operation) from e
        self.logger.debug("%s committed in one transaction (%d writes)", operation, len(writes))

    async def _invalidate(
        self, user_ids: Iterable[str] = (), family_ids: Iterable[str] = (), namespaces=USER_NAMESPACES
    ) -> None:
        for user_id in set(user_ids):
            await self.cache.invalidate(user_id, namespaces)
        for family_id in set(family_ids):
            await self.cache.invalidate(family_id)

    async def _safe_notify(self, description: str, send: Callable[[], Awaitable[object]]) -> None:
        try:
            await send()
        except Exception as e:
            self.logger.warning("Failed to send %s notification: %s", description, e)

    async def _resolve_profiles(self, user_ids: Sequence[str]) -> List[UserProfile]:
        """Resolve ids in batches, concurrently within a batch, dropping ids that do not resolve."""
        resolved: List[UserProfile] = []
        for start in range(0, len(user_ids), self.batch_size):
            batch = user_ids[start : start + self.batch_size]
            profiles = await asyncio.gather(*(self.profiles.get_user_by_id(user_id) for user_id in batch))
            resolved.extend(profile for profile in profiles if profile is not None)
        return resolved
