"""
Profile resolver: user id -> public profile.

Lookups are cached in-process for ``PROFILE_CACHE_TTL_SECONDS``. Unknown ids
resolve to ``None``; database errors are logged and fall back to the cached
profile, if any.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from photo_circle.config import settings
from photo_circle.database import db_manager as default_db_manager
from photo_circle.managers.logging_manager import get_logger
from photo_circle.models.relationship_models import UserProfile

logger = get_logger(prefix="[ProfileResolver]")


class ProfileResolver:
    def __init__(
        self,
        db_manager=None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.db_manager = db_manager or default_db_manager
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.PROFILE_CACHE_TTL_SECONDS
        self._clock = clock
        self._cache: Dict[str, Tuple[UserProfile, float]] = {}
        self.logger = logger

    async def _find_user_document(self, user_id: str):
        users_collection = self.db_manager.get_collection(settings.USERS_COLLECTION)
        document = await users_collection.find_one({"_id": user_id})
        if document is None and ObjectId.is_valid(user_id):
            try:
                document = await users_collection.find_one({"_id": ObjectId(user_id)})
            except InvalidId:
                document = None
        return document

    async def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Resolve a user id to a profile, or None for deleted/unknown users."""
        cached = self._cache.get(user_id)
        if cached and self._clock() - cached[1] < self.ttl_seconds:
            return cached[0]

        try:
            document = await self._find_user_document(user_id)
        except PyMongoError as e:
            self.logger.error("Profile lookup failed for %s: %s", user_id, e)
            return cached[0] if cached else None

        if document is None:
            self.logger.debug("No profile found for %s", user_id)
            self._cache.pop(user_id, None)
            return None

        profile = UserProfile.from_document(document)
        self._cache[user_id] = (profile, self._clock())
        return profile

    def forget(self, user_id: str) -> None:
        self._cache.pop(user_id, None)
