"""
Relationship Store: durable per-user relationship documents.

Three stores share one write path:

- `RelationshipStore` (``friends`` collection): one document per user holding the
  ``friends`` set and the two pending-request queues.
- `FamilyStore` (``families`` collection): family groups and their member sets.
- `FamilyRequestStore` (``family_requests`` collection): per-user received and sent
  family invitations.

Every mutation is a single ``update_one`` built from ``$addToSet`` / ``$pull``
operators, so repeating it with the same arguments leaves the document unchanged
apart from ``updated_at``. Writes upsert, which makes the lazily created documents
safe to mutate before anyone has read them.

Failure model:
    - Reads that hit a database error fall back to the last document this process
      read for the same key, else to an empty record.
    - Writes that hit a database error raise `StoreUnavailable`. Nothing is queued
      or retried here.
"""

from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from photo_circle.config import settings
from photo_circle.database import db_manager as default_db_manager
from photo_circle.exceptions import StoreUnavailable
from photo_circle.managers.logging_manager import get_logger
from photo_circle.models.relationship_models import (
    FamilyRecord,
    FamilyRequestRecord,
    ReceivedFamilyRequest,
    RelationshipRecord,
    SentFamilyRequest,
    utc_now,
)

logger = get_logger(prefix="[RelationshipStore]")

FRIENDS_FIELD = "friends"
SENT_FIELD = "friend_requests_sent"
RECEIVED_FIELD = "friend_requests_received"


class _DocumentStore:
    """Shared collection access, query logging and write error translation."""

    collection_name: str

    def __init__(self, db_manager=None, collection_name: Optional[str] = None) -> None:
        self.db_manager = db_manager or default_db_manager
        if collection_name:
            self.collection_name = collection_name
        self.logger = logger

    def _collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def _update(
        self,
        operation: str,
        query: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = True,
        session=None,
    ) -> int:
        """Run one update_one and return the matched count (0 for an upsert insert)."""
        update.setdefault("$set", {})["updated_at"] = utc_now()
        start_time = self.db_manager.log_query_start(self.collection_name, operation, query)
        try:
            result = await self._collection().update_one(query, update, upsert=upsert, session=session)
        except PyMongoError as e:
            self.db_manager.log_query_error(self.collection_name, operation, start_time, e, query)
            self.logger.error("%s failed on %s: %s", operation, self.collection_name, e, exc_info=True)
            raise StoreUnavailable(
                f"Could not save changes to {self.collection_name}", operation=operation, collection=self.collection_name
            ) from e
        self.db_manager.log_query_success(self.collection_name, operation, start_time, result.modified_count)
        return result.matched_count


class RelationshipStore(_DocumentStore):
    """Per-user ``friends`` documents."""

    collection_name = settings.FRIENDS_COLLECTION

    def __init__(self, db_manager=None, collection_name: Optional[str] = None) -> None:
        super().__init__(db_manager, collection_name)
        self._last_read: Dict[str, RelationshipRecord] = {}

    async def get_or_create(self, user_id: str) -> RelationshipRecord:
        """
        Return the user's record, persisting an empty one if none exists.

        An existing record is never overwritten: creation uses ``$setOnInsert``.
        """
        start_time = self.db_manager.log_query_start(self.collection_name, "get_or_create", {"_id": user_id})
        try:
            document = await self._collection().find_one({"_id": user_id})
            if document is None:
                record = RelationshipRecord.empty(user_id)
                await self._collection().update_one(
                    {"_id": user_id},
                    {
                        "$setOnInsert": {
                            FRIENDS_FIELD: [],
                            SENT_FIELD: [],
                            RECEIVED_FIELD: [],
                            "updated_at": record.updated_at,
                        }
                    },
                    upsert=True,
                )
                self.logger.debug("Created relationship record for %s", user_id)
            else:
                record = RelationshipRecord.from_document(document)
        except PyMongoError as e:
            self.db_manager.log_query_error(self.collection_name, "get_or_create", start_time, e, {"_id": user_id})
            cached = self._last_read.get(user_id)
            self.logger.warning(
                "Relationship record read failed for %s, serving %s: %s",
                user_id,
                "last known record" if cached else "empty record",
                e,
            )
            return cached.model_copy(deep=True) if cached else RelationshipRecord.empty(user_id)

        self.db_manager.log_query_success(self.collection_name, "get_or_create", start_time, 1)
        self._last_read[user_id] = record
        return record.model_copy(deep=True)

    async def apply(
        self,
        user_id: str,
        add: Optional[Dict[str, str]] = None,
        remove: Optional[Dict[str, str]] = None,
        session=None,
    ) -> None:
        """Apply set-union (``add``) and set-removal (``remove``) to one document in a single write."""
        update: Dict[str, Any] = {}
        if add:
            update["$addToSet"] = dict(add)
        if remove:
            update["$pull"] = dict(remove)
        await self._update("apply", {"_id": user_id}, update, session=session)

    async def add_friend(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, add={FRIENDS_FIELD: other_id}, session=session)

    async def remove_friend(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, remove={FRIENDS_FIELD: other_id}, session=session)

    async def add_sent_request(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, add={SENT_FIELD: other_id}, session=session)

    async def remove_sent_request(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, remove={SENT_FIELD: other_id}, session=session)

    async def add_received_request(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, add={RECEIVED_FIELD: other_id}, session=session)

    async def remove_received_request(self, user_id: str, other_id: str, session=None) -> None:
        await self.apply(user_id, remove={RECEIVED_FIELD: other_id}, session=session)


class FamilyStore(_DocumentStore):
    """Family group documents keyed by family id."""

    collection_name = settings.FAMILIES_COLLECTION

    async def create(self, family: FamilyRecord) -> FamilyRecord:
        start_time = self.db_manager.log_query_start(self.collection_name, "create", {"_id": family.id})
        try:
            await self._collection().insert_one(family.to_document())
        except PyMongoError as e:
            self.db_manager.log_query_error(self.collection_name, "create", start_time, e, {"_id": family.id})
            raise StoreUnavailable("Could not create family", operation="create", collection=self.collection_name) from e
        self.db_manager.log_query_success(self.collection_name, "create", start_time, 1)
        return family

    async def get(self, family_id: str) -> Optional[FamilyRecord]:
        """Return the family, or None if it does not exist. Read errors raise `StoreUnavailable`."""
        try:
            document = await self._collection().find_one({"_id": family_id})
        except PyMongoError as e:
            self.logger.error("Family read failed for %s: %s", family_id, e, exc_info=True)
            raise StoreUnavailable("Could not load family", operation="get", collection=self.collection_name) from e
        return FamilyRecord.from_document(document) if document else None

    async def find_by_member(self, user_id: str) -> List[FamilyRecord]:
        try:
            cursor = self._collection().find({"members": user_id})
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            self.logger.error("Family lookup by member failed for %s: %s", user_id, e, exc_info=True)
            return []
        return [FamilyRecord.from_document(document) for document in documents]

    async def add_member(self, family_id: str, user_id: str, session=None) -> bool:
        matched = await self._update(
            "add_member", {"_id": family_id}, {"$addToSet": {"members": user_id}}, upsert=False, session=session
        )
        return matched > 0

    async def remove_member(self, family_id: str, user_id: str, session=None) -> bool:
        matched = await self._update(
            "remove_member", {"_id": family_id}, {"$pull": {"members": user_id}}, upsert=False, session=session
        )
        return matched > 0

    async def set_owner(self, family_id: str, user_id: str, session=None) -> None:
        await self._update(
            "set_owner", {"_id": family_id}, {"$set": {"created_by": user_id}}, upsert=False, session=session
        )

    async def delete(self, family_id: str, session=None) -> None:
        start_time = self.db_manager.log_query_start(self.collection_name, "delete", {"_id": family_id})
        try:
            await self._collection().delete_one({"_id": family_id}, session=session)
        except PyMongoError as e:
            self.db_manager.log_query_error(self.collection_name, "delete", start_time, e, {"_id": family_id})
            raise StoreUnavailable("Could not delete family", operation="delete", collection=self.collection_name) from e
        self.db_manager.log_query_success(self.collection_name, "delete", start_time, 1)


class FamilyRequestStore(_DocumentStore):
    """Per-user family invitation documents."""

    collection_name = settings.FAMILY_REQUESTS_COLLECTION

    def __init__(self, db_manager=None, collection_name: Optional[str] = None) -> None:
        super().__init__(db_manager, collection_name)
        self._last_read: Dict[str, FamilyRequestRecord] = {}

    async def get_or_create(self, user_id: str) -> FamilyRequestRecord:
        try:
            document = await self._collection().find_one({"_id": user_id})
            if document is None:
                record = FamilyRequestRecord.empty(user_id)
                await self._collection().update_one(
                    {"_id": user_id},
                    {"$setOnInsert": {"received": [], "sent": [], "updated_at": record.updated_at}},
                    upsert=True,
                )
            else:
                record = FamilyRequestRecord.from_document(document)
        except PyMongoError as e:
            cached = self._last_read.get(user_id)
            self.logger.warning("Family request record read failed for %s: %s", user_id, e)
            return cached.model_copy(deep=True) if cached else FamilyRequestRecord.empty(user_id)

        self._last_read[user_id] = record
        return record.model_copy(deep=True)

    async def push_received(self, user_id: str, request: ReceivedFamilyRequest, session=None) -> None:
        await self._update(
            "push_received", {"_id": user_id}, {"$addToSet": {"received": request.model_dump()}}, session=session
        )

    async def push_sent(self, user_id: str, request: SentFamilyRequest, session=None) -> None:
        await self._update("push_sent", {"_id": user_id}, {"$addToSet": {"sent": request.model_dump()}}, session=session)

    async def pull_received(
        self, user_id: str, family_id: str, from_user_id: Optional[str] = None, session=None
    ) -> None:
        """Remove received invitations for the family; all of them when ``from_user_id`` is None."""
        condition = {"family_id": family_id}
        if from_user_id is not None:
            condition["from_user_id"] = from_user_id
        await self._update("pull_received", {"_id": user_id}, {"$pull": {"received": condition}}, session=session)

    async def pull_sent(self, user_id: str, family_id: str, to_user_id: str, session=None) -> None:
        await self._update(
            "pull_sent",
            {"_id": user_id},
            {"$pull": {"sent": {"family_id": family_id, "to_user_id": to_user_id}}},
            session=session,
        )
