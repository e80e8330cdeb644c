"""
Pytest configuration for the relationship protocol tests.

Provides an in-memory stand-in for the Motor collections the stores use, so the
friend and family protocols can be exercised end to end without MongoDB, plus
fixtures wiring real managers to it.
"""

import copy
import os
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOKI_ENABLED", "false")

from pymongo.errors import DuplicateKeyError, PyMongoError  # noqa: E402

from photo_circle.managers.family_manager import FamilyManager  # noqa: E402
from photo_circle.managers.friend_manager import FriendManager  # noqa: E402
from photo_circle.managers.notification_manager import NotificationManager  # noqa: E402
from photo_circle.managers.profile_manager import ProfileResolver  # noqa: E402
from photo_circle.managers.relationship_cache import ResolvedListCache  # noqa: E402
from photo_circle.managers.relationship_store import (  # noqa: E402
    FamilyRequestStore,
    FamilyStore,
    RelationshipStore,
)


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        value = document.get(key)
        if isinstance(value, list) and not isinstance(expected, list):
            if expected not in value:
                return False
        elif value != expected:
            return False
    return True


def _pull_matches(element: Any, condition: Any) -> bool:
    if isinstance(condition, dict):
        return isinstance(element, dict) and all(element.get(k) == v for k, v in condition.items())
    return element == condition


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._documents if length is None else self._documents[:length]


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the relationship stores."""

    def __init__(self, name: str):
        self.name = name
        self.documents: Dict[Any, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self._failures: List[Dict[str, Any]] = []

    def fail_on(self, operation: str, when: Optional[Callable[..., bool]] = None, times: Optional[int] = None):
        """Make ``operation`` raise PyMongoError, optionally only when ``when(*args)`` is true."""
        self._failures.append({"operation": operation, "when": when, "remaining": times})

    def _maybe_fail(self, operation: str, *args):
        for failure in self._failures:
            if failure["operation"] != operation:
                continue
            if failure["when"] is not None and not failure["when"](*args):
                continue
            if failure["remaining"] is not None:
                if failure["remaining"] <= 0:
                    continue
                failure["remaining"] -= 1
            raise PyMongoError(f"injected {operation} failure on {self.name}")

    def _find(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return next((doc for doc in self.documents.values() if _matches(doc, query)), None)

    async def find_one(self, query: Dict[str, Any], session=None):
        self.calls.append("find_one")
        self._maybe_fail("find_one", query)
        document = self._find(query)
        return copy.deepcopy(document) if document is not None else None

    def find(self, query: Dict[str, Any], session=None) -> FakeCursor:
        self.calls.append("find")
        self._maybe_fail("find", query)
        return FakeCursor([copy.deepcopy(doc) for doc in self.documents.values() if _matches(doc, query)])

    async def insert_one(self, document: Dict[str, Any], session=None):
        self.calls.append("insert_one")
        self._maybe_fail("insert_one", document)
        if document["_id"] in self.documents:
            raise DuplicateKeyError(f"duplicate _id {document['_id']}")
        self.documents[document["_id"]] = copy.deepcopy(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def delete_one(self, query: Dict[str, Any], session=None):
        self.calls.append("delete_one")
        self._maybe_fail("delete_one", query)
        document = self._find(query)
        if document is None:
            return SimpleNamespace(deleted_count=0)
        del self.documents[document["_id"]]
        return SimpleNamespace(deleted_count=1)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False, session=None):
        self.calls.append("update_one")
        self._maybe_fail("update_one", query, update)
        document = self._find(query)
        matched = 1 if document is not None else 0
        if document is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
            document = {k: v for k, v in query.items() if not isinstance(v, dict)}
            document.update(copy.deepcopy(update.get("$setOnInsert", {})))
            self.documents[document["_id"]] = document

        before = copy.deepcopy(document)
        for field, value in update.get("$set", {}).items():
            document[field] = copy.deepcopy(value)
        for field, value in update.get("$addToSet", {}).items():
            values = document.setdefault(field, [])
            if value not in values:
                values.append(copy.deepcopy(value))
        for field, condition in update.get("$pull", {}).items():
            document[field] = [e for e in document.get(field, []) if not _pull_matches(e, condition)]

        modified = 1 if matched and before != document else 0
        return SimpleNamespace(matched_count=matched, modified_count=modified, upserted_id=None)

    async def create_index(self, *args, **kwargs):
        return "index"


class FakeDatabaseManager:
    """Mimics DatabaseManager: named collections plus the query logging hooks."""

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.transactions_supported = False
        self.client = None

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))

    def log_query_start(self, collection_name, operation, query=None) -> float:
        return 0.0

    def log_query_success(self, collection_name, operation, start_time, result_count=None, extra_info=None):
        pass

    def log_query_error(self, collection_name, operation, start_time, error, query=None):
        pass


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


USERS = {
    "alice": {"_id": "alice", "display_name": "Alice", "email": "alice@example.com", "avatar": "a.png"},
    "bob": {"_id": "bob", "display_name": "Bob", "email": "bob@example.com"},
    "carol": {"_id": "carol", "email": "carol@example.com"},
    "dave": {"_id": "dave", "display_name": "Dave"},
}


@pytest.fixture
def fake_db():
    db = FakeDatabaseManager()
    users = db.get_collection("users")
    for user_id, document in USERS.items():
        users.documents[user_id] = dict(document)
    return db


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResolvedListCache(ttl_seconds=120, clock=clock)


@pytest.fixture
def friends(fake_db, cache):
    """FriendManager wired to the in-memory collections."""
    return FriendManager(
        store=RelationshipStore(fake_db),
        profile_resolver=ProfileResolver(fake_db),
        notification_manager=NotificationManager(fake_db, enabled=True),
        cache=cache,
        db_manager=fake_db,
        use_transactions=False,
    )


@pytest.fixture
def families(fake_db, cache):
    """FamilyManager wired to the in-memory collections."""
    return FamilyManager(
        family_store=FamilyStore(fake_db),
        request_store=FamilyRequestStore(fake_db),
        profile_resolver=ProfileResolver(fake_db),
        notification_manager=NotificationManager(fake_db, enabled=True),
        cache=cache,
        db_manager=fake_db,
        use_transactions=False,
    )


@pytest.fixture
def friends_doc(fake_db):
    """Raw ``friends`` document for a user, or an empty dict."""

    def read(user_id: str) -> Dict[str, Any]:
        return fake_db.get_collection("friends").documents.get(user_id, {})

    return read


@pytest.fixture
def notifications_for(fake_db):
    def read(recipient_id: str) -> List[Dict[str, Any]]:
        return [
            doc
            for doc in fake_db.get_collection("notifications").documents.values()
            if doc["recipient_id"] == recipient_id
        ]

    return read
