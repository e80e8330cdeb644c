"""Tests for the relationship, family and family-request stores."""

from pymongo.errors import PyMongoError
import pytest

from photo_circle.exceptions import StoreUnavailable
from photo_circle.managers.relationship_store import FamilyRequestStore, FamilyStore, RelationshipStore
from photo_circle.models.relationship_models import FamilyRecord, ReceivedFamilyRequest, SentFamilyRequest


class TestRelationshipStore:
    @pytest.mark.asyncio
    async def test_get_or_create_persists_empty_record(self, fake_db):
        store = RelationshipStore(fake_db)

        record = await store.get_or_create("alice")

        assert record.user_id == "alice"
        assert record.friends == [] and record.friend_requests_sent == [] and record.friend_requests_received == []
        stored = fake_db.get_collection("friends").documents["alice"]
        assert stored["friends"] == []
        assert stored["friend_requests_received"] == []

    @pytest.mark.asyncio
    async def test_get_or_create_does_not_overwrite_existing_record(self, fake_db):
        fake_db.get_collection("friends").documents["alice"] = {
            "_id": "alice",
            "friends": ["bob"],
            "friend_requests_sent": ["carol"],
            "friend_requests_received": [],
        }
        store = RelationshipStore(fake_db)

        record = await store.get_or_create("alice")

        assert record.friends == ["bob"]
        assert record.friend_requests_sent == ["carol"]
        assert fake_db.get_collection("friends").documents["alice"]["friends"] == ["bob"]

    @pytest.mark.asyncio
    async def test_set_mutations_are_idempotent(self, fake_db):
        store = RelationshipStore(fake_db)

        await store.add_friend("alice", "bob")
        await store.add_friend("alice", "bob")
        await store.add_sent_request("alice", "carol")
        await store.add_sent_request("alice", "carol")
        await store.remove_received_request("alice", "dave")

        document = fake_db.get_collection("friends").documents["alice"]
        assert document["friends"] == ["bob"]
        assert document["friend_requests_sent"] == ["carol"]
        assert document["friend_requests_received"] == []

    @pytest.mark.asyncio
    async def test_apply_combines_add_and_remove_in_one_write(self, fake_db):
        store = RelationshipStore(fake_db)
        await store.add_sent_request("alice", "bob")
        collection = fake_db.get_collection("friends")
        writes_before = collection.calls.count("update_one")

        await store.apply("alice", add={"friends": "bob"}, remove={"friend_requests_sent": "bob"})

        assert collection.calls.count("update_one") == writes_before + 1
        assert collection.documents["alice"]["friends"] == ["bob"]
        assert collection.documents["alice"]["friend_requests_sent"] == []

    @pytest.mark.asyncio
    async def test_write_failure_raises_store_unavailable(self, fake_db):
        store = RelationshipStore(fake_db)
        fake_db.get_collection("friends").fail_on("update_one")

        with pytest.raises(StoreUnavailable) as exc_info:
            await store.add_friend("alice", "bob")

        assert exc_info.value.error_code == "STORE_UNAVAILABLE"
        assert exc_info.value.context["collection"] == "friends"
        assert isinstance(exc_info.value.__cause__, PyMongoError)

    @pytest.mark.asyncio
    async def test_read_failure_serves_last_known_record(self, fake_db):
        store = RelationshipStore(fake_db)
        await store.add_friend("alice", "bob")
        await store.get_or_create("alice")
        fake_db.get_collection("friends").fail_on("find_one")

        record = await store.get_or_create("alice")

        assert record.friends == ["bob"]

    @pytest.mark.asyncio
    async def test_read_failure_without_history_serves_empty_record(self, fake_db):
        store = RelationshipStore(fake_db)
        fake_db.get_collection("friends").fail_on("find_one")

        record = await store.get_or_create("alice")

        assert record.friends == []
        assert record.user_id == "alice"


class TestFamilyStore:
    @pytest.mark.asyncio
    async def test_create_get_and_find_by_member(self, fake_db):
        store = FamilyStore(fake_db)
        family = FamilyRecord(id="family_1_alice", name="Smiths", created_by="alice", members=["alice", "bob"])

        await store.create(family)

        loaded = await store.get("family_1_alice")
        assert loaded.name == "Smiths"
        assert loaded.members == ["alice", "bob"]
        assert [f.id for f in await store.find_by_member("bob")] == ["family_1_alice"]
        assert await store.find_by_member("carol") == []

    @pytest.mark.asyncio
    async def test_get_missing_family_returns_none(self, fake_db):
        assert await FamilyStore(fake_db).get("family_missing") is None

    @pytest.mark.asyncio
    async def test_get_read_error_raises(self, fake_db):
        fake_db.get_collection("families").fail_on("find_one")

        with pytest.raises(StoreUnavailable):
            await FamilyStore(fake_db).get("family_1_alice")

    @pytest.mark.asyncio
    async def test_member_updates_do_not_create_families(self, fake_db):
        store = FamilyStore(fake_db)

        assert await store.add_member("family_missing", "bob") is False
        assert "family_missing" not in fake_db.get_collection("families").documents

    @pytest.mark.asyncio
    async def test_remove_member_and_delete(self, fake_db):
        store = FamilyStore(fake_db)
        await store.create(FamilyRecord(id="f1", name="Smiths", created_by="alice", members=["alice", "bob"]))

        assert await store.remove_member("f1", "bob") is True
        assert (await store.get("f1")).members == ["alice"]

        await store.delete("f1")
        assert await store.get("f1") is None


class TestFamilyRequestStore:
    @pytest.mark.asyncio
    async def test_push_and_pull_invitations(self, fake_db):
        store = FamilyRequestStore(fake_db)
        received = ReceivedFamilyRequest(
            family_id="f1", family_name="Smiths", from_user_id="alice", from_user_name="Alice"
        )

        await store.push_received("bob", received)
        await store.push_received("bob", received)
        await store.push_sent("alice", SentFamilyRequest(family_id="f1", to_user_id="bob"))

        bob = await store.get_or_create("bob")
        assert len(bob.received) == 1
        assert bob.has_invitation_for("f1")

        await store.pull_received("bob", "f1", "alice")
        await store.pull_sent("alice", "f1", "bob")

        assert (await store.get_or_create("bob")).received == []
        assert (await store.get_or_create("alice")).sent == []

    @pytest.mark.asyncio
    async def test_pull_received_without_sender_clears_all_for_family(self, fake_db):
        store = FamilyRequestStore(fake_db)
        for inviter in ("alice", "carol"):
            await store.push_received(
                "bob",
                ReceivedFamilyRequest(family_id="f1", family_name="Smiths", from_user_id=inviter, from_user_name=inviter),
            )
        await store.push_received(
            "bob", ReceivedFamilyRequest(family_id="f2", family_name="Joneses", from_user_id="dave", from_user_name="Dave")
        )

        await store.pull_received("bob", "f1")

        record = await store.get_or_create("bob")
        assert [r.family_id for r in record.received] == ["f2"]
