"""Tests for the MongoDB manager helpers that do not need a server."""

from unittest.mock import AsyncMock, MagicMock

from pymongo.errors import OperationFailure
import pytest

from photo_circle.database import DatabaseManager


class TestDatabaseManager:
    def test_collection_before_connect_raises(self):
        with pytest.raises(RuntimeError):
            DatabaseManager().get_collection("friends")

    @pytest.mark.asyncio
    async def test_health_check_without_client(self):
        assert await DatabaseManager().health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_ping_failure(self):
        manager = DatabaseManager()
        manager.client = MagicMock()
        manager.client.admin.command = AsyncMock(side_effect=OperationFailure("down"))

        assert await manager.health_check() is False

    @pytest.mark.asyncio
    async def test_index_failure_does_not_stop_startup(self):
        collection = MagicMock()
        collection.name = "families"
        collection.create_index = AsyncMock(side_effect=OperationFailure("index conflict"))

        await DatabaseManager()._create_index_if_not_exists(collection, "members", {})

        collection.create_index.assert_awaited_once_with("members")

    def test_queries_are_redacted_for_logging(self):
        sanitized = DatabaseManager()._sanitize_query_for_logging(
            {"_id": "alice", "email": "a@example.com", "$set": {"auth_token": "x", "members": ["bob"]}}
        )

        assert sanitized == {"_id": "alice", "email": "[REDACTED]", "$set": {"auth_token": "[REDACTED]", "members": ["bob"]}}
