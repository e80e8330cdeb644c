"""Tests for settings validation and the exception hierarchy."""

from pydantic import ValidationError as PydanticValidationError
import pytest

from photo_circle.config import Settings
from photo_circle.exceptions import PartialMutation, RelationshipError, StoreUnavailable, UserNotFound


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.FRIENDS_CACHE_TTL_SECONDS == 120
        assert settings.PROFILE_CACHE_TTL_SECONDS == 600
        assert settings.PROFILE_RESOLVE_BATCH_SIZE == 10

    def test_cache_backend_is_normalised(self):
        assert Settings(CACHE_BACKEND=" Redis ").CACHE_BACKEND == "redis"

    def test_unknown_cache_backend_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(CACHE_BACKEND="memcached")

    @pytest.mark.parametrize("field", ["FRIENDS_CACHE_TTL_SECONDS", "PROFILE_CACHE_TTL_SECONDS", "PROFILE_RESOLVE_BATCH_SIZE"])
    def test_non_positive_values_rejected(self, field):
        with pytest.raises(PydanticValidationError):
            Settings(**{field: 0})

    def test_empty_mongodb_url_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(MONGODB_URL="  ")


class TestExceptions:
    def test_error_carries_code_context_and_timestamp(self):
        error = UserNotFound("User does not exist", user_id="ghost")

        assert isinstance(error, RelationshipError)
        assert error.to_dict() == {
            "error": "USER_NOT_FOUND",
            "message": "User does not exist",
            "context": {"user_id": "ghost"},
        }
        assert error.timestamp is not None

    def test_partial_mutation_lists_applied_writes(self):
        error = PartialMutation("retry", operation="remove_friend", applied=["alice.friends"])

        assert isinstance(error, StoreUnavailable)
        assert error.applied == ["alice.friends"]
        assert error.context == {"operation": "remove_friend", "collection": None, "applied": ["alice.friends"]}
