"""Exception hierarchy for the friend and family relationship protocols."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class RelationshipError(Exception):
    """Base relationship exception with error code and context."""

    def __init__(self, message: str, error_code: str = None, context: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "RELATIONSHIP_ERROR"
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "context": self.context}


class UserNotFound(RelationshipError):
    """A participant does not resolve to a profile."""

    def __init__(self, message: str, user_id: str = None):
        super().__init__(message, "USER_NOT_FOUND", {"user_id": user_id})


class FamilyNotFound(RelationshipError):
    """Family does not exist or has been deleted."""

    def __init__(self, message: str, family_id: str = None):
        super().__init__(message, "FAMILY_NOT_FOUND", {"family_id": family_id})


class NotFamilyMember(RelationshipError):
    """The acting user is not a member of the family."""

    def __init__(self, message: str, family_id: str = None, user_id: str = None):
        super().__init__(message, "NOT_FAMILY_MEMBER", {"family_id": family_id, "user_id": user_id})


class AlreadyFamilyMember(RelationshipError):
    """The invited user already belongs to the family."""

    def __init__(self, message: str, family_id: str = None, user_id: str = None):
        super().__init__(message, "ALREADY_FAMILY_MEMBER", {"family_id": family_id, "user_id": user_id})


class ValidationError(RelationshipError):
    """Input validation failed."""

    def __init__(self, message: str, field: str = None, value: Any = None):
        super().__init__(message, "VALIDATION_ERROR", {"field": field, "value": value})


class StoreUnavailable(RelationshipError):
    """The persistence layer rejected or could not perform a write."""

    def __init__(self, message: str, operation: str = None, collection: str = None, error_code: str = None):
        super().__init__(
            message,
            error_code or "STORE_UNAVAILABLE",
            {"operation": operation, "collection": collection},
        )


class PartialMutation(StoreUnavailable):
    """
    A multi-document transition failed after some of its writes were applied.

    The applied writes are idempotent, so calling the same operation again with the
    same arguments completes the transition.
    """

    def __init__(self, message: str, operation: str = None, applied: Optional[List[str]] = None):
        super().__init__(message, operation=operation, error_code="PARTIAL_MUTATION")
        self.applied = list(applied or [])
        self.context["applied"] = self.applied
