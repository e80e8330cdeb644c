"""Document and value models for the friend and family relationship graph."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Constants for validation
FAMILY_NAME_MIN_LENGTH: int = 1
FAMILY_NAME_MAX_LENGTH: int = 50


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RelationshipState(str, Enum):
    """State of an ordered user pair, seen from the first user."""

    NONE = "none"
    SENT = "sent"
    RECEIVED = "received"
    FRIENDS = "friends"


class NotificationType(str, Enum):
    """Enumeration of relationship notification types."""

    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    FAMILY_INVITATION = "family_invitation"
    FAMILY_ACCEPTED = "family_accepted"
    FAMILY_DECLINED = "family_declined"


class RelationshipRecord(BaseModel):
    """Per-user friends document: friend ids plus the two pending-request queues."""

    user_id: str
    friends: List[str] = Field(default_factory=list)
    friend_requests_sent: List[str] = Field(default_factory=list)
    friend_requests_received: List[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls, user_id: str) -> "RelationshipRecord":
        return cls(user_id=user_id, updated_at=utc_now())

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "RelationshipRecord":
        return cls(
            user_id=str(document["_id"]),
            friends=list(document.get("friends") or []),
            friend_requests_sent=list(document.get("friend_requests_sent") or []),
            friend_requests_received=list(document.get("friend_requests_received") or []),
            updated_at=document.get("updated_at"),
        )

    def state_with(self, other_id: str) -> RelationshipState:
        if other_id in self.friends:
            return RelationshipState.FRIENDS
        if other_id in self.friend_requests_sent:
            return RelationshipState.SENT
        if other_id in self.friend_requests_received:
            return RelationshipState.RECEIVED
        return RelationshipState.NONE


class FamilyRecord(BaseModel):
    """A named family group. The creator is always a member while the family exists."""

    id: str
    name: str
    created_by: str
    members: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "FamilyRecord":
        return cls(
            id=str(document.get("id") or document["_id"]),
            name=document.get("name", ""),
            created_by=document["created_by"],
            members=list(document.get("members") or []),
            created_at=document.get("created_at") or utc_now(),
            updated_at=document.get("updated_at") or utc_now(),
        )

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump()
        document["_id"] = self.id
        return document


class ReceivedFamilyRequest(BaseModel):
    """An invitation sitting in the invitee's family-request document."""

    family_id: str
    family_name: str
    from_user_id: str
    from_user_name: str
    timestamp: datetime = Field(default_factory=utc_now)


class SentFamilyRequest(BaseModel):
    """The inviter's copy of an outstanding invitation."""

    family_id: str
    to_user_id: str
    timestamp: datetime = Field(default_factory=utc_now)


class FamilyRequestRecord(BaseModel):
    user_id: str
    received: List[ReceivedFamilyRequest] = Field(default_factory=list)
    sent: List[SentFamilyRequest] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls, user_id: str) -> "FamilyRequestRecord":
        return cls(user_id=user_id, updated_at=utc_now())

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "FamilyRequestRecord":
        return cls(
            user_id=str(document["_id"]),
            received=[ReceivedFamilyRequest.model_validate(r) for r in document.get("received") or []],
            sent=[SentFamilyRequest.model_validate(s) for s in document.get("sent") or []],
            updated_at=document.get("updated_at"),
        )

    def has_invitation_for(self, family_id: str) -> bool:
        return any(request.family_id == family_id for request in self.received)


class UserProfile(BaseModel):
    """Profile record as returned by the profile resolver."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    last_seen: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserProfile":
        return cls(
            id=str(document["_id"]),
            display_name=document.get("display_name"),
            email=document.get("email"),
            avatar=document.get("avatar"),
            last_seen=document.get("last_seen"),
        )

    @property
    def label(self) -> str:
        """Name shown to other users: display name, falling back to email, then id."""
        return self.display_name or self.email or self.id


class FriendProfile(BaseModel):
    """Resolved entry in a friend or pending-request list."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    last_seen: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "FriendProfile":
        return cls(
            uid=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            avatar=profile.avatar,
            last_seen=profile.last_seen,
        )


class FamilyMemberProfile(FriendProfile):
    is_creator: bool = False


class NotificationPayload(BaseModel):
    """Notification handed to the notification sender."""

    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    sender_avatar: Optional[str] = None
