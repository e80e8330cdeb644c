"""Response models for the friend routes."""

from typing import List

from pydantic import BaseModel, Field

from photo_circle.models.relationship_models import FriendProfile, RelationshipState


class RelationshipStatusResponse(BaseModel):
    user_id: str
    other_user_id: str
    status: RelationshipState = Field(..., description="State of the pair as seen from user_id")


class PendingRequestsResponse(BaseModel):
    user_id: str
    received: List[str] = Field(default_factory=list)
    sent: List[str] = Field(default_factory=list)


class FriendListResponse(BaseModel):
    user_id: str
    friends: List[FriendProfile] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str
