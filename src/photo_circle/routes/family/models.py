"""Request and response models for the family routes."""

from typing import List

from pydantic import BaseModel, Field

from photo_circle.models.relationship_models import (
    FAMILY_NAME_MAX_LENGTH,
    FamilyMemberProfile,
    FamilyRecord,
    ReceivedFamilyRequest,
)


class CreateFamilyRequest(BaseModel):
    """
    Request model for creating a new family.

    Blank names are rejected by the family manager after trimming.
    """

    name: str = Field(
        ...,
        max_length=FAMILY_NAME_MAX_LENGTH,
        description="Family name shown to members and invitees",
        json_schema_extra={"example": "Smith Family"},
    )


class InviteMemberRequest(BaseModel):
    from_user_id: str = Field(..., description="Member sending the invitation")
    to_user_id: str = Field(..., description="User being invited")


class RespondToInvitationRequest(BaseModel):
    user_id: str = Field(..., description="Invitee answering the invitation")
    from_user_id: str = Field(..., description="Member who sent the invitation")


class LeaveFamilyRequest(BaseModel):
    user_id: str


class FamilyListResponse(BaseModel):
    user_id: str
    families: List[FamilyRecord] = Field(default_factory=list)


class FamilyMembersResponse(BaseModel):
    family_id: str
    members: List[FamilyMemberProfile] = Field(default_factory=list)


class FamilyInvitationsResponse(BaseModel):
    user_id: str
    invitations: List[ReceivedFamilyRequest] = Field(default_factory=list)
