"""
Family routes: creation, invitations and membership.

Like the friend routes, user ids come from the path or body and are trusted.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from photo_circle.exceptions import FamilyNotFound, RelationshipError
from photo_circle.managers.family_manager import FamilyManager
from photo_circle.managers.logging_manager import get_logger
from photo_circle.models.relationship_models import FamilyRecord
from photo_circle.routes.dependencies import get_family_manager
from photo_circle.routes.errors import relationship_http_error, unexpected_http_error
from photo_circle.routes.family.models import (
    CreateFamilyRequest,
    FamilyInvitationsResponse,
    FamilyListResponse,
    FamilyMembersResponse,
    InviteMemberRequest,
    LeaveFamilyRequest,
    RespondToInvitationRequest,
)
from photo_circle.routes.friends.models import MessageResponse

logger = get_logger(prefix="[Family Routes]")

router = APIRouter(prefix="/family", tags=["Family"])


@router.post("/users/{user_id}/families", response_model=FamilyRecord, status_code=status.HTTP_201_CREATED)
async def create_family(
    user_id: str, family_request: CreateFamilyRequest, manager: FamilyManager = Depends(get_family_manager)
) -> FamilyRecord:
    """Create a family with the user as creator and first member."""
    try:
        family = await manager.create_family(user_id, family_request.name)
    except RelationshipError as e:
        logger.warning("Family creation failed for user %s: %s", user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error creating family for user %s: %s", user_id, e, exc_info=True)
        raise unexpected_http_error("FAMILY_CREATION_FAILED", "Could not create family") from e
    logger.info("Family created successfully: %s by user %s", family.id, user_id)
    return family


@router.get("/users/{user_id}/families", response_model=FamilyListResponse)
async def get_my_families(user_id: str, manager: FamilyManager = Depends(get_family_manager)) -> FamilyListResponse:
    families = await manager.get_user_families(user_id)
    return FamilyListResponse(user_id=user_id, families=families)


@router.get("/users/{user_id}/invitations", response_model=FamilyInvitationsResponse)
async def get_received_invitations(
    user_id: str,
    force_refresh: bool = Query(False),
    manager: FamilyManager = Depends(get_family_manager),
) -> FamilyInvitationsResponse:
    invitations = await manager.get_family_requests(user_id, force_refresh=force_refresh)
    return FamilyInvitationsResponse(user_id=user_id, invitations=invitations)


@router.get("/{family_id}", response_model=FamilyRecord)
async def get_family(family_id: str, manager: FamilyManager = Depends(get_family_manager)) -> FamilyRecord:
    try:
        family: Optional[FamilyRecord] = await manager.get_family(family_id)
        if family is None:
            raise FamilyNotFound("Family not found", family_id=family_id)
    except RelationshipError as e:
        raise relationship_http_error(e) from e
    return family


@router.get("/{family_id}/members", response_model=FamilyMembersResponse)
async def get_family_members(
    family_id: str,
    force_refresh: bool = Query(False),
    manager: FamilyManager = Depends(get_family_manager),
) -> FamilyMembersResponse:
    members = await manager.get_family_members(family_id, force_refresh=force_refresh)
    return FamilyMembersResponse(family_id=family_id, members=members)


@router.post("/{family_id}/invite", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def invite_member(
    family_id: str, invite_request: InviteMemberRequest, manager: FamilyManager = Depends(get_family_manager)
) -> MessageResponse:
    try:
        await manager.send_family_request(family_id, invite_request.from_user_id, invite_request.to_user_id)
    except RelationshipError as e:
        logger.warning(
            "Invitation to %s from %s for %s failed: %s",
            invite_request.to_user_id,
            invite_request.from_user_id,
            family_id,
            e,
        )
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error inviting %s to %s: %s", invite_request.to_user_id, family_id, e, exc_info=True)
        raise unexpected_http_error("FAMILY_INVITATION_FAILED", "Could not send invitation") from e
    return MessageResponse(message="Invitation sent")


@router.post("/{family_id}/invitations/accept", response_model=MessageResponse)
async def accept_invitation(
    family_id: str, response: RespondToInvitationRequest, manager: FamilyManager = Depends(get_family_manager)
) -> MessageResponse:
    try:
        await manager.accept_family_request(response.user_id, family_id, response.from_user_id)
    except RelationshipError as e:
        logger.warning("Accepting invitation to %s by %s failed: %s", family_id, response.user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error accepting invitation to %s by %s: %s", family_id, response.user_id, e, exc_info=True)
        raise unexpected_http_error("INVITATION_ACCEPT_FAILED", "Could not accept invitation") from e
    return MessageResponse(message="Invitation accepted")


@router.post("/{family_id}/invitations/decline", response_model=MessageResponse)
async def decline_invitation(
    family_id: str, response: RespondToInvitationRequest, manager: FamilyManager = Depends(get_family_manager)
) -> MessageResponse:
    try:
        await manager.decline_family_request(response.user_id, family_id, response.from_user_id)
    except RelationshipError as e:
        logger.warning("Declining invitation to %s by %s failed: %s", family_id, response.user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error declining invitation to %s by %s: %s", family_id, response.user_id, e, exc_info=True)
        raise unexpected_http_error("INVITATION_DECLINE_FAILED", "Could not decline invitation") from e
    return MessageResponse(message="Invitation declined")


@router.post("/{family_id}/leave", response_model=MessageResponse)
async def leave_family(
    family_id: str, leave_request: LeaveFamilyRequest, manager: FamilyManager = Depends(get_family_manager)
) -> MessageResponse:
    try:
        await manager.leave_family(leave_request.user_id, family_id)
    except RelationshipError as e:
        logger.warning("User %s could not leave %s: %s", leave_request.user_id, family_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error removing %s from %s: %s", leave_request.user_id, family_id, e, exc_info=True)
        raise unexpected_http_error("FAMILY_LEAVE_FAILED", "Could not leave family") from e
    return MessageResponse(message="Left family")
