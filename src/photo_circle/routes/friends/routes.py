"""
Friend routes.

Endpoints act on behalf of the user named in the path. Authentication is
handled in front of this service; the ids in the path are trusted.
"""

from fastapi import APIRouter, Depends, Query, status

from photo_circle.exceptions import RelationshipError
from photo_circle.managers.friend_manager import FriendManager
from photo_circle.managers.logging_manager import get_logger
from photo_circle.routes.dependencies import get_friend_manager
from photo_circle.routes.errors import relationship_http_error, unexpected_http_error
from photo_circle.routes.friends.models import (
    FriendListResponse,
    MessageResponse,
    PendingRequestsResponse,
    RelationshipStatusResponse,
)

logger = get_logger(prefix="[Friend Routes]")

router = APIRouter(prefix="/friends", tags=["Friends"])


@router.get("/{user_id}", response_model=FriendListResponse)
async def get_friends(
    user_id: str,
    force_refresh: bool = Query(False, description="Bypass the resolved-list cache"),
    manager: FriendManager = Depends(get_friend_manager),
) -> FriendListResponse:
    """Resolved profiles of the user's friends."""
    friends = await manager.get_friends(user_id, force_refresh=force_refresh)
    return FriendListResponse(user_id=user_id, friends=friends)


@router.get("/{user_id}/requests", response_model=PendingRequestsResponse)
async def get_pending_requests(
    user_id: str,
    force_refresh: bool = Query(False),
    manager: FriendManager = Depends(get_friend_manager),
) -> PendingRequestsResponse:
    received = await manager.get_pending_requests(user_id, force_refresh=force_refresh)
    sent = await manager.get_sent_requests(user_id)
    return PendingRequestsResponse(user_id=user_id, received=received, sent=sent)


@router.get("/{user_id}/requests/detailed", response_model=FriendListResponse)
async def get_pending_requests_detailed(
    user_id: str,
    force_refresh: bool = Query(False),
    manager: FriendManager = Depends(get_friend_manager),
) -> FriendListResponse:
    """Resolved profiles of users waiting for an answer from ``user_id``."""
    profiles = await manager.get_pending_requests_detailed(user_id, force_refresh=force_refresh)
    return FriendListResponse(user_id=user_id, friends=profiles)


@router.get("/{user_id}/status/{other_user_id}", response_model=RelationshipStatusResponse)
async def get_relationship_status(
    user_id: str, other_user_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> RelationshipStatusResponse:
    state = await manager.get_relationship_status(user_id, other_user_id)
    return RelationshipStatusResponse(user_id=user_id, other_user_id=other_user_id, status=state)


@router.post("/{user_id}/requests/{receiver_id}", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def send_friend_request(
    user_id: str, receiver_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> MessageResponse:
    """
    Send a friend request from ``user_id`` to ``receiver_id``.

    Repeating the call is harmless. A 503 with ``PARTIAL_MUTATION`` means only
    part of the request was saved and the call should be repeated.
    """
    try:
        await manager.send_friend_request(user_id, receiver_id)
    except RelationshipError as e:
        logger.warning("Friend request %s -> %s failed: %s", user_id, receiver_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error sending friend request %s -> %s: %s", user_id, receiver_id, e, exc_info=True)
        raise unexpected_http_error("FRIEND_REQUEST_FAILED", "Could not send friend request") from e
    return MessageResponse(message="Friend request sent")


@router.post("/{user_id}/requests/{sender_id}/accept", response_model=MessageResponse)
async def accept_friend_request(
    user_id: str, sender_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> MessageResponse:
    try:
        await manager.accept_friend_request(sender_id, user_id)
    except RelationshipError as e:
        logger.warning("Accepting friend request %s -> %s failed: %s", sender_id, user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error accepting friend request %s -> %s: %s", sender_id, user_id, e, exc_info=True)
        raise unexpected_http_error("FRIEND_ACCEPT_FAILED", "Could not accept friend request") from e
    return MessageResponse(message="Friend request accepted")


@router.post("/{user_id}/requests/{sender_id}/decline", response_model=MessageResponse)
async def decline_friend_request(
    user_id: str, sender_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> MessageResponse:
    try:
        await manager.decline_friend_request(sender_id, user_id)
    except RelationshipError as e:
        logger.warning("Declining friend request %s -> %s failed: %s", sender_id, user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error declining friend request %s -> %s: %s", sender_id, user_id, e, exc_info=True)
        raise unexpected_http_error("FRIEND_DECLINE_FAILED", "Could not decline friend request") from e
    return MessageResponse(message="Friend request declined")


@router.delete("/{user_id}/requests/{receiver_id}", response_model=MessageResponse)
async def cancel_friend_request(
    user_id: str, receiver_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> MessageResponse:
    try:
        await manager.cancel_friend_request(user_id, receiver_id)
    except RelationshipError as e:
        logger.warning("Cancelling friend request %s -> %s failed: %s", user_id, receiver_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error cancelling friend request %s -> %s: %s", user_id, receiver_id, e, exc_info=True)
        raise unexpected_http_error("FRIEND_CANCEL_FAILED", "Could not cancel friend request") from e
    return MessageResponse(message="Friend request cancelled")


@router.delete("/{user_id}/friends/{other_user_id}", response_model=MessageResponse)
async def remove_friend(
    user_id: str, other_user_id: str, manager: FriendManager = Depends(get_friend_manager)
) -> MessageResponse:
    try:
        await manager.remove_friend(user_id, other_user_id)
    except RelationshipError as e:
        logger.warning("Removing friend %s from %s failed: %s", other_user_id, user_id, e)
        raise relationship_http_error(e) from e
    except Exception as e:
        logger.error("Unexpected error removing friend %s from %s: %s", other_user_id, user_id, e, exc_info=True)
        raise unexpected_http_error("FRIEND_REMOVAL_FAILED", "Could not remove friend") from e
    return MessageResponse(message="Friend removed")
