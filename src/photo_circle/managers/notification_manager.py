"""
Notification recorder for relationship events.

Notifications are stored in the ``notifications`` collection, where the app's
notification feed and the push pipeline pick them up. Callers in the relationship
protocol treat `notify` as fire-and-forget; this module raises on failure and
leaves the swallowing to them.
"""

from typing import Any, Dict, Optional
import uuid

from photo_circle.config import settings
from photo_circle.database import db_manager as default_db_manager
from photo_circle.managers.logging_manager import get_logger
from photo_circle.models.relationship_models import NotificationPayload, NotificationType, UserProfile, utc_now

logger = get_logger(prefix="[NotificationManager]")


class NotificationManager:
    def __init__(self, db_manager=None, enabled: Optional[bool] = None) -> None:
        self.db_manager = db_manager or default_db_manager
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled
        self.logger = logger

    async def notify(self, recipient_id: str, payload: NotificationPayload) -> Optional[str]:
        """Record a notification for the recipient and return its id."""
        if not self.enabled:
            self.logger.debug("Notifications disabled, dropping %s for %s", payload.type.value, recipient_id)
            return None

        notification_id = f"not_{uuid.uuid4().hex[:16]}"
        notification_doc: Dict[str, Any] = {
            "_id": notification_id,
            "recipient_id": recipient_id,
            "sender_id": payload.sender_id,
            "sender_name": payload.sender_name,
            "sender_avatar": payload.sender_avatar,
            "type": payload.type.value,
            "title": payload.title,
            "message": payload.message,
            "data": payload.data,
            "read": False,
            "created_at": utc_now(),
        }
        collection = self.db_manager.get_collection(settings.NOTIFICATIONS_COLLECTION)
        await collection.insert_one(notification_doc)
        self.logger.debug("Notification %s (%s) recorded for %s", notification_id, payload.type.value, recipient_id)
        return notification_id

    async def send_friend_request_notification(self, receiver_id: str, sender: UserProfile) -> Optional[str]:
        return await self.notify(
            receiver_id,
            NotificationPayload(
                type=NotificationType.FRIEND_REQUEST,
                title="New friend request",
                message=f"{sender.label} sent you a friend request",
                data={"user_id": sender.id},
                sender_id=sender.id,
                sender_name=sender.label,
                sender_avatar=sender.avatar,
            ),
        )

    async def send_friend_accepted_notification(self, sender_id: str, accepter: UserProfile) -> Optional[str]:
        return await self.notify(
            sender_id,
            NotificationPayload(
                type=NotificationType.FRIEND_ACCEPTED,
                title="Friend request accepted",
                message=f"{accepter.label} accepted your friend request",
                data={"user_id": accepter.id},
                sender_id=accepter.id,
                sender_name=accepter.label,
                sender_avatar=accepter.avatar,
            ),
        )

    async def send_family_invitation_notification(
        self, recipient_id: str, sender: UserProfile, family_name: str, family_id: str
    ) -> Optional[str]:
        return await self.notify(
            recipient_id,
            NotificationPayload(
                type=NotificationType.FAMILY_INVITATION,
                title="Family invitation",
                message=f'{sender.label} invited you to join the family "{family_name}"',
                data={"family_id": family_id, "family_name": family_name},
                sender_id=sender.id,
                sender_name=sender.label,
            ),
        )

    async def send_family_response_notification(
        self, recipient_id: str, responder: UserProfile, family_name: str, accepted: bool
    ) -> Optional[str]:
        verb = "accepted" if accepted else "declined"
        return await self.notify(
            recipient_id,
            NotificationPayload(
                type=NotificationType.FAMILY_ACCEPTED if accepted else NotificationType.FAMILY_DECLINED,
                title=f"Family invitation {verb}",
                message=f'{responder.label} {verb} your invitation to the family "{family_name}"',
                data={"family_name": family_name},
                sender_id=responder.id,
                sender_name=responder.label,
            ),
        )
