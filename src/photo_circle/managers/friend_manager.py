"""
Friend request protocol.

For an ordered pair of users (self, other) the state is one of
``NONE``, ``SENT``, ``RECEIVED`` or ``FRIENDS`` and is read from self's
``friends`` document. Every transition writes both users' documents; see
`RelationshipProtocol` for how the paired writes, cache invalidation and
notifications are carried out.

All mutations are safe to repeat with the same arguments.
"""

from typing import List, Optional

from photo_circle.exceptions import RelationshipError, UserNotFound
from photo_circle.managers.logging_manager import get_logger
from photo_circle.managers.relationship_cache import FRIEND_REQUESTS_NAMESPACE, FRIENDS_NAMESPACE, build_cache
from photo_circle.managers.relationship_protocol import RelationshipProtocol
from photo_circle.managers.relationship_store import FRIENDS_FIELD, RECEIVED_FIELD, SENT_FIELD, RelationshipStore
from photo_circle.models.relationship_models import FriendProfile, RelationshipState, UserProfile

logger = get_logger(prefix="[FriendManager]")


class FriendManager(RelationshipProtocol):
    """
    Friend requests, friendships and the resolved friend lists.

    Collaborators are injected; anything left as None falls back to the
    process-wide default (database manager, profile resolver, notification
    recorder, in-memory cache).
    """

    def __init__(
        self,
        store: Optional[RelationshipStore] = None,
        profile_resolver=None,
        notification_manager=None,
        cache=None,
        db_manager=None,
        use_transactions: Optional[bool] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        super().__init__(
            db_manager=db_manager,
            profile_resolver=profile_resolver,
            notification_manager=notification_manager,
            cache=cache,
            use_transactions=use_transactions,
            batch_size=batch_size,
            logger=logger,
        )
        self.store = store or RelationshipStore(self.db_manager)

    async def _require_user(self, user_id: str) -> UserProfile:
        profile = await self.profiles.get_user_by_id(user_id)
        if profile is None:
            raise UserNotFound("User does not exist", user_id=user_id)
        return profile

    async def send_friend_request(self, sender_id: str, receiver_id: str) -> None:
        """
        Invite ``receiver_id`` to be friends with ``sender_id``.

        Sending to yourself, to an existing friend, or to someone you already
        invited does nothing. If the receiver has already invited the sender,
        the two requests meet and the pair becomes friends.

        Raises:
            UserNotFound: either user does not resolve to a profile.
            StoreUnavailable: no write could be applied.
            PartialMutation: only the sender's side was written; call again to finish.
        """
        if sender_id == receiver_id:
            self.logger.debug("Ignoring friend request from %s to themselves", sender_id)
            return

        sender = await self._require_user(sender_id)
        await self._require_user(receiver_id)

        sender_record = await self.store.get_or_create(sender_id)
        await self.store.get_or_create(receiver_id)

        state = sender_record.state_with(receiver_id)
        if state in (RelationshipState.FRIENDS, RelationshipState.SENT):
            self.logger.info("Friend request %s -> %s skipped, state is %s", sender_id, receiver_id, state.value)
            return
        if state == RelationshipState.RECEIVED:
            self.logger.info("%s already invited %s, accepting instead", receiver_id, sender_id)
            await self.accept_friend_request(receiver_id, sender_id)
            return

        try:
            await self._run_writes(
                "send_friend_request",
                [
                    (
                        f"{sender_id}.{SENT_FIELD}",
                        lambda session: self.store.add_sent_request(sender_id, receiver_id, session=session),
                    ),
                    (
                        f"{receiver_id}.{RECEIVED_FIELD}",
                        lambda session: self.store.add_received_request(receiver_id, sender_id, session=session),
                    ),
                ],
            )
        finally:
            await self._invalidate([sender_id, receiver_id])

        self.logger.info("Friend request sent from %s to %s", sender_id, receiver_id)
        await self._safe_notify(
            "friend request", lambda: self.notifications.send_friend_request_notification(receiver_id, sender)
        )

    async def accept_friend_request(self, sender_id: str, receiver_id: str) -> None:
        """
        ``receiver_id`` accepts the request ``sender_id`` sent.

        Succeeds whether or not a pending request exists: the friendship is
        added on both sides and any pending request between the two, in either
        direction, is removed.
        """
        if sender_id == receiver_id:
            self.logger.debug("Ignoring friend accept by %s of themselves", sender_id)
            return

        try:
            await self._run_writes(
                "accept_friend_request",
                [
                    (
                        f"{sender_id}.{FRIENDS_FIELD}",
                        lambda session: self.store.apply(
                            sender_id,
                            add={FRIENDS_FIELD: receiver_id},
                            remove={SENT_FIELD: receiver_id, RECEIVED_FIELD: receiver_id},
                            session=session,
                        ),
                    ),
                    (
                        f"{receiver_id}.{FRIENDS_FIELD}",
                        lambda session: self.store.apply(
                            receiver_id,
                            add={FRIENDS_FIELD: sender_id},
                            remove={RECEIVED_FIELD: sender_id, SENT_FIELD: sender_id},
                            session=session,
                        ),
                    ),
                ],
            )
        finally:
            await self._invalidate([sender_id, receiver_id])

        self.logger.info("%s accepted the friend request from %s", receiver_id, sender_id)
        accepter = await self.profiles.get_user_by_id(receiver_id)
        if accepter is not None:
            await self._safe_notify(
                "friend accepted", lambda: self.notifications.send_friend_accepted_notification(sender_id, accepter)
            )

    async def decline_friend_request(self, sender_id: str, receiver_id: str) -> None:
        """Drop the pending request from ``sender_id`` to ``receiver_id``. Friendships are untouched."""
        try:
            await self._run_writes(
                "decline_friend_request",
                [
                    (
                        f"{sender_id}.{SENT_FIELD}",
                        lambda session: self.store.remove_sent_request(sender_id, receiver_id, session=session),
                    ),
                    (
                        f"{receiver_id}.{RECEIVED_FIELD}",
                        lambda session: self.store.remove_received_request(receiver_id, sender_id, session=session),
                    ),
                ],
            )
        finally:
            await self._invalidate([sender_id, receiver_id])
        self.logger.info("Friend request %s -> %s removed", sender_id, receiver_id)

    async def cancel_friend_request(self, sender_id: str, receiver_id: str) -> None:
        """The sender withdraws their own request."""
        await self.decline_friend_request(sender_id, receiver_id)

    async def remove_friend(self, user_id: str, other_id: str) -> None:
        try:
            await self._run_writes(
                "remove_friend",
                [
                    (
                        f"{user_id}.{FRIENDS_FIELD}",
                        lambda session: self.store.remove_friend(user_id, other_id, session=session),
                    ),
                    (
                        f"{other_id}.{FRIENDS_FIELD}",
                        lambda session: self.store.remove_friend(other_id, user_id, session=session),
                    ),
                ],
            )
        finally:
            await self._invalidate([user_id, other_id])
        self.logger.info("%s and %s are no longer friends", user_id, other_id)

    async def get_relationship_status(self, current_user_id: str, other_user_id: str) -> RelationshipState:
        record = await self.store.get_or_create(current_user_id)
        return record.state_with(other_user_id)

    async def _cached_profiles(self, namespace: str, user_id: str, force_refresh: bool, load_ids) -> List[FriendProfile]:
        if not force_refresh:
            cached = await self.cache.get(namespace, user_id)
            if cached is not None:
                return [FriendProfile.model_validate(item) for item in cached]

        try:
            ids = await load_ids()
            profiles = [FriendProfile.from_profile(profile) for profile in await self._resolve_profiles(ids)]
        except RelationshipError as e:
            stale = await self.cache.get_stale(namespace, user_id)
            self.logger.error("Could not load %s for %s: %s", namespace, user_id, e, exc_info=True)
            return [FriendProfile.model_validate(item) for item in stale] if stale else []

        await self.cache.set(namespace, user_id, [profile.model_dump(mode="json") for profile in profiles])
        return profiles

    async def get_friends(self, user_id: str, force_refresh: bool = False) -> List[FriendProfile]:
        """
        Resolved profiles of the user's friends.

        Friends whose profile no longer resolves are left out. Results are
        cached per user until the TTL runs out or a mutation invalidates them.
        """

        async def load_ids() -> List[str]:
            return (await self.store.get_or_create(user_id)).friends

        return await self._cached_profiles(FRIENDS_NAMESPACE, user_id, force_refresh, load_ids)

    async def get_pending_requests(self, user_id: str, force_refresh: bool = False) -> List[str]:
        """Ids of users who have invited ``user_id`` and are waiting for an answer."""
        if force_refresh:
            await self.cache.invalidate(user_id, [FRIEND_REQUESTS_NAMESPACE])
        record = await self.store.get_or_create(user_id)
        return list(record.friend_requests_received)

    async def get_sent_requests(self, user_id: str) -> List[str]:
        record = await self.store.get_or_create(user_id)
        return list(record.friend_requests_sent)

    async def get_pending_requests_detailed(self, user_id: str, force_refresh: bool = False) -> List[FriendProfile]:
        async def load_ids() -> List[str]:
            return (await self.store.get_or_create(user_id)).friend_requests_received

        return await self._cached_profiles(FRIEND_REQUESTS_NAMESPACE, user_id, force_refresh, load_ids)


friend_manager = FriendManager(cache=build_cache())
