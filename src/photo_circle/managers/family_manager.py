"""
Family membership protocol.

A family is a named group of users sharing an album. Members invite other
users; an invitation lives in the invitee's ``received`` list and in the
inviter's ``sent`` list until it is accepted or declined. Membership itself is
the ``members`` set on the family document.

Invariants kept by this module:
    - ``created_by`` is a member for as long as the family exists.
    - A family left with no members is deleted.
    - For a (user, family) pair, the user is either not related, invited, or a
      member; never invited and a member at once.
"""

import time
from typing import List, Optional

from photo_circle.exceptions import (
    AlreadyFamilyMember,
    FamilyNotFound,
    NotFamilyMember,
    RelationshipError,
    UserNotFound,
    ValidationError,
)
from photo_circle.managers.logging_manager import get_logger
from photo_circle.managers.relationship_cache import (
    FAMILY_MEMBERS_NAMESPACE,
    FAMILY_REQUESTS_NAMESPACE,
    build_cache,
)
from photo_circle.managers.relationship_protocol import RelationshipProtocol
from photo_circle.managers.relationship_store import FamilyRequestStore, FamilyStore
from photo_circle.models.relationship_models import (
    FAMILY_NAME_MAX_LENGTH,
    FAMILY_NAME_MIN_LENGTH,
    FamilyMemberProfile,
    FamilyRecord,
    FriendProfile,
    ReceivedFamilyRequest,
    SentFamilyRequest,
)

logger = get_logger(prefix="[FamilyManager]")


class FamilyManager(RelationshipProtocol):
    """Family creation, invitations and membership changes."""

    def __init__(
        self,
        family_store: Optional[FamilyStore] = None,
        request_store: Optional[FamilyRequestStore] = None,
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
        self.families = family_store or FamilyStore(self.db_manager)
        self.requests = request_store or FamilyRequestStore(self.db_manager)

    def _validate_family_name(self, family_name: Optional[str]) -> str:
        name = (family_name or "").strip()
        if len(name) < FAMILY_NAME_MIN_LENGTH:
            raise ValidationError("Family name cannot be empty", field="family_name", value=family_name)
        if len(name) > FAMILY_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Family name must be at most {FAMILY_NAME_MAX_LENGTH} characters",
                field="family_name",
                value=family_name,
            )
        return name

    async def _require_family(self, family_id: str) -> FamilyRecord:
        family = await self.families.get(family_id)
        if family is None:
            raise FamilyNotFound("Family not found", family_id=family_id)
        return family

    async def create_family(self, user_id: str, family_name: str) -> FamilyRecord:
        """Create a family with ``user_id`` as creator and only member."""
        name = self._validate_family_name(family_name)
        family = FamilyRecord(
            id=f"family_{int(time.time() * 1000)}_{user_id}",
            name=name,
            created_by=user_id,
            members=[user_id],
        )
        await self.families.create(family)
        self.logger.info("Family %s (%s) created by %s", family.id, name, user_id)
        return family

    async def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        return await self.families.get(family_id)

    async def get_user_families(self, user_id: str) -> List[FamilyRecord]:
        return await self.families.find_by_member(user_id)

    async def get_family_members(self, family_id: str, force_refresh: bool = False) -> List[FamilyMemberProfile]:
        """
        Resolved member profiles, with the creator flagged.

        A missing family yields an empty list. Members whose profile no longer
        resolves are left out.
        """
        if not force_refresh:
            cached = await self.cache.get(FAMILY_MEMBERS_NAMESPACE, family_id)
            if cached is not None:
                return [FamilyMemberProfile.model_validate(item) for item in cached]

        try:
            family = await self.families.get(family_id)
        except RelationshipError as e:
            stale = await self.cache.get_stale(FAMILY_MEMBERS_NAMESPACE, family_id)
            self.logger.error("Could not load members of %s: %s", family_id, e, exc_info=True)
            return [FamilyMemberProfile.model_validate(item) for item in stale] if stale else []
        if family is None:
            return []

        members = [
            FamilyMemberProfile(
                **FriendProfile.from_profile(profile).model_dump(), is_creator=profile.id == family.created_by
            )
            for profile in await self._resolve_profiles(family.members)
        ]
        await self.cache.set(FAMILY_MEMBERS_NAMESPACE, family_id, [m.model_dump(mode="json") for m in members])
        return members

    async def get_family_requests(self, user_id: str, force_refresh: bool = False) -> List[ReceivedFamilyRequest]:
        """Invitations waiting for ``user_id`` to answer."""
        if not force_refresh:
            cached = await self.cache.get(FAMILY_REQUESTS_NAMESPACE, user_id)
            if cached is not None:
                return [ReceivedFamilyRequest.model_validate(item) for item in cached]

        record = await self.requests.get_or_create(user_id)
        await self.cache.set(
            FAMILY_REQUESTS_NAMESPACE, user_id, [request.model_dump(mode="json") for request in record.received]
        )
        return record.received

    async def send_family_request(self, family_id: str, from_user_id: str, to_user_id: str) -> None:
        """
        Invite ``to_user_id`` into the family on behalf of the member ``from_user_id``.

        Raises:
            FamilyNotFound: the family does not exist.
            NotFamilyMember: the inviter is not a member.
            AlreadyFamilyMember: the invitee already is a member.
            UserNotFound: either user does not resolve to a profile.
            PartialMutation: only the invitee's side was written; call again to finish.
        """
        if from_user_id == to_user_id:
            self.logger.debug("Ignoring family invitation from %s to themselves", from_user_id)
            return

        family = await self._require_family(family_id)
        if from_user_id not in family.members:
            raise NotFamilyMember("Only family members can send invitations", family_id=family_id, user_id=from_user_id)
        if to_user_id in family.members:
            raise AlreadyFamilyMember("User is already a member of this family", family_id=family_id, user_id=to_user_id)

        inviter = await self.profiles.get_user_by_id(from_user_id)
        if inviter is None:
            raise UserNotFound("User does not exist", user_id=from_user_id)
        if await self.profiles.get_user_by_id(to_user_id) is None:
            raise UserNotFound("User does not exist", user_id=to_user_id)

        invitee_requests = await self.requests.get_or_create(to_user_id)
        inviter_requests = await self.requests.get_or_create(from_user_id)
        already_sent = any(s.family_id == family_id and s.to_user_id == to_user_id for s in inviter_requests.sent)

        existing = next((r for r in invitee_requests.received if r.family_id == family_id), None)
        if existing is not None and (existing.from_user_id != from_user_id or already_sent):
            self.logger.info("%s already has an invitation to %s", to_user_id, family_id)
            return

        writes = []
        if existing is None:
            received = ReceivedFamilyRequest(
                family_id=family_id,
                family_name=family.name,
                from_user_id=from_user_id,
                from_user_name=inviter.label,
            )
            writes.append(
                (
                    f"{to_user_id}.received",
                    lambda session: self.requests.push_received(to_user_id, received, session=session),
                )
            )
        if not already_sent:
            sent = SentFamilyRequest(family_id=family_id, to_user_id=to_user_id)
            writes.append(
                (f"{from_user_id}.sent", lambda session: self.requests.push_sent(from_user_id, sent, session=session))
            )

        try:
            await self._run_writes("send_family_request", writes)
        finally:
            await self._invalidate([from_user_id, to_user_id])

        self.logger.info("%s invited %s to family %s", from_user_id, to_user_id, family_id)
        await self._safe_notify(
            "family invitation",
            lambda: self.notifications.send_family_invitation_notification(to_user_id, inviter, family.name, family_id),
        )

    async def accept_family_request(self, user_id: str, family_id: str, from_user_id: str) -> None:
        """Join the family and clear the user's invitations to it, plus the inviter's sent entry."""
        family = await self._require_family(family_id)

        async def add_member(session) -> None:
            if not await self.families.add_member(family_id, user_id, session=session):
                raise FamilyNotFound("Family not found", family_id=family_id)

        try:
            await self._run_writes(
                "accept_family_request",
                [
                    (f"{family_id}.members", add_member),
                    (
                        f"{user_id}.received",
                        lambda session: self.requests.pull_received(user_id, family_id, session=session),
                    ),
                    (
                        f"{from_user_id}.sent",
                        lambda session: self.requests.pull_sent(from_user_id, family_id, user_id, session=session),
                    ),
                ],
            )
        finally:
            await self._invalidate([user_id, from_user_id], family_ids=[family_id])

        self.logger.info("%s joined family %s", user_id, family_id)
        await self._notify_response(from_user_id, user_id, family.name, accepted=True)

    async def decline_family_request(self, user_id: str, family_id: str, from_user_id: str) -> None:
        """Drop the invitation from ``from_user_id`` on both sides. Works even if the family is gone."""
        record = await self.requests.get_or_create(user_id)
        family_name = next(
            (r.family_name for r in record.received if r.family_id == family_id and r.from_user_id == from_user_id),
            None,
        )
        if family_name is None:
            family = await self.families.get(family_id)
            family_name = family.name if family else ""

        try:
            await self._run_writes(
                "decline_family_request",
                [
                    (
                        f"{user_id}.received",
                        lambda session: self.requests.pull_received(user_id, family_id, from_user_id, session=session),
                    ),
                    (
                        f"{from_user_id}.sent",
                        lambda session: self.requests.pull_sent(from_user_id, family_id, user_id, session=session),
                    ),
                ],
            )
        finally:
            await self._invalidate([user_id, from_user_id])

        self.logger.info("%s declined the invitation to %s from %s", user_id, family_id, from_user_id)
        await self._notify_response(from_user_id, user_id, family_name, accepted=False)

    async def _notify_response(self, inviter_id: str, responder_id: str, family_name: str, accepted: bool) -> None:
        responder = await self.profiles.get_user_by_id(responder_id)
        if responder is None:
            return
        await self._safe_notify(
            "family accepted" if accepted else "family declined",
            lambda: self.notifications.send_family_response_notification(
                inviter_id, responder, family_name, accepted=accepted
            ),
        )

    async def leave_family(self, user_id: str, family_id: str) -> None:
        """
        Remove ``user_id`` from the family.

        The family is deleted once nobody is left. If the creator leaves while
        others remain, the longest-standing remaining member becomes the owner.
        Repeating the call finishes any step an earlier call did not complete.
        """
        family = await self._require_family(family_id)
        remaining = [member for member in family.members if member != user_id]

        writes = []
        if user_id in family.members:
            writes.append(
                (
                    f"{family_id}.members",
                    lambda session: self.families.remove_member(family_id, user_id, session=session),
                )
            )
        if not remaining:
            writes.append((f"{family_id}.deleted", lambda session: self.families.delete(family_id, session=session)))
        elif family.created_by not in remaining:
            new_owner = remaining[0]
            writes.append(
                (
                    f"{family_id}.created_by",
                    lambda session: self.families.set_owner(family_id, new_owner, session=session),
                )
            )

        try:
            await self._run_writes("leave_family", writes)
        finally:
            await self._invalidate([user_id, *family.members], family_ids=[family_id])

        if not remaining:
            self.logger.info("Family %s deleted after its last member %s left", family_id, user_id)
        else:
            self.logger.info("%s left family %s", user_id, family_id)


family_manager = FamilyManager(cache=build_cache())
