"""
Friend requests and friendships.

A single row per pair of users; the requester is always user_id. A
rejected request can be re-sent, which reuses the row.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.service import ActivityService
from stepper.api.friends.models import FriendRequestResponse, FriendResponse, FriendListResponse
from stepper.api.notifications.service import NotificationService
from stepper.api.users.queries import ensure_profile, load_profiles
from stepper.exceptions import NotFoundError, UnauthorizedError, ValidationError, InvalidOperationError
from stepper.milestones.definitions import Metric
from stepper.milestones.engine import MilestoneEngine
from stepper.models import (
    ActivityType, Friendship, FriendshipStatus, NotificationType, User
)
from stepper.models.base import utcnow

logger = logging.getLogger(__name__)


def _between(user_a: uuid.UUID, user_b: uuid.UUID):
    return or_(
        and_(Friendship.user_id == user_a, Friendship.friend_id == user_b),
        and_(Friendship.user_id == user_b, Friendship.friend_id == user_a),
    )


class FriendService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.notifications = NotificationService(session)
        self.activity = ActivityService(session)
        self.milestones = MilestoneEngine(session)

    async def get_friendship_between(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[Friendship]:
        result = await self.session.execute(select(Friendship).where(_between(user_a, user_b)))
        return result.scalars().first()

    async def get_statuses(self, user_id: uuid.UUID, other_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, str]:
        """Friendship status with each of other_ids; absent pairs are left out."""
        ids = list(other_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Friendship).where(
                or_(
                    and_(Friendship.user_id == user_id, Friendship.friend_id.in_(ids)),
                    and_(Friendship.friend_id == user_id, Friendship.user_id.in_(ids)),
                )
            )
        )
        return {f.other_user(user_id): f.status for f in result.scalars().all()}

    async def send_request(self, user_id: uuid.UUID, friend_user_id: uuid.UUID) -> FriendRequestResponse:
        if friend_user_id.int == 0:
            raise ValidationError("Friend user ID cannot be empty.")
        if friend_user_id == user_id:
            raise ValidationError("Cannot send friend request to yourself.")

        addressee = await self.session.get(User, friend_user_id)
        if addressee is None:
            raise NotFoundError("User not found.")
        requester = await ensure_profile(self.session, user_id)

        friendship = await self.get_friendship_between(user_id, friend_user_id)
        if friendship is not None:
            if friendship.status == FriendshipStatus.ACCEPTED.value:
                raise InvalidOperationError("Users are already friends.")
            if friendship.status == FriendshipStatus.PENDING.value:
                raise InvalidOperationError("Friend request already exists.")
            # Rejected earlier: re-send from this side
            friendship.user_id = user_id
            friendship.friend_id = friend_user_id
            friendship.status = FriendshipStatus.PENDING.value
            friendship.created_at = utcnow()
            friendship.accepted_at = None
        else:
            friendship = Friendship(user_id=user_id, friend_id=friend_user_id)
            self.session.add(friendship)

        await self.notifications.create(
            friend_user_id,
            NotificationType.FRIEND_REQUEST,
            "New friend request",
            f"{requester.display_name} sent you a friend request.",
            data={"requestId": str(friendship.id), "requesterId": str(user_id)},
        )
        await self.session.commit()
        logger.info(f"Friend request {friendship.id} sent from {user_id} to {friend_user_id}")

        return self._request_response(friendship, {user_id: requester, friend_user_id: addressee})

    async def get_incoming_requests(self, user_id: uuid.UUID) -> List[FriendRequestResponse]:
        return await self._pending(Friendship.friend_id == user_id)

    async def get_outgoing_requests(self, user_id: uuid.UUID) -> List[FriendRequestResponse]:
        return await self._pending(Friendship.user_id == user_id)

    async def accept_request(self, user_id: uuid.UUID, request_id: uuid.UUID) -> FriendRequestResponse:
        friendship = await self._get_request_for_addressee(user_id, request_id)
        requester_id = friendship.user_id

        previous = {
            requester_id: await self.milestones.count_friends(requester_id),
            user_id: await self.milestones.count_friends(user_id),
        }

        friendship.status = FriendshipStatus.ACCEPTED.value
        friendship.accepted_at = utcnow()

        profiles = await load_profiles(self.session, [requester_id, user_id])
        accepter = profiles.get(user_id)
        requester = profiles.get(requester_id)
        accepter_name = accepter.display_name if accepter else "Someone"
        requester_name = requester.display_name if requester else "a new friend"

        await self.notifications.create(
            requester_id,
            NotificationType.FRIEND_ACCEPTED,
            "Friend request accepted",
            f"{accepter_name} accepted your friend request.",
            data={"friendId": str(user_id)},
        )
        self.activity.record(
            user_id,
            ActivityType.FRIEND_ACHIEVEMENT,
            f"{accepter_name} and {requester_name} are now friends",
            related_user_id=requester_id,
        )
        await self.session.commit()
        logger.info(f"Friend request {request_id} accepted by {user_id}")

        for member_id, count in previous.items():
            await self.milestones.evaluate(
                member_id, previous={Metric.FRIEND_COUNT.value: count}, metrics=[Metric.FRIEND_COUNT]
            )

        return self._request_response(friendship, profiles)

    async def reject_request(self, user_id: uuid.UUID, request_id: uuid.UUID) -> FriendRequestResponse:
        friendship = await self._get_request_for_addressee(user_id, request_id)
        friendship.status = FriendshipStatus.REJECTED.value
        await self.session.commit()
        logger.info(f"Friend request {request_id} rejected by {user_id}")

        profiles = await load_profiles(self.session, [friendship.user_id, friendship.friend_id])
        return self._request_response(friendship, profiles)

    async def cancel_request(self, user_id: uuid.UUID, request_id: uuid.UUID) -> None:
        friendship = await self._get_request(request_id)
        if friendship.user_id != user_id:
            raise UnauthorizedError("You do not have permission to modify this friend request.")
        if not friendship.is_pending:
            raise InvalidOperationError("Friend request is not pending.")
        await self.session.delete(friendship)
        await self.session.commit()

    async def get_friends(self, user_id: uuid.UUID) -> FriendListResponse:
        result = await self.session.execute(
            select(Friendship).where(
                Friendship.status == FriendshipStatus.ACCEPTED.value,
                or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
            )
        )
        friendships = list(result.scalars().all())
        profiles = await load_profiles(self.session, [f.other_user(user_id) for f in friendships])

        friends = [
            self._friend_response(f, profiles.get(f.other_user(user_id)), user_id)
            for f in friendships
        ]
        friends.sort(key=lambda friend: friend.display_name.lower())
        return FriendListResponse(friends=friends, total_count=len(friends))

    async def get_friend(self, user_id: uuid.UUID, friend_id: uuid.UUID) -> FriendResponse:
        friendship = await self._get_accepted(user_id, friend_id)
        profile = await self.session.get(User, friend_id)
        return self._friend_response(friendship, profile, user_id)

    async def remove_friend(self, user_id: uuid.UUID, friend_id: uuid.UUID) -> None:
        friendship = await self._get_accepted(user_id, friend_id)
        await self.session.delete(friendship)
        await self.session.commit()
        logger.info(f"Friendship between {user_id} and {friend_id} removed")

    async def _pending(self, condition) -> List[FriendRequestResponse]:
        result = await self.session.execute(
            select(Friendship)
            .where(condition, Friendship.status == FriendshipStatus.PENDING.value)
            .order_by(Friendship.created_at.desc())
        )
        friendships = list(result.scalars().all())
        ids = [f.user_id for f in friendships] + [f.friend_id for f in friendships]
        profiles = await load_profiles(self.session, ids)
        return [self._request_response(f, profiles) for f in friendships]

    async def _get_request(self, request_id: uuid.UUID) -> Friendship:
        friendship = await self.session.get(Friendship, request_id)
        if friendship is None:
            raise NotFoundError("Friend request not found.")
        return friendship

    async def _get_request_for_addressee(self, user_id: uuid.UUID, request_id: uuid.UUID) -> Friendship:
        friendship = await self._get_request(request_id)
        if friendship.friend_id != user_id:
            raise UnauthorizedError("You do not have permission to modify this friend request.")
        if not friendship.is_pending:
            raise InvalidOperationError("Friend request is not pending.")
        return friendship

    async def _get_accepted(self, user_id: uuid.UUID, friend_id: uuid.UUID) -> Friendship:
        friendship = await self.get_friendship_between(user_id, friend_id)
        if friendship is None or friendship.status != FriendshipStatus.ACCEPTED.value:
            raise NotFoundError("Friendship not found.")
        return friendship

    @staticmethod
    def _request_response(friendship: Friendship, profiles: Dict[uuid.UUID, User]) -> FriendRequestResponse:
        requester = profiles.get(friendship.user_id)
        addressee = profiles.get(friendship.friend_id)
        return FriendRequestResponse(
            id=friendship.id,
            requester_id=friendship.user_id,
            requester_display_name=requester.display_name if requester else None,
            requester_avatar_url=requester.avatar_url if requester else None,
            addressee_id=friendship.friend_id,
            addressee_display_name=addressee.display_name if addressee else None,
            addressee_avatar_url=addressee.avatar_url if addressee else None,
            status=friendship.status,
            created_at=friendship.created_at,
        )

    @staticmethod
    def _friend_response(friendship: Friendship, profile: Optional[User], user_id: uuid.UUID) -> FriendResponse:
        other_id = friendship.other_user(user_id)
        return FriendResponse(
            user_id=other_id,
            display_name=profile.display_name if profile else User.default_display_name(other_id),
            avatar_url=profile.avatar_url if profile else None,
            friends_since=friendship.accepted_at or friendship.created_at,
        )
