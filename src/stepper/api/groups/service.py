"""
Groups: membership management, join codes and the step leaderboard.

Roles are Owner (exactly one per group), Admin and Member. Owners and
admins manage members and see the join code; only the owner edits
roles or deletes the group.
"""

import logging
import secrets
import string
import uuid
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.service import ActivityService
from stepper.api.groups.models import (
    CreateGroupRequest, UpdateGroupRequest, GroupResponse, GroupSearchResponse,
    GroupMemberResponse, LeaderboardEntry, LeaderboardResponse
)
from stepper.api.notifications.service import NotificationService
from stepper.api.steps import streaks
from stepper.api.steps.service import utc_today
from stepper.api.users.queries import ensure_profile, load_profiles
from stepper.exceptions import NotFoundError, UnauthorizedError, ValidationError, InvalidOperationError
from stepper.milestones.definitions import Metric
from stepper.milestones.engine import MilestoneEngine
from stepper.models import (
    ActivityType, Group, GroupJoinCode, GroupMembership, MemberRole, NotificationType,
    PeriodType, StepEntry, User
)
from stepper.models.base import escape_like, utcnow

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500
MIN_MEMBERS = 1
MAX_MEMBERS = 50
JOIN_CODE_LENGTH = 8
JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_SEARCH_RESULTS = 50
CUSTOM_PERIOD_DAYS = 30


def validate_group_fields(name: str, description: Optional[str], max_members: Optional[int]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name cannot be empty.")
    if len(name) < MIN_NAME_LENGTH or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Group name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters.")
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters.")
    if max_members is not None and (max_members < MIN_MEMBERS or max_members > MAX_MEMBERS):
        raise ValidationError(f"Max members must be between {MIN_MEMBERS} and {MAX_MEMBERS}.")
    return name


def period_range(period_type: str, today: date) -> Tuple[date, date]:
    if period_type == PeriodType.DAILY.value:
        return today, today
    if period_type == PeriodType.WEEKLY.value:
        return streaks.week_range(today)
    if period_type == PeriodType.MONTHLY.value:
        return streaks.month_range(today)
    return today - timedelta(days=CUSTOM_PERIOD_DAYS - 1), today


def rank_entries(totals: List[Tuple[uuid.UUID, int, float]]) -> List[Tuple[int, uuid.UUID, int, float]]:
    """Competition ranking by steps: ties share a rank, the next rank skips (1, 1, 3)."""
    ordered = sorted(totals, key=lambda t: t[1], reverse=True)
    ranked = []
    for position, (user_id, steps, distance) in enumerate(ordered, start=1):
        if ranked and ranked[-1][2] == steps:
            rank = ranked[-1][0]
        else:
            rank = position
        ranked.append((rank, user_id, steps, distance))
    return ranked


class GroupService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.activity = ActivityService(session)
        self.notifications = NotificationService(session)
        self.milestones = MilestoneEngine(session)

    async def create_group(self, user_id: uuid.UUID, request: CreateGroupRequest) -> GroupResponse:
        name = validate_group_fields(request.name, request.description, request.max_members)
        await ensure_profile(self.session, user_id)
        previous_groups = await self.milestones.count_groups(user_id)

        group = Group(
            name=name,
            description=request.description,
            is_public=request.is_public,
            period_type=request.period_type.value,
            max_members=request.max_members,
            require_approval=request.require_approval,
            created_by_id=user_id,
        )
        self.session.add(group)
        await self.session.flush()
        self.session.add(GroupMembership(group_id=group.id, user_id=user_id, role=MemberRole.OWNER.value))
        join_code = GroupJoinCode(group_id=group.id, join_code=await self._generate_join_code())
        self.session.add(join_code)
        await self.session.commit()
        logger.info(f"Group {group.id} '{group.name}' created by {user_id}")

        await self._evaluate_group_milestones(user_id, previous_groups)
        return self._group_response(group, 1, MemberRole.OWNER.value, join_code.join_code)

    async def get_user_groups(self, user_id: uuid.UUID) -> List[GroupResponse]:
        result = await self.session.execute(
            select(Group, GroupMembership.role)
            .join(GroupMembership, GroupMembership.group_id == Group.id)
            .where(GroupMembership.user_id == user_id)
            .order_by(GroupMembership.joined_at.desc())
        )
        rows = result.all()
        counts = await self._member_counts([group.id for group, _ in rows])
        codes = await self._join_codes([group.id for group, role in rows if role != MemberRole.MEMBER.value])
        return [
            self._group_response(group, counts.get(group.id, 0), role, codes.get(group.id))
            for group, role in rows
        ]

    async def get_group(self, user_id: uuid.UUID, group_id: uuid.UUID) -> GroupResponse:
        group = await self._get_group(group_id)
        membership = await self._get_membership(group_id, user_id)
        if membership is None and not group.is_public:
            raise UnauthorizedError("You do not have permission to view this group.")
        return await self._response_for(group, membership)

    async def update_group(self, user_id: uuid.UUID, group_id: uuid.UUID, request: UpdateGroupRequest) -> GroupResponse:
        group = await self._get_group(group_id)
        membership = await self._require_manager(group_id, user_id)
        name = validate_group_fields(request.name, request.description, request.max_members)

        if request.max_members is not None:
            member_count = await self._member_count(group_id)
            if request.max_members < member_count:
                raise InvalidOperationError(
                    f"Max members cannot be less than the current member count ({member_count})."
                )
            group.max_members = request.max_members

        group.name = name
        group.description = request.description
        group.is_public = request.is_public
        if request.require_approval is not None:
            group.require_approval = request.require_approval
        group.updated_at = utcnow()
        await self.session.commit()
        logger.info(f"Group {group_id} updated by {user_id}")

        return await self._response_for(group, membership)

    async def delete_group(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        await self._get_group(group_id)
        membership = await self._get_membership(group_id, user_id)
        if membership is None or not membership.is_owner:
            raise UnauthorizedError("Only the group owner can delete the group.")
        await self._delete_group(group_id)
        await self.session.commit()
        logger.info(f"Group {group_id} deleted by {user_id}")

    async def join_group(self, user_id: uuid.UUID, group_id: uuid.UUID, join_code: Optional[str] = None) -> GroupResponse:
        group = await self._get_group(group_id)
        if not group.is_public:
            codes = await self._join_codes([group_id])
            expected = codes.get(group_id)
            if not join_code or not expected or join_code.strip().upper() != expected:
                raise ValidationError("Invalid join code.")
        return await self._join(user_id, group)

    async def join_by_code(self, user_id: uuid.UUID, code: str) -> GroupResponse:
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Join code cannot be empty.")

        result = await self.session.execute(
            select(Group)
            .join(GroupJoinCode, GroupJoinCode.group_id == Group.id)
            .where(GroupJoinCode.join_code == code)
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFoundError("Group not found.")
        return await self._join(user_id, group)

    async def leave_group(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        await self._get_group(group_id)
        membership = await self._get_membership(group_id, user_id)
        if membership is None:
            raise InvalidOperationError("You are not a member of this group.")

        member_count = await self._member_count(group_id)
        if membership.is_owner:
            if member_count > 1:
                raise InvalidOperationError("Owner must transfer ownership before leaving.")
            await self._delete_group(group_id)
            logger.info(f"Group {group_id} deleted after its last member left")
        else:
            await self.session.delete(membership)

        await self.session.commit()
        logger.info(f"User {user_id} left group {group_id}")

    async def get_members(self, user_id: uuid.UUID, group_id: uuid.UUID) -> List[GroupMemberResponse]:
        await self._get_group(group_id)
        await self._require_member(group_id, user_id)

        result = await self.session.execute(
            select(GroupMembership)
            .where(GroupMembership.group_id == group_id)
            .order_by(GroupMembership.joined_at.asc())
        )
        memberships = list(result.scalars().all())
        profiles = await load_profiles(self.session, [m.user_id for m in memberships])
        return [self._member_response(m, profiles.get(m.user_id)) for m in memberships]

    async def invite_member(self, user_id: uuid.UUID, group_id: uuid.UUID, target_user_id: uuid.UUID) -> GroupMemberResponse:
        group = await self._get_group(group_id)
        await self._require_manager(group_id, user_id)

        target = await self.session.get(User, target_user_id)
        if target is None:
            raise NotFoundError("User not found.")

        membership = await self._add_member(target_user_id, group)
        await self.notifications.create(
            target_user_id,
            NotificationType.GROUP_INVITE,
            "Added to a group",
            f"You were added to the group {group.name}.",
            data={"groupId": str(group.id)},
        )
        await self.session.commit()
        logger.info(f"User {target_user_id} added to group {group_id} by {user_id}")

        return self._member_response(membership, target)

    async def update_member_role(
        self, user_id: uuid.UUID, group_id: uuid.UUID, target_user_id: uuid.UUID, role: MemberRole
    ) -> GroupMemberResponse:
        await self._get_group(group_id)
        caller = await self._get_membership(group_id, user_id)
        if caller is None or not caller.is_owner:
            raise UnauthorizedError("Only the group owner can change member roles.")
        if target_user_id == user_id:
            raise InvalidOperationError("You cannot change your own role.")

        target = await self._get_membership(group_id, target_user_id)
        if target is None:
            raise NotFoundError("Member not found.")

        target.role = role.value
        if role == MemberRole.OWNER:
            # Ownership transfer: the previous owner stays on as admin
            caller.role = MemberRole.ADMIN.value
        await self.session.commit()
        logger.info(f"User {target_user_id} in group {group_id} is now {role.value}")

        profile = await self.session.get(User, target_user_id)
        return self._member_response(target, profile)

    async def remove_member(self, user_id: uuid.UUID, group_id: uuid.UUID, target_user_id: uuid.UUID) -> None:
        await self._get_group(group_id)
        caller = await self._require_manager(group_id, user_id)
        if target_user_id == user_id:
            raise InvalidOperationError("Use leave to remove yourself from a group.")

        target = await self._get_membership(group_id, target_user_id)
        if target is None:
            raise NotFoundError("Member not found.")
        if target.is_owner:
            raise UnauthorizedError("The group owner cannot be removed.")
        if target.role == MemberRole.ADMIN.value and not caller.is_owner:
            raise UnauthorizedError("Only the group owner can remove an admin.")

        await self.session.delete(target)
        await self.session.commit()
        logger.info(f"User {target_user_id} removed from group {group_id} by {user_id}")

    async def get_leaderboard(self, user_id: uuid.UUID, group_id: uuid.UUID) -> LeaderboardResponse:
        group = await self._get_group(group_id)
        await self._require_member(group_id, user_id)
        start, end = period_range(group.period_type, utc_today())

        members_result = await self.session.execute(
            select(GroupMembership.user_id).where(GroupMembership.group_id == group_id)
        )
        member_ids = list(members_result.scalars().all())

        totals_result = await self.session.execute(
            select(
                StepEntry.user_id,
                func.sum(StepEntry.step_count),
                func.sum(func.coalesce(StepEntry.distance_meters, 0.0)),
            )
            .where(
                StepEntry.user_id.in_(member_ids),
                StepEntry.date >= start,
                StepEntry.date <= end,
            )
            .group_by(StepEntry.user_id)
        )
        totals = {uid: (int(steps or 0), float(distance or 0.0)) for uid, steps, distance in totals_result.all()}
        profiles = await load_profiles(self.session, member_ids)

        ranked = rank_entries([(uid, *totals.get(uid, (0, 0.0))) for uid in member_ids])
        entries = []
        for rank, uid, steps, distance in ranked:
            profile = profiles.get(uid)
            entries.append(LeaderboardEntry(
                rank=rank,
                user_id=uid,
                display_name=profile.display_name if profile else User.default_display_name(uid),
                avatar_url=profile.avatar_url if profile else None,
                total_steps=steps,
                total_distance_meters=distance,
            ))

        return LeaderboardResponse(group_id=group_id, period_start=start, period_end=end, entries=entries)

    async def search_public_groups(self, query: Optional[str]) -> List[GroupSearchResponse]:
        statement = select(Group).where(Group.is_public.is_(True))
        term = (query or "").strip()
        if term:
            statement = statement.where(Group.name.ilike(f"%{escape_like(term)}%", escape="\\"))
        result = await self.session.execute(statement.order_by(Group.name).limit(MAX_SEARCH_RESULTS))
        groups = list(result.scalars().all())
        counts = await self._member_counts([g.id for g in groups])

        return [
            GroupSearchResponse(
                id=g.id,
                name=g.name,
                description=g.description,
                member_count=counts.get(g.id, 0),
                is_public=g.is_public,
                max_members=g.max_members,
            )
            for g in groups
        ]

    async def regenerate_join_code(self, user_id: uuid.UUID, group_id: uuid.UUID) -> GroupResponse:
        group = await self._get_group(group_id)
        membership = await self._require_manager(group_id, user_id)

        result = await self.session.execute(select(GroupJoinCode).where(GroupJoinCode.group_id == group_id))
        join_code = result.scalar_one_or_none()
        new_code = await self._generate_join_code()
        if join_code is None:
            self.session.add(GroupJoinCode(group_id=group_id, join_code=new_code))
        else:
            join_code.join_code = new_code
            join_code.updated_at = utcnow()
        await self.session.commit()
        logger.info(f"Join code regenerated for group {group_id} by {user_id}")

        return await self._response_for(group, membership)

    async def _join(self, user_id: uuid.UUID, group: Group) -> GroupResponse:
        await ensure_profile(self.session, user_id)
        previous_groups = await self.milestones.count_groups(user_id)
        membership = await self._add_member(user_id, group)
        await self.session.commit()
        logger.info(f"User {user_id} joined group {group.id}")

        await self._evaluate_group_milestones(user_id, previous_groups)
        return await self._response_for(group, membership)

    async def _add_member(self, user_id: uuid.UUID, group: Group) -> GroupMembership:
        if await self._get_membership(group.id, user_id) is not None:
            raise InvalidOperationError("Already a member of this group.")
        if await self._member_count(group.id) >= group.max_members:
            raise InvalidOperationError("Group is full.")

        membership = GroupMembership(group_id=group.id, user_id=user_id, role=MemberRole.MEMBER.value)
        self.session.add(membership)
        self.activity.record(
            user_id,
            ActivityType.GROUP_JOIN,
            f"Joined the group {group.name}",
            metadata={"groupName": group.name},
            related_group_id=group.id,
        )
        return membership

    async def _evaluate_group_milestones(self, user_id: uuid.UUID, previous_groups: int) -> None:
        await self.milestones.evaluate(
            user_id, previous={Metric.GROUP_COUNT.value: previous_groups}, metrics=[Metric.GROUP_COUNT]
        )

    async def _delete_group(self, group_id: uuid.UUID) -> None:
        await self.session.execute(delete(GroupJoinCode).where(GroupJoinCode.group_id == group_id))
        await self.session.execute(delete(GroupMembership).where(GroupMembership.group_id == group_id))
        await self.session.execute(delete(Group).where(Group.id == group_id))

    async def _generate_join_code(self) -> str:
        while True:
            code = "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
            result = await self.session.execute(select(GroupJoinCode.id).where(GroupJoinCode.join_code == code))
            if result.scalar_one_or_none() is None:
                return code

    async def _get_group(self, group_id: uuid.UUID) -> Group:
        group = await self.session.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group not found.")
        return group

    async def _get_membership(self, group_id: uuid.UUID, user_id: uuid.UUID) -> Optional[GroupMembership]:
        result = await self.session.execute(
            select(GroupMembership).where(
                GroupMembership.group_id == group_id, GroupMembership.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def _require_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMembership:
        membership = await self._get_membership(group_id, user_id)
        if membership is None:
            raise UnauthorizedError("You are not a member of this group.")
        return membership

    async def _require_manager(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMembership:
        membership = await self._get_membership(group_id, user_id)
        if membership is None or not membership.can_manage:
            raise UnauthorizedError("Only the group owner or an admin can do this.")
        return membership

    async def _member_count(self, group_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(GroupMembership.id)).where(GroupMembership.group_id == group_id)
        )
        return result.scalar() or 0

    async def _member_counts(self, group_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
        if not group_ids:
            return {}
        result = await self.session.execute(
            select(GroupMembership.group_id, func.count(GroupMembership.id))
            .where(GroupMembership.group_id.in_(group_ids))
            .group_by(GroupMembership.group_id)
        )
        return {group_id: count for group_id, count in result.all()}

    async def _join_codes(self, group_ids: List[uuid.UUID]) -> Dict[uuid.UUID, str]:
        if not group_ids:
            return {}
        result = await self.session.execute(
            select(GroupJoinCode.group_id, GroupJoinCode.join_code).where(GroupJoinCode.group_id.in_(group_ids))
        )
        return {group_id: code for group_id, code in result.all()}

    async def _response_for(self, group: Group, membership: Optional[GroupMembership]) -> GroupResponse:
        member_count = await self._member_count(group.id)
        join_code = None
        if membership is not None and membership.can_manage:
            join_code = (await self._join_codes([group.id])).get(group.id)
        return self._group_response(group, member_count, membership.role if membership else None, join_code)

    @staticmethod
    def _group_response(group: Group, member_count: int, role: Optional[str], join_code: Optional[str]) -> GroupResponse:
        return GroupResponse(
            id=group.id,
            name=group.name,
            description=group.description,
            is_public=group.is_public,
            period_type=group.period_type,
            member_count=member_count,
            max_members=group.max_members,
            require_approval=group.require_approval,
            join_code=join_code,
            role=role,
            created_at=group.created_at,
        )

    @staticmethod
    def _member_response(membership: GroupMembership, profile: Optional[User]) -> GroupMemberResponse:
        return GroupMemberResponse(
            user_id=membership.user_id,
            display_name=profile.display_name if profile else User.default_display_name(membership.user_id),
            avatar_url=profile.avatar_url if profile else None,
            role=membership.role,
            joined_at=membership.joined_at,
        )
