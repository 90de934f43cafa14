from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from stepper.api.responses import CamelModel
from stepper.models import MemberRole, PeriodType


class CreateGroupRequest(CamelModel):
    name: str
    description: Optional[str] = None
    is_public: bool = False
    period_type: PeriodType = PeriodType.WEEKLY
    max_members: int = 5
    require_approval: bool = False


class UpdateGroupRequest(CamelModel):
    name: str
    description: Optional[str] = None
    is_public: bool = False
    max_members: Optional[int] = None
    require_approval: Optional[bool] = None


class GroupResponse(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    is_public: bool
    period_type: PeriodType
    member_count: int
    max_members: int
    require_approval: bool = False
    join_code: Optional[str] = None
    role: Optional[MemberRole] = None
    created_at: datetime


class GroupListResponse(CamelModel):
    groups: List[GroupResponse]


class GroupSearchResponse(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    member_count: int
    is_public: bool
    max_members: int


class JoinGroupRequest(CamelModel):
    join_code: Optional[str] = None


class JoinByCodeRequest(CamelModel):
    code: str


class InviteMemberRequest(CamelModel):
    user_id: UUID


class UpdateMemberRoleRequest(CamelModel):
    role: MemberRole


class GroupMemberResponse(CamelModel):
    user_id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    role: MemberRole
    joined_at: datetime


class LeaderboardEntry(CamelModel):
    rank: int
    user_id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    total_steps: int
    total_distance_meters: float


class LeaderboardResponse(CamelModel):
    group_id: UUID
    period_start: date
    period_end: date
    entries: List[LeaderboardEntry]
