from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from stepper.api.responses import CamelModel


class UserSearchResult(CamelModel):
    id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    friendship_status: str = "none"


class SearchUsersResponse(CamelModel):
    users: List[UserSearchResult]
    total_count: int


class QrCodeResponse(CamelModel):
    qr_code_id: str
    deep_link: str


class GenerateInviteLinkRequest(CamelModel):
    expiration_hours: Optional[int] = Field(default=None, ge=1, le=720)
    max_usages: Optional[int] = Field(default=None, ge=1)


class InviteLinkResponse(CamelModel):
    code: str
    deep_link: str
    expires_at: Optional[datetime] = None
    max_usages: Optional[int] = None


class RedeemInviteCodeRequest(CamelModel):
    code: str


class RedeemInviteCodeResponse(CamelModel):
    message: str
