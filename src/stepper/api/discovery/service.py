"""
Finding people: display-name search, personal QR codes and invite links.
"""

import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.discovery.models import (
    UserSearchResult, SearchUsersResponse, QrCodeResponse, InviteLinkResponse
)
from stepper.api.friends.service import FriendService
from stepper.api.users.queries import ensure_profile
from stepper.config import config
from stepper.exceptions import NotFoundError, ValidationError, InvalidOperationError
from stepper.models import InviteCode, PrivacyLevel, User, UserPreferences
from stepper.models.base import as_utc, escape_like, utcnow

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 50
FRIEND_REQUEST_SENT = "Friend request sent successfully."


class DiscoveryService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.friends = FriendService(session)

    async def search_users(self, user_id: uuid.UUID, query: Optional[str]) -> SearchUsersResponse:
        term = (query or "").strip()
        if not term:
            raise ValidationError("Search query cannot be empty.")

        result = await self.session.execute(
            select(User)
            .outerjoin(UserPreferences, UserPreferences.user_id == User.id)
            .where(
                User.id != user_id,
                User.display_name.ilike(f"%{escape_like(term)}%", escape="\\"),
                or_(
                    UserPreferences.privacy_find_me.is_(None),
                    UserPreferences.privacy_find_me != PrivacyLevel.PRIVATE.value,
                ),
            )
            .order_by(User.display_name)
            .limit(MAX_SEARCH_RESULTS)
        )
        users = list(result.scalars().all())
        statuses = await self.friends.get_statuses(user_id, [u.id for u in users])

        return SearchUsersResponse(
            users=[self._result(u, statuses.get(u.id)) for u in users],
            total_count=len(users),
        )

    async def get_qr_code(self, user_id: uuid.UUID) -> QrCodeResponse:
        profile = await ensure_profile(self.session, user_id)
        return QrCodeResponse(
            qr_code_id=profile.qr_code_id,
            deep_link=f"{config.deep_link_base}user/{profile.qr_code_id}",
        )

    async def get_user_by_qr_code(self, user_id: uuid.UUID, qr_code_id: str) -> UserSearchResult:
        if not qr_code_id or not qr_code_id.strip():
            raise ValidationError("QR code ID cannot be empty.")

        result = await self.session.execute(select(User).where(User.qr_code_id == qr_code_id.strip()))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found.")

        statuses = await self.friends.get_statuses(user_id, [user.id])
        return self._result(user, statuses.get(user.id))

    async def create_invite_link(
        self,
        user_id: uuid.UUID,
        expiration_hours: Optional[int] = None,
        max_usages: Optional[int] = None,
    ) -> InviteLinkResponse:
        await ensure_profile(self.session, user_id)
        expires_at = utcnow() + timedelta(hours=expiration_hours) if expiration_hours else None

        invite = InviteCode(
            user_id=user_id,
            code=secrets.token_urlsafe(9),
            expires_at=expires_at,
            max_usages=max_usages,
        )
        self.session.add(invite)
        await self.session.commit()
        logger.info(f"Invite code created by {user_id} (expires {expires_at}, max {max_usages})")

        return InviteLinkResponse(
            code=invite.code,
            deep_link=f"{config.deep_link_base}invite/{invite.code}",
            expires_at=expires_at,
            max_usages=max_usages,
        )

    async def redeem_invite_code(self, user_id: uuid.UUID, code: str) -> str:
        code = (code or "").strip()
        if not code:
            raise ValidationError("Invite code cannot be empty.")

        result = await self.session.execute(select(InviteCode).where(InviteCode.code == code))
        invite = result.scalar_one_or_none()
        if invite is None:
            raise NotFoundError("Invite code not found")
        if invite.expires_at is not None and as_utc(invite.expires_at) < utcnow():
            raise InvalidOperationError("Invite code has expired")
        if invite.max_usages is not None and invite.usage_count >= invite.max_usages:
            raise InvalidOperationError("Invite code has reached maximum usage limit")
        if invite.user_id == user_id:
            raise ValidationError("Cannot redeem your own invite code.")

        # Usage is only consumed once the request actually went out
        await self.friends.send_request(user_id, invite.user_id)
        invite.usage_count += 1
        await self.session.commit()
        logger.info(f"Invite code {code} redeemed by {user_id}")
        return FRIEND_REQUEST_SENT

    @staticmethod
    def _result(user: User, status: Optional[str]) -> UserSearchResult:
        return UserSearchResult(
            id=user.id,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            friendship_status=status or "none",
        )
