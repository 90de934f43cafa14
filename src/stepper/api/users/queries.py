"""Profile lookups used across feature slices."""

import logging
import uuid
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.models import User

logger = logging.getLogger(__name__)


async def ensure_profile(
    session: AsyncSession, user_id: uuid.UUID, display_name: Optional[str] = None
) -> User:
    """Return the user's profile, creating it with a generated name on first use."""
    user = await session.get(User, user_id)
    if user is not None:
        return user

    user = User(id=user_id, display_name=display_name or User.default_display_name(user_id))
    session.add(user)
    await session.commit()
    logger.info(f"Created profile for {user_id}")
    return user


async def load_profiles(session: AsyncSession, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}
