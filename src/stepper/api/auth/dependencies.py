"""Authentication dependency shared by every protected router."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from stepper.api.auth.jwt_handler import JWTHandler, get_jwt_handler
from stepper.api.errors import NOT_AUTHENTICATED
from stepper.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

# auto_error=False so a missing or non-Bearer header gets our own 401 envelope
security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: uuid.UUID
    email: Optional[str]
    access_token: str


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    jwt_handler: Optional[JWTHandler] = Depends(get_jwt_handler),
) -> CurrentUser:
    """Dependency to get the authenticated user from the Bearer token."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(NOT_AUTHENTICATED)

    if jwt_handler is None:
        logger.warning("Rejecting bearer token: SUPABASE_JWT_SECRET is not configured")
        raise UnauthorizedError(NOT_AUTHENTICATED)

    try:
        payload = jwt_handler.verify_token(credentials.credentials)
        user_id = jwt_handler.get_user_id(payload)
    except UnauthorizedError as e:
        logger.debug(f"Rejected bearer token: {e.message}")
        raise UnauthorizedError(NOT_AUTHENTICATED)

    return CurrentUser(id=user_id, email=payload.get("email"), access_token=credentials.credentials)
