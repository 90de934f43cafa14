import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from jose import JWTError, jwt
from stepper.config import config
from stepper.exceptions import UnauthorizedError


class JWTHandler:
    """Verifies access tokens issued by Supabase Auth (HS256, shared secret)."""

    def __init__(self, secret_key: Optional[str] = None):
        secret_key = secret_key or config.supabase_jwt_secret
        if not secret_key:
            raise ValueError(
                "SUPABASE_JWT_SECRET must be set to verify access tokens."
            )
        self.secret_key = secret_key
        self.algorithm = "HS256"
        self.access_token_expire_minutes = 60

    def create_access_token(self, data: Dict, expires_delta: Optional[timedelta] = None) -> str:
        """Issue a token with the same shape Supabase issues (used by tooling and tests)."""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire, "aud": "authenticated", "role": "authenticated"})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict:
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_aud": False},
            )
        except JWTError as e:
            raise UnauthorizedError(f"Invalid token: {e}")

    def get_user_id(self, payload: Dict) -> uuid.UUID:
        subject = payload.get("sub")
        try:
            return uuid.UUID(str(subject))
        except (TypeError, ValueError):
            raise UnauthorizedError("Token subject is not a valid user id")


_jwt_handler: Optional[JWTHandler] = None


def get_jwt_handler() -> Optional[JWTHandler]:
    """Shared handler, or None while no signing secret is configured."""
    global _jwt_handler
    if _jwt_handler is None and config.supabase_jwt_secret:
        _jwt_handler = JWTHandler()
    return _jwt_handler
