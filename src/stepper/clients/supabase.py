"""
Supabase Auth (GoTrue) and Storage client.

Thin aiohttp wrapper around the REST endpoints the API proxies to. Auth
rejections (4xx) surface as SupabaseAuthError so callers can choose the
message shown to users; network failures and 5xx become
ExternalServiceError.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from stepper.config import config
from stepper.exceptions import ExternalServiceError, StepperError

logger = logging.getLogger(__name__)


class SupabaseAuthError(StepperError):
    """GoTrue rejected the request (bad credentials, expired token, ...)."""

    status_code = 400

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class SupabaseClient:
    """Async client for Supabase Auth and Storage."""

    def __init__(self, url: Optional[str] = None, anon_key: Optional[str] = None, timeout: Optional[float] = None):
        self.url = (url or config.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else config.supabase_anon_key
        self.timeout = timeout or config.supabase_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.anon_key}"
        return headers

    @staticmethod
    def _error_message(payload: Any, fallback: str) -> str:
        if isinstance(payload, dict):
            for key in ("msg", "error_description", "message", "error"):
                if payload.get(key):
                    return str(payload[key])
        return fallback

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        if not self.url:
            raise ExternalServiceError("SUPABASE_URL is not configured")
        if not self.session:
            self.session = aiohttp.ClientSession()

        try:
            async with self.session.request(
                method,
                f"{self.url}{path}",
                json=json,
                data=data,
                headers=headers or self._headers(),
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None

                if response.status >= 500:
                    logger.error(f"Supabase {method} {path} failed with {response.status}")
                    raise ExternalServiceError(f"Supabase error: {response.status}")

                if response.status >= 400:
                    message = self._error_message(payload, f"Request failed with status {response.status}")
                    logger.warning(f"Supabase {method} {path} rejected ({response.status}): {message}")
                    raise SupabaseAuthError(message, response.status)

                return payload

        except asyncio.TimeoutError:
            logger.error(f"Supabase {method} {path} timed out after {self.timeout}s")
            raise ExternalServiceError("Supabase request timed out")
        except aiohttp.ClientError as e:
            logger.error(f"Supabase {method} {path} transport error: {e}")
            raise ExternalServiceError(f"Supabase request failed: {e}")

    # Auth

    async def sign_up(self, email: str, password: str, display_name: str) -> Dict:
        return await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": {"display_name": display_name}},
        )

    async def sign_in_with_password(self, email: str, password: str) -> Dict:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def refresh_session(self, refresh_token: str) -> Dict:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", headers=self._headers(access_token))

    async def send_password_recovery(self, email: str) -> None:
        await self._request("POST", "/auth/v1/recover", json={"email": email})

    async def update_password(self, access_token: str, new_password: str) -> Dict:
        return await self._request(
            "PUT",
            "/auth/v1/user",
            json={"password": new_password},
            headers=self._headers(access_token),
        )

    # Storage

    async def upload_object(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str,
        access_token: Optional[str] = None,
        upsert: bool = True,
    ) -> str:
        """Upload a file and return its public URL."""
        headers = self._headers(access_token)
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "true" if upsert else "false"
        try:
            await self._request("POST", f"/storage/v1/object/{bucket}/{path}", data=content, headers=headers)
        except SupabaseAuthError as e:
            raise ExternalServiceError(f"Storage upload rejected ({e.status}): {e.message}")
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"


_client: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    """FastAPI dependency returning the shared client."""
    global _client
    if _client is None:
        _client = SupabaseClient()
    return _client


async def close_supabase_client():
    global _client
    if _client is not None:
        await _client.close()
        _client = None
