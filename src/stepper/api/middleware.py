import time
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from stepper.api.responses import error_content

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        logger.info(f"Request: {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"Response: {response.status_code} in {process_time:.3f}s")

        response.headers["X-Process-Time"] = str(process_time)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        response.headers["Server"] = "Stepper"

        return response


@dataclass
class RateLimitPolicy:
    name: str
    calls: int
    period: int
    path_prefix: Optional[str] = None

    def matches(self, path: str) -> bool:
        return self.path_prefix is None or path.startswith(self.path_prefix)


class FixedWindowRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window rate limiting per client IP.

    The first policy whose prefix matches the path wins; the policy
    without a prefix is the global fallback. Each policy counts in its
    own window. X-Forwarded-For is only read when the direct peer is a
    trusted proxy.
    """

    def __init__(
        self,
        app,
        policies: List[RateLimitPolicy],
        exempt_paths: Optional[List[str]] = None,
        trusted_proxies: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.policies = sorted(policies, key=lambda p: p.path_prefix is None)
        self.exempt_paths = exempt_paths if exempt_paths is not None else ["/health"]
        self.trusted_proxies = set(trusted_proxies or [])
        # (policy, client) -> (window_start, count)
        self.windows: Dict[Tuple[str, str], Tuple[float, int]] = {}
        self.sweep_interval = min((p.period for p in self.policies), default=60)
        self.last_sweep = 0.0

    def _get_policy(self, path: str) -> Optional[RateLimitPolicy]:
        for policy in self.policies:
            if policy.matches(path):
                return policy
        return None

    def _get_client_key(self, request: Request) -> str:
        peer = request.client.host if request.client else "unknown"
        if peer in self.trusted_proxies:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return peer

    def _evict_expired(self, now: float):
        """Drop windows whose period has elapsed."""
        if now - self.last_sweep < self.sweep_interval:
            return
        self.last_sweep = now
        periods = {policy.name: policy.period for policy in self.policies}
        expired = [
            key for key, (window_start, _) in self.windows.items()
            if now - window_start >= periods.get(key[0], 0)
        ]
        for key in expired:
            del self.windows[key]

    def _hit(self, policy: RateLimitPolicy, client: str, now: float) -> Tuple[bool, int, float]:
        """Count a request. Returns (allowed, remaining, window_reset)."""
        self._evict_expired(now)
        key = (policy.name, client)
        window_start, count = self.windows.get(key, (now, 0))
        if now - window_start >= policy.period:
            window_start, count = now, 0

        reset_at = window_start + policy.period
        if count >= policy.calls:
            self.windows[key] = (window_start, count)
            return False, 0, reset_at

        count += 1
        self.windows[key] = (window_start, count)
        return True, policy.calls - count, reset_at

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        policy = self._get_policy(path)
        if path in self.exempt_paths or policy is None:
            return await call_next(request)

        client = self._get_client_key(request)
        now = time.time()
        allowed, remaining, reset_at = self._hit(policy, client, now)

        if not allowed:
            retry_after = max(1, int(reset_at - now))
            logger.warning(f"Rate limit '{policy.name}' exceeded for {client} on {path}")
            return JSONResponse(
                status_code=429,
                content=error_content("Too many requests. Please try again later."),
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(policy.calls)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_at))
        return response
