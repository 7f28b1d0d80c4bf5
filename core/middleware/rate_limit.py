"""Rate Limiting Middleware for FastAPI.

Provides rate limiting using Upstash Redis, with an in-process fallback
when Redis is not configured or unreachable.
"""

import os
import re
import time
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.db import TTL, RedisKeys
from core.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

RATE_LIMIT_PER_MINUTE = int(os.environ.get("RATE_LIMIT_PER_MINUTE", "60"))

# Prefixes whose mutating requests are limited
LIMITED_PREFIXES = ("/cart", "/zones/admin", "/floors/admin", "/coupons")
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

# UUIDs and numeric ids collapse into one key per route
_ID_SEGMENT = re.compile(
    r"/(?:[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}|\d+)(?=/|$)"
)


def is_rate_limited_path(method: str, path: str) -> bool:
    if method.upper() in SAFE_METHODS:
        return False
    return path.startswith(LIMITED_PREFIXES)


def normalize_path(path: str) -> str:
    """Replace id segments so /cart/items/<uuid> and /cart/items/7 share a key."""
    return _ID_SEGMENT.sub("/{id}", path.rstrip("/") or "/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware using Upstash Redis.

    Limits mutating requests per client per route. The in-memory fallback
    drops keys whose window has passed, so it stays bounded by the number
    of clients active within one window.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_PER_MINUTE,
        redis_client: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.redis_client = redis_client
        self.clock = clock
        self._cache: dict[str, list[float]] = {}  # Fallback in-memory cache
        self._last_sweep = clock()

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        if not is_rate_limited_path(request.method, request.url.path):
            return await call_next(request)  # type: ignore[no-any-return]

        # Get client IP
        client_ip = request.client.host if request.client else "unknown"
        if forwarded_for := request.headers.get("X-Forwarded-For"):
            # Use first IP from X-Forwarded-For (original client)
            client_ip = forwarded_for.split(",")[0].strip()

        key = RedisKeys.rate_limit_key(client_ip, normalize_path(request.url.path))

        if await self._is_rate_limited(key):
            logger.warning(
                f"Rate limit exceeded for {sanitize_string_for_logging(client_ip)} on {request.url.path}"
            )
            # Exceptions raised here bypass the app's handlers
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests. Please try again later."},
                headers={"Retry-After": str(TTL.RATE_LIMIT_WINDOW)},
            )

        await self._record_request(key)

        return await call_next(request)  # type: ignore[no-any-return]

    async def _is_rate_limited(self, key: str) -> bool:
        """Check if key is rate limited."""
        if self.redis_client:
            try:
                current = await self.redis_client.get(key)
                return current is not None and int(current) >= self.requests_per_minute
            except Exception as e:
                logger.warning(f"Redis rate limit check failed: {e}, falling back to in-memory")

        # In-memory fallback
        return len(self._live_timestamps(key, self.clock())) >= self.requests_per_minute

    async def _record_request(self, key: str) -> None:
        """Record a request for rate limiting."""
        if self.redis_client:
            try:
                count = await self.redis_client.incr(key)
                if count == 1:
                    # First request in the window starts the expiry clock
                    await self.redis_client.expire(key, TTL.RATE_LIMIT_WINDOW)
                return
            except Exception as e:
                logger.warning(f"Redis rate limit record failed: {e}, falling back to in-memory")

        # In-memory fallback
        now = self.clock()
        self._cache[key] = self._live_timestamps(key, now) + [now]
        if now - self._last_sweep >= TTL.RATE_LIMIT_WINDOW:
            self._sweep(now)

    def _live_timestamps(self, key: str, now: float) -> list[float]:
        """Timestamps of key still inside the window; empty keys are dropped."""
        live = [t for t in self._cache.get(key, ()) if now - t < TTL.RATE_LIMIT_WINDOW]
        if live:
            self._cache[key] = live
        else:
            self._cache.pop(key, None)
        return live

    def _sweep(self, now: float) -> None:
        for key in list(self._cache):
            self._live_timestamps(key, now)
        self._last_sweep = now
