"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Async Supabase client for PostgreSQL operations and token verification
- Upstash Redis client for rate limiting (optional)
"""

import os
from typing import Optional

from supabase._async.client import AsyncClient
from supabase._async.client import create_client as acreate_client
from upstash_redis.asyncio import Redis as AsyncRedis

from core.logging import get_logger

logger = get_logger(__name__)

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_async_supabase_client: Optional[AsyncClient] = None
_redis_client: Optional[AsyncRedis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).

    The service role key bypasses row level security; ownership checks are
    done by the services themselves.
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _async_supabase_client


def reset_supabase() -> None:
    """Drop the cached client (shutdown and tests)."""
    global _async_supabase_client
    _async_supabase_client = None


def get_redis() -> AsyncRedis | None:
    """
    Get async Upstash Redis client (singleton).

    Returns None when Upstash is not configured; callers fall back to
    in-process state.
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            return None
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)
        logger.info("Upstash Redis client initialized")

    return _redis_client


class RedisKeys:
    """Redis key prefixes."""

    RATE_LIMIT = "rate_limit:"  # rate_limit:{client}:{path}

    @staticmethod
    def rate_limit_key(client_id: str, path: str) -> str:
        return f"{RedisKeys.RATE_LIMIT}{client_id}:{path}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    RATE_LIMIT_WINDOW = 60
