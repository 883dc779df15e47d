"""
Redis Module - Upstash Redis clients

Provides singleton instances of:
- Async Upstash Redis client for the remote cart API
- Sync Upstash Redis client for the durable local cart store

Uses the standard Upstash env var names:
- UPSTASH_REDIS_REST_URL
- UPSTASH_REDIS_REST_TOKEN
"""

import os
from typing import Optional

from upstash_redis import Redis
from upstash_redis.asyncio import Redis as AsyncRedis


UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_redis_client: Optional[AsyncRedis] = None
_sync_redis_client: Optional[Redis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Used by the remote cart API to hold authoritative carts.
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


def get_redis_sync() -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Used as the reload-surviving medium behind the local cart store, whose
    operations run synchronously inside replica mutations.
    """
    global _sync_redis_client

    if _sync_redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _sync_redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _sync_redis_client


def is_redis_configured() -> bool:
    return bool(UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN)


class RedisKeys:
    """Redis key prefixes for different data types."""

    # Authoritative cart held by the remote cart API
    CART = "cart:"  # cart:{identity}

    # Local durable store (namespaced per device)
    LOCAL_CART = "local_cart"
    LOCAL_PREFERENCES = "local_cart_preferences"
    SESSION_ID = "session_id"

    @staticmethod
    def cart_key(identity: str) -> str:
        return f"{RedisKeys.CART}{identity}"

