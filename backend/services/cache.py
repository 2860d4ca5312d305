"""
Redis Cache Service

Short-lived keys for webhook delivery de-duplication. Every helper fails
open: when Redis is unavailable callers behave as if nothing was cached.
"""

import hashlib
import logging

import redis.asyncio as aioredis

from backend.config import get_settings

logger = logging.getLogger(__name__)

# Lazy-initialized connection pool
_redis: aioredis.Redis | None = None


async def _get_redis() -> aioredis.Redis:
    """Get or create Redis connection."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
        )
    return _redis


async def claim_once(key: str, ttl: int) -> bool:
    """
    Atomically claim a key for ttl seconds.

    Returns False only when the key was already claimed; Redis errors
    return True so processing continues.
    """
    try:
        r = await _get_redis()
        claimed = await r.set(key, "1", ex=ttl, nx=True)
        return bool(claimed)
    except (aioredis.RedisError, OSError) as e:
        logger.warning(f"Dedupe check skipped, Redis unavailable: {key}: {e}")
        return True


async def release(key: str) -> bool:
    """Delete a claimed key so a failed delivery can be retried."""
    try:
        r = await _get_redis()
        await r.delete(key)
        return True
    except (aioredis.RedisError, OSError) as e:
        logger.debug(f"Cache release failed: {key}: {e}")
        return False


async def close():
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


# ── Key Builders ──────────────────────────────────────


def webhook_delivery_key(config_id: str, body: bytes) -> str:
    """Cache key for one webhook delivery (digest of the raw body)."""
    digest = hashlib.sha256(body).hexdigest()
    return f"hr_webhook:{config_id}:{digest}"
