"""Lead identity cache using Redis."""

import hashlib
import logging
from typing import Optional
from uuid import UUID
import redis.asyncio as redis

from leadintel.config import settings

logger = logging.getLogger(__name__)


class IdentityCache:
    """
    Map identity keys (email, phone) to lead ids.

    The cache is advisory: every failure is logged and treated as a miss,
    and callers confirm hits against the repository.
    """

    def __init__(self, redis_client=None, ttl_seconds: int = None):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds or settings.IDENTITY_CACHE_TTL_SECONDS

    async def initialize(self, redis_url: Optional[str] = None):
        """Initialize Redis connection."""
        redis_url = redis_url or settings.REDIS_URL
        if not self.redis_client and redis_url:
            self.redis_client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            logger.info("Redis connection initialized for identity cache")

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None

    @staticmethod
    def generate_cache_key(kind: str, value: str) -> str:
        """Cache key for one identity value; the value is hashed."""
        digest = hashlib.sha256(value.lower().encode()).hexdigest()
        return f"lead:identity:{kind}:{digest}"

    async def lookup(self, email: Optional[str], phone: Optional[str]) -> Optional[UUID]:
        """Return a cached lead id, email first, or None on miss."""
        if not self.redis_client:
            return None

        for kind, value in (("email", email), ("phone", phone)):
            if not value:
                continue
            try:
                cached = await self.redis_client.get(self.generate_cache_key(kind, value))
            except Exception as e:
                logger.warning(f"Redis identity lookup failed: {e}")
                return None
            if cached:
                logger.debug(f"Identity cache hit for {kind}")
                return UUID(cached)

        return None

    async def remember(self, lead_id: UUID, email: Optional[str], phone: Optional[str]):
        """Cache both identity keys of a lead."""
        if not self.redis_client:
            return

        for kind, value in (("email", email), ("phone", phone)):
            if not value:
                continue
            try:
                await self.redis_client.setex(
                    self.generate_cache_key(kind, value),
                    self.ttl_seconds,
                    str(lead_id)
                )
            except Exception as e:
                logger.warning(f"Failed to cache lead identity: {e}")

    async def forget(self, email: Optional[str], phone: Optional[str]):
        """Drop identity keys (e.g. after a stale hit)."""
        if not self.redis_client:
            return

        keys = [self.generate_cache_key(k, v) for k, v in (("email", email), ("phone", phone)) if v]
        if not keys:
            return
        try:
            await self.redis_client.delete(*keys)
        except Exception as e:
            logger.warning(f"Failed to invalidate identity cache: {e}")
