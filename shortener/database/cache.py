"""Redis cache layer for link lookups."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis

from .models import ShortenedLink


class RedisCache:
    """Redis cache for links, keyed by token.

    Cache failures are logged and reported as misses; they never raise.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: int = 3600,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize Redis cache.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            ttl_seconds: Default TTL for cached items
            logger: Optional logger instance
        """
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.logger = logger or logging.getLogger(__name__)
        self.enabled = redis_url is not None
        self.client: Optional[redis.Redis] = None

        if redis_url:
            self.logger.info(f"Redis cache enabled with TTL={ttl_seconds}s")

    async def connect(self) -> None:
        """Connect to Redis."""
        if not self.enabled:
            return

        try:
            self.client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            await self.client.ping()
            self.logger.info("Connected to Redis")
        except Exception as e:
            self.logger.error(f"Failed to connect to Redis: {e}")
            self.enabled = False

    async def get_link(self, token: str) -> Optional[ShortenedLink]:
        """Get a cached link.

        Args:
            token: Link token

        Returns:
            Cached link or None
        """
        if not self.enabled or not self.client:
            return None

        try:
            raw = await self.client.get(self.get_cache_key(token))
        except Exception as e:
            self.logger.error(f"Cache get error: {e}")
            return None

        if raw is None:
            return None

        try:
            return ShortenedLink.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"Discarding unreadable cache entry for {token}: {e}")
            return None

    async def set_link(self, link: ShortenedLink) -> bool:
        """Cache a link.

        The entry never outlives the link: the TTL is cut down to the time
        left before ``expires_at``.

        Args:
            link: Link to cache

        Returns:
            True if successful
        """
        if not self.enabled or not self.client:
            return False

        ttl = self.ttl_seconds
        if link.expires_at is not None:
            remaining = int((link.expires_at - datetime.now(timezone.utc)).total_seconds())
            if remaining <= 0:
                return False
            ttl = min(ttl, remaining)

        try:
            await self.client.setex(self.get_cache_key(link.token), ttl, json.dumps(link.to_dict()))
            return True
        except Exception as e:
            self.logger.error(f"Cache set error: {e}")
            return False

    async def ping(self) -> bool:
        """Check if Redis answers."""
        if not self.enabled or not self.client:
            return False

        try:
            await self.client.ping()
            return True
        except Exception as e:
            self.logger.error(f"Cache ping error: {e}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self.logger.info("Redis connection closed")

    def get_cache_key(self, token: str) -> str:
        """Generate cache key for a token."""
        return f"shortener:link:{token}"
