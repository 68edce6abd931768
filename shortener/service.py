"""Link creation and lookup for the link shortener."""

import asyncio
import logging
from dataclasses import replace
from typing import Optional, Dict, Any, List, Union
from datetime import datetime, timezone

from .keygen import KeyGenerator
from .normalizer import clean_url
from .exceptions import (
    ShortenerError,
    InvalidURLError,
    InvalidCustomKeyError,
    CustomKeyTakenError,
    KeyAllocationExhaustedError,
)
from .database.base import LinkDBBase
from .database.cache import RedisCache
from .database.models import ShortenedLink, OwnerRef
from .common.validators import is_valid_custom_key


# First attempt plus five retries
MAX_KEY_ATTEMPTS = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LinkStore:
    """Create, find and count shortened links.

    Token uniqueness is left to the database's atomic constraint. A generated
    key that turns out to be taken is replaced by a fresh one, up to
    ``MAX_KEY_ATTEMPTS`` inserts in total. Custom keys get exactly one insert.
    """

    def __init__(
        self,
        db: LinkDBBase,
        key_generator: Optional[KeyGenerator] = None,
        cache: Optional[RedisCache] = None,
        logger: Optional[logging.Logger] = None,
        enable_custom_keys: bool = True,
    ):
        """Initialize link store.

        Args:
            db: Database instance
            key_generator: Optional key generator (default alphabet and length)
            cache: Optional cache instance
            logger: Optional logger
            enable_custom_keys: Whether callers may choose their own keys
        """
        self.db = db
        self.key_generator = key_generator or KeyGenerator()
        self.cache = cache
        self.logger = logger or logging.getLogger(__name__)
        self.enable_custom_keys = enable_custom_keys

    async def create_unique(
        self,
        destination_url: str,
        owner: Optional[OwnerRef] = None,
        expires_at: Optional[datetime] = None,
        custom_key: Optional[str] = None,
    ) -> ShortenedLink:
        """Insert a new link under a unique key.

        Args:
            destination_url: Normalized destination URL
            owner: Optional owner
            expires_at: Optional expiration time (naive values are taken as UTC)
            custom_key: Optional caller-chosen key

        Returns:
            The stored link

        Raises:
            InvalidURLError: If destination_url is empty
            InvalidCustomKeyError: If custom_key is not allowed
            CustomKeyTakenError: If custom_key is already in use
            KeyAllocationExhaustedError: If every generated key was taken
        """
        if not destination_url:
            raise InvalidURLError("URL is required")

        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        link = ShortenedLink(
            token="",
            destination_url=destination_url,
            owner=owner,
            expires_at=expires_at,
        )

        if custom_key:
            return await self._insert_custom(link, custom_key)
        return await self._insert_generated(link)

    async def _insert_custom(self, link: ShortenedLink, custom_key: str) -> ShortenedLink:
        if not self.enable_custom_keys:
            raise InvalidCustomKeyError("Custom keys are not enabled")

        is_valid, error = is_valid_custom_key(custom_key, self.key_generator.key_chars)
        if not is_valid:
            raise InvalidCustomKeyError(f"Invalid key: {error}")

        stored = await self._insert(replace(link, token=custom_key))
        if stored is None:
            raise CustomKeyTakenError(custom_key)

        self.logger.info(f"Created link: {stored.token} -> {stored.destination_url}")
        return stored

    async def _insert_generated(self, link: ShortenedLink) -> ShortenedLink:
        for attempt in range(1, MAX_KEY_ATTEMPTS + 1):
            candidate = replace(link, token=self.key_generator.generate())
            stored = await self._insert(candidate)

            if stored is not None:
                self.logger.info(f"Created link: {stored.token} -> {stored.destination_url}")
                return stored

            self.logger.info(
                f"Key {candidate.token} already taken (attempt {attempt}/{MAX_KEY_ATTEMPTS}), "
                f"retrying with a different key"
            )

        self.logger.warning(f"Too many key collisions for {link.destination_url}, giving up")
        raise KeyAllocationExhaustedError(MAX_KEY_ATTEMPTS)

    async def _insert(self, link: ShortenedLink) -> Optional[ShortenedLink]:
        # Shielded so a disconnecting client cannot cancel a write in flight
        return await asyncio.shield(self.db.insert_link(link))

    async def find_unexpired(self, token: str) -> Optional[ShortenedLink]:
        """Get the link for a token unless it expired.

        Args:
            token: Exact token to lookup

        Returns:
            Link or None
        """
        now = utcnow()

        if self.cache:
            cached = await self.cache.get_link(token)
            if cached and not cached.is_expired(now):
                self.logger.debug(f"Cache hit for {token}")
                return cached

        link = await self.db.find_unexpired(token, now)

        if link and self.cache:
            await self.cache.set_link(link)

        return link

    async def find_link(self, token: str) -> Optional[ShortenedLink]:
        """Get the link for a token, expired or not."""
        return await self.db.find_by_token(token)

    async def generate(
        self,
        destination: Union[str, ShortenedLink],
        owner: Optional[OwnerRef] = None,
        custom_key: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        fresh: bool = False,
    ) -> ShortenedLink:
        """Get a link for a destination, raising on failure.

        An existing link passed as destination is returned as is when it
        already belongs to ``owner``; otherwise a link to the same URL is made
        for the new owner.

        Args:
            destination: Destination URL or an existing link
            owner: Optional owner
            custom_key: Optional caller-chosen key
            expires_at: Optional expiration time
            fresh: Always create a new link instead of reusing one with the
                same URL and owner

        Returns:
            The link

        Raises:
            ShortenerError: Any of the errors raised by ``clean_url`` and ``create_unique``
            DataStoreError: If the database fails
        """
        if isinstance(destination, ShortenedLink):
            if destination.owner == owner:
                return destination
            return await self.generate(
                destination.destination_url,
                owner=owner,
                custom_key=custom_key,
                expires_at=expires_at,
                fresh=fresh,
            )

        url = clean_url(destination)

        if not fresh:
            existing = await self.db.find_by_destination(url, owner, utcnow())
            if existing:
                self.logger.debug(f"Reusing link {existing.token} for {url}")
                return existing

        return await self.create_unique(url, owner=owner, expires_at=expires_at, custom_key=custom_key)

    async def generate_or_none(
        self,
        destination: Union[str, ShortenedLink],
        owner: Optional[OwnerRef] = None,
        custom_key: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        fresh: bool = False,
    ) -> Optional[ShortenedLink]:
        """Same as ``generate`` but returns None instead of raising."""
        try:
            return await self.generate(
                destination,
                owner=owner,
                custom_key=custom_key,
                expires_at=expires_at,
                fresh=fresh,
            )
        except ShortenerError as e:
            self.logger.info(f"Link not generated for {destination!r}: {e}")
        except Exception:
            self.logger.exception(f"Unexpected error generating link for {destination!r}")
        return None

    async def increment_use_count(self, link: ShortenedLink) -> None:
        """Count one use of a link."""
        if link.id is None:
            self.logger.warning(f"Cannot count use of unsaved link {link.token}")
            return
        await self.db.increment_use_count(link.id)

    async def list_links(self, owner: Optional[OwnerRef] = None, limit: int = 100) -> List[ShortenedLink]:
        """List links, most recent first.

        Args:
            owner: Only list this owner's links
            limit: Maximum number to return

        Returns:
            List of links
        """
        return await self.db.list_links(owner=owner, limit=limit)

    async def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics.

        Returns:
            Dictionary with statistics
        """
        db_stats = await self.db.get_statistics()

        return {
            **db_stats,
            "cache_enabled": self.cache is not None and self.cache.enabled,
            "custom_keys_enabled": self.enable_custom_keys,
        }

    async def health_check(self) -> Dict[str, bool]:
        """Perform health check.

        Returns:
            Dictionary with health status
        """
        db_healthy = await self.db.health_check()

        cache_healthy = True
        if self.cache and self.cache.enabled:
            cache_healthy = await self.cache.ping()

        return {
            "database": db_healthy,
            "cache": cache_healthy,
            "overall": db_healthy and cache_healthy,
        }

    async def close(self) -> None:
        """Close database and cache connections."""
        await self.db.close()
        if self.cache:
            await self.cache.close()
