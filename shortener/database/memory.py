"""In-memory implementation of the link database.

Selected with ``DATABASE_URL=memory://``. Used for local development and the
test suite; data is lost when the process exits.
"""

import itertools
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .base import LinkDBBase
from .models import ShortenedLink, OwnerRef


class LinkMemoryDB(LinkDBBase):
    """Process-local link database.

    ``insert_link`` checks and stores the token without awaiting in between,
    so concurrent inserts on one event loop cannot both claim a token.
    """

    def __init__(self, db_config: str = "memory://", logger: Optional[logging.Logger] = None):
        super().__init__(db_config)
        self.logger = logger or logging.getLogger(__name__)
        self._links: Dict[str, ShortenedLink] = {}
        self._ids = itertools.count(1)

    async def create_tables(self) -> None:
        pass

    async def insert_link(self, link: ShortenedLink) -> Optional[ShortenedLink]:
        if link.token in self._links:
            self.logger.debug(f"Token already taken: {link.token}")
            return None

        stored = replace(
            link,
            id=next(self._ids),
            use_count=0,
            created_at=datetime.now(timezone.utc),
        )
        self._links[link.token] = stored
        return stored

    async def find_unexpired(self, token: str, now: datetime) -> Optional[ShortenedLink]:
        link = self._links.get(token)
        if link is None or link.is_expired(now):
            return None
        return link

    async def find_by_token(self, token: str) -> Optional[ShortenedLink]:
        return self._links.get(token)

    async def find_by_destination(
        self,
        destination_url: str,
        owner: Optional[OwnerRef],
        now: datetime,
    ) -> Optional[ShortenedLink]:
        matches = [
            link for link in self._links.values()
            if link.destination_url == destination_url
            and link.owner == owner
            and not link.is_expired(now)
        ]
        return min(matches, key=lambda link: link.id) if matches else None

    async def increment_use_count(self, link_id: int) -> None:
        for token, link in self._links.items():
            if link.id == link_id:
                self._links[token] = replace(link, use_count=link.use_count + 1)
                return

        self.logger.warning(f"Cannot increment use count - link not found: {link_id}")

    async def list_links(self, owner: Optional[OwnerRef] = None, limit: int = 100) -> List[ShortenedLink]:
        links = [link for link in self._links.values() if owner is None or link.owner == owner]
        links.sort(key=lambda link: link.id, reverse=True)
        return links[:limit]

    async def get_statistics(self) -> Dict[str, Any]:
        return {
            "total_links": len(self._links),
            "total_uses": sum(link.use_count for link in self._links.values()),
            "database": "memory",
        }

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass
