"""Abstract base class for link database implementations."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any

from .models import ShortenedLink, OwnerRef


class LinkDBBase(ABC):
    """Abstract base class for link database operations.

    Implementations must enforce token uniqueness atomically: two concurrent
    ``insert_link`` calls with the same token must never both succeed. A
    "does this token exist" query followed by an insert does not satisfy this.
    """

    def __init__(self, db_config: str):
        """Initialize database connection.

        Args:
            db_config: Database connection string
        """
        self.db_config = db_config

    @abstractmethod
    async def create_tables(self) -> None:
        """Create tables and indexes if they don't exist."""
        pass

    @abstractmethod
    async def insert_link(self, link: ShortenedLink) -> Optional[ShortenedLink]:
        """Insert a new link.

        Args:
            link: Link to insert (id and created_at are assigned by the store)

        Returns:
            The stored link, or None if the token is already taken

        Raises:
            DataStoreError: On connection or driver failure
        """
        pass

    @abstractmethod
    async def find_unexpired(self, token: str, now: datetime) -> Optional[ShortenedLink]:
        """Get the link with exactly this token that has not expired at ``now``.

        Args:
            token: The token to lookup
            now: Reference time; links with expires_at <= now are skipped

        Returns:
            The link if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_token(self, token: str) -> Optional[ShortenedLink]:
        """Get the link with exactly this token, expired or not."""
        pass

    @abstractmethod
    async def find_by_destination(
        self,
        destination_url: str,
        owner: Optional[OwnerRef],
        now: datetime,
    ) -> Optional[ShortenedLink]:
        """Get the oldest unexpired link for a destination URL and owner.

        Args:
            destination_url: Normalized destination URL
            owner: Owner to match; None matches links without an owner
            now: Reference time for expiration

        Returns:
            Matching link or None
        """
        pass

    @abstractmethod
    async def increment_use_count(self, link_id: int) -> None:
        """Increment the use count of a link.

        Args:
            link_id: Primary key of the link
        """
        pass

    @abstractmethod
    async def list_links(self, owner: Optional[OwnerRef] = None, limit: int = 100) -> List[ShortenedLink]:
        """List links, most recent first.

        Args:
            owner: Only list links of this owner (all links if None)
            limit: Maximum number of links to return

        Returns:
            List of links
        """
        pass

    @abstractmethod
    async def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with total_links, total_uses and database name
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close database connections."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if database is healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
