"""Database layer for the link shortener."""

from .base import LinkDBBase
from .memory import LinkMemoryDB
from .postgres import LinkPostgresDB
from .models import ShortenedLink, OwnerRef

__all__ = ["LinkDBBase", "LinkMemoryDB", "LinkPostgresDB", "ShortenedLink", "OwnerRef", "create_database"]


def create_database(database_url: str, logger=None) -> LinkDBBase:
    """Pick the database implementation for a connection URL.

    Args:
        database_url: ``memory://`` or a PostgreSQL URL
        logger: Optional logger

    Returns:
        Database instance
    """
    if database_url.startswith("memory://"):
        return LinkMemoryDB(database_url, logger=logger)
    return LinkPostgresDB(db_config=database_url, logger=logger)
