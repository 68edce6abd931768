"""Helpers shared by database implementations."""

import asyncio
import functools
from typing import Any, Callable, TypeVar

import asyncpg

from ..exceptions import DataStoreError


F = TypeVar("F", bound=Callable[..., Any])

DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


def handle_db_errors(method: F) -> F:
    """Wrap a database coroutine method so driver failures raise DataStoreError.

    Example:
        >>> @handle_db_errors
        ... async def health(self):
        ...     async with self._get_connection() as conn:
        ...         await conn.fetchrow("SELECT 1")
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except DRIVER_ERRORS as e:
            host = getattr(self, "host", "?")
            port = getattr(self, "port", "?")
            database = getattr(self, "database", "?")
            raise DataStoreError(
                f"{method.__name__} failed on {host}:{port}/{database}: {e}"
            ) from e

    return wrapper
