"""Redirect resolution for incoming short link requests."""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .database.models import ShortenedLink
from .exceptions import DataStoreError
from .service import LinkStore


QueryParams = Mapping[str, Union[str, Sequence[str]]]

MOVED_PERMANENTLY = 301
FOUND = 302


@dataclass(frozen=True)
class RedirectOutcome:
    """Where to send a client and why.

    Attributes:
        location: Redirect target
        status_code: 301 for a matched link, 302 for the fallback
        reason: "hit", "miss" or "store_error"
        token: Token extracted from the request path
        link: Matched link (hits only)
    """

    location: str
    status_code: int
    reason: str
    token: str = ""
    link: Optional[ShortenedLink] = None


def merge_query_params(url: str, params: Optional[QueryParams]) -> str:
    """Merge request query parameters into a stored URL.

    Inbound parameters replace stored parameters of the same name (all values
    of that name at once); other stored parameters are kept. Scheme, host,
    path and fragment are untouched.

        >>> merge_query_params("https://example.com/x?a=1&b=2", {"b": "3", "c": "4"})
        'https://example.com/x?a=1&b=3&c=4'

    Args:
        url: Stored destination URL
        params: Inbound parameters; a value may be a string or a list of strings

    Returns:
        URL with merged query string
    """
    if not params:
        return url

    parts = urlsplit(url)

    merged: Dict[str, List[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        merged.setdefault(key, []).append(value)

    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            merged[key] = [str(v) for v in value]
        else:
            merged[key] = [str(value)]

    return urlunsplit(parts._replace(query=urlencode(merged, doseq=True)))


class RedirectResolver:
    """Turn a request path and query into a redirect.

    Use counts are incremented in background tasks so the redirect never
    waits on, or fails because of, the counter update.
    """

    def __init__(
        self,
        store: LinkStore,
        key_chars: str,
        default_redirect: str = "/",
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize resolver.

        Args:
            store: Link store used for lookups and use counting
            key_chars: Key alphabet; the token is the leading run of these characters
            default_redirect: Target for unknown or expired tokens
            logger: Optional logger
        """
        self.store = store
        self.key_chars = frozenset(key_chars)
        self.default_redirect = default_redirect
        self.logger = logger or logging.getLogger(__name__)
        self._pending: Set[asyncio.Task] = set()

    def extract_token(self, raw_path_token: str) -> str:
        """Return the longest prefix made only of key characters.

        Anything after the first other character (trailing slash, path
        segment, punctuation) is dropped.
        """
        return "".join(itertools.takewhile(lambda c: c in self.key_chars, raw_path_token or ""))

    async def resolve(self, raw_path_token: str, inbound_query_params: Optional[QueryParams] = None) -> RedirectOutcome:
        """Resolve a request to a redirect.

        Args:
            raw_path_token: Path component after the leading slash
            inbound_query_params: Request query parameters

        Returns:
            Redirect outcome
        """
        token = self.extract_token(raw_path_token)

        if not token:
            self.logger.info(f"No token in request path {raw_path_token!r}")
            return self._fallback(token, "miss")

        try:
            link = await self.store.find_unexpired(token)
        except DataStoreError as e:
            self.logger.error(f"Link lookup failed for {token}: {e}")
            return self._fallback(token, "store_error")

        if link is None:
            self.logger.info(f"Link not found or expired: {token}")
            return self._fallback(token, "miss")

        self._schedule_increment(link)

        location = merge_query_params(link.destination_url, inbound_query_params)
        self.logger.debug(f"Redirecting {token} -> {location}")

        return RedirectOutcome(
            location=location,
            status_code=MOVED_PERMANENTLY,
            reason="hit",
            token=token,
            link=link,
        )

    def _fallback(self, token: str, reason: str) -> RedirectOutcome:
        return RedirectOutcome(
            location=self.default_redirect,
            status_code=FOUND,
            reason=reason,
            token=token,
        )

    def _schedule_increment(self, link: ShortenedLink) -> None:
        task = asyncio.create_task(self._increment(link))
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _increment(self, link: ShortenedLink) -> None:
        try:
            await self.store.increment_use_count(link)
        except Exception as e:
            self.logger.warning(f"Failed to increment use count for {link.token}: {e}")

    async def drain(self) -> None:
        """Wait for outstanding use-count increments."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
