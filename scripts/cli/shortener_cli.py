#!/usr/bin/env python3
"""
Command-line interface for the link shortener.

Usage:
    python shortener_cli.py shorten <url> [--custom-key KEY] [--owner KIND:ID] [--expires-at ISO] [--fresh]
    python shortener_cli.py resolve <path> [--query QUERY]
    python shortener_cli.py get <token>
    python shortener_cli.py list [--owner KIND:ID] [--limit N]
    python shortener_cli.py health

Key and database settings are read from the environment like the server's
(DATABASE_URL, KEY_CHARS, UNIQUE_KEY_LENGTH, ...).
"""

import argparse
import asyncio
import json
import sys
import os
from datetime import datetime
from typing import Optional
from urllib.parse import parse_qs

# Add repository root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from app import build_store
from config import load_config
from shortener.database.models import OwnerRef
from shortener.exceptions import ShortenerError
from shortener.resolver import RedirectResolver
from shortener.common.logging_config import setup_logging


def parse_owner(value: Optional[str]) -> Optional[OwnerRef]:
    """Parse KIND:ID into an owner reference."""
    if not value:
        return None
    kind, sep, owner_id = value.partition(":")
    if not sep or not kind or not owner_id:
        raise argparse.ArgumentTypeError(f"Owner must look like KIND:ID (given: {value!r})")
    return OwnerRef(kind=kind, id=owner_id)


def print_result(payload: dict, ok: bool = True) -> int:
    print(json.dumps(payload, indent=2, default=str), file=sys.stdout if ok else sys.stderr)
    return 0 if ok else 1


class ShortenerCLI:
    """Command-line interface for the link shortener."""

    def __init__(self, db_url: Optional[str] = None, redis_url: Optional[str] = None, verbose: bool = False):
        self.config = load_config()
        if db_url:
            self.config.database_url = db_url
        if redis_url:
            self.config.redis_url = redis_url
        self.logger = setup_logging(level="DEBUG" if verbose else "WARNING")
        self.store = None
        self.resolver = None

    async def initialize(self):
        """Initialize database, cache and store."""
        self.store = await build_store(self.config, self.logger)
        self.resolver = RedirectResolver(
            store=self.store,
            key_chars=self.config.key_chars,
            default_redirect=self.config.default_redirect,
            logger=self.logger,
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self.resolver:
            await self.resolver.drain()
        if self.store:
            await self.store.close()

    async def shorten(
        self,
        url: str,
        custom_key: Optional[str] = None,
        owner: Optional[OwnerRef] = None,
        expires_at: Optional[datetime] = None,
        fresh: bool = False,
    ):
        """Shorten a URL."""
        try:
            link = await self.store.generate(
                url,
                owner=owner,
                custom_key=custom_key,
                expires_at=expires_at,
                fresh=fresh,
            )
        except ShortenerError as e:
            return print_result({"success": False, "error": str(e)}, ok=False)

        return print_result({"success": True, **link.to_dict()})

    async def resolve(self, path: str, query: str = ""):
        """Resolve a request path the way the redirect endpoint does (counts a use)."""
        params = parse_qs(query, keep_blank_values=True) if query else {}
        outcome = await self.resolver.resolve(path, params)

        return print_result({
            "success": outcome.reason == "hit",
            "token": outcome.token,
            "status_code": outcome.status_code,
            "location": outcome.location,
            "reason": outcome.reason,
        }, ok=outcome.reason == "hit")

    async def get(self, token: str):
        """Show a link, including expired ones."""
        link = await self.store.find_link(token)

        if not link:
            return print_result({"success": False, "error": f"Key '{token}' not found"}, ok=False)

        return print_result({"success": True, "expired": link.is_expired(), **link.to_dict()})

    async def list_links(self, owner: Optional[OwnerRef] = None, limit: int = 100):
        """List recent links."""
        links = await self.store.list_links(owner=owner, limit=limit)

        return print_result({
            "success": True,
            "count": len(links),
            "links": [link.to_dict() for link in links],
        })

    async def health(self):
        """Check service health."""
        health_status = await self.store.health_check()
        stats = await self.store.get_statistics()

        return print_result({
            "success": health_status["overall"],
            "health": health_status,
            "statistics": stats,
        }, ok=health_status["overall"])


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Link Shortener CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Shorten a URL
  %(prog)s shorten https://example.com/long/url

  # Shorten with custom key, owner and expiration
  %(prog)s shorten https://example.com/long/url --custom-key mylink --owner user:42 --expires-at 2030-01-01T00:00:00+00:00

  # Resolve a path with query parameters
  %(prog)s resolve mylink --query "utm_source=cli"

  # Show a link
  %(prog)s get mylink

  # List a user's links
  %(prog)s list --owner user:42 --limit 10
        """
    )

    parser.add_argument("--db-url", help="Database URL (default: from DATABASE_URL env)")
    parser.add_argument("--redis-url", help="Redis connection URL (default: from REDIS_URL env)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    shorten_parser = subparsers.add_parser("shorten", help="Shorten a URL")
    shorten_parser.add_argument("url", help="URL to shorten")
    shorten_parser.add_argument("--custom-key", help="Custom key")
    shorten_parser.add_argument("--owner", type=parse_owner, help="Owner as KIND:ID")
    shorten_parser.add_argument("--expires-at", type=datetime.fromisoformat, help="Expiration time (ISO 8601)")
    shorten_parser.add_argument("--fresh", action="store_true", help="Always create a new link")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a request path")
    resolve_parser.add_argument("path", help="Request path without the leading slash")
    resolve_parser.add_argument("--query", default="", help="Query string to merge")

    get_parser = subparsers.add_parser("get", help="Show a link")
    get_parser.add_argument("token", help="Key to lookup")

    list_parser = subparsers.add_parser("list", help="List recent links")
    list_parser.add_argument("--owner", type=parse_owner, help="Owner as KIND:ID")
    list_parser.add_argument("--limit", type=int, default=100, help="Maximum number to return")

    subparsers.add_parser("health", help="Check service health")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    cli = ShortenerCLI(db_url=args.db_url, redis_url=args.redis_url, verbose=args.verbose)

    try:
        await cli.initialize()

        if args.command == "shorten":
            return await cli.shorten(args.url, args.custom_key, args.owner, args.expires_at, args.fresh)
        elif args.command == "resolve":
            return await cli.resolve(args.path, args.query)
        elif args.command == "get":
            return await cli.get(args.token)
        elif args.command == "list":
            return await cli.list_links(args.owner, args.limit)
        elif args.command == "health":
            return await cli.health()
        else:
            parser.print_help()
            return 1

    finally:
        await cli.cleanup()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
