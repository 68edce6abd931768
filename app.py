#!/usr/bin/env python3
"""
Main entry point for the link shortener service.

Concurrency: requests are served concurrently via async I/O (FastAPI +
asyncpg connection pool + redis.asyncio). Set WORKERS > 1 for multi-process
scaling; token uniqueness is enforced by the database, so workers need no
coordination.

Usage:
    python app.py

Environment variables:
    DATABASE_URL - PostgreSQL connection URL (memory:// for a throwaway store)
    DATABASE_CREATE_TABLES - Set to true to create tables on startup
    REDIS_URL - Redis connection URL (optional)
    BASE_URL - Base URL for short links
    KEY_CHARS, UNIQUE_KEY_LENGTH, FORBIDDEN_KEYS - Key generation
    DEFAULT_REDIRECT - Target for unknown or expired keys
    PORT - Port to listen on
    WORKERS - Number of uvicorn worker processes (default 1)
    LOG_LEVEL - Logging level
"""

import signal
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from config import Config, load_config
from shortener.database import create_database
from shortener.database.cache import RedisCache
from shortener.keygen import KeyGenerator
from shortener.resolver import RedirectResolver
from shortener.service import LinkStore
from shortener.common.logging_config import setup_logging
from web_app import create_app


async def build_store(config: Config, logger) -> LinkStore:
    """Connect the database and cache and build the link store."""
    logger.info(f"Connecting to database at {config.database_url.split('@')[-1]}")
    db = create_database(config.database_url, logger=logger)
    if config.database_create_tables:
        await db.create_tables()

    cache = None
    if config.redis_url:
        logger.info(f"Connecting to Redis at {config.redis_url}")
        cache = RedisCache(
            redis_url=config.redis_url,
            ttl_seconds=config.cache_ttl_seconds,
            logger=logger,
        )
        await cache.connect()
    else:
        logger.info("Redis caching disabled")

    key_generator = KeyGenerator(
        key_chars=config.key_chars,
        unique_key_length=config.unique_key_length,
        forbidden_keys=config.forbidden_keys,
    )

    return LinkStore(
        db=db,
        key_generator=key_generator,
        cache=cache,
        logger=logger,
        enable_custom_keys=config.enable_custom_keys,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    config = app.state.config
    logger = app.state.logger

    logger.info("Starting link shortener service...")

    store = await build_store(config, logger)
    resolver = RedirectResolver(
        store=store,
        key_chars=config.key_chars,
        default_redirect=config.default_redirect,
        logger=logger,
    )

    app.state.store = store
    app.state.resolver = resolver

    logger.info("Service started successfully")

    yield

    logger.info("Shutting down link shortener service...")

    await resolver.drain()
    await store.close()

    logger.info("Service stopped")


def create_server_app() -> FastAPI:
    """Build the app from environment configuration.

    uvicorn calls this in every worker process when WORKERS > 1.
    """
    config = load_config()

    logger = setup_logging(
        level=config.log_level,
        log_file=config.log_file,
        json_format=config.log_json,
    )

    app = create_app(
        store_instance=None,  # Set in lifespan
        resolver_instance=None,
        config=config,
    )
    app.state.logger = logger
    app.router.lifespan_context = lifespan
    return app


def main():
    """Main entry point."""
    app = create_server_app()
    config = app.state.config
    logger = app.state.logger

    logger.info("Link Shortener Service")

    if config.workers > 1:
        # Worker processes import the app themselves, so uvicorn needs an import string
        logger.info(f"Starting {config.workers} workers on {config.host}:{config.port}")
        uvicorn.run(
            "app:create_server_app",
            factory=True,
            host=config.host,
            port=config.port,
            workers=config.workers,
            log_level=config.log_level.lower(),
            access_log=True,
        )
        return

    uvicorn_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True,
    )

    server = uvicorn.Server(uvicorn_config)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        server.should_exit = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        logger.info(f"Starting server on {config.host}:{config.port}")
        server.run()
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
