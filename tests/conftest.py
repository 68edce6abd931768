"""Pytest configuration and fixtures."""

import pytest
from httpx import AsyncClient, ASGITransport

from config import Config
from shortener.database.memory import LinkMemoryDB
from shortener.keygen import KeyGenerator
from shortener.resolver import RedirectResolver
from shortener.service import LinkStore
from shortener.common.logging_config import setup_logging
from web_app import create_app


KEY_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"


@pytest.fixture
def logger():
    """Create test logger."""
    return setup_logging(level="DEBUG")


@pytest.fixture
def test_db(logger):
    """Create in-memory database instance."""
    return LinkMemoryDB(logger=logger)


@pytest.fixture
def key_generator():
    """Create key generator."""
    return KeyGenerator(key_chars=KEY_CHARS, unique_key_length=5)


@pytest.fixture
def store(test_db, key_generator, logger) -> LinkStore:
    """Create link store instance."""
    return LinkStore(
        db=test_db,
        key_generator=key_generator,
        cache=None,  # No cache for tests
        logger=logger,
    )


@pytest.fixture
def resolver(store, logger) -> RedirectResolver:
    """Create redirect resolver."""
    return RedirectResolver(
        store=store,
        key_chars=KEY_CHARS,
        default_redirect="https://fallback.example.com/",
        logger=logger,
    )


@pytest.fixture
def config():
    return Config(
        database_url="memory://",
        base_url="http://testserver",
        key_chars=KEY_CHARS,
        default_redirect="https://fallback.example.com/",
    )


@pytest.fixture
def app(store, resolver, config):
    """Create test FastAPI app."""
    return create_app(
        store_instance=store,
        resolver_instance=resolver,
        config=config,
    )


@pytest.fixture
async def client(app):
    """Create test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def sample_urls():
    """Sample URLs for testing."""
    return [
        "https://example.com/test",
        "https://github.com/user/repo",
        "https://stackoverflow.com/questions/123456",
    ]
