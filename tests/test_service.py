"""Tests for service layer."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shortener.database.models import ShortenedLink, OwnerRef
from shortener.exceptions import (
    InvalidURLError,
    InvalidCustomKeyError,
    CustomKeyTakenError,
    KeyAllocationExhaustedError,
    DataStoreError,
)
from shortener.service import LinkStore, MAX_KEY_ATTEMPTS


USER_1 = OwnerRef(kind="user", id="1")
USER_2 = OwnerRef(kind="user", id="2")


class TestCreateUnique:
    """Test link creation and key allocation."""

    @pytest.mark.asyncio
    async def test_generated_key_has_configured_length_and_alphabet(self, store, sample_urls):
        for url in sample_urls:
            link = await store.create_unique(url)

            assert len(link.token) == 5
            assert set(link.token) <= set(store.key_generator.key_chars)
            assert link.destination_url == url
            assert link.id is not None
            assert link.use_count == 0

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, store):
        links = [await store.create_unique(f"https://example.com/{i}") for i in range(50)]

        assert len({link.token for link in links}) == 50

    @pytest.mark.asyncio
    async def test_create_with_custom_key(self, store, sample_urls):
        link = await store.create_unique(sample_urls[0], custom_key="mylink")

        assert link.token == "mylink"
        assert (await store.find_unexpired("mylink")).destination_url == sample_urls[0]

    @pytest.mark.asyncio
    async def test_custom_key_taken_fails_without_retry(self, store, test_db, sample_urls):
        """A taken custom key is reported after a single insert."""
        await store.create_unique(sample_urls[0], custom_key="taken")
        test_db.insert_link = AsyncMock(wraps=test_db.insert_link)

        with pytest.raises(CustomKeyTakenError) as exc_info:
            await store.create_unique(sample_urls[1], custom_key="taken")

        assert exc_info.value.key == "taken"
        assert test_db.insert_link.await_count == 1
        assert (await store.find_unexpired("taken")).destination_url == sample_urls[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("custom_key", ["has-dash", "UPPER", "spa ce", "api", "health"])
    async def test_invalid_custom_key(self, store, test_db, sample_urls, custom_key):
        test_db.insert_link = AsyncMock(wraps=test_db.insert_link)

        with pytest.raises(InvalidCustomKeyError):
            await store.create_unique(sample_urls[0], custom_key=custom_key)

        test_db.insert_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_keys_disabled(self, test_db, key_generator, logger, sample_urls):
        store = LinkStore(db=test_db, key_generator=key_generator, logger=logger, enable_custom_keys=False)

        with pytest.raises(InvalidCustomKeyError, match="not enabled"):
            await store.create_unique(sample_urls[0], custom_key="mylink")

    @pytest.mark.asyncio
    async def test_collision_retries_with_new_key(self, store, sample_urls):
        """A generated key that is already taken is replaced by a fresh one."""
        await store.create_unique(sample_urls[0], custom_key="aaaaa")

        with patch.object(store.key_generator, "generate", side_effect=["aaaaa", "aaaaa", "bbbbb"]) as generate:
            link = await store.create_unique(sample_urls[1])

        assert link.token == "bbbbb"
        assert generate.call_count == 3

    @pytest.mark.asyncio
    async def test_allocation_exhausted_after_max_attempts(self, store, test_db, sample_urls):
        await store.create_unique(sample_urls[0], custom_key="aaaaa")
        test_db.insert_link = AsyncMock(wraps=test_db.insert_link)

        with patch.object(store.key_generator, "generate", return_value="aaaaa"):
            with pytest.raises(KeyAllocationExhaustedError) as exc_info:
                await store.create_unique(sample_urls[1])

        assert MAX_KEY_ATTEMPTS == 6
        assert exc_info.value.attempts == MAX_KEY_ATTEMPTS
        assert test_db.insert_link.await_count == MAX_KEY_ATTEMPTS

    @pytest.mark.asyncio
    async def test_concurrent_colliding_allocations(self, store, test_db, sample_urls):
        """Parallel creations drawing the same key produce exactly one link."""
        with patch.object(store.key_generator, "generate", return_value="dupes"):
            results = await asyncio.gather(
                *[store.create_unique(f"https://example.com/{i}") for i in range(10)],
                return_exceptions=True,
            )

        created = [r for r in results if isinstance(r, ShortenedLink)]
        failed = [r for r in results if isinstance(r, Exception)]

        assert len(created) == 1
        assert created[0].token == "dupes"
        assert len(failed) == 9
        assert all(isinstance(e, KeyAllocationExhaustedError) for e in failed)
        assert (await test_db.get_statistics())["total_links"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_create_still_stores_link(self, store, test_db, sample_urls):
        """Cancelling the caller does not abort an insert already in flight."""
        insert_link = test_db.insert_link
        started = asyncio.Event()
        release = asyncio.Event()
        finished = asyncio.Event()

        async def slow_insert(link):
            started.set()
            await release.wait()
            stored = await insert_link(link)
            finished.set()
            return stored

        test_db.insert_link = slow_insert

        task = asyncio.create_task(store.create_unique(sample_urls[0], custom_key="abcde"))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        release.set()
        await asyncio.wait_for(finished.wait(), timeout=1)

        link = await store.find_link("abcde")
        assert link is not None
        assert link.destination_url == sample_urls[0]

    @pytest.mark.asyncio
    async def test_empty_url_rejected(self, store, test_db):
        with pytest.raises(InvalidURLError):
            await store.create_unique("")

        assert (await test_db.get_statistics())["total_links"] == 0

    @pytest.mark.asyncio
    async def test_naive_expiry_is_utc(self, store, sample_urls):
        link = await store.create_unique(sample_urls[0], expires_at=datetime(2030, 1, 1))

        assert link.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, store, test_db, sample_urls):
        test_db.insert_link = AsyncMock(side_effect=DataStoreError("connection refused"))

        with pytest.raises(DataStoreError):
            await store.create_unique(sample_urls[0])


class TestFindUnexpired:
    """Test lookups by token."""

    @pytest.mark.asyncio
    async def test_find_existing(self, store, sample_urls):
        created = await store.create_unique(sample_urls[0])

        found = await store.find_unexpired(created.token)

        assert found == created

    @pytest.mark.asyncio
    async def test_find_nonexistent(self, store):
        assert await store.find_unexpired("nope1") is None

    @pytest.mark.asyncio
    async def test_exact_match_only(self, store, sample_urls):
        await store.create_unique(sample_urls[0], custom_key="abcde")

        assert await store.find_unexpired("abcd") is None
        assert await store.find_unexpired("abcdef") is None

    @pytest.mark.asyncio
    async def test_expired_one_second_ago(self, store, sample_urls):
        now = datetime.now(timezone.utc)
        link = await store.create_unique(sample_urls[0], expires_at=now - timedelta(seconds=1))

        assert await store.find_unexpired(link.token) is None
        # Still visible to lookups that ignore expiration
        assert (await store.find_link(link.token)).token == link.token

    @pytest.mark.asyncio
    async def test_expires_in_one_second(self, store, sample_urls):
        now = datetime.now(timezone.utc)
        link = await store.create_unique(sample_urls[0], expires_at=now + timedelta(seconds=1))

        with patch("shortener.service.utcnow", return_value=now):
            assert (await store.find_unexpired(link.token)).token == link.token

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_expired(self, store, sample_urls):
        expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        link = await store.create_unique(sample_urls[0], expires_at=expires_at)

        with patch("shortener.service.utcnow", return_value=expires_at):
            assert await store.find_unexpired(link.token) is None


class TestGenerate:
    """Test find-or-create."""

    @pytest.mark.asyncio
    async def test_generate_normalizes_url(self, store):
        link = await store.generate("HTTPS://Example.COM:443/a/./b")

        assert link.destination_url == "https://example.com/a/b"

    @pytest.mark.asyncio
    async def test_generate_reuses_existing_link(self, store, sample_urls):
        first = await store.generate(sample_urls[0])
        second = await store.generate(sample_urls[0])

        assert first.token == second.token

    @pytest.mark.asyncio
    async def test_generate_reuse_compares_normalized_url(self, store):
        first = await store.generate("https://example.com/page")
        second = await store.generate("HTTPS://EXAMPLE.com:443/page")

        assert first.token == second.token

    @pytest.mark.asyncio
    async def test_generate_fresh_always_creates(self, store, sample_urls):
        first = await store.generate(sample_urls[0])
        second = await store.generate(sample_urls[0], fresh=True)

        assert first.token != second.token
        assert second.destination_url == first.destination_url

    @pytest.mark.asyncio
    async def test_generate_scoped_by_owner(self, store, sample_urls):
        anonymous = await store.generate(sample_urls[0])
        owned = await store.generate(sample_urls[0], owner=USER_1)
        owned_again = await store.generate(sample_urls[0], owner=USER_1)
        other = await store.generate(sample_urls[0], owner=USER_2)

        assert owned.owner == USER_1
        assert owned_again.token == owned.token
        assert len({anonymous.token, owned.token, other.token}) == 3

    @pytest.mark.asyncio
    async def test_generate_skips_expired_match(self, store, sample_urls):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        expired = await store.create_unique(sample_urls[0], expires_at=past)

        link = await store.generate(sample_urls[0])

        assert link.token != expired.token
        assert link.expires_at is None

    @pytest.mark.asyncio
    async def test_generate_with_existing_link_same_owner(self, store, test_db, sample_urls):
        link = await store.generate(sample_urls[0], owner=USER_1)
        test_db.insert_link = AsyncMock(wraps=test_db.insert_link)

        assert await store.generate(link, owner=USER_1) is link
        test_db.insert_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generate_with_existing_link_new_owner(self, store, sample_urls):
        link = await store.generate(sample_urls[0], owner=USER_1)

        copied = await store.generate(link, owner=USER_2)

        assert copied.token != link.token
        assert copied.owner == USER_2
        assert copied.destination_url == link.destination_url

    @pytest.mark.asyncio
    async def test_generate_invalid_url_writes_nothing(self, store, test_db):
        with pytest.raises(InvalidURLError):
            await store.generate("https://example.com/has space")

        assert (await test_db.get_statistics())["total_links"] == 0

    @pytest.mark.asyncio
    async def test_generate_custom_key_taken(self, store, sample_urls):
        await store.generate(sample_urls[0], custom_key="mine")

        with pytest.raises(CustomKeyTakenError):
            await store.generate(sample_urls[1], custom_key="mine")


class TestGenerateOrNone:
    """Test the non-raising variant."""

    @pytest.mark.asyncio
    async def test_returns_link(self, store, sample_urls):
        link = await store.generate_or_none(sample_urls[0])
        assert link.destination_url == sample_urls[0]

    @pytest.mark.asyncio
    async def test_invalid_url(self, store):
        assert await store.generate_or_none("not a url") is None

    @pytest.mark.asyncio
    async def test_custom_key_taken(self, store, sample_urls):
        await store.generate(sample_urls[0], custom_key="mine")
        assert await store.generate_or_none(sample_urls[1], custom_key="mine") is None

    @pytest.mark.asyncio
    async def test_allocation_exhausted(self, store, sample_urls):
        await store.generate(sample_urls[0], custom_key="aaaaa")

        with patch.object(store.key_generator, "generate", return_value="aaaaa"):
            assert await store.generate_or_none(sample_urls[1]) is None

    @pytest.mark.asyncio
    async def test_unexpected_error(self, store, test_db, sample_urls):
        test_db.find_by_destination = AsyncMock(side_effect=RuntimeError("boom"))

        assert await store.generate_or_none(sample_urls[0]) is None


class TestUseCount:
    """Test use counting."""

    @pytest.mark.asyncio
    async def test_increment_use_count(self, store, sample_urls):
        link = await store.create_unique(sample_urls[0])

        await store.increment_use_count(link)
        await store.increment_use_count(link)

        assert (await store.find_link(link.token)).use_count == 2

    @pytest.mark.asyncio
    async def test_increment_unsaved_link(self, store, test_db):
        test_db.increment_use_count = AsyncMock()

        await store.increment_use_count(ShortenedLink(token="abc", destination_url="/x"))

        test_db.increment_use_count.assert_not_awaited()


class TestListingAndStats:
    """Test listing, statistics and health."""

    @pytest.mark.asyncio
    async def test_list_links_most_recent_first(self, store, sample_urls):
        created = [await store.create_unique(url) for url in sample_urls]

        links = await store.list_links()

        assert [link.token for link in links] == [link.token for link in reversed(created)]

    @pytest.mark.asyncio
    async def test_list_links_by_owner(self, store, sample_urls):
        await store.create_unique(sample_urls[0], owner=USER_1)
        await store.create_unique(sample_urls[1], owner=USER_2)
        await store.create_unique(sample_urls[2], owner=USER_1)

        links = await store.list_links(owner=USER_1, limit=1)

        assert len(links) == 1
        assert links[0].destination_url == sample_urls[2]

    @pytest.mark.asyncio
    async def test_get_statistics(self, store, sample_urls):
        link = await store.create_unique(sample_urls[0])
        await store.increment_use_count(link)

        stats = await store.get_statistics()

        assert stats["total_links"] == 1
        assert stats["total_uses"] == 1
        assert stats["database"] == "memory"
        assert stats["cache_enabled"] is False
        assert stats["custom_keys_enabled"] is True

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        health = await store.health_check()

        assert health == {"database": True, "cache": True, "overall": True}


def make_cache(cached=None):
    cache = MagicMock()
    cache.enabled = True
    cache.get_link = AsyncMock(return_value=cached)
    cache.set_link = AsyncMock(return_value=True)
    cache.ping = AsyncMock(return_value=False)
    cache.close = AsyncMock()
    return cache


class TestCachedLookups:
    """Test the Redis cache path with a mocked cache."""

    @pytest.fixture
    def cached_store(self, test_db, key_generator, logger):
        return LinkStore(db=test_db, key_generator=key_generator, cache=make_cache(), logger=logger)

    @pytest.mark.asyncio
    async def test_cache_miss_populates_cache(self, cached_store, sample_urls):
        link = await cached_store.create_unique(sample_urls[0])

        found = await cached_store.find_unexpired(link.token)

        assert found == link
        cached_store.cache.get_link.assert_awaited_once_with(link.token)
        cached_store.cache.set_link.assert_awaited_once_with(link)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, cached_store, test_db):
        cached = ShortenedLink(token="cache", destination_url="https://example.com/", id=7)
        cached_store.cache.get_link.return_value = cached
        test_db.find_unexpired = AsyncMock()

        assert await cached_store.find_unexpired("cache") is cached
        test_db.find_unexpired.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_cache_entry_is_ignored(self, cached_store):
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        cached_store.cache.get_link.return_value = ShortenedLink(
            token="stale", destination_url="https://example.com/", expires_at=past, id=7
        )

        assert await cached_store.find_unexpired("stale") is None
        cached_store.cache.set_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unhealthy_cache(self, cached_store):
        health = await cached_store.health_check()

        assert health == {"database": True, "cache": False, "overall": False}

    @pytest.mark.asyncio
    async def test_close_closes_cache(self, cached_store):
        await cached_store.close()

        cached_store.cache.close.assert_awaited_once()
