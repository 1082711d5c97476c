"""
Unit tests for the tag-aware cache.
"""

import random
from concurrent.futures import ThreadPoolExecutor

import pytest

from bookshelf.cache import TagAwareCache

from .conftest import FakeClock


class CountingLoader:
    """Loader stub that records how often it ran."""

    def __init__(self, value="payload", tags=("booksCache",)):
        self.value = value
        self.tags = tags
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value, set(self.tags)


class TestReadThrough:
    def test_miss_calls_loader_and_returns_value(self, cache):
        loader = CountingLoader("page-1")

        assert cache.get("books-1-3", loader) == "page-1"
        assert loader.calls == 1
        assert cache.has("books-1-3")

    def test_second_get_does_not_call_loader(self, cache):
        loader = CountingLoader()

        cache.get("books-1-3", loader)
        cache.get("books-1-3", loader)
        cache.get("books-1-3", loader)

        assert loader.calls == 1
        assert cache.stats()["hits"] == 2
        assert cache.stats()["misses"] == 1

    def test_loader_failure_is_not_cached(self, cache):
        def broken():
            raise RuntimeError("store unavailable")

        with pytest.raises(RuntimeError):
            cache.get("books-1-3", broken)

        assert not cache.has("books-1-3")
        loader = CountingLoader("recovered")
        assert cache.get("books-1-3", loader) == "recovered"
        assert loader.calls == 1

    def test_pages_are_independent_entries(self, cache):
        first = CountingLoader("first")
        second = CountingLoader("second")

        assert cache.get("books-1-3", first) == "first"
        assert cache.get("books-2-3", second) == "second"
        assert cache.get("books-1-3", second) == "first"
        assert cache.stats()["entries"] == 2


class TestInvalidation:
    def test_invalidating_tag_clears_every_page(self, cache):
        cache.get("books-1-3", CountingLoader())
        cache.get("books-2-3", CountingLoader())

        cache.invalidate_tags({"booksCache"})

        assert not cache.has("books-1-3")
        assert not cache.has("books-2-3")

    def test_invalidated_key_is_reloaded(self, cache):
        loader = CountingLoader()
        cache.get("books-1-3", loader)
        cache.invalidate_tags({"booksCache"})

        cache.get("books-1-3", loader)

        assert loader.calls == 2
        assert cache.has("books-1-3")

    def test_invalidation_is_scoped_to_tag(self, cache):
        cache.get("books-1-3", CountingLoader(tags=("booksCache",)))
        cache.get("authors-1-10", CountingLoader(tags=("authorsCache",)))

        cache.invalidate_tags({"booksCache"})
        assert cache.has("authors-1-10")
        assert not cache.has("books-1-3")

        cache.get("books-1-3", CountingLoader(tags=("booksCache",)))
        cache.invalidate_tags({"authorsCache"})
        assert cache.has("books-1-3")
        assert not cache.has("authors-1-10")

    def test_invalidation_is_idempotent(self, cache):
        cache.get("books-1-3", CountingLoader())
        cache.get("authors-1-10", CountingLoader(tags=("authorsCache",)))

        cache.invalidate_tags({"booksCache"})
        entries_once = cache.stats()["entries"]
        cache.invalidate_tags({"booksCache"})

        assert cache.stats()["entries"] == entries_once == 1
        assert cache.has("authors-1-10")

    def test_unknown_tag_is_a_no_op(self, cache):
        cache.get("books-1-3", CountingLoader())

        assert cache.invalidate_tags({"nothingCache"}) is None
        assert cache.has("books-1-3")

    def test_entry_with_several_tags_goes_with_any_of_them(self, cache):
        cache.get("mixed", CountingLoader(tags=("booksCache", "authorsCache")))
        cache.get("authors-1-10", CountingLoader(tags=("authorsCache",)))

        cache.invalidate_tags({"booksCache"})

        assert not cache.has("mixed")
        assert cache.has("authors-1-10")

    def test_reloaded_entry_takes_new_tags(self, cache):
        cache.get("page", CountingLoader(tags=("booksCache",)))
        cache.delete("page")
        cache.get("page", CountingLoader(tags=("authorsCache",)))

        cache.invalidate_tags({"booksCache"})
        assert cache.has("page")

        cache.invalidate_tags({"authorsCache"})
        assert not cache.has("page")


class TestHousekeeping:
    def test_delete_and_clear(self, cache):
        cache.get("books-1-3", CountingLoader())
        cache.get("books-2-3", CountingLoader())

        assert cache.delete("books-1-3") is True
        assert cache.delete("books-1-3") is False

        cache.clear()
        assert cache.stats()["entries"] == 0

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = TagAwareCache(default_ttl=60, clock=clock)
        loader = CountingLoader()

        cache.get("books-1-3", loader)
        clock.advance(59)
        cache.get("books-1-3", loader)
        assert loader.calls == 1

        clock.advance(1)
        assert not cache.has("books-1-3")
        cache.get("books-1-3", loader)
        assert loader.calls == 2

    def test_zero_ttl_never_expires(self):
        clock = FakeClock()
        cache = TagAwareCache(default_ttl=0, clock=clock)
        loader = CountingLoader()

        cache.get("books-1-3", loader)
        clock.advance(10 ** 9)
        cache.get("books-1-3", loader)

        assert loader.calls == 1

    def test_negative_ttl_is_rejected(self):
        with pytest.raises(ValueError):
            TagAwareCache(default_ttl=-1)

    def test_negative_max_entries_is_rejected(self):
        with pytest.raises(ValueError):
            TagAwareCache(max_entries=-1)


class TestEviction:
    def test_least_recently_used_entry_is_evicted(self):
        cache = TagAwareCache(max_entries=2)
        cache.get("books-1-3", CountingLoader())
        cache.get("books-2-3", CountingLoader())
        # A hit makes books-1-3 the most recent one.
        cache.get("books-1-3", CountingLoader())

        cache.get("books-3-3", CountingLoader())

        assert cache.has("books-1-3")
        assert not cache.has("books-2-3")
        assert cache.has("books-3-3")
        assert cache.stats()["entries"] == 2
        assert cache.stats()["evictions"] == 1

    def test_evicted_entry_leaves_tag_index(self):
        cache = TagAwareCache(max_entries=1)
        cache.get("books-1-3", CountingLoader(tags=("booksCache",)))
        cache.get("authors-1-10", CountingLoader(tags=("authorsCache",)))

        assert "booksCache" not in cache._tag_index
        assert cache._tag_index["authorsCache"] == {"authors-1-10"}

    def test_distinct_keys_never_exceed_cap(self):
        cache = TagAwareCache(max_entries=5)

        for page in range(1, 200):
            cache.get(f"books-{page}-3", CountingLoader())

        assert cache.stats()["entries"] == 5
        assert cache.stats()["evictions"] == 194

    def test_zero_max_entries_is_unbounded(self, cache):
        for page in range(1, 50):
            cache.get(f"books-{page}-3", CountingLoader())

        assert cache.stats()["entries"] == 49
        assert cache.stats()["evictions"] == 0


class TestConcurrency:
    TAGS = ("booksCache", "authorsCache", "reviewsCache")

    def _worker(self, cache, seed):
        rng = random.Random(seed)
        for _ in range(300):
            key = f"page-{rng.randint(1, 8)}"
            if rng.random() < 0.25:
                cache.invalidate_tags({rng.choice(self.TAGS)})
            else:
                tags = rng.sample(self.TAGS, rng.randint(1, 2))
                cache.get(key, CountingLoader(value=key, tags=tags))

    def test_tag_index_stays_consistent_under_concurrent_use(self):
        cache = TagAwareCache(max_entries=6)

        with ThreadPoolExecutor(max_workers=8) as pool:
            for future in [pool.submit(self._worker, cache, seed) for seed in range(16)]:
                future.result()

        for tag, keys in cache._tag_index.items():
            assert keys
            for key in keys:
                assert key in cache._entries
                assert tag in cache._entries[key].tags
        for key, entry in cache._entries.items():
            for tag in entry.tags:
                assert key in cache._tag_index[tag]

        cache.invalidate_tags(self.TAGS)

        assert cache.stats()["entries"] == 0
        assert cache._tag_index == {}
