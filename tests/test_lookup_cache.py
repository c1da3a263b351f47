"""Tests for the Redis lookup cache."""

from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lookup_cache import CacheEntry, LookupCache, cache_key, short_label

HASH = "5eb63bbbe01eeed093cb22bb8f5acdc3"


@pytest.fixture
def cache(redis_client):
    return LookupCache(redis_client)


def _entry(content_id=HASH, name="hello.txt"):
    return CacheEntry(fid=1, file_id=f"{content_id}/{'a' * 32}", file_name=name, hash=content_id)


class UnreachableRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RedisConnectionError("redis is down")

        return fail


class TestLookupCache:
    """Tests for LookupCache."""

    def test_short_label(self):
        assert short_label(HASH) == "5eb63b"
        assert cache_key("5eb63b") == "file_5eb63b"

    def test_put_and_get(self, cache):
        assert cache.put("5eb63b", _entry(), timedelta(hours=8))
        assert cache.get("5eb63b") == _entry()

    def test_entry_has_ttl(self, cache, redis_client):
        cache.put("5eb63b", _entry(), timedelta(hours=8))
        ttl = redis_client.ttl("file_5eb63b")
        assert 0 < ttl <= 8 * 3600

    def test_missing_entry(self, cache):
        assert cache.get("ffffff") is None

    def test_delete_matching_hash(self, cache):
        cache.put("5eb63b", _entry(), timedelta(hours=1))
        assert cache.delete(HASH)
        assert cache.get("5eb63b") is None

    def test_delete_keeps_entry_of_other_hash(self, cache):
        other = "5eb63b" + "0" * 26
        cache.put("5eb63b", _entry(other), timedelta(hours=1))
        assert not cache.delete(HASH)
        assert cache.get("5eb63b").hash == other

    def test_rename(self, cache):
        cache.put("5eb63b", _entry(), timedelta(hours=1))
        cache.rename(HASH, "renamed.txt")
        assert cache.get("5eb63b").file_name == "renamed.txt"

    def test_malformed_entry_is_a_miss(self, cache, redis_client):
        redis_client.hset("file_5eb63b", mapping={"fid": "not-a-number"})
        assert cache.get("5eb63b") is None

    def test_unreachable_redis_is_a_miss(self):
        cache = LookupCache(UnreachableRedis())
        assert cache.put("5eb63b", _entry(), timedelta(hours=1)) is False
        assert cache.get("5eb63b") is None
        assert cache.delete(HASH) is False
