"""Short-label lookup cache backed by Redis hashes.

The cache is a disposable index over the metadata store: every failure is
logged and treated as a miss, never surfaced to the caller.
"""

import logging
from datetime import timedelta
from typing import Any, Final

from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX: Final = "file_"
LABEL_LENGTH: Final = 6


class CacheEntry(BaseModel):
    fid: int
    file_id: str
    file_name: str
    hash: str


def short_label(content_id: str) -> str:
    return content_id[:LABEL_LENGTH]


def cache_key(label: str) -> str:
    return KEY_PREFIX + label


class LookupCache:
    def __init__(self, client: Any) -> None:
        self.client = client

    def put(self, label: str, entry: CacheEntry, ttl: timedelta) -> bool:
        key = cache_key(label)
        try:
            with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={
                    "fid": entry.fid,
                    "file_id": entry.file_id,
                    "file_name": entry.file_name,
                    "hash": entry.hash,
                })
                pipe.expire(key, ttl)
                pipe.execute()
        except RedisError:
            logger.warning("Failed to save %s to lookup cache", key, exc_info=True)
            return False
        logger.info("Cached %s -> blob %s (%s)", key, entry.file_id, entry.file_name)
        return True

    def get(self, label: str) -> CacheEntry | None:
        key = cache_key(label)
        try:
            raw = self.client.hgetall(key)
        except RedisError:
            logger.warning("Failed to read %s from lookup cache", key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return CacheEntry(**{_text(k): _text(v) for k, v in raw.items()})
        except ValueError:
            logger.warning("Discarding malformed cache entry %s: %r", key, raw)
            return None

    def delete(self, content_id: str) -> bool:
        """Remove the entry for ``content_id``.

        A later upload may own the same label; its entry is left alone.
        """
        entry = self.get(short_label(content_id))
        if entry is None or entry.hash != content_id:
            return False
        key = cache_key(short_label(content_id))
        try:
            self.client.delete(key)
        except RedisError:
            logger.warning("Failed to delete %s from lookup cache", key, exc_info=True)
            return False
        logger.info("Deleted lookup cache key %s", key)
        return True

    def rename(self, content_id: str, filename: str) -> None:
        entry = self.get(short_label(content_id))
        if entry is None or entry.hash != content_id:
            return
        try:
            self.client.hset(cache_key(short_label(content_id)), "file_name", filename)
        except RedisError:
            logger.warning("Failed to rename cached entry for %s", content_id, exc_info=True)


def _text(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value
