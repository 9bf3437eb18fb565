from __future__ import annotations

import logging
import re

from redis.asyncio import Redis
from redis.exceptions import RedisError

log = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")
DELETE_BATCH = 500


def _escape_glob(value: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisKVCache:
    """
    Generic string key/value cache with TTL and prefix delete.

    Redis hiccups never fail a request: reads become misses, writes and
    deletes are logged and reported as not done.
    """

    def __init__(self, *, client: Redis, scan_count: int = 500) -> None:
        # client should be created with decode_responses=True
        self._r = client
        self._scan_count = int(scan_count)

    async def get(self, key: str) -> str | None:
        try:
            return await self._r.get(key)
        except (RedisError, OSError, RuntimeError) as e:
            log.warning("cache GET failed for %s: %s", key, e)
            return None

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> bool:
        try:
            await self._r.set(key, value, ex=int(ttl_sec))
        except (RedisError, OSError, RuntimeError) as e:
            log.warning("cache SET failed for %s: %s", key, e)
            return False
        return True

    async def delete_by_prefix(self, prefix: str) -> int:
        pattern = f"{_escape_glob(prefix)}*"
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._r.scan_iter(match=pattern, count=self._scan_count):
                batch.append(key)
                if len(batch) >= DELETE_BATCH:
                    deleted += await self._r.delete(*batch)
                    batch = []
            if batch:
                deleted += await self._r.delete(*batch)
        except (RedisError, OSError, RuntimeError) as e:
            log.warning("cache prefix delete failed for %s: %s", prefix, e)
        return deleted


class NullKVCache:
    """Cache used when no Redis is configured: every read is a miss."""

    async def get(self, key: str) -> str | None:
        return None

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> bool:
        return False

    async def delete_by_prefix(self, prefix: str) -> int:
        return 0
