from __future__ import annotations

import json
import logging
import time
from typing import Iterable

from pydantic import ValidationError

from guild_core.config import CACHE_KEY_PREFIX, CACHE_TTL_SEC
from guild_core.ports import KeyValueCache
from guild_core.types import ContentType
from guild_recommendation.types import Recommendation

log = logging.getLogger(__name__)


def _type_value(t: ContentType | str) -> str:
    return t.value if isinstance(t, ContentType) else str(t)


class RecommendationCache:
    """
    Per (user, requested types) store of the final ranked list.
    Key:   {namespace}{user_id}:{sorted,comma,joined,types}
    Value: JSON object {"written_at": ns, "items": [Recommendation, ...]}.

    Entries are replaced wholesale, never patched. invalidate_user() drops
    every entry of a user whatever the types suffix; if the backend refuses
    the delete, entries written before the invalidation still read as misses
    in this process.
    """

    def __init__(
        self,
        *,
        kv: KeyValueCache,
        namespace: str = CACHE_KEY_PREFIX,
        ttl_sec: int = CACHE_TTL_SEC,
    ) -> None:
        self._kv = kv
        self._ns = namespace
        self._ttl = int(ttl_sec)
        # In-process invalidation counter per user, bumped on every invalidation
        self._epochs: dict[str, int] = {}
        # Wall-clock ns of each user's latest invalidation in this process
        self._invalidated_at: dict[str, int] = {}

    # ----- keys -----

    def user_prefix(self, user_id: str) -> str:
        return f"{self._ns}{user_id}:"

    def cache_key(self, user_id: str, types: Iterable[ContentType | str]) -> str:
        parts = sorted({_type_value(t) for t in types})
        return f"{self.user_prefix(user_id)}{','.join(parts)}"

    # ----- codec -----

    def _serialize(self, value: list[Recommendation], written_at: int) -> str:
        payload = {
            "written_at": written_at,
            "items": [r.model_dump(mode="json") for r in value],
        }
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))

    def _deserialize(self, s: str) -> tuple[int, list[Recommendation]] | None:
        try:
            data = json.loads(s)
            if not isinstance(data, dict) or not isinstance(data.get("items"), list):
                return None
            items = [Recommendation.model_validate(row) for row in data["items"]]
            return int(data.get("written_at") or 0), items
        except (ValueError, TypeError, ValidationError):
            return None

    # ----- API -----

    def epoch(self, user_id: str) -> int:
        return self._epochs.get(user_id, 0)

    async def get(
        self, user_id: str, types: Iterable[ContentType | str]
    ) -> list[Recommendation] | None:
        key = self.cache_key(user_id, types)
        raw = await self._kv.get(key)
        if raw is None:
            return None
        decoded = self._deserialize(raw)
        if decoded is None:
            # overwritten by the next full computation
            log.warning("ignoring unreadable cache entry %s", key)
            return None
        written_at, value = decoded
        if written_at <= self._invalidated_at.get(user_id, -1):
            log.debug("ignoring cache entry %s written before invalidation", key)
            return None
        return value

    async def set(
        self,
        user_id: str,
        types: Iterable[ContentType | str],
        value: list[Recommendation],
        ttl_sec: int | None = None,
        *,
        epoch: int | None = None,
    ) -> bool:
        """
        Store a full result. A write carrying an epoch older than the user's
        current one was computed before an invalidation and is dropped.
        """
        if epoch is not None and epoch != self.epoch(user_id):
            log.debug("skipping stale cache write for user=%s", user_id)
            return False
        key = self.cache_key(user_id, types)
        return await self._kv.set_with_ttl(
            key, self._serialize(value, time.time_ns()), int(ttl_sec or self._ttl)
        )

    async def invalidate_user(self, user_id: str) -> int:
        self._epochs[user_id] = self.epoch(user_id) + 1
        self._invalidated_at[user_id] = time.time_ns()
        removed = await self._kv.delete_by_prefix(self.user_prefix(user_id))
        log.debug("Invalidated recommendation cache user=%s keys=%d", user_id, removed)
        return removed
