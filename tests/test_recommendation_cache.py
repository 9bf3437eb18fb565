import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from guild_cache.kv_cache import NullKVCache, RedisKVCache
from guild_cache.recommendation_cache import RecommendationCache
from guild_core.types import ContentType
from guild_recommendation.types import Recommendation

from fake_redis import BrokenRedis

pytestmark = pytest.mark.anyio


def _rec(item_id="a1", score=50):
    return Recommendation(
        type=ContentType.ARTICLE,
        id=item_id,
        relevance_score=score,
        explanation="Trending in the community",
        data={"id": item_id, "title": "Café"},
    )


def test_key_ignores_type_order_and_duplicates(rec_cache):
    a = rec_cache.cache_key("u1", [ContentType.JOB, ContentType.ARTICLE])
    b = rec_cache.cache_key("u1", ["article", "job", "article"])
    assert a == b == "recommendations:u1:article,job"


async def test_round_trip_and_ttl(rec_cache, redis_client):
    stored = await rec_cache.set("u1", [ContentType.ARTICLE], [_rec()])

    assert stored is True
    assert await rec_cache.get("u1", ["article"]) == [_rec()]
    assert redis_client.last_ttl["recommendations:u1:article"] == 6 * 3600


async def test_empty_list_is_a_hit(rec_cache):
    await rec_cache.set("u1", ["job"], [])
    assert await rec_cache.get("u1", ["job"]) == []


async def test_miss_and_expiry(rec_cache, redis_client):
    assert await rec_cache.get("u1", ["article"]) is None

    await rec_cache.set("u1", ["article"], [_rec()])
    redis_client.expire_now("recommendations:u1:article")
    assert await rec_cache.get("u1", ["article"]) is None


async def test_invalidate_only_touches_that_user(rec_cache, redis_client):
    await rec_cache.set("u1", ["article"], [_rec()])
    await rec_cache.set("u1", ["article", "job"], [_rec()])
    await rec_cache.set("u10", ["article"], [_rec()])

    removed = await rec_cache.invalidate_user("u1")

    assert removed == 2
    assert redis_client.keys() == ["recommendations:u10:article"]


async def test_write_started_before_invalidation_is_dropped(rec_cache):
    epoch = rec_cache.epoch("u1")
    await rec_cache.invalidate_user("u1")

    stored = await rec_cache.set("u1", ["article"], [_rec()], epoch=epoch)

    assert stored is False
    assert await rec_cache.get("u1", ["article"]) is None
    # a computation started after the invalidation may write
    assert await rec_cache.set("u1", ["article"], [_rec()], epoch=rec_cache.epoch("u1"))


async def test_unreadable_entry_is_a_miss(rec_cache, redis_client):
    await redis_client.set("recommendations:u1:article", "{not json")
    assert await rec_cache.get("u1", ["article"]) is None

    await redis_client.set("recommendations:u1:article", '[{"id": "x"}]')
    assert await rec_cache.get("u1", ["article"]) is None


async def test_redis_outage_degrades_to_misses():
    cache = RecommendationCache(kv=RedisKVCache(client=BrokenRedis()))

    assert await cache.get("u1", ["article"]) is None
    assert await cache.set("u1", ["article"], [_rec()]) is False
    assert await cache.invalidate_user("u1") == 0


async def test_null_cache_never_hits():
    cache = RecommendationCache(kv=NullKVCache())
    await cache.set("u1", ["article"], [_rec()])
    assert await cache.get("u1", ["article"]) is None


async def test_prefix_with_glob_characters_is_escaped(redis_client):
    cache = RecommendationCache(kv=RedisKVCache(client=redis_client), namespace="rec:")
    await cache.set("u*", ["article"], [_rec()])
    await cache.set("u1", ["article"], [_rec()])

    await cache.invalidate_user("u*")

    assert redis_client.keys() == ["rec:u1:article"]


async def _refused_scan(match=None, count=None):
    raise RedisConnectionError("connection reset")
    yield  # pragma: no cover


async def test_entries_before_failed_invalidation_are_misses(
    rec_cache, redis_client, monkeypatch
):
    await rec_cache.set("u1", ["article"], [_rec()])
    await rec_cache.set("u2", ["article"], [_rec()])
    monkeypatch.setattr(redis_client, "scan_iter", _refused_scan)

    assert await rec_cache.invalidate_user("u1") == 0
    # the stale entry is still stored but no longer served
    assert "recommendations:u1:article" in redis_client.keys()
    assert await rec_cache.get("u1", ["article"]) is None
    assert await rec_cache.get("u2", ["article"]) == [_rec()]

    await rec_cache.set("u1", ["article"], [_rec("a2")], epoch=rec_cache.epoch("u1"))
    assert await rec_cache.get("u1", ["article"]) == [_rec("a2")]
