from datetime import datetime, timezone

import pytest

from guild_cache.kv_cache import NullKVCache
from guild_core.config import RecommendationSettings
from guild_core.ports import NoopEmitter
from guild_logging.rec_logger import RecTelemetry
from guild_recommendation.bootstrap import build_engine

from fake_redis import FakeRedis
from fake_supabase import FakeSupabaseClient

pytestmark = pytest.mark.anyio


def _settings(**overrides):
    return RecommendationSettings(_env_file=None, **overrides)


def _published(item_id, views):
    return {
        "id": item_id,
        "status": "published",
        "title": item_id.title(),
        "published_at": datetime.now(timezone.utc).isoformat(),
        "view_count": views,
        "bookmark_count": 0,
    }


def test_missing_credentials_fail_fast():
    with pytest.raises(RuntimeError, match="SUPABASE_API_KEY, SUPABASE_URL"):
        build_engine(_settings(supabase_url=None, supabase_api_key=" "))


def test_without_redis_nothing_is_cached():
    engine = build_engine(_settings(redis_url=None), supabase_client=FakeSupabaseClient())
    assert isinstance(engine.cache._kv, NullKVCache)
    assert isinstance(engine.events, NoopEmitter)


def test_settings_flow_into_components():
    engine = build_engine(
        _settings(
            telemetry_enabled=True,
            supabase_url="https://db.example",
            supabase_api_key="key",
            per_type_limit=5,
            default_limit=7,
            neighbor_limit=9,
        ),
        supabase_client=FakeSupabaseClient(),
        redis_client=FakeRedis(),
    )

    assert isinstance(engine.events, RecTelemetry)
    assert engine.feedback_service.events is engine.events
    assert (engine.per_type_limit, engine.default_limit) == (5, 7)
    assert engine.neighbor_finder.limit == 9
    assert engine.collaborative.weight == 0.5


async def test_end_to_end_on_supabase_and_redis():
    client = FakeSupabaseClient({"articles": [_published("hot", 50), _published("warm", 10)]})
    redis_client = FakeRedis()
    engine = build_engine(_settings(), supabase_client=client, redis_client=redis_client)

    recs = await engine.get_recommendations("u1", ["article"])

    assert [(r.id, r.relevance_score) for r in recs] == [("hot", 20), ("warm", 10)]
    assert recs[0].data["title"] == "Hot"
    assert redis_client.keys() == ["recommendations:u1:article"]

    await engine.submit_feedback("u1", "article", "hot", "dislike")

    assert redis_client.keys() == []
    again = await engine.get_recommendations("u1", ["article"])
    assert [r.id for r in again] == ["warm"]
