from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

import pytest

from guild_cache.kv_cache import RedisKVCache
from guild_cache.recommendation_cache import RecommendationCache
from guild_core.types import (
    ContentItem,
    ContentType,
    InterestQuery,
    Neighbor,
    NeighborInteraction,
)
from guild_feedback.schemas import FeedbackRecord
from guild_recommendation.generators import (
    CollaborativeGenerator,
    ContentBasedGenerator,
    TrendingGenerator,
)
from guild_recommendation.hydrator import ContentHydrator
from guild_recommendation.orchestrator import RecommendationEngine
from guild_user.interactions.interaction_reader import InteractionReader
from guild_user.interactions.schemas import (
    ExplicitInteractions,
    ImplicitInteractions,
    UserProfile,
)
from guild_user.neighbors import NeighborFinder

from fake_redis import FakeRedis


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeInteractionRepo:
    """In-memory InteractionRepository; `calls` counts every method hit."""

    def __init__(self):
        self.explicit: Dict[str, ExplicitInteractions] = {}
        self.implicit: Dict[str, ImplicitInteractions] = {}
        self.profiles: Dict[str, UserProfile] = {}
        self.neighbors: Dict[str, List[Neighbor]] = {}
        self.neighbor_rows: Dict[ContentType, List[NeighborInteraction]] = {}
        self.candidates: Dict[ContentType, List[ContentItem]] = {}
        self.trending: Dict[ContentType, List[ContentItem]] = {}
        self.content: Dict[ContentType, Dict[str, ContentItem]] = {}
        self.fail: Dict[str, Exception] = {}
        self.calls: Counter = Counter()

    def _hit(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail:
            raise self.fail[name]

    def publish(self, content_type: ContentType, *items: ContentItem) -> None:
        bucket = self.content.setdefault(content_type, {})
        for item in items:
            bucket[str(item["id"])] = item

    async def get_explicit_interactions(self, user_id: str, limit: int = 100):
        self._hit("get_explicit_interactions")
        return self.explicit.get(user_id, ExplicitInteractions())

    async def get_implicit_interactions(self, user_id: str, days_ago: int = 30):
        self._hit("get_implicit_interactions")
        return self.implicit.get(user_id, ImplicitInteractions())

    async def get_profile(self, user_id: str):
        self._hit("get_profile")
        return self.profiles.get(user_id)

    async def find_similar_users(self, user_id: str, limit: int = 50):
        self._hit("find_similar_users")
        return list(self.neighbors.get(user_id, []))

    async def get_neighbor_interactions(
        self, content_type: ContentType, neighbor_ids: Sequence[str], exclude_user_id: str
    ):
        self._hit("get_neighbor_interactions")
        ids = set(neighbor_ids)
        return [r for r in self.neighbor_rows.get(content_type, []) if r.user_id in ids]

    async def get_content_candidates(
        self, content_type: ContentType, query: InterestQuery, limit: int = 200
    ):
        self._hit("get_content_candidates")
        return list(self.candidates.get(content_type, []))[:limit]

    async def get_trending_content(self, content_type: ContentType, limit: int = 20):
        self._hit("get_trending_content")
        return list(self.trending.get(content_type, []))[:limit]

    async def get_content_by_ids(self, content_type: ContentType, ids: Sequence[str]):
        self._hit("get_content_by_ids")
        bucket = self.content.get(content_type, {})
        return [bucket[i] for i in ids if i in bucket]


class FakeFeedbackRepo:
    def __init__(self):
        self.rows: Dict[tuple, FeedbackRecord] = {}
        self.fail: Dict[str, Exception] = {}
        self.calls: Counter = Counter()

    async def get_feedback(self, user_id: str) -> List[FeedbackRecord]:
        self.calls["get_feedback"] += 1
        if "get_feedback" in self.fail:
            raise self.fail["get_feedback"]
        return [r for (uid, _, _), r in self.rows.items() if uid == user_id]

    async def upsert(self, user_id: str, item_type: str, item_id: str, feedback: str):
        self.calls["upsert"] += 1
        if "upsert" in self.fail:
            raise self.fail["upsert"]
        record = FeedbackRecord(
            user_id=user_id,
            item_type=item_type,
            item_id=item_id,
            feedback=feedback,
            updated_at=datetime.now(timezone.utc),
        )
        self.rows[(user_id, item_type, item_id)] = record
        return record


class RecordingEmitter:
    def __init__(self):
        self.events: List[tuple[str, Dict[str, Any]]] = []

    async def emit(self, name: str, payload) -> None:
        self.events.append((name, dict(payload)))


@pytest.fixture
def interactions() -> FakeInteractionRepo:
    return FakeInteractionRepo()


@pytest.fixture
def feedback_repo() -> FakeFeedbackRepo:
    return FakeFeedbackRepo()


@pytest.fixture
def redis_client() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def rec_cache(redis_client) -> RecommendationCache:
    return RecommendationCache(kv=RedisKVCache(client=redis_client))


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def engine(interactions, feedback_repo, rec_cache, emitter) -> RecommendationEngine:
    return RecommendationEngine(
        reader=InteractionReader(interactions),
        neighbor_finder=NeighborFinder(interactions),
        collaborative=CollaborativeGenerator(interactions),
        content_based=ContentBasedGenerator(interactions),
        trending=TrendingGenerator(interactions),
        hydrator=ContentHydrator(interactions),
        feedback_repo=feedback_repo,
        cache=rec_cache,
        events=emitter,
    )
