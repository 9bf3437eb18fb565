"""
Composition root: wires repositories, cache and generators into a
RecommendationEngine. Nothing here is a module-level singleton; callers keep
the engine they build (e.g. on application state).
"""

from __future__ import annotations

import logging

from guild_cache.kv_cache import NullKVCache, RedisKVCache
from guild_cache.recommendation_cache import RecommendationCache
from guild_cache.redis_infra import make_redis_client
from guild_core.config import RecommendationSettings
from guild_core.ports import EventEmitter, NoopEmitter
from guild_feedback.feedback_service import FeedbackService
from guild_feedback.supabase_repo import SupabaseFeedbackRepo
from guild_logging.rec_logger import RecTelemetry
from guild_user.interactions.interaction_reader import InteractionReader
from guild_user.interactions.user_interactions_repo import SupabaseInteractionsRepo
from guild_user.neighbors import NeighborFinder

from .generators import CollaborativeGenerator, ContentBasedGenerator, TrendingGenerator
from .hydrator import ContentHydrator
from .orchestrator import RecommendationEngine

log = logging.getLogger(__name__)


def _make_supabase_client(settings: RecommendationSettings):
    required = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_API_KEY": settings.supabase_api_key,
    }
    missing = [name for name, value in required.items() if not (value and value.strip())]
    if missing:
        raise RuntimeError("Missing settings in environment: " + ", ".join(sorted(missing)))

    from supabase import create_client

    return create_client(settings.supabase_url, settings.supabase_api_key)


def _make_events(settings: RecommendationSettings) -> EventEmitter:
    if not settings.telemetry_enabled:
        return NoopEmitter()
    return RecTelemetry(
        settings.supabase_url or "",
        settings.supabase_api_key or "",
        sample=settings.telemetry_sample,
    )


def build_engine(
    settings: RecommendationSettings | None = None,
    *,
    supabase_client=None,
    redis_client=None,
) -> RecommendationEngine:
    settings = settings or RecommendationSettings()
    client = supabase_client or _make_supabase_client(settings)

    if redis_client is None and settings.redis_url:
        redis_client = make_redis_client(settings.redis_url)
    if redis_client is not None:
        kv = RedisKVCache(client=redis_client)
    else:
        log.warning("No redis_url configured; recommendations will not be cached")
        kv = NullKVCache()

    interactions = SupabaseInteractionsRepo(
        client,
        trending_days=settings.trending_days,
        min_overlap=settings.min_neighbor_overlap,
    )
    feedback_repo = SupabaseFeedbackRepo(client)
    cache = RecommendationCache(
        kv=kv, namespace=settings.cache_namespace, ttl_sec=settings.cache_ttl_sec
    )
    events = _make_events(settings)

    return RecommendationEngine(
        reader=InteractionReader(
            interactions,
            explicit_limit=settings.explicit_limit,
            implicit_days=settings.implicit_days,
        ),
        neighbor_finder=NeighborFinder(interactions, limit=settings.neighbor_limit),
        collaborative=CollaborativeGenerator(
            interactions, weight=settings.collaborative_weight
        ),
        content_based=ContentBasedGenerator(
            interactions,
            weight=settings.content_weight,
            candidate_limit=settings.content_candidate_limit,
        ),
        trending=TrendingGenerator(
            interactions, weight=settings.trending_weight, limit=settings.trending_limit
        ),
        hydrator=ContentHydrator(interactions),
        feedback_repo=feedback_repo,
        cache=cache,
        feedback_service=FeedbackService(feedback_repo, cache, events=events),
        events=events,
        per_type_limit=settings.per_type_limit,
        default_limit=settings.default_limit,
        latency_budget_ms=settings.latency_budget_ms,
    )
