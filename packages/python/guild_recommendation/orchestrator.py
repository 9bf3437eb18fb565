from __future__ import annotations

import asyncio
import logging
import time
from typing import Collection, Iterable, Sequence

from guild_cache.recommendation_cache import RecommendationCache
from guild_core.config import DEFAULT_LIMIT, LATENCY_BUDGET_MS, PER_TYPE_LIMIT
from guild_core.errors import RuleViolation
from guild_core.ports import EventEmitter, FeedbackRepository, NoopEmitter
from guild_core.types import ALL_CONTENT_TYPES, Candidate, ContentType
from guild_feedback.feedback_service import FeedbackService, suppressed_ids
from guild_feedback.schemas import FeedbackRecord
from guild_user.interactions.interaction_reader import InteractionReader
from guild_user.neighbors import NeighborFinder

from .explanation import explain
from .generators import CandidateGenerator
from .hydrator import ContentHydrator
from .merge import merge_candidates, rank_merged
from .types import GenerationContext, Recommendation, to_relevance

log = logging.getLogger(__name__)


def filter_and_limit(
    recommendations: Iterable[Recommendation],
    exclude_ids: Collection[str],
    limit: int,
) -> list[Recommendation]:
    excluded = set(exclude_ids)
    return [r for r in recommendations if r.id not in excluded][: max(0, limit)]


def normalize_types(
    types: Iterable[ContentType | str] | None,
) -> list[ContentType]:
    if types is None:
        return list(ALL_CONTENT_TYPES)
    out: list[ContentType] = []
    for t in types:
        try:
            ct = ContentType(t)
        except ValueError:
            raise RuleViolation(f"unknown content type: {t!r}")
        if ct not in out:
            out.append(ct)
    if not out:
        raise RuleViolation("at least one content type is required")
    return out


class RecommendationEngine:
    """
    Hybrid recommender: collaborative + content-based + trending, merged into
    one ranked, explained, cached list per (user, requested types).
    """

    def __init__(
        self,
        *,
        reader: InteractionReader,
        neighbor_finder: NeighborFinder,
        collaborative: CandidateGenerator,
        content_based: CandidateGenerator,
        trending: CandidateGenerator,
        hydrator: ContentHydrator,
        feedback_repo: FeedbackRepository,
        cache: RecommendationCache,
        feedback_service: FeedbackService | None = None,
        events: EventEmitter | None = None,
        per_type_limit: int = PER_TYPE_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
        latency_budget_ms: int = LATENCY_BUDGET_MS,
    ):
        self.reader = reader
        self.neighbor_finder = neighbor_finder
        self.collaborative = collaborative
        self.content_based = content_based
        self.trending = trending
        self.hydrator = hydrator
        self.feedback_repo = feedback_repo
        self.cache = cache
        self.events = events or NoopEmitter()
        self.feedback_service = feedback_service or FeedbackService(
            feedback_repo, cache, events=self.events
        )
        self.per_type_limit = per_type_limit
        self.default_limit = default_limit
        self.latency_budget_ms = latency_budget_ms

    # ---------- Public API ----------
    async def get_recommendations(
        self,
        user_id: str,
        types: Sequence[ContentType | str] | None = None,
        limit: int | None = None,
        exclude_ids: Collection[str] = (),
        include_explanations: bool = True,
    ) -> list[Recommendation]:
        if not user_id:
            raise RuleViolation("user_id is required")
        if limit is None:
            limit = self.default_limit
        if limit < 0:
            raise RuleViolation("limit must be >= 0")
        content_types = normalize_types(types)

        t0 = time.perf_counter()
        cached = await self.cache.get(user_id, content_types)
        if cached is not None:
            log.debug("Recommendations cache hit user=%s types=%s", user_id, content_types)
            await self._emit_served(user_id, content_types, cached, True, t0)
            return self._present(cached, exclude_ids, limit, include_explanations)

        epoch = self.cache.epoch(user_id)
        try:
            recommendations = await self._compute(user_id, content_types)
        except Exception:
            log.exception(
                "Failed to generate recommendations user=%s types=%s", user_id, content_types
            )
            raise

        await self.cache.set(user_id, content_types, recommendations, epoch=epoch)

        duration_ms = (time.perf_counter() - t0) * 1000
        log.info(
            "Generated recommendations user=%s types=%s count=%d duration_ms=%.1f",
            user_id,
            [t.value for t in content_types],
            len(recommendations),
            duration_ms,
        )
        if duration_ms > self.latency_budget_ms:
            log.warning(
                "Recommendation generation exceeded %dms target user=%s duration_ms=%.1f",
                self.latency_budget_ms,
                user_id,
                duration_ms,
            )
        await self._emit_served(user_id, content_types, recommendations, False, t0)
        return self._present(recommendations, exclude_ids, limit, include_explanations)

    async def submit_feedback(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackRecord:
        return await self.feedback_service.submit_feedback(
            user_id, item_type, item_id, feedback
        )

    # ---------- Pipeline ----------
    async def _compute(
        self, user_id: str, content_types: list[ContentType]
    ) -> list[Recommendation]:
        # Required inputs: any failure aborts the request
        signals, neighbors, feedback = await asyncio.gather(
            self.reader.read_signals(user_id),
            self.neighbor_finder.find_neighbors(user_id),
            self.feedback_repo.get_feedback(user_id),
        )
        ctx = GenerationContext(user_id=user_id, signals=signals, neighbors=neighbors)

        per_type = await asyncio.gather(
            *(self._recommend_for_type(ct, ctx, feedback) for ct in content_types)
        )
        combined = [rec for recs in per_type for rec in recs]
        # stable: ties keep per-type merge order
        combined.sort(key=lambda r: r.relevance_score, reverse=True)
        return combined

    async def _recommend_for_type(
        self,
        content_type: ContentType,
        ctx: GenerationContext,
        feedback: list[FeedbackRecord],
    ) -> list[Recommendation]:
        collaborative, content_based, trending = await asyncio.gather(
            self._safe_generate(self.collaborative, content_type, ctx),
            self._safe_generate(self.content_based, content_type, ctx),
            self._safe_generate(self.trending, content_type, ctx),
        )
        merged = merge_candidates(
            collaborative,
            content_based,
            trending,
            suppressed_ids(feedback, content_type),
        )
        top = rank_merged(merged, self.per_type_limit)
        hydrated = await self.hydrator.hydrate(content_type, top)

        return [
            Recommendation(
                type=content_type,
                id=candidate.item_id,
                relevance_score=to_relevance(candidate.score),
                explanation=explain(candidate.sources),
                data=content,
            )
            for candidate, content in hydrated
        ]

    async def _safe_generate(
        self,
        generator: CandidateGenerator,
        content_type: ContentType,
        ctx: GenerationContext,
    ) -> list[Candidate]:
        # One source failing degrades to fewer signals, never fails the request
        try:
            return await generator.generate(content_type, ctx)
        except Exception:
            log.exception(
                "%s candidates failed user=%s type=%s",
                generator.source.value,
                ctx.user_id,
                content_type.value,
            )
            return []

    # ---------- Helpers ----------
    def _present(
        self,
        recommendations: list[Recommendation],
        exclude_ids: Collection[str],
        limit: int,
        include_explanations: bool,
    ) -> list[Recommendation]:
        out = filter_and_limit(recommendations, exclude_ids, limit)
        if include_explanations:
            return out
        return [r.model_copy(update={"explanation": ""}) for r in out]

    async def _emit_served(
        self,
        user_id: str,
        content_types: list[ContentType],
        recommendations: list[Recommendation],
        cache_hit: bool,
        t0: float,
    ) -> None:
        await self.events.emit(
            "recommendations_served",
            {
                "user_id": user_id,
                "types": [t.value for t in content_types],
                "count": len(recommendations),
                "cache_hit": cache_hit,
                "duration_ms": int((time.perf_counter() - t0) * 1000),
            },
        )
