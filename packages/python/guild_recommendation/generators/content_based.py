from __future__ import annotations

from collections import Counter
from typing import Iterable

from guild_core.config import CONTENT_BASED_WEIGHT
from guild_core.ports import InteractionRepository
from guild_core.types import Candidate, CandidateSource, ContentType, InterestQuery
from guild_user.interactions.schemas import InteractionSignals

from ..kinds import category_feature, kind_for, skill_feature, tag_feature
from ..types import GenerationContext
from .base import CandidateGenerator, relative_to_max

EXPLICIT_WEIGHT = 1.0
IMPLICIT_WEIGHT = 0.5


def _add_tagged(
    profile: Counter, category_id: str | None, tag_ids: Iterable[str], w: float
) -> None:
    if category_id is not None:
        profile[category_feature(category_id)] += w
    for t in tag_ids:
        profile[tag_feature(t)] += w


def build_interest_profile(signals: InteractionSignals) -> Counter:
    """
    Weighted interest features from what the user did and declared.
    Exact-match vocabulary only: tag ids, category ids, lower-cased skills.
    """
    profile: Counter = Counter()
    explicit = signals.explicit

    for b in explicit.bookmarks:
        _add_tagged(profile, b.category_id, b.tag_ids, EXPLICIT_WEIGHT)
    for v in explicit.topic_votes:
        _add_tagged(profile, v.category_id, v.tag_ids, EXPLICIT_WEIGHT)
    for rv in explicit.reply_votes:
        _add_tagged(profile, rv.category_id, rv.tag_ids, EXPLICIT_WEIGHT)
    for view in signals.implicit.article_views:
        _add_tagged(profile, view.category_id, view.tag_ids, IMPLICIT_WEIGHT)

    for s in [*signals.profile.skills, *signals.profile.desired_skills]:
        if s and s.strip():
            profile[skill_feature(s)] += EXPLICIT_WEIGHT
    for app in explicit.job_applications:
        for s in app.required_skills:
            if s and s.strip():
                profile[skill_feature(s)] += IMPLICIT_WEIGHT

    return profile


def interest_query(profile: Counter) -> InterestQuery:
    tags, cats, skills = [], [], []
    for feat in profile:
        prefix, _, value = feat.partition(":")
        if prefix == "tag":
            tags.append(value)
        elif prefix == "category":
            cats.append(value)
        elif prefix == "skill":
            skills.append(value)
    return InterestQuery(tag_ids=tags, category_ids=cats, skills=skills)


class ContentBasedGenerator(CandidateGenerator):
    """Items whose tags, category or skills overlap the user's interest profile."""

    source = CandidateSource.CONTENT

    def __init__(
        self,
        repo: InteractionRepository,
        *,
        weight: float = CONTENT_BASED_WEIGHT,
        candidate_limit: int = 200,
    ):
        super().__init__(weight=weight)
        self.repo = repo
        self.candidate_limit = candidate_limit

    async def generate(
        self, content_type: ContentType, ctx: GenerationContext
    ) -> list[Candidate]:
        profile = build_interest_profile(ctx.signals)
        query = interest_query(profile)
        if query.is_empty():
            return []

        kind = kind_for(content_type)
        items = await self.repo.get_content_candidates(
            content_type, query, self.candidate_limit
        )
        excluded = kind.excluded_ids(ctx)

        raw: dict[str, float] = {}
        for item in items:
            item_id = str(item["id"])
            if item_id in excluded or item_id in raw:
                continue
            strength = sum(profile.get(f, 0.0) for f in kind.item_features(item))
            if strength > 0:
                raw[item_id] = strength

        return [
            self._weighted(item_id, score)
            for item_id, score in relative_to_max(raw).items()
        ]
