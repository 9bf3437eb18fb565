from __future__ import annotations

from guild_core.config import COLLABORATIVE_WEIGHT
from guild_core.ports import InteractionRepository
from guild_core.types import Candidate, CandidateSource, ContentType

from ..types import GenerationContext
from .base import CandidateGenerator, relative_to_max


class CollaborativeGenerator(CandidateGenerator):
    """Items liked by neighbors, each neighbor voting with its similarity score."""

    source = CandidateSource.COLLABORATIVE

    def __init__(self, repo: InteractionRepository, *, weight: float = COLLABORATIVE_WEIGHT):
        super().__init__(weight=weight)
        self.repo = repo

    async def generate(
        self, content_type: ContentType, ctx: GenerationContext
    ) -> list[Candidate]:
        if not ctx.neighbors:
            return []

        similarity = {n.user_id: n.similarity_score for n in ctx.neighbors}
        rows = await self.repo.get_neighbor_interactions(
            content_type, list(similarity), ctx.user_id
        )

        raw: dict[str, float] = {}
        for row in rows:
            sim = similarity.get(row.user_id)
            if sim is None:
                continue
            raw[row.item_id] = raw.get(row.item_id, 0.0) + sim

        return [
            self._weighted(item_id, score)
            for item_id, score in relative_to_max(raw).items()
        ]
