from __future__ import annotations

from guild_core.config import TRENDING_WEIGHT
from guild_core.ports import InteractionRepository
from guild_core.types import Candidate, CandidateSource, ContentType

from ..kinds import kind_for
from ..types import GenerationContext
from .base import CandidateGenerator


class TrendingGenerator(CandidateGenerator):
    """Globally popular recent items; covers cold start and adds diversity."""

    source = CandidateSource.TRENDING

    def __init__(
        self,
        repo: InteractionRepository,
        *,
        weight: float = TRENDING_WEIGHT,
        limit: int = 20,
    ):
        super().__init__(weight=weight)
        self.repo = repo
        self.limit = limit

    async def generate(
        self, content_type: ContentType, ctx: GenerationContext
    ) -> list[Candidate]:
        if not kind_for(content_type).has_trending:
            return []

        items = await self.repo.get_trending_content(content_type, self.limit)
        n = len(items)
        out: list[Candidate] = []
        seen: set[str] = set()
        # Linear decay by rank position: top item 100, last item 100/n
        for rank, item in enumerate(items):
            item_id = str(item["id"])
            if item_id in seen:
                continue
            seen.add(item_id)
            out.append(self._weighted(item_id, (n - rank) / n * 100.0))
        return out
