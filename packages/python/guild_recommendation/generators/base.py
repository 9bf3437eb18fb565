from __future__ import annotations

from abc import ABC, abstractmethod

from guild_core.types import Candidate, CandidateSource, ContentType

from ..types import GenerationContext


class CandidateGenerator(ABC):
    source: CandidateSource

    def __init__(self, *, weight: float):
        self.weight = float(weight)

    @abstractmethod
    async def generate(
        self, content_type: ContentType, ctx: GenerationContext
    ) -> list[Candidate]:
        """Candidates scored 0..100 and already multiplied by this source's weight."""

    def _weighted(self, item_id: str, normalized: float) -> Candidate:
        return Candidate(
            item_id=item_id, score=normalized * self.weight, source=self.source
        )


def relative_to_max(raw: dict[str, float]) -> dict[str, float]:
    """Scale raw scores to 0..100 against the largest one (divisor 1 when all are 0)."""
    if not raw:
        return {}
    top = max(raw.values())
    denom = top if top > 0 else 1.0
    return {item_id: score / denom * 100.0 for item_id, score in raw.items()}
