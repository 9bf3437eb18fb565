from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from guild_core.types import ContentType, Neighbor
from guild_user.interactions.schemas import InteractionSignals


class Recommendation(BaseModel):
    """Externally visible, immutable result row."""

    model_config = ConfigDict(frozen=True)

    type: ContentType
    id: str
    relevance_score: int = Field(ge=0, le=100)
    explanation: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class GenerationContext:
    """Inputs shared by every generator within one computation."""

    user_id: str
    signals: InteractionSignals
    neighbors: List[Neighbor] = field(default_factory=list)

    def interacted_ids(self, content_type: ContentType) -> set[str]:
        return self.signals.interacted_ids().get(content_type.value, set())


def to_relevance(score: float) -> int:
    """Round half-up and clamp into 0..100."""
    return max(0, min(100, int(score + 0.5)))
