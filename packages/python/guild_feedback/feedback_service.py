from __future__ import annotations

import logging
from typing import Iterable

from guild_cache.recommendation_cache import RecommendationCache
from guild_core.errors import RuleViolation
from guild_core.ports import EventEmitter, FeedbackRepository, NoopEmitter
from guild_core.types import ContentType, FeedbackKind

from .schemas import FeedbackCreate, FeedbackRecord

log = logging.getLogger(__name__)


def suppressed_ids(
    feedback: Iterable[FeedbackRecord], item_type: ContentType
) -> set[str]:
    """Ids of items of one type the user disliked or marked not interested."""
    return {f.item_id for f in feedback if f.item_type == item_type and f.suppresses}


class FeedbackService:
    def __init__(
        self,
        repo: FeedbackRepository,
        cache: RecommendationCache,
        events: EventEmitter | None = None,
    ):
        self.repo = repo
        self.cache = cache
        self.events = events or NoopEmitter()

    async def submit_feedback(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackRecord:
        dto = self._normalize(user_id, item_type, item_id, feedback)

        record = await self.repo.upsert(
            dto.user_id, dto.item_type.value, dto.item_id, dto.feedback.value
        )
        # Unconditional: any feedback change may alter the suppression set
        await self.cache.invalidate_user(dto.user_id)

        log.info(
            "Recommendation feedback submitted user=%s type=%s item=%s feedback=%s",
            dto.user_id,
            dto.item_type.value,
            dto.item_id,
            dto.feedback.value,
        )
        await self.events.emit(
            "recommendation_feedback",
            {
                "user_id": dto.user_id,
                "item_type": dto.item_type.value,
                "item_id": dto.item_id,
                "feedback": dto.feedback.value,
            },
        )
        return record

    async def get_feedback(self, user_id: str) -> list[FeedbackRecord]:
        return await self.repo.get_feedback(user_id)

    def _normalize(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackCreate:
        if not user_id:
            raise RuleViolation("user_id is required")
        if not item_id:
            raise RuleViolation("item_id is required")
        try:
            ctype = ContentType(item_type)
        except ValueError:
            raise RuleViolation(f"unknown item_type: {item_type!r}")
        try:
            kind = FeedbackKind(feedback)
        except ValueError:
            raise RuleViolation(f"unknown feedback: {feedback!r}")
        return FeedbackCreate(
            user_id=user_id, item_type=ctype, item_id=str(item_id), feedback=kind
        )
