from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from guild_core.types import SUPPRESSING_FEEDBACK, ContentType, FeedbackKind


class FeedbackCreate(BaseModel):
    user_id: str
    item_type: ContentType
    item_id: str
    feedback: FeedbackKind


class FeedbackRecord(BaseModel):
    """One row per (user_id, item_type, item_id); later feedback overwrites earlier."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    item_type: ContentType
    item_id: str
    feedback: FeedbackKind
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def suppresses(self) -> bool:
        return self.feedback in SUPPRESSING_FEEDBACK
