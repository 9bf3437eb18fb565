from __future__ import annotations

from datetime import datetime, timezone

from anyio import to_thread
from postgrest.exceptions import APIError as PostgrestAPIError

from guild_core.errors import Conflict, map_postgrest_error

from .schemas import FeedbackRecord

TABLE = "recommendation_feedback"


def _row_to_item(row: dict) -> FeedbackRecord:
    return FeedbackRecord(**row)


class SupabaseFeedbackRepo:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_feedback(self, user_id: str) -> list[FeedbackRecord]:
        return await to_thread.run_sync(self._list_sync, user_id)

    async def upsert(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackRecord:
        return await to_thread.run_sync(
            self._upsert_sync, user_id, item_type, item_id, feedback
        )

    # ---------- Private sync impls ----------
    def _list_sync(self, user_id: str) -> list[FeedbackRecord]:
        try:
            res = (
                self.client.table(TABLE)
                .select("user_id, item_type, item_id, feedback, created_at, updated_at")
                .eq("user_id", user_id)
                .order("updated_at", desc=True)
                .execute()
            )
        except PostgrestAPIError as e:
            raise map_postgrest_error(e)
        return [_row_to_item(r) for r in (res.data or [])]

    def _upsert_sync(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackRecord:
        payload = {
            "user_id": user_id,
            "item_type": item_type,
            "item_id": item_id,
            "feedback": feedback,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            res = (
                self.client.table(TABLE)
                .upsert(
                    payload,
                    on_conflict="user_id,item_type,item_id",
                    returning="representation",
                )
                .execute()
            )
        except PostgrestAPIError as e:
            raise map_postgrest_error(e)

        rows = res.data or []
        if not rows:
            # returning="representation" expects rows; if not, treat as conflict
            raise Conflict("feedback not stored")
        return _row_to_item(rows[0])
