"""
Narrow read/write interfaces the engine depends on. Storage belongs to other
subsystems; adapters (Supabase, Redis) and test fakes implement these.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

from guild_core.types import (
    ContentItem,
    ContentType,
    InterestQuery,
    Neighbor,
    NeighborInteraction,
)

if TYPE_CHECKING:
    from guild_feedback.schemas import FeedbackRecord
    from guild_user.interactions.schemas import (
        ExplicitInteractions,
        ImplicitInteractions,
        UserProfile,
    )


class InteractionRepository(Protocol):
    async def get_explicit_interactions(
        self, user_id: str, limit: int = 100
    ) -> ExplicitInteractions: ...

    async def get_implicit_interactions(
        self, user_id: str, days_ago: int = 30
    ) -> ImplicitInteractions: ...

    async def get_profile(self, user_id: str) -> UserProfile | None: ...

    async def find_similar_users(
        self, user_id: str, limit: int = 50
    ) -> list[Neighbor]: ...

    async def get_neighbor_interactions(
        self,
        content_type: ContentType,
        neighbor_ids: Sequence[str],
        exclude_user_id: str,
    ) -> list[NeighborInteraction]: ...

    async def get_content_candidates(
        self, content_type: ContentType, query: InterestQuery, limit: int = 200
    ) -> list[ContentItem]: ...

    async def get_trending_content(
        self, content_type: ContentType, limit: int = 20
    ) -> list[ContentItem]: ...

    async def get_content_by_ids(
        self, content_type: ContentType, ids: Sequence[str]
    ) -> list[ContentItem]: ...


class FeedbackRepository(Protocol):
    async def get_feedback(self, user_id: str) -> list[FeedbackRecord]: ...

    async def upsert(
        self, user_id: str, item_type: str, item_id: str, feedback: str
    ) -> FeedbackRecord: ...


class KeyValueCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set_with_ttl(self, key: str, value: str, ttl_sec: int) -> bool: ...

    async def delete_by_prefix(self, prefix: str) -> int: ...


class EventEmitter(Protocol):
    async def emit(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NoopEmitter:
    async def emit(self, name: str, payload):  # type: ignore[override]
        return None
