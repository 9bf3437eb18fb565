from __future__ import annotations

import asyncio

from guild_core.ports import InteractionRepository

from .schemas import (
    ExplicitInteractions,
    ImplicitInteractions,
    InteractionSignals,
    UserProfile,
)


class InteractionReader:
    """
    Read-only view of a user's interactions and declared profile.

    Missing data yields empty collections; repository errors propagate so the
    caller aborts instead of scoring against a partial snapshot.
    """

    def __init__(
        self,
        repo: InteractionRepository,
        *,
        explicit_limit: int = 100,
        implicit_days: int = 30,
    ):
        self.repo = repo
        self.explicit_limit = explicit_limit
        self.implicit_days = implicit_days

    async def read_explicit(
        self, user_id: str, limit: int | None = None
    ) -> ExplicitInteractions:
        res = await self.repo.get_explicit_interactions(
            user_id, self.explicit_limit if limit is None else limit
        )
        return res or ExplicitInteractions()

    async def read_implicit(
        self, user_id: str, days_ago: int | None = None
    ) -> ImplicitInteractions:
        res = await self.repo.get_implicit_interactions(
            user_id, self.implicit_days if days_ago is None else days_ago
        )
        return res or ImplicitInteractions()

    async def read_profile(self, user_id: str) -> UserProfile:
        profile = await self.repo.get_profile(user_id)
        return profile or UserProfile(user_id=user_id)

    async def read_signals(self, user_id: str) -> InteractionSignals:
        explicit, implicit, profile = await asyncio.gather(
            self.read_explicit(user_id),
            self.read_implicit(user_id),
            self.read_profile(user_id),
        )
        return InteractionSignals(
            user_id=user_id,
            explicit=explicit,
            implicit=implicit,
            profile=profile,
        )
