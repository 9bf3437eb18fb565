from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from guild_core.ports import InteractionRepository
from guild_core.types import Neighbor


def rank_neighbors(
    subject_items: Iterable[str],
    co_interactions: Iterable[tuple[str, str]],
    *,
    subject_id: str,
    min_overlap: int = 3,
    limit: int = 50,
) -> list[Neighbor]:
    """
    Rank other users by how much of the subject's history they share.

    similarity = |shared items| / |subject items|. Deliberately asymmetric: a
    heavy user who covers the subject's interests scores high even if most of
    their own history is unrelated.

    co_interactions: (user_id, item_id) rows of other users on any item.
    """
    subject = set(subject_items)
    if not subject:
        return []

    shared: dict[str, set[str]] = defaultdict(set)
    for user_id, item_id in co_interactions:
        if user_id == subject_id or item_id not in subject:
            continue
        shared[user_id].add(item_id)

    ranked = [
        Neighbor(user_id=uid, similarity_score=len(items) / len(subject))
        for uid, items in shared.items()
        if len(items) >= min_overlap
    ]
    # Highest similarity first, user_id as tie-break for determinism
    ranked.sort(key=lambda n: (-n.similarity_score, n.user_id))
    return ranked[:limit]


class NeighborFinder:
    def __init__(self, repo: InteractionRepository, *, limit: int = 50):
        self.repo = repo
        self.limit = limit

    async def find_neighbors(
        self, user_id: str, limit: int | None = None
    ) -> list[Neighbor]:
        """Empty on cold start; collaborative candidates are then empty too."""
        limit = self.limit if limit is None else limit
        if limit <= 0:
            return []
        rows = await self.repo.find_similar_users(user_id, limit)

        neighbors: list[Neighbor] = []
        for n in rows or []:
            if n.user_id == user_id or n.similarity_score <= 0:
                continue
            score = min(1.0, float(n.similarity_score))
            neighbors.append(Neighbor(user_id=n.user_id, similarity_score=score))

        neighbors.sort(key=lambda n: n.similarity_score, reverse=True)
        return neighbors[:limit]
