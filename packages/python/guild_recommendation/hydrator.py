from __future__ import annotations

import logging
from typing import Sequence

from guild_core.ports import InteractionRepository
from guild_core.types import ContentItem, ContentType, MergedCandidate

log = logging.getLogger(__name__)


class ContentHydrator:
    def __init__(self, repo: InteractionRepository):
        self.repo = repo

    async def hydrate(
        self, content_type: ContentType, candidates: Sequence[MergedCandidate]
    ) -> list[tuple[MergedCandidate, ContentItem]]:
        """
        Pair candidates with display records, keeping candidate order. Items
        that vanished after scoring (deleted, unpublished) are dropped.
        """
        if not candidates:
            return []
        ids = [c.item_id for c in candidates]
        rows = await self.repo.get_content_by_ids(content_type, ids)
        by_id = {str(r["id"]): r for r in rows or []}

        out = [(c, by_id[c.item_id]) for c in candidates if c.item_id in by_id]
        if len(out) < len(candidates):
            log.debug(
                "dropped %d unresolvable %s candidates",
                len(candidates) - len(out),
                content_type.value,
            )
        return out
