from __future__ import annotations

from typing import Collection, Iterable

from guild_core.types import Candidate, CandidateSource, MergedCandidate

MAX_SCORE = 100.0


def merge_candidates(
    collaborative: Iterable[Candidate],
    content_based: Iterable[Candidate],
    trending: Iterable[Candidate],
    suppressed_ids: Collection[str] = (),
) -> list[MergedCandidate]:
    """
    Sum already-weighted scores per item across sources, dropping suppressed
    items, and cap at 100.

    Output follows first-seen order and is not ranked. Input order only
    affects the order of `sources`, never the score.
    """
    suppressed = set(suppressed_ids)
    scores: dict[str, float] = {}
    sources: dict[str, list[CandidateSource]] = {}

    for batch in (collaborative, content_based, trending):
        for c in batch:
            if c.item_id in suppressed:
                continue
            if c.item_id in scores:
                scores[c.item_id] += c.score
                if c.source not in sources[c.item_id]:
                    sources[c.item_id].append(c.source)
            else:
                scores[c.item_id] = c.score
                sources[c.item_id] = [c.source]

    return [
        MergedCandidate(
            item_id=item_id,
            score=max(0.0, min(score, MAX_SCORE)),
            sources=tuple(sources[item_id]),
        )
        for item_id, score in scores.items()
    ]


def rank_merged(merged: Iterable[MergedCandidate], limit: int) -> list[MergedCandidate]:
    """Highest score first; stable, so equal scores keep merge order."""
    return sorted(merged, key=lambda c: c.score, reverse=True)[:limit]
