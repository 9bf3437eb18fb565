from __future__ import annotations

from typing import Iterable

from guild_core.types import CandidateSource

DEFAULT_EXPLANATION = "Recommended for you"

# Checked in order; the first contributing source picks the text
_EXPLANATIONS: tuple[tuple[CandidateSource, str], ...] = (
    (CandidateSource.COLLABORATIVE, "Because users with similar interests liked this"),
    (CandidateSource.TRENDING, "Trending in the community"),
    (CandidateSource.CONTENT, "Based on your interests and past activity"),
)


def explain(sources: Iterable[CandidateSource | str] | None) -> str:
    present = {CandidateSource(s) for s in (sources or ())}
    for source, text in _EXPLANATIONS:
        if source in present:
            return text
    return DEFAULT_EXPLANATION
