from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

ItemId = str
UserId = str


class ContentType(str, Enum):
    ARTICLE = "article"
    FORUM_TOPIC = "forum_topic"
    JOB = "job"
    USER = "user"


ALL_CONTENT_TYPES: Tuple[ContentType, ...] = (
    ContentType.ARTICLE,
    ContentType.FORUM_TOPIC,
    ContentType.JOB,
    ContentType.USER,
)


class CandidateSource(str, Enum):
    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    TRENDING = "trending"


class FeedbackKind(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"
    DISMISS = "dismiss"
    NOT_INTERESTED = "not_interested"


# Feedback that permanently removes an item from a user's candidates
SUPPRESSING_FEEDBACK = frozenset({FeedbackKind.DISLIKE, FeedbackKind.NOT_INTERESTED})


@dataclass(frozen=True)
class Neighbor:
    user_id: UserId
    similarity_score: float  # in [0, 1]


@dataclass(frozen=True)
class NeighborInteraction:
    """One positive interaction of a neighbor with an item of some content type."""

    user_id: UserId
    item_id: ItemId


@dataclass(frozen=True)
class Candidate:
    item_id: ItemId
    score: float  # already weighted by its source
    source: CandidateSource


@dataclass(frozen=True)
class MergedCandidate:
    item_id: ItemId
    score: float  # 0..100
    sources: Tuple[CandidateSource, ...]


@dataclass(frozen=True)
class InterestQuery:
    """Features the content-based generator asks the repository to match."""

    tag_ids: List[str] = field(default_factory=list)
    category_ids: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.tag_ids or self.category_ids or self.skills)


ContentItem = Dict[str, Any]
