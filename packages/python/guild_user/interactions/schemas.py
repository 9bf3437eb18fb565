from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Bookmark(_Frozen):
    article_id: str
    category_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class TopicVote(_Frozen):
    topic_id: str
    value: int = 1
    category_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class ReplyVote(_Frozen):
    reply_id: str
    topic_id: str | None = None
    value: int = 1
    category_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class Follow(_Frozen):
    following_id: str
    created_at: datetime | None = None


class JobApplication(_Frozen):
    job_id: str
    required_skills: list[str] = Field(default_factory=list)
    applied_at: datetime | None = None


class ArticleView(_Frozen):
    article_id: str
    read_time_seconds: int | None = None
    scroll_depth: float | None = None
    category_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class ExplicitInteractions(_Frozen):
    bookmarks: list[Bookmark] = Field(default_factory=list)
    topic_votes: list[TopicVote] = Field(default_factory=list)
    reply_votes: list[ReplyVote] = Field(default_factory=list)
    follows: list[Follow] = Field(default_factory=list)
    job_applications: list[JobApplication] = Field(default_factory=list)


class ImplicitInteractions(_Frozen):
    article_views: list[ArticleView] = Field(default_factory=list)


class UserProfile(_Frozen):
    user_id: str
    skills: list[str] = Field(default_factory=list)
    desired_roles: list[str] = Field(default_factory=list)
    desired_skills: list[str] = Field(default_factory=list)


class InteractionSignals(_Frozen):
    """Snapshot of everything known about one user for a single computation."""

    user_id: str
    explicit: ExplicitInteractions
    implicit: ImplicitInteractions
    profile: UserProfile

    def interacted_ids(self) -> dict[str, set[str]]:
        """Item ids the user already engaged with explicitly, keyed by content type value."""
        return {
            "article": {b.article_id for b in self.explicit.bookmarks},
            "forum_topic": {v.topic_id for v in self.explicit.topic_votes},
            "job": {a.job_id for a in self.explicit.job_applications},
            "user": {f.following_id for f in self.explicit.follows},
        }
