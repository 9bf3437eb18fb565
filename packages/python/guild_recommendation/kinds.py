"""
Per content type behaviour. Supporting a new content type means adding a
ContentType member and registering a ContentKind for it here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from guild_core.types import ContentItem, ContentType

from .types import GenerationContext


def tag_feature(tag_id) -> str:
    return f"tag:{tag_id}"


def category_feature(category_id) -> str:
    return f"category:{category_id}"


def skill_feature(name: str) -> str:
    return f"skill:{name.strip().lower()}"


class ContentKind(ABC):
    content_type: ContentType
    has_trending: bool = True

    @abstractmethod
    def item_features(self, item: ContentItem) -> set[str]:
        """Interest features an item carries, in the same vocabulary as the user's interests."""

    def excluded_ids(self, ctx: GenerationContext) -> set[str]:
        """Items never proposed by content matching (already engaged with)."""
        return ctx.interacted_ids(self.content_type)


class _TaggedKind(ContentKind):
    def item_features(self, item: ContentItem) -> set[str]:
        feats = {tag_feature(t) for t in item.get("tag_ids") or []}
        if item.get("category_id") is not None:
            feats.add(category_feature(item["category_id"]))
        return feats


class ArticleKind(_TaggedKind):
    content_type = ContentType.ARTICLE


class ForumTopicKind(_TaggedKind):
    content_type = ContentType.FORUM_TOPIC


class JobKind(ContentKind):
    content_type = ContentType.JOB

    def item_features(self, item: ContentItem) -> set[str]:
        return {skill_feature(s) for s in item.get("required_skills") or [] if s}


class UserKind(ContentKind):
    content_type = ContentType.USER
    has_trending = False

    def item_features(self, item: ContentItem) -> set[str]:
        return {skill_feature(s) for s in item.get("skills") or [] if s}

    def excluded_ids(self, ctx: GenerationContext) -> set[str]:
        return super().excluded_ids(ctx) | {ctx.user_id}


KINDS: dict[ContentType, ContentKind] = {
    k.content_type: k for k in (ArticleKind(), ForumTopicKind(), JobKind(), UserKind())
}


def kind_for(content_type: ContentType) -> ContentKind:
    return KINDS[content_type]
