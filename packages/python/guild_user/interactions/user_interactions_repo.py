from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from anyio import to_thread
from postgrest.exceptions import APIError as PostgrestAPIError

from guild_core.errors import map_postgrest_error
from guild_core.types import (
    ContentItem,
    ContentType,
    InterestQuery,
    Neighbor,
    NeighborInteraction,
)
from guild_user.neighbors import rank_neighbors

from .schemas import (
    ArticleView,
    Bookmark,
    ExplicitInteractions,
    Follow,
    ImplicitInteractions,
    JobApplication,
    ReplyVote,
    TopicVote,
    UserProfile,
)

TABLE_BOOKMARKS = "bookmarks"
TABLE_TOPIC_VOTES = "topic_votes"
TABLE_REPLY_VOTES = "reply_votes"
TABLE_FOLLOWS = "follows"
TABLE_APPLICATIONS = "job_applications"
TABLE_VIEWS = "article_views"
TABLE_SKILLS = "user_skills"
TABLE_JOB_PREFS = "job_preferences"
TABLE_ARTICLE_TAGS = "article_tags"
TABLE_TOPIC_TAGS = "topic_tags"

MAX_VIEWS = 200
MAX_IN = 200  # keep PostgREST URL/param size safe
MAX_JOB_SCAN = 1000  # newest active jobs checked for skill overlap

_TAGGED_ARTICLE = "article:articles(category_id, tags:article_tags(tag_id))"
_TAGGED_TOPIC = "topic:topics(category_id, tags:topic_tags(tag_id))"

# (table, user column, item column) of the positive interaction that feeds
# collaborative filtering for each content type
_NEIGHBOR_SOURCES: dict[ContentType, tuple[str, str, str]] = {
    ContentType.ARTICLE: (TABLE_BOOKMARKS, "user_id", "article_id"),
    ContentType.FORUM_TOPIC: (TABLE_TOPIC_VOTES, "user_id", "topic_id"),
    ContentType.JOB: (TABLE_APPLICATIONS, "user_id", "job_id"),
    ContentType.USER: (TABLE_FOLLOWS, "follower_id", "following_id"),
}

# (table, status column value, select) used for candidate lookups and hydration
_CONTENT_TABLES: dict[ContentType, tuple[str, str, str]] = {
    ContentType.ARTICLE: (
        "articles",
        "published",
        "id, title, slug, excerpt, category_id, category:news_categories(name), "
        "author:users(id, username), published_at, view_count, bookmark_count, "
        "tags:article_tags(tag_id, tag:tags(name))",
    ),
    ContentType.FORUM_TOPIC: (
        "topics",
        "open",
        "id, title, slug, type, category_id, category:forum_categories(name), "
        "author:users(id, username), created_at, view_count, upvotes, reply_count, "
        "tags:topic_tags(tag_id, tag:tags(name))",
    ),
    ContentType.JOB: (
        "jobs",
        "active",
        "id, title, slug, description, company_id, company:companies(name, logo), "
        "job_type, work_location, experience_level, required_skills, created_at, "
        "view_count, application_count",
    ),
    ContentType.USER: (
        "users",
        "active",
        "id, username, profile:profiles(full_name, headline, avatar, current_role), "
        "follower_count, following_count, skills:user_skills(skill_name)",
    ),
}

# (date column, popularity order columns); users have no trending list
_TRENDING: dict[ContentType, tuple[str, tuple[str, ...]]] = {
    ContentType.ARTICLE: ("published_at", ("view_count", "bookmark_count")),
    ContentType.FORUM_TOPIC: ("created_at", ("upvotes", "reply_count")),
    ContentType.JOB: ("created_at", ("view_count", "application_count")),
}


def _rows(res) -> list[dict[str, Any]]:
    return list(getattr(res, "data", None) or [])


def _tag_ids(node: dict | None) -> list[str]:
    tags = (node or {}).get("tags") or []
    return [str(t["tag_id"]) for t in tags if t.get("tag_id") is not None]


def _nested(row: dict, key: str) -> dict:
    val = row.get(key)
    return val if isinstance(val, dict) else {}


def _opt_str(value) -> str | None:
    return str(value) if value is not None else None


def _quoted(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def skills_ilike_filter(skills: Sequence[str]) -> str:
    """PostgREST or= expression matching any of the skill names, ignoring case."""
    return ",".join(f"skill_name.ilike.{_quoted(s)}" for s in skills)


def has_any_skill(required: Sequence[str] | None, wanted: set[str]) -> bool:
    return any(str(s).strip().lower() in wanted for s in required or [] if s)


def normalize_item(row: dict[str, Any]) -> ContentItem:
    """Flatten embedded tag/skill relations into the keys the generators read."""
    item = dict(row)
    item["id"] = str(row["id"])
    item["tag_ids"] = _tag_ids(row)
    if row.get("category_id") is not None:
        item["category_id"] = str(row["category_id"])
    skills = row.get("skills")
    if isinstance(skills, list):
        item["skills"] = [
            s["skill_name"] if isinstance(s, dict) else str(s)
            for s in skills
            if s and (not isinstance(s, dict) or s.get("skill_name"))
        ]
    if "required_skills" in row:
        item["required_skills"] = list(row.get("required_skills") or [])
    return item


class SupabaseInteractionsRepo:
    def __init__(self, client, *, trending_days: int = 7, min_overlap: int = 3):
        self.client = client
        self.trending_days = trending_days
        self.min_overlap = min_overlap

    # ---------- Async facade ----------
    async def get_explicit_interactions(
        self, user_id: str, limit: int = 100
    ) -> ExplicitInteractions:
        return await to_thread.run_sync(self._explicit_sync, user_id, limit)

    async def get_implicit_interactions(
        self, user_id: str, days_ago: int = 30
    ) -> ImplicitInteractions:
        return await to_thread.run_sync(self._implicit_sync, user_id, days_ago)

    async def get_profile(self, user_id: str) -> UserProfile | None:
        return await to_thread.run_sync(self._profile_sync, user_id)

    async def find_similar_users(self, user_id: str, limit: int = 50) -> list[Neighbor]:
        return await to_thread.run_sync(self._similar_users_sync, user_id, limit)

    async def get_neighbor_interactions(
        self,
        content_type: ContentType,
        neighbor_ids: Sequence[str],
        exclude_user_id: str,
    ) -> list[NeighborInteraction]:
        return await to_thread.run_sync(
            self._neighbor_interactions_sync,
            content_type,
            list(neighbor_ids),
            exclude_user_id,
        )

    async def get_content_candidates(
        self, content_type: ContentType, query: InterestQuery, limit: int = 200
    ) -> list[ContentItem]:
        return await to_thread.run_sync(
            self._content_candidates_sync, content_type, query, limit
        )

    async def get_trending_content(
        self, content_type: ContentType, limit: int = 20
    ) -> list[ContentItem]:
        return await to_thread.run_sync(self._trending_sync, content_type, limit)

    async def get_content_by_ids(
        self, content_type: ContentType, ids: Sequence[str]
    ) -> list[ContentItem]:
        return await to_thread.run_sync(
            self._content_by_ids_sync, content_type, list(ids)
        )

    # ---------- Private sync impls ----------
    def _execute(self, query) -> list[dict[str, Any]]:
        try:
            return _rows(query.execute())
        except PostgrestAPIError as e:
            raise map_postgrest_error(e)

    def _explicit_sync(self, user_id: str, limit: int) -> ExplicitInteractions:
        bookmarks = self._execute(
            self.client.table(TABLE_BOOKMARKS)
            .select(f"article_id, created_at, {_TAGGED_ARTICLE}")
            .eq("user_id", user_id)
            .is_("deleted_at", None)
            .order("created_at", desc=True)
            .limit(limit)
        )
        topic_votes = self._execute(
            self.client.table(TABLE_TOPIC_VOTES)
            .select(f"topic_id, value, created_at, {_TAGGED_TOPIC}")
            .eq("user_id", user_id)
            .gt("value", 0)
            .order("created_at", desc=True)
            .limit(limit)
        )
        reply_votes = self._execute(
            self.client.table(TABLE_REPLY_VOTES)
            .select(f"reply_id, value, created_at, reply:forum_replies(topic_id, {_TAGGED_TOPIC})")
            .eq("user_id", user_id)
            .gt("value", 0)
            .order("created_at", desc=True)
            .limit(limit)
        )
        follows = self._execute(
            self.client.table(TABLE_FOLLOWS)
            .select("following_id, created_at")
            .eq("follower_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
        )
        applications = self._execute(
            self.client.table(TABLE_APPLICATIONS)
            .select("job_id, applied_at, job:jobs(required_skills)")
            .eq("user_id", user_id)
            .order("applied_at", desc=True)
            .limit(limit)
        )

        def _reply_vote(row: dict) -> ReplyVote:
            reply = _nested(row, "reply")
            topic = _nested(reply, "topic")
            return ReplyVote(
                reply_id=str(row["reply_id"]),
                topic_id=_opt_str(reply.get("topic_id")),
                value=int(row.get("value") or 1),
                category_id=_opt_str(topic.get("category_id")),
                tag_ids=_tag_ids(topic),
                created_at=row.get("created_at"),
            )

        return ExplicitInteractions(
            bookmarks=[
                Bookmark(
                    article_id=str(r["article_id"]),
                    category_id=_opt_str(_nested(r, "article").get("category_id")),
                    tag_ids=_tag_ids(_nested(r, "article")),
                    created_at=r.get("created_at"),
                )
                for r in bookmarks
            ],
            topic_votes=[
                TopicVote(
                    topic_id=str(r["topic_id"]),
                    value=int(r.get("value") or 1),
                    category_id=_opt_str(_nested(r, "topic").get("category_id")),
                    tag_ids=_tag_ids(_nested(r, "topic")),
                    created_at=r.get("created_at"),
                )
                for r in topic_votes
            ],
            reply_votes=[_reply_vote(r) for r in reply_votes],
            follows=[
                Follow(following_id=str(r["following_id"]), created_at=r.get("created_at"))
                for r in follows
            ],
            job_applications=[
                JobApplication(
                    job_id=str(r["job_id"]),
                    required_skills=list(_nested(r, "job").get("required_skills") or []),
                    applied_at=r.get("applied_at"),
                )
                for r in applications
            ],
        )

    def _implicit_sync(self, user_id: str, days_ago: int) -> ImplicitInteractions:
        since = datetime.now(timezone.utc) - timedelta(days=days_ago)
        rows = self._execute(
            self.client.table(TABLE_VIEWS)
            .select(f"article_id, read_time_seconds, scroll_depth, created_at, {_TAGGED_ARTICLE}")
            .eq("user_id", user_id)
            .gte("created_at", since.isoformat())
            .order("created_at", desc=True)
            .limit(MAX_VIEWS)
        )
        return ImplicitInteractions(
            article_views=[
                ArticleView(
                    article_id=str(r["article_id"]),
                    read_time_seconds=r.get("read_time_seconds"),
                    scroll_depth=r.get("scroll_depth"),
                    category_id=_opt_str(_nested(r, "article").get("category_id")),
                    tag_ids=_tag_ids(_nested(r, "article")),
                    created_at=r.get("created_at"),
                )
                for r in rows
            ]
        )

    def _profile_sync(self, user_id: str) -> UserProfile | None:
        skills = self._execute(
            self.client.table(TABLE_SKILLS).select("skill_name").eq("user_id", user_id)
        )
        prefs = self._execute(
            self.client.table(TABLE_JOB_PREFS)
            .select("desired_roles, desired_skills")
            .eq("user_id", user_id)
            .limit(1)
        )
        if not skills and not prefs:
            return None
        pref = prefs[0] if prefs else {}
        return UserProfile(
            user_id=user_id,
            skills=[str(s["skill_name"]) for s in skills if s.get("skill_name")],
            desired_roles=list(pref.get("desired_roles") or []),
            desired_skills=list(pref.get("desired_skills") or []),
        )

    def _similar_users_sync(self, user_id: str, limit: int) -> list[Neighbor]:
        own = self._execute(
            self.client.table(TABLE_BOOKMARKS)
            .select("article_id")
            .eq("user_id", user_id)
            .is_("deleted_at", None)
        )
        article_ids = list(dict.fromkeys(str(r["article_id"]) for r in own))
        if not article_ids:
            return []

        co_rows: list[dict[str, Any]] = []
        for i in range(0, len(article_ids), MAX_IN):
            co_rows.extend(
                self._execute(
                    self.client.table(TABLE_BOOKMARKS)
                    .select("user_id, article_id")
                    .in_("article_id", article_ids[i : i + MAX_IN])
                    .neq("user_id", user_id)
                    .is_("deleted_at", None)
                )
            )
        return rank_neighbors(
            article_ids,
            ((str(r["user_id"]), str(r["article_id"])) for r in co_rows),
            subject_id=user_id,
            min_overlap=self.min_overlap,
            limit=limit,
        )

    def _neighbor_interactions_sync(
        self,
        content_type: ContentType,
        neighbor_ids: list[str],
        exclude_user_id: str,
    ) -> list[NeighborInteraction]:
        if not neighbor_ids:
            return []
        table, user_col, item_col = _NEIGHBOR_SOURCES[content_type]
        q = (
            self.client.table(table)
            .select(f"{user_col}, {item_col}")
            .in_(user_col, neighbor_ids[:MAX_IN])
        )
        if content_type == ContentType.ARTICLE:
            q = q.is_("deleted_at", None)
        elif content_type == ContentType.FORUM_TOPIC:
            q = q.gt("value", 0)
        elif content_type == ContentType.USER:
            q = q.neq(item_col, exclude_user_id)
        return [
            NeighborInteraction(user_id=str(r[user_col]), item_id=str(r[item_col]))
            for r in self._execute(q)
        ]

    def _ids_by_tags(self, table: str, item_col: str, tag_ids: list[str]) -> list[str]:
        if not tag_ids:
            return []
        rows = self._execute(
            self.client.table(table).select(item_col).in_("tag_id", tag_ids[:MAX_IN])
        )
        return list(dict.fromkeys(str(r[item_col]) for r in rows))

    def _content_candidates_sync(
        self, content_type: ContentType, query: InterestQuery, limit: int
    ) -> list[ContentItem]:
        table, status, select = _CONTENT_TABLES[content_type]
        def base():
            return self.client.table(table).select(select).eq("status", status)

        rows: list[dict[str, Any]] = []
        if content_type in (ContentType.ARTICLE, ContentType.FORUM_TOPIC):
            tag_table, item_col = (
                (TABLE_ARTICLE_TAGS, "article_id")
                if content_type == ContentType.ARTICLE
                else (TABLE_TOPIC_TAGS, "topic_id")
            )
            if query.category_ids:
                rows += self._execute(
                    base().in_("category_id", query.category_ids[:MAX_IN]).limit(limit)
                )
            tagged = self._ids_by_tags(tag_table, item_col, query.tag_ids)
            if tagged:
                rows += self._execute(base().in_("id", tagged[:MAX_IN]).limit(limit))
        elif content_type == ContentType.JOB:
            if query.skills:
                # required_skills keeps the employer's casing; compare lower-cased here
                wanted = {s.lower() for s in query.skills}
                recent = self._execute(
                    base().order("created_at", desc=True).limit(MAX_JOB_SCAN)
                )
                rows += [
                    r for r in recent if has_any_skill(r.get("required_skills"), wanted)
                ][:limit]
        elif content_type == ContentType.USER:
            if query.skills:
                skilled = self._execute(
                    self.client.table(TABLE_SKILLS)
                    .select("user_id")
                    .or_(skills_ilike_filter(query.skills[:MAX_IN]))
                )
                ids = list(dict.fromkeys(str(r["user_id"]) for r in skilled))
                if ids:
                    rows += self._execute(base().in_("id", ids[:MAX_IN]).limit(limit))

        seen: dict[str, ContentItem] = {}
        for r in rows:
            item = normalize_item(r)
            seen.setdefault(item["id"], item)
        return list(seen.values())[:limit]

    def _trending_sync(self, content_type: ContentType, limit: int) -> list[ContentItem]:
        trending = _TRENDING.get(content_type)
        if trending is None:
            return []
        date_col, order_cols = trending
        table, status, select = _CONTENT_TABLES[content_type]
        since = datetime.now(timezone.utc) - timedelta(days=self.trending_days)
        q = (
            self.client.table(table)
            .select(select)
            .eq("status", status)
            .gte(date_col, since.isoformat())
        )
        for col in order_cols:
            q = q.order(col, desc=True)
        return [normalize_item(r) for r in self._execute(q.limit(limit))]

    def _content_by_ids_sync(
        self, content_type: ContentType, ids: list[str]
    ) -> list[ContentItem]:
        if not ids:
            return []
        table, status, select = _CONTENT_TABLES[content_type]
        rows = self._execute(
            self.client.table(table)
            .select(select)
            .in_("id", ids[:MAX_IN])
            .eq("status", status)
        )
        return [normalize_item(r) for r in rows]
