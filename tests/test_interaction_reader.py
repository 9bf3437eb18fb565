import pytest

from guild_user.interactions.interaction_reader import InteractionReader
from guild_user.interactions.schemas import (
    Bookmark,
    ExplicitInteractions,
    Follow,
    JobApplication,
    TopicVote,
    UserProfile,
)

pytestmark = pytest.mark.anyio


class StoreDown(Exception):
    pass


async def test_unknown_user_reads_as_empty(interactions):
    signals = await InteractionReader(interactions).read_signals("ghost")

    assert signals.user_id == "ghost"
    assert signals.explicit == ExplicitInteractions()
    assert signals.implicit.article_views == []
    assert signals.profile == UserProfile(user_id="ghost")


async def test_signals_combine_all_reads(interactions):
    interactions.explicit["u1"] = ExplicitInteractions(
        bookmarks=[Bookmark(article_id="a1")],
        topic_votes=[TopicVote(topic_id="t1")],
        follows=[Follow(following_id="u2")],
        job_applications=[JobApplication(job_id="j1")],
    )
    interactions.profiles["u1"] = UserProfile(user_id="u1", skills=["sql"])

    signals = await InteractionReader(interactions).read_signals("u1")

    assert signals.profile.skills == ["sql"]
    assert signals.interacted_ids() == {
        "article": {"a1"},
        "forum_topic": {"t1"},
        "job": {"j1"},
        "user": {"u2"},
    }
    assert interactions.calls["get_explicit_interactions"] == 1
    assert interactions.calls["get_implicit_interactions"] == 1
    assert interactions.calls["get_profile"] == 1


async def test_repository_failure_propagates(interactions):
    interactions.fail["get_implicit_interactions"] = StoreDown("views down")

    with pytest.raises(StoreDown):
        await InteractionReader(interactions).read_signals("u1")


async def test_explicit_limit_zero_is_kept(interactions, monkeypatch):
    seen = []

    async def record(user_id, limit=100):
        seen.append(limit)
        return ExplicitInteractions()

    monkeypatch.setattr(interactions, "get_explicit_interactions", record)
    reader = InteractionReader(interactions, explicit_limit=25)

    await reader.read_explicit("u1", limit=0)
    await reader.read_explicit("u1")

    assert seen == [0, 25]
