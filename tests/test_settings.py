import pytest
from pydantic import ValidationError

from guild_core.config import RecommendationSettings


def test_defaults():
    s = RecommendationSettings(_env_file=None)

    assert (s.collaborative_weight, s.content_weight, s.trending_weight) == (0.5, 0.3, 0.2)
    assert s.cache_namespace == "recommendations:"
    assert s.cache_ttl_sec == 21600
    assert s.per_type_limit == 20
    assert s.latency_budget_ms == 200
    assert s.redis_url is None
    assert s.telemetry_enabled is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
    monkeypatch.setenv("COLLABORATIVE_WEIGHT", "0.6")
    monkeypatch.setenv("CONTENT_WEIGHT", "0.2")
    monkeypatch.setenv("CACHE_TTL_SEC", "600")

    s = RecommendationSettings(_env_file=None)

    assert s.redis_url == "redis://cache:6379/0"
    assert s.collaborative_weight == 0.6
    assert s.cache_ttl_sec == 600


def test_weights_must_sum_to_one():
    with pytest.raises(ValidationError):
        RecommendationSettings(_env_file=None, trending_weight=0.5)


@pytest.mark.parametrize(
    "field, value",
    [("cache_ttl_sec", 0), ("per_type_limit", 0), ("telemetry_sample", 1.5)],
)
def test_out_of_range_values_are_rejected(field, value):
    with pytest.raises(ValidationError):
        RecommendationSettings(_env_file=None, **{field: value})
