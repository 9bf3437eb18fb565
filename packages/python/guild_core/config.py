import math

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


COLLABORATIVE_WEIGHT = 0.5  # users similar to you liked X
CONTENT_BASED_WEIGHT = 0.3  # based on your interests
TRENDING_WEIGHT = 0.2  # diversity, avoids the filter bubble

CACHE_KEY_PREFIX = "recommendations:"
CACHE_TTL_SEC = 6 * 3600
PER_TYPE_LIMIT = 20
DEFAULT_LIMIT = 20
LATENCY_BUDGET_MS = 200


class RecommendationSettings(BaseSettings):
    app_name: str = "Guild Recommendation Engine"
    # credentials
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    redis_url: str | None = None
    # cache
    cache_namespace: str = CACHE_KEY_PREFIX
    cache_ttl_sec: int = Field(default=CACHE_TTL_SEC, gt=0)
    # source weights
    collaborative_weight: float = Field(default=COLLABORATIVE_WEIGHT, ge=0.0, le=1.0)
    content_weight: float = Field(default=CONTENT_BASED_WEIGHT, ge=0.0, le=1.0)
    trending_weight: float = Field(default=TRENDING_WEIGHT, ge=0.0, le=1.0)
    # pipeline sizes and windows
    per_type_limit: int = Field(default=PER_TYPE_LIMIT, gt=0)
    default_limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    neighbor_limit: int = Field(default=50, gt=0)
    min_neighbor_overlap: int = Field(default=3, ge=1)
    explicit_limit: int = Field(default=100, gt=0)
    implicit_days: int = Field(default=30, gt=0)
    trending_days: int = Field(default=7, gt=0)
    trending_limit: int = Field(default=20, gt=0)
    content_candidate_limit: int = Field(default=200, gt=0)
    latency_budget_ms: int = Field(default=LATENCY_BUDGET_MS, gt=0)
    # telemetry
    telemetry_enabled: bool = False
    telemetry_sample: float = Field(default=1.0, ge=0.0, le=1.0)
    # env config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "RecommendationSettings":
        total = self.collaborative_weight + self.content_weight + self.trending_weight
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"source weights must sum to 1.0, got {total}")
        return self
