"""
Central configuration for the Matchday sync services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache

from pydantic import Field, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class CacheBackend(str, Enum):
    REDIS = "redis"
    MEMORY = "memory"


# Legacy variable names, read in priority order when MD_PRIMARY_API_KEYS is unset
LEGACY_PRIMARY_KEY_VARS = ("FOOTBALL_API_KEY", "FOOTBALL_API_KEY_2")
LEGACY_SECONDARY_KEY_VAR = "BZZOIRO_API_KEY"


class Settings(BaseSettings):
    """Root settings shared by the API and the sync engine."""

    model_config = SettingsConfigDict(
        env_prefix="MD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound into log context")

    # ── Cache store ──────────────────────────────────────────
    cache_backend: CacheBackend = CacheBackend.REDIS
    redis_url: RedisDsn = Field(default="redis://redis:6379/0")
    redis_max_connections: int = 50
    quota_counter_ttl_s: int = 2 * 86400

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Primary provider (API-Football) ──────────────────────
    primary_base_url: str = "https://v3.football.api-sports.io"
    primary_api_keys: list[str] = Field(
        default_factory=list,
        description="Ordered credentials; the first one with quota left is used.",
    )
    provider_request_timeout_s: float = 10.0

    # ── Secondary live feed (Bzzoiro) ────────────────────────
    secondary_base_url: str = "https://sports.bzzoiro.com/api"
    secondary_api_key: str = ""
    secondary_failure_threshold: int = 3
    secondary_recovery_timeout_s: float = 60.0

    # ── Quota ────────────────────────────────────────────────
    daily_call_limit: int = 100
    calls_per_analysis: int = 5
    # (remaining quota strictly above, minimum seconds between primary refetches)
    refetch_tiers: list[tuple[int, float]] = Field(
        default_factory=lambda: [(100, 45.0), (40, 90.0)]
    )
    refetch_min_interval_s: float = 180.0

    # ── Cache freshness ──────────────────────────────────────
    live_cache_ttl_s: float = 120.0
    idle_cache_ttl_s: float = 6 * 3600.0

    # ── Analysis ─────────────────────────────────────────────
    head_to_head_last: int = 10
    batch_optimized_stats: bool = True

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @model_validator(mode="after")
    def use_legacy_key_fallback(self) -> "Settings":
        """Read FOOTBALL_API_KEY / FOOTBALL_API_KEY_2 / BZZOIRO_API_KEY when MD_* keys are not set."""
        if not self.primary_api_keys:
            self.primary_api_keys = [
                os.environ[name] for name in LEGACY_PRIMARY_KEY_VARS if os.environ.get(name)
            ]
        if not self.secondary_api_key:
            self.secondary_api_key = os.environ.get(LEGACY_SECONDARY_KEY_VAR, "")
        return self

    @model_validator(mode="after")
    def sort_refetch_tiers(self) -> "Settings":
        """Tiers are evaluated from the highest remaining-quota threshold down."""
        self.refetch_tiers = sorted(self.refetch_tiers, key=lambda t: t[0], reverse=True)
        return self

    @property
    def redis_url_str(self) -> str:
        return str(self.redis_url)

    @property
    def key_count(self) -> int:
        return len(self.primary_api_keys)

    @property
    def secondary_configured(self) -> bool:
        return bool(self.secondary_api_key)

    def refetch_interval_s(self, remaining: int) -> float:
        """Minimum age a snapshot must reach before the primary provider is called again."""
        for threshold, interval in self.refetch_tiers:
            if remaining > threshold:
                return interval
        return self.refetch_min_interval_s


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
