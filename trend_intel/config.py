"""
Configuration management for the trend intelligence pipeline.

All values come from environment variables (or a local .env file). API keys
left empty simply disable the matching data source.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Data source API keys
    serpapi_key: str = Field(default="", alias="SERPAPI_KEY")
    youtube_api_key: str = Field(default="", alias="YOUTUBE_API_KEY")
    google_cse_api_key: str = Field(default="", alias="GOOGLE_CSE_API_KEY")
    google_cse_cx: str = Field(default="", alias="GOOGLE_CSE_CX")
    rapidapi_key: str = Field(default="", alias="RAPIDAPI_KEY")
    tiktok_rapidapi_host: str = Field(default="tiktok-data1.p.rapidapi.com", alias="TIKTOK_RAPIDAPI_HOST")

    # Market targeting (Google Trends geo + YouTube/CSE language)
    trend_geo: str = Field(default="ID", alias="TREND_GEO")
    trend_language: str = Field(default="id", alias="TREND_LANGUAGE")

    # ── Fetching ──
    # Per-source keyword cap; TikTok applies its own lower cap on top.
    max_keywords_per_fetch: int = Field(default=10, alias="MAX_KEYWORDS_PER_FETCH")
    # Timeout for a single adapter call (seconds)
    source_timeout_seconds: float = Field(default=15.0, alias="SOURCE_TIMEOUT_SECONDS")
    # Timeout for the whole fetch stage; unfinished adapters are cancelled
    fetch_stage_timeout_seconds: float = Field(default=45.0, alias="FETCH_STAGE_TIMEOUT_SECONDS")
    # Lookback window handed to adapters (days)
    fetch_window_days: int = Field(default=90, alias="FETCH_WINDOW_DAYS")

    # ── Freshness & retention ──
    staleness_window_hours: int = Field(default=24, alias="STALENESS_WINDOW_HOURS")
    data_retention_days: int = Field(default=30, alias="DATA_RETENTION_DAYS")
    signal_max_age_days: int = Field(default=30, alias="SIGNAL_MAX_AGE_DAYS")

    # ── Scoring & signals ──
    min_keywords_for_scoring: int = Field(default=3, alias="MIN_KEYWORDS_FOR_SCORING")
    signal_top_k: int = Field(default=20, alias="SIGNAL_TOP_K")
    hot_score_threshold: float = Field(default=45.0, alias="HOT_SCORE_THRESHOLD")

    # ── Scheduler ──
    # "join": a second caller awaits the in-flight run; "reject": it fails fast
    concurrent_run_policy: str = Field(default="join", alias="CONCURRENT_RUN_POLICY")
    # Serve fixed demo insights when no real scores are stored yet
    allow_fallback_data: bool = Field(default=True, alias="ALLOW_FALLBACK_DATA")

    # Database
    database_url: str = Field(
        default="sqlite:///./trend_intel.db",
        alias="DATABASE_URL"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
