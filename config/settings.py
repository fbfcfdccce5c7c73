"""
Centralized configuration for the lead qualification engine.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Qualification
    qualification_threshold: float = Field(default=0.6, env="QUALIFICATION_THRESHOLD")
    lead_tier_hot_threshold: float = Field(default=0.8, env="LEAD_TIER_HOT_THRESHOLD")
    lead_tier_warm_threshold: float = Field(default=0.5, env="LEAD_TIER_WARM_THRESHOLD")

    # Quick replies
    quick_reply_limit: int = Field(default=5, env="QUICK_REPLY_LIMIT")

    # Per-session rate limiting
    rate_limit_messages: int = Field(default=15, env="RATE_LIMIT_MESSAGES")
    rate_limit_window_seconds: int = Field(default=60, env="RATE_LIMIT_WINDOW_SECONDS")

    # Conversation history kept for dynamic replies and context analysis
    history_window: int = Field(default=20, env="HISTORY_WINDOW")

    # Metrics
    enable_metrics: bool = Field(default=True, env="ENABLE_METRICS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
