"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is required: with no environment at all the engine runs on
    the rule-based classifier and the built-in reference data.

    Optional environment variables:
        - HOST / PORT: Server bind address (default: 0.0.0.0:8080)
        - AI_API_KEY / AI_BASE_URL / AI_MODEL: Primary OpenAI-compatible provider
        - OPENAI_API_KEY: Secondary provider (api.openai.com)
        - ANTHROPIC_API_KEY: Tertiary provider (Messages API)
        - RANKING_CACHE_TTL_SECONDS: Ranking stability window (default: 300)
        - CATALOG_PATH: JSON file with catalog items for the in-memory catalog
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Inference Providers (behavior classification)
    # ==========================================================================
    ai_behavior_analysis_enabled: bool = Field(
        default=True,
        description="Try remote inference providers before the rule table"
    )
    ai_api_key: str = Field(default="", description="Primary provider API key (Groq-style)")
    ai_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Primary provider base URL (OpenAI-compatible)"
    )
    ai_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Model for OpenAI-compatible providers"
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API base URL"
    )
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1",
        description="Anthropic API base URL"
    )
    anthropic_model: str = Field(
        default="claude-3-5-haiku-20241022",
        description="Anthropic model"
    )
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version header")
    ai_max_tokens: int = Field(default=500, description="Response token budget per provider call")
    ai_temperature: float = Field(default=0.3, description="Sampling temperature")
    inference_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for a single provider call (seconds)"
    )

    # ==========================================================================
    # Ranking / Session
    # ==========================================================================
    ranking_cache_ttl_seconds: float = Field(
        default=300.0,
        description="How long a computed ranking is served verbatim"
    )
    ranking_cache_max_entries: int = Field(
        default=256,
        description="Max cached rankings per session"
    )
    recompute_debounce_seconds: float = Field(
        default=1.0,
        description="Coalescing window for behavior recomputation"
    )
    session_ttl_seconds: int = Field(
        default=86400,
        description="Session TTL in seconds (24 hours)"
    )
    session_sweep_interval_seconds: float = Field(
        default=300.0,
        description="Minimum time between sweeps of expired sessions"
    )
    default_limit: int = Field(default=10, description="Default recommendation count")
    max_limit: int = Field(default=200, description="Upper bound for requested limit")

    # ==========================================================================
    # Reference Data
    # ==========================================================================
    catalog_path: Optional[Path] = Field(
        default=None,
        description="JSON file with catalog items (list of CatalogItem objects)"
    )
    reference_data_path: Optional[Path] = Field(
        default=None,
        description="JSON file with association rules, similarity edges and curated picks"
    )

    @field_validator("catalog_path", "reference_data_path", mode="before")
    @classmethod
    def parse_optional_path(cls, v):
        if isinstance(v, str):
            return Path(v) if v.strip() else None
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.
    Provider keys default to empty so no test reaches the network.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "ai_api_key": "",
        "openai_api_key": "",
        "anthropic_api_key": "",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
