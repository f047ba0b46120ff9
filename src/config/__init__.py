"""
Configuration module for the recommendation engine.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings, settings

    # Get settings instance (cached)
    settings = get_settings()

    # Access values
    ttl = settings.ranking_cache_ttl_seconds
    is_dev = settings.is_development
"""

from config.settings import Settings, get_settings, get_settings_for_testing

settings = get_settings()

__all__ = ["Settings", "get_settings", "get_settings_for_testing", "settings"]
