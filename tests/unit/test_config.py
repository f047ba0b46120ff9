"""
Tests for the configuration module.
"""

from pathlib import Path

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_defaults_without_environment(self):
        """Nothing is required; defaults match the documented values."""
        from config.settings import Settings, get_settings_for_testing

        settings = get_settings_for_testing()

        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.ai_max_tokens == 500
        assert settings.ai_temperature == 0.3
        assert settings.ranking_cache_ttl_seconds == 300.0
        assert settings.recompute_debounce_seconds == 1.0
        assert settings.default_limit == 10
        assert settings.catalog_path is None
        assert settings.session_sweep_interval_seconds == 300.0
        assert "workers" not in Settings.model_fields

    def test_is_development_property(self):
        """Test is_development property."""
        from config.settings import Settings

        for env in ["development", "dev", "local"]:
            settings = Settings(_env_file=None, environment=env)
            assert settings.is_development is True

        settings = Settings(_env_file=None, environment="production")
        assert settings.is_development is False

    def test_is_production_property(self):
        """Test is_production property."""
        from config.settings import Settings

        for env in ["production", "prod"]:
            settings = Settings(_env_file=None, environment=env)
            assert settings.is_production is True

        settings = Settings(_env_file=None, environment="development")
        assert settings.is_production is False

    def test_cors_origins_parsing(self):
        """Test that CORS origins can be parsed from comma-separated string."""
        from config.settings import Settings

        settings = Settings(
            _env_file=None,
            cors_origins="http://localhost:3000,http://localhost:5173",
        )

        assert len(settings.cors_origins) == 2
        assert "http://localhost:3000" in settings.cors_origins
        assert "http://localhost:5173" in settings.cors_origins

    def test_data_paths_parsing(self):
        """Paths parse from strings; blank strings mean unset."""
        from config.settings import Settings

        settings = Settings(_env_file=None, catalog_path="/tmp/catalog.json", reference_data_path="  ")

        assert settings.catalog_path == Path("/tmp/catalog.json")
        assert settings.reference_data_path is None

    def test_env_vars_are_read(self, monkeypatch):
        """Provider settings come from the environment."""
        from config.settings import Settings

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("RANKING_CACHE_TTL_SECONDS", "60")

        settings = Settings(_env_file=None)

        assert settings.openai_api_key == "sk-test"
        assert settings.ranking_cache_ttl_seconds == 60.0

    def test_settings_for_testing(self):
        """Test get_settings_for_testing function."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(default_limit=5)

        assert settings.environment == "testing"
        assert settings.debug is True
        assert settings.default_limit == 5
        # No provider keys in tests
        assert settings.ai_api_key == ""
        assert settings.anthropic_api_key == ""


class TestConstants:
    """Tests for constants module."""

    def test_classifier_thresholds(self):
        from config.constants import DEFAULT_CLASSIFIER_THRESHOLDS

        assert DEFAULT_CLASSIFIER_THRESHOLDS.IMPULSE_MAX_AVG_HOVER_MS == 1000.0
        assert DEFAULT_CLASSIFIER_THRESHOLDS.RESEARCHER_MIN_PAGE_VISITS == 3
        assert DEFAULT_CLASSIFIER_THRESHOLDS.RESEARCHER_MIN_AVG_HOVER_MS == 3000.0

    def test_signal_weights(self):
        from config.constants import DEFAULT_SIGNAL_WEIGHTS

        assert DEFAULT_SIGNAL_WEIGHTS.COLLABORATIVE == 0.4
        assert DEFAULT_SIGNAL_WEIGHTS.MARKET_BASKET == 0.3
        assert DEFAULT_SIGNAL_WEIGHTS.BEHAVIORAL == 0.3

    def test_constants_are_frozen(self):
        """Constant dataclasses cannot be mutated at runtime."""
        from dataclasses import FrozenInstanceError

        from config.constants import DEFAULT_SEARCH_WEIGHTS

        with pytest.raises(FrozenInstanceError):
            DEFAULT_SEARCH_WEIGHTS.TITLE_EXACT = 99.0

    def test_sort_aliases(self):
        from config.constants import SORT_ALIASES

        assert SORT_ALIASES["price-low-high"] == "price-asc"
        assert SORT_ALIASES["name-z-a"] == "name-desc"
