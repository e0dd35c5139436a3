"""
Unit tests for configuration.
"""

import pytest

from pairgallery.config import (
    Config,
    get_config,
    get_debug_mode,
    get_imagekit_limit_gb,
    get_preferences_db_path,
    get_required_env,
    get_slideshow_default_ms,
    get_slideshow_quiet_period_ms,
    get_supabase_url,
    is_development,
    is_production,
)


class TestConfig:
    """Test cases for Config."""

    def setup_method(self):
        self.config = Config()

    def test_default_when_missing(self, monkeypatch):
        monkeypatch.delenv("PAIRGALLERY_MISSING", raising=False)

        assert self.config.get("PAIRGALLERY_MISSING", "fallback") == "fallback"

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)])
    def test_bool_cast(self, monkeypatch, raw, expected):
        monkeypatch.setenv("PAIRGALLERY_FLAG", raw)

        assert self.config.get("PAIRGALLERY_FLAG", cast_type=bool) is expected

    def test_int_cast(self, monkeypatch):
        monkeypatch.setenv("PAIRGALLERY_NUMBER", "42")

        assert self.config.get("PAIRGALLERY_NUMBER", cast_type=int) == 42

    def test_failed_cast_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("PAIRGALLERY_NUMBER", "many")

        assert self.config.get("PAIRGALLERY_NUMBER", 7, int) == 7

    def test_values_are_cached_until_cleared(self, monkeypatch):
        monkeypatch.setenv("PAIRGALLERY_VALUE", "first")
        assert self.config.get("PAIRGALLERY_VALUE") == "first"

        monkeypatch.setenv("PAIRGALLERY_VALUE", "second")
        assert self.config.get("PAIRGALLERY_VALUE") == "first"

        self.config.clear_cache()
        assert self.config.get("PAIRGALLERY_VALUE") == "second"

    def test_get_required(self, monkeypatch):
        monkeypatch.delenv("PAIRGALLERY_REQUIRED", raising=False)

        with pytest.raises(ValueError, match="PAIRGALLERY_REQUIRED"):
            self.config.get_required("PAIRGALLERY_REQUIRED")

    @pytest.mark.parametrize(
        "environment,development,production",
        [("test", True, False), ("local", True, False), ("production", False, True), ("staging", False, False)],
    )
    def test_environment_modes(self, monkeypatch, environment, development, production):
        monkeypatch.setenv("ENVIRONMENT", environment)

        assert self.config.is_development() is development
        assert self.config.is_production() is production


class TestConfigGetters:
    def test_test_environment_is_development(self):
        assert is_development()
        assert not is_production()
        assert get_debug_mode()

    def test_supabase_url_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://project.example.com/")
        get_config().clear_cache()

        assert get_supabase_url() == "https://project.example.com"

    def test_supabase_url_unset(self):
        assert get_supabase_url() is None

    def test_defaults(self):
        assert get_slideshow_default_ms() == 5000
        assert get_slideshow_quiet_period_ms() == 600
        assert get_imagekit_limit_gb() == 19.0

    def test_preferences_path_from_env(self, tmp_path):
        assert get_preferences_db_path() == str(tmp_path / "preferences.duckdb")

    def test_required_env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        get_config().clear_cache()

        assert get_required_env("SUPABASE_ANON_KEY") == "anon"
