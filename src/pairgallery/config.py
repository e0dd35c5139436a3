"""Configuration management for pairgallery.

Values come from environment variables, with Streamlit secrets as fallback
when the app runs inside Streamlit. Getters below cover the gateway, the
upload providers, the local preferences store and viewer timing.
"""

import os
from pathlib import Path
from typing import Any

import streamlit as st

from .logging_config import get_logger

logger = get_logger(__name__)

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
DEVELOPMENT_ENVIRONMENTS = frozenset({"development", "dev", "local", "test", "testing"})
PRODUCTION_ENVIRONMENTS = frozenset({"production", "prod"})


def _cast(value: Any, cast_type: type) -> Any:
    if cast_type is bool:
        return value.strip().lower() in TRUE_VALUES if isinstance(value, str) else bool(value)
    if cast_type is str or isinstance(value, cast_type):
        return value
    return cast_type(value)


def _secret(key: str) -> Any:
    try:
        return st.secrets.get(key)
    except Exception:  # nosec B110
        # No secrets file outside a Streamlit run
        return None


class Config:
    """Typed, cached lookups over the environment and Streamlit secrets."""

    def __init__(self):
        self._cache: dict[tuple[str, str], Any] = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """
        Look up ``key`` and cast it.

        A value that fails to cast is logged and replaced by ``default``.
        Results are cached per key and type until ``clear_cache``.
        """
        cache_key = (key, cast_type.__name__)
        if cache_key in self._cache:
            return self._cache[cache_key]

        raw = os.getenv(key)
        if raw is None:
            raw = _secret(key)
        if raw is None:
            raw = default

        value = raw
        if raw is not None:
            try:
                value = _cast(raw, cast_type)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """
        Raises:
            ValueError: If ``key`` is not configured
        """
        value = self.get(key, cast_type=cast_type)
        if value is None:
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    def environment(self) -> str:
        return str(self.get("ENVIRONMENT", "development")).lower()

    def is_development(self) -> bool:
        return self.environment() in DEVELOPMENT_ENVIRONMENTS

    def is_production(self) -> bool:
        return self.environment() in PRODUCTION_ENVIRONMENTS

    def clear_cache(self) -> None:
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    """Development and test runs use the in-memory gateway and a dev user."""
    return get_config().is_development()


def is_production() -> bool:
    return get_config().is_production()


# Gateway


def get_supabase_url() -> str | None:
    """Get the hosted gateway base URL (None selects the in-memory gateway in development)."""
    url = get_env("SUPABASE_URL")
    return str(url).rstrip("/") if url else None


def get_supabase_anon_key() -> str | None:
    """Get the gateway's public API key."""
    return get_env("SUPABASE_ANON_KEY")


def get_realtime_heartbeat_seconds() -> float:
    """Get the realtime socket heartbeat interval."""
    return float(get_env("REALTIME_HEARTBEAT_SECONDS", 30.0, float))


# Media upload


def get_imagekit_public_key() -> str | None:
    return get_env("IMAGEKIT_PUBLIC_KEY")


def get_imagekit_upload_url() -> str:
    return str(get_env("IMAGEKIT_UPLOAD_URL", "https://upload.imagekit.io/api/v1/files/upload"))


def get_imagekit_auth_endpoint() -> str | None:
    return get_env("IMAGEKIT_AUTH_ENDPOINT")


def get_imagekit_usage_endpoint() -> str | None:
    return get_env("IMAGEKIT_USAGE_ENDPOINT")


def get_imagekit_limit_gb() -> float:
    """Get the ImageKit storage budget; above it uploads go to Cloudinary."""
    return float(get_env("IMAGEKIT_LIMIT_GB", 19.0, float))


def get_cloudinary_relay_url() -> str | None:
    return get_env("CLOUDINARY_RELAY_URL")


def get_upload_timeout_seconds() -> float:
    return float(get_env("UPLOAD_TIMEOUT_SECONDS", 120.0, float))


# Local state and viewer


def get_preferences_db_path() -> str:
    """Get the local preferences database path."""
    default = str(Path.home() / ".pairgallery" / "preferences.duckdb")
    return str(get_env("PREFERENCES_DB_PATH", default))


def get_slideshow_default_ms() -> int:
    return int(get_env("SLIDESHOW_DEFAULT_MS", 5000, int))


def get_slideshow_quiet_period_ms() -> int:
    return int(get_env("SLIDESHOW_QUIET_PERIOD_MS", 600, int))


def get_environment() -> str:
    return str(get_env("ENVIRONMENT", "development"))


def get_debug_mode() -> bool:
    return get_env("DEBUG", False, bool) or is_development()
