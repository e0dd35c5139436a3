"""
Device-local preferences and the settings object handed to screens.

Settings are loaded once at launch from the DuckDB preferences table and
passed explicitly to sessions and pages. Every setter writes through to the
store before updating the in-memory value.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..config import get_preferences_db_path, get_slideshow_default_ms
from ..core.viewer import clamp_interval_ms
from ..error_handling import ValidationError
from ..logging_config import get_logger
from ..models.database import DatabaseManager, get_database_manager

logger = get_logger(__name__)


@dataclass(frozen=True)
class ThemePalette:
    name: str
    primary: str
    secondary: str
    light: str
    accent: str
    gradient: tuple[str, ...]
    background: str = "#0A0A0A"
    text: str = "#FFFFFF"


THEMES: dict[str, ThemePalette] = {
    "blue": ThemePalette(
        name="blue",
        primary="#4361EE",
        secondary="#3A0CA3",
        light="#E7F0FF",
        accent="#00D4FF",
        gradient=("#667EEA", "#764BA2", "#F093FB"),
    ),
    "pink": ThemePalette(
        name="pink",
        primary="#FF6B9D",
        secondary="#C44569",
        light="#FFF0F6",
        accent="#FF006E",
        gradient=("#FF6B9D", "#FFC857", "#E63946"),
    ),
}
DEFAULT_THEME = "blue"

THEME_KEY = "app_theme"
SLIDESHOW_INTERVAL_KEY = "slideshow_interval_ms"
VAULT_PASSWORD_HASH_KEY = "vault_password_hash"


class PreferencesStore:
    """JSON values in the ``preferences`` key/value table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, key: str, default: Any = None) -> Any:
        rows = self.db.execute_query("SELECT value FROM preferences WHERE key = ?", (key,))
        if not rows:
            return default
        try:
            return json.loads(rows[0][0])
        except json.JSONDecodeError:
            logger.warning("preference_value_corrupt", key=key)
            return default

    def set(self, key: str, value: Any) -> None:
        self.db.execute_query(
            """
            INSERT INTO preferences (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value)),
        )

    def delete(self, key: str) -> None:
        self.db.execute_query("DELETE FROM preferences WHERE key = ?", (key,))

    def all(self) -> dict[str, Any]:
        rows = self.db.execute_query("SELECT key, value FROM preferences ORDER BY key")
        values = {}
        for key, raw in rows:
            try:
                values[key] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("preference_value_corrupt", key=key)
        return values


SettingsListener = Callable[[str, Any], None]


class AppSettings:
    """Process-wide settings with persisted backing."""

    def __init__(self, store: PreferencesStore):
        self.store = store
        self._listeners: list[SettingsListener] = []

        theme = store.get(THEME_KEY, DEFAULT_THEME)
        self._theme = theme if theme in THEMES else DEFAULT_THEME
        self._slideshow_interval_ms = clamp_interval_ms(
            store.get(SLIDESHOW_INTERVAL_KEY, get_slideshow_default_ms())
        )

    @property
    def theme(self) -> str:
        return self._theme

    @property
    def palette(self) -> ThemePalette:
        return THEMES[self._theme]

    def set_theme(self, name: str) -> None:
        """
        Persist and apply a theme.

        Raises:
            ValidationError: If the theme is unknown
        """
        if name not in THEMES:
            raise ValidationError(
                f"Unknown theme: {name}",
                code="unknown_theme",
                user_message=f"Choose one of: {', '.join(THEMES)}.",
                details={"theme": name},
            )
        self.store.set(THEME_KEY, name)
        self._theme = name
        logger.info("theme_changed", theme=name)
        self._notify(THEME_KEY, name)

    @property
    def slideshow_interval_ms(self) -> int:
        return self._slideshow_interval_ms

    def set_slideshow_interval_ms(self, duration_ms: int) -> int:
        """Persist the slideshow interval (clamped) and return the stored value."""
        clamped = clamp_interval_ms(duration_ms)
        self.store.set(SLIDESHOW_INTERVAL_KEY, clamped)
        self._slideshow_interval_ms = clamped
        self._notify(SLIDESHOW_INTERVAL_KEY, clamped)
        return clamped

    @property
    def vault_password_hash(self) -> str | None:
        return self.store.get(VAULT_PASSWORD_HASH_KEY)

    def set_vault_password_hash(self, password_hash: str | None) -> None:
        if password_hash is None:
            self.store.delete(VAULT_PASSWORD_HASH_KEY)
        else:
            self.store.set(VAULT_PASSWORD_HASH_KEY, password_hash)

    def add_listener(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def _notify(self, key: str, value: Any) -> None:
        for listener in list(self._listeners):
            listener(key, value)


def load_settings(db_path: str | None = None) -> AppSettings:
    """Open the preferences database and load the settings."""
    db = get_database_manager(db_path or get_preferences_db_path())
    return AppSettings(PreferencesStore(db))
