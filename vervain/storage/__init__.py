"""Settings storage for Vervain."""

from .cache import SettingsCache
from .models import SettingsSnapshot
from .settings_store import SettingsStore, SQLiteSettingsStore

__all__ = [
    "SettingsCache",
    "SettingsSnapshot",
    "SettingsStore",
    "SQLiteSettingsStore",
]
