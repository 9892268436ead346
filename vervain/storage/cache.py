"""Last-known-good settings cache.

The orchestrator writes every fresh snapshot here and reads it back when the
settings store is unreachable. Values live in memory and, when a path is
given, in a JSON file replaced atomically on every write.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from .models import SettingsSnapshot

logger = logging.getLogger(__name__)


class SettingsCache:
    """
    Snapshot cache with optional disk persistence.

    Usage:
        cache = SettingsCache(Path("data/settings-cache.json"))
        cache.save(snapshot)
        cached = cache.load()  # None when nothing was ever cached
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._snapshot: Optional[SettingsSnapshot] = None
        self._lock = threading.RLock()

    def save(self, snapshot: SettingsSnapshot) -> None:
        """Remember snapshot; disk failures are logged, never raised."""
        with self._lock:
            self._snapshot = snapshot
            if not self.path:
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp_path.write_text(json.dumps(snapshot.to_dict(), indent=2))
                tmp_path.replace(self.path)
            except OSError as exc:
                logger.warning("Failed to write settings cache %s: %s", self.path, exc)

    def load(self) -> Optional[SettingsSnapshot]:
        """Return the cached snapshot (memory first, then disk)."""
        with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            if not self.path or not self.path.exists():
                return None
            try:
                data = json.loads(self.path.read_text())
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Failed to read settings cache %s: %s", self.path, exc)
                return None
            self._snapshot = SettingsSnapshot.from_dict(data)
            return self._snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
            if self.path and self.path.exists():
                try:
                    self.path.unlink()
                except OSError as exc:
                    logger.warning("Failed to remove settings cache %s: %s", self.path, exc)
