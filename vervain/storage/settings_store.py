"""Persistent settings store.

Settings live in a camelCase key-value layout (one JSON value per key) so
exported settings stay portable. ``SettingsStore`` implements every
settings operation on top of two primitives, ``load_raw`` and ``save_raw``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

import aiosqlite

from ..detection.contacts import TrustedContact
from ..detection.variations import DomainVariation, generate_variations
from ..errors import SettingsUnavailable
from ..utils.domains import normalize_domain_entry
from .models import FIELD_KEYS, SettingsSnapshot

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode(value: Any) -> Any:
    """Convert snapshot values into JSON-friendly data."""
    if isinstance(value, (DomainVariation, TrustedContact)):
        return value.to_dict()
    if isinstance(value, (frozenset, set)):
        return sorted(_encode(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


class SettingsStore(ABC):
    """Abstract settings store."""

    @abstractmethod
    async def load_raw(self) -> dict[str, Any]:
        """Return all persisted keys (camelCase layout)."""

    @abstractmethod
    async def save_raw(self, values: dict[str, Any]) -> None:
        """Persist the given keys, leaving others untouched."""

    async def get_settings(self) -> SettingsSnapshot:
        """Read a fresh snapshot; raises SettingsUnavailable on failure."""
        return SettingsSnapshot.from_dict(await self.load_raw())

    async def set(self, **fields: Any) -> None:
        """Persist a partial update given as snapshot field names."""
        unknown = set(fields) - set(FIELD_KEYS)
        if unknown:
            raise ValueError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
        await self.save_raw({FIELD_KEYS[name]: _encode(value) for name, value in fields.items()})

    # -- domains ---------------------------------------------------------

    async def save_primary_domain(self, domain: str) -> list[DomainVariation]:
        """Store a new primary domain and regenerate its variation catalog."""
        value = normalize_domain_entry(domain)
        variations = generate_variations(value)
        await self.set(
            primary_domain=value,
            variations=variations,
            setup_complete=True,
            last_updated=_now_ms(),
        )
        logger.info("Primary domain set to %s (%d variations)", value, len(variations))
        return variations

    async def save_additional_domains(self, domains: Iterable[str]) -> None:
        values = [d for d in (normalize_domain_entry(x) for x in domains) if d]
        await self.set(additional_domains=values, last_updated=_now_ms())

    async def add_additional_domain(self, domain: str) -> None:
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        if value and value not in settings.additional_domains:
            await self.set(
                additional_domains=[*settings.additional_domains, value],
                last_updated=_now_ms(),
            )

    async def remove_additional_domain(self, domain: str) -> None:
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        await self.set(
            additional_domains=[d for d in settings.additional_domains if d != value],
            last_updated=_now_ms(),
        )

    async def whitelist_domain(self, domain: str) -> bool:
        """Add a domain to the whitelist; returns False when already present."""
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        if not value or value in settings.whitelisted_domains:
            return False
        await self.set(whitelisted_domains=settings.whitelisted_domains | {value})
        logger.info("Whitelisted %s", value)
        return True

    async def unwhitelist_domain(self, domain: str) -> None:
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        await self.set(whitelisted_domains=settings.whitelisted_domains - {value})

    async def block_domain(self, domain: str) -> bool:
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        if not value or value in settings.blocked_domains:
            return False
        await self.set(blocked_domains=settings.blocked_domains | {value})
        logger.info("Blocked %s", value)
        return True

    async def unblock_domain(self, domain: str) -> None:
        value = normalize_domain_entry(domain)
        settings = await self.get_settings()
        await self.set(blocked_domains=settings.blocked_domains - {value})

    # -- trusted contacts ------------------------------------------------

    async def add_trusted_contact(self, contact: TrustedContact) -> bool:
        """Add a contact unless one with the same email exists."""
        settings = await self.get_settings()
        email = contact.email.strip().lower()
        if not email or any(c.email.lower() == email for c in settings.trusted_contacts):
            return False
        await self.set(
            trusted_contacts=[*settings.trusted_contacts, contact],
            last_updated=_now_ms(),
        )
        return True

    async def update_trusted_contact(self, old_email: str, contact: TrustedContact) -> None:
        settings = await self.get_settings()
        old = (old_email or "").strip().lower()
        await self.set(
            trusted_contacts=[
                contact if c.email.lower() == old else c for c in settings.trusted_contacts
            ],
            last_updated=_now_ms(),
        )

    async def remove_trusted_contact(self, email: str) -> None:
        settings = await self.get_settings()
        target = (email or "").strip().lower()
        await self.set(
            trusted_contacts=[c for c in settings.trusted_contacts if c.email.lower() != target],
            last_updated=_now_ms(),
        )

    async def save_trusted_contacts(self, contacts: Iterable[TrustedContact]) -> None:
        await self.set(trusted_contacts=list(contacts), last_updated=_now_ms())

    # -- toggles and counters ----------------------------------------------

    async def set_domain_detection_enabled(self, enabled: bool) -> None:
        await self.set(domain_detection_enabled=bool(enabled))

    async def set_contact_detection_enabled(self, enabled: bool) -> None:
        await self.set(contact_detection_enabled=bool(enabled))

    async def set_detection_enabled(self, enabled: bool) -> None:
        """Legacy switch: toggles both detectors."""
        await self.set(
            domain_detection_enabled=bool(enabled),
            contact_detection_enabled=bool(enabled),
        )

    async def increment_alerts_count(self, by: int = 1) -> int:
        settings = await self.get_settings()
        count = settings.alerts_count + by
        await self.set(alerts_count=count)
        return count


class SQLiteSettingsStore(SettingsStore):
    """Settings store backed by a single SQLite key-value table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database and create the settings table."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")
        except aiosqlite.Error:
            pass
        await self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def load_raw(self) -> dict[str, Any]:
        if not self._connection:
            raise SettingsUnavailable("Settings database is not connected")
        try:
            async with self._lock:
                cursor = await self._connection.execute("SELECT key, value FROM settings")
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise SettingsUnavailable(f"Failed to read settings: {exc}") from exc

        values: dict[str, Any] = {}
        for key, raw in rows:
            try:
                values[key] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable settings value for %s", key)
        return values

    async def save_raw(self, values: dict[str, Any]) -> None:
        if not self._connection:
            raise SettingsUnavailable("Settings database is not connected")
        if not values:
            return
        try:
            async with self._lock:
                await self._connection.executemany(
                    """
                    INSERT INTO settings (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    [(key, json.dumps(value)) for key, value in values.items()],
                )
                await self._connection.commit()
        except aiosqlite.Error as exc:
            raise SettingsUnavailable(f"Failed to write settings: {exc}") from exc
