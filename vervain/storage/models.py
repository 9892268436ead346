"""Settings snapshot model."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from ..detection.contacts import TrustedContact
from ..detection.variations import DomainVariation

# Snapshot field -> persisted camelCase key.
FIELD_KEYS: dict[str, str] = {
    "primary_domain": "primaryDomain",
    "additional_domains": "additionalDomains",
    "variations": "variations",
    "whitelisted_domains": "whitelistedDomains",
    "blocked_domains": "blockedDomains",
    "trusted_contacts": "trustedContacts",
    "domain_detection_enabled": "domainDetectionEnabled",
    "contact_detection_enabled": "contactDetectionEnabled",
    "auto_add_domains": "autoAddDomains",
    "setup_complete": "setupComplete",
    "alerts_count": "alertsCount",
    "last_updated": "lastUpdated",
}
LEGACY_DETECTION_KEY = "detectionEnabled"


def _clean_domains(values: Any) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values or ():
        domain = str(value or "").strip().lower()
        if domain and domain not in seen:
            seen.append(domain)
    return tuple(seen)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Immutable configuration read at the start of a scan."""

    primary_domain: str = ""
    additional_domains: tuple[str, ...] = ()
    variations: tuple[DomainVariation, ...] = ()
    whitelisted_domains: frozenset[str] = field(default_factory=frozenset)
    blocked_domains: frozenset[str] = field(default_factory=frozenset)
    trusted_contacts: tuple[TrustedContact, ...] = ()
    domain_detection_enabled: bool = True
    contact_detection_enabled: bool = True
    auto_add_domains: bool = False
    setup_complete: bool = False
    alerts_count: int = 0
    last_updated: int = 0

    @property
    def protected_domains(self) -> tuple[str, ...]:
        """Primary domain first, then additional domains (deduplicated)."""
        return _clean_domains((self.primary_domain, *self.additional_domains))

    @property
    def has_targets(self) -> bool:
        return bool(self.protected_domains or self.trusted_contacts)

    def with_updates(self, **changes: Any) -> "SettingsSnapshot":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase layout."""
        return {
            "primaryDomain": self.primary_domain,
            "additionalDomains": list(self.additional_domains),
            "variations": [v.to_dict() for v in self.variations],
            "whitelistedDomains": sorted(self.whitelisted_domains),
            "blockedDomains": sorted(self.blocked_domains),
            "trustedContacts": [c.to_dict() for c in self.trusted_contacts],
            "domainDetectionEnabled": self.domain_detection_enabled,
            "contactDetectionEnabled": self.contact_detection_enabled,
            "autoAddDomains": self.auto_add_domains,
            "setupComplete": self.setup_complete,
            "alertsCount": self.alerts_count,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SettingsSnapshot":
        """Build a snapshot from persisted keys; unknown keys are ignored."""
        data = dict(data or {})

        # Older installs only have the single legacy switch.
        legacy = data.get(LEGACY_DETECTION_KEY)
        domain_enabled = data.get("domainDetectionEnabled", legacy)
        contact_enabled = data.get("contactDetectionEnabled", legacy)

        variations = []
        for entry in data.get("variations") or ():
            if isinstance(entry, dict) and entry.get("domain") and entry.get("type"):
                try:
                    variations.append(DomainVariation.from_dict(entry))
                except ValueError:
                    continue

        contacts = []
        for entry in data.get("trustedContacts") or ():
            if isinstance(entry, dict) and entry.get("email"):
                contacts.append(TrustedContact.from_dict(entry))

        return cls(
            primary_domain=str(data.get("primaryDomain") or "").strip().lower(),
            additional_domains=_clean_domains(data.get("additionalDomains")),
            variations=tuple(variations),
            whitelisted_domains=frozenset(_clean_domains(data.get("whitelistedDomains"))),
            blocked_domains=frozenset(_clean_domains(data.get("blockedDomains"))),
            trusted_contacts=tuple(contacts),
            domain_detection_enabled=domain_enabled is not False,
            contact_detection_enabled=contact_enabled is not False,
            auto_add_domains=bool(data.get("autoAddDomains", False)),
            setup_complete=bool(data.get("setupComplete", False)),
            alerts_count=int(data.get("alertsCount") or 0),
            last_updated=int(data.get("lastUpdated") or 0),
        )
