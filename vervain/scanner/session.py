"""Mutable state owned by the scan orchestrator."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

logger = logging.getLogger(__name__)

DOMAIN_WARNING_PREFIX = "domain-warning:"
CONTACT_WARNING_PREFIX = "contact-warning:"


@dataclass
class ScanSession:
    """
    Reentrancy flags and dismissal sets for one hosting page lifetime.

    Dismissals survive ordinary rescans and are cleared only by ``reload()``.
    """

    scanning: bool = False
    suppressing_observer: bool = False
    dismissed_domain_warnings: set[str] = field(default_factory=set)
    dismissed_contact_warnings: set[str] = field(default_factory=set)

    @property
    def busy(self) -> bool:
        """True while triggers must be dropped."""
        return self.scanning or self.suppressing_observer

    def dismiss(self, finding_id: str) -> None:
        key = (finding_id or "").strip().lower()
        if key.startswith(DOMAIN_WARNING_PREFIX):
            self.dismissed_domain_warnings.add(key)
        elif key.startswith(CONTACT_WARNING_PREFIX):
            self.dismissed_contact_warnings.add(key)
        else:
            logger.warning("Ignoring dismissal with unknown id: %s", finding_id)

    def is_dismissed(self, finding_id: str) -> bool:
        key = (finding_id or "").strip().lower()
        return key in self.dismissed_domain_warnings or key in self.dismissed_contact_warnings

    def reload(self) -> None:
        """Full page reload: forget every dismissal."""
        self.dismissed_domain_warnings.clear()
        self.dismissed_contact_warnings.clear()

    @contextmanager
    def self_mutation(self) -> Iterator[None]:
        """Bracket changes to the monitored content made by the scanner itself."""
        previous = self.suppressing_observer
        self.suppressing_observer = True
        try:
            yield
        finally:
            self.suppressing_observer = previous
