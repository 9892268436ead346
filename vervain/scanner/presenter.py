"""Collaborator contracts used by the scan orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..detection.contacts import TrustedContact
from .findings import Finding


class HostStatus(str, Enum):
    """Whether the hosting environment can still serve scans."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ERROR = "error"


class HostEnvironment(ABC):
    """Capability check consulted once per scan and on every trigger."""

    @abstractmethod
    def check(self) -> HostStatus:
        pass


@dataclass(frozen=True)
class SenderCandidate:
    """A rendered sender (display name, address)."""

    name: str
    email: str
    element: Any = None
    container: Any = None


@dataclass(frozen=True)
class LinkCandidate:
    """A rendered URL, either a hyperlink or plain text in a message body."""

    url: str
    host: str
    element: Any = None
    container: Any = None


class Presenter(ABC):
    """
    Enumerates what is currently rendered and displays findings.

    ``mark_warned`` and ``render_finding`` change the monitored content; the
    orchestrator calls them inside ``ScanSession.self_mutation()``.
    """

    @abstractmethod
    def list_sender_candidates(self) -> list[SenderCandidate]:
        pass

    @abstractmethod
    def list_link_candidates(self) -> list[LinkCandidate]:
        pass

    @abstractmethod
    def list_plaintext_url_candidates(self) -> list[LinkCandidate]:
        pass

    @abstractmethod
    def is_already_warned(self, element: Any) -> bool:
        pass

    @abstractmethod
    def mark_warned(self, element: Any) -> None:
        pass

    @abstractmethod
    def render_finding(self, finding: Finding) -> None:
        pass

    @abstractmethod
    def dismiss(self, finding_id: str) -> None:
        """User dismissed an alert until the next full reload."""

    @abstractmethod
    async def whitelist(self, domain: str) -> None:
        """User marked a domain as safe."""

    @abstractmethod
    async def add_trusted_contact(self, contact: TrustedContact) -> None:
        """User marked a sender as a trusted contact."""
