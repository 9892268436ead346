"""Finding model produced by a scan."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..detection.similarity import MatchRule
from .session import CONTACT_WARNING_PREFIX, DOMAIN_WARNING_PREFIX

BLOCKED_DOMAIN_LABEL = "Blocked Domain"


class FindingKind(str, Enum):
    """What the finding reports."""

    DOMAIN = "domain"  # Look-alike of a protected domain
    BLOCKED = "blocked"  # Sender domain on the blocklist
    CONTACT = "contact"  # Display-name spoof of a trusted contact


class FindingSource(str, Enum):
    """Where the candidate was found."""

    SENDER = "sender"
    LINK = "link"
    PLAINTEXT = "plaintext"


@dataclass(frozen=True)
class Finding:
    """A positive detection ready for presentation."""

    kind: FindingKind
    source: FindingSource
    subject: str  # sender email or URL
    suspicious_domain: str = ""
    protected_domain: str = ""
    sender_name: str = ""
    trusted_email: str = ""
    rule: Optional[MatchRule] = None
    element: Any = None
    container: Any = None

    @property
    def finding_id(self) -> str:
        if self.kind == FindingKind.CONTACT:
            return f"{CONTACT_WARNING_PREFIX}{self.subject.lower()}"
        return f"{DOMAIN_WARNING_PREFIX}{self.suspicious_domain.lower()}"

    @property
    def legitimate_label(self) -> str:
        if self.kind == FindingKind.BLOCKED:
            return BLOCKED_DOMAIN_LABEL
        if self.kind == FindingKind.CONTACT:
            return self.trusted_email
        return self.protected_domain

    def describe(self) -> str:
        if self.kind == FindingKind.CONTACT:
            return (
                f"{self.sender_name or '?'} <{self.subject}> may be impersonating "
                f"trusted contact {self.trusted_email}"
            )
        if self.kind == FindingKind.BLOCKED:
            return f"{self.subject} uses blocked domain {self.suspicious_domain}"
        rule = f" ({self.rule.value})" if self.rule else ""
        return (
            f"{self.subject}: {self.suspicious_domain} may be impersonating "
            f"{self.protected_domain}{rule}"
        )
