"""Trusted-contact spoofing matcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..utils.domains import extract_domain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustedContact:
    """A (name, email) pair the user vouched for; email is the key."""

    name: str
    email: str

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict) -> "TrustedContact":
        return cls(name=str(data.get("name") or ""), email=str(data.get("email") or ""))


def _names_overlap(contact_name: str, sender_name: str) -> bool:
    """Exact match, or any name token equal to / contained in a token of the other."""
    if contact_name == sender_name:
        return True
    contact_parts = contact_name.split()
    sender_parts = sender_name.split()
    return any(
        part == sender_part or sender_part in part or part in sender_part
        for part in contact_parts
        for sender_part in sender_parts
    )


def check(
    sender_name: str,
    sender_email: str,
    trusted_contacts: Iterable[TrustedContact],
) -> Optional[str]:
    """
    Return the trusted email a sender appears to impersonate, or None.

    Lookup order:
    - exact (email, name) pair of a trusted contact: not spoofing
    - sender on a trusted domain with an overlapping name: first such contact
    - any trusted contact with the same display name but another email
    """
    contacts = list(trusted_contacts or ())
    if not contacts:
        return None

    name = (sender_name or "").strip().lower()
    email = (sender_email or "").strip().lower()

    pair_keys = {f"{c.email.strip().lower()}|{c.name.strip().lower()}" for c in contacts}
    trusted_domains = {extract_domain(c.email) for c in contacts}

    if f"{email}|{name}" in pair_keys:
        return None
    if not name:
        return None

    sender_domain = extract_domain(email)
    if sender_domain and sender_domain in trusted_domains:
        for contact in contacts:
            if extract_domain(contact.email) != sender_domain:
                continue
            if _names_overlap(contact.name.strip().lower(), name):
                logger.debug("Name collision on trusted domain: %s vs %s", email, contact.email)
                return contact.email

    for contact in contacts:
        if contact.name.strip().lower() != name:
            continue
        if contact.email.strip().lower() != email:
            logger.debug("Display name reused from %s by %s", contact.email, email)
            return contact.email

    return None
