"""Domain normalization utilities."""

from __future__ import annotations

import re
from urllib.parse import urlparse

import idna
import tldextract

# Bundled public-suffix snapshot only; never fetch the list at scan time.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

PLAINTEXT_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)


def extract_domain(email: str) -> str:
    """Return the domain part of an email address ("" when there is none)."""
    match = re.search(r"@([^@]+)$", (email or "").strip())
    return match.group(1).strip().lower().strip(".") if match else ""


def decode_idn(host: str) -> str:
    """Best-effort punycode decode so homograph folding sees real characters."""
    if "xn--" not in host:
        return host
    try:
        decoded = idna.decode(host)
    except (idna.IDNAError, UnicodeError):
        return host
    return decoded or host


def extract_hostname(url: str) -> str:
    """
    Return the lowercase hostname of a URL.

    - Adds a scheme when missing
    - Drops port, credentials, path/query/fragment
    - Decodes punycode labels
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname or ""
    except ValueError:
        return ""
    host = host.strip().lower().strip(".")
    return decode_idn(host)


def extract_plaintext_urls(text: str) -> list[str]:
    """Find http(s) URLs in free text, trailing punctuation stripped."""
    urls = []
    for match in PLAINTEXT_URL_RE.finditer(text or ""):
        url = match.group(0).rstrip(".,;:!?)]}")
        if url:
            urls.append(url)
    return urls


def registered_domain(value: str) -> str:
    """Return the registrable domain for a host (best-effort)."""
    host = (value or "").strip().lower().strip(".")
    if not host:
        return ""
    extracted = _EXTRACT(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return host


def normalize_domain_entry(value: str) -> str:
    """Normalize a user-entered domain (URL, email or bare host) to a host."""
    raw = (value or "").strip().lower()
    if not raw:
        return ""
    if "@" in raw and "://" not in raw:
        return extract_domain(raw)
    return extract_hostname(raw)


def domain_listed(domain: str, entries: frozenset[str] | set[str]) -> bool:
    """Check a host against a domain list (exact host or registrable domain)."""
    if not entries:
        return False
    host = (domain or "").strip().lower().strip(".")
    if not host:
        return False
    if host in entries:
        return True
    return registered_domain(host) in entries


def is_same_or_subdomain(host: str, protected: str) -> bool:
    """True when host is the protected domain or one of its subdomains."""
    host = (host or "").lower()
    protected = (protected or "").lower()
    if not host or not protected:
        return False
    return host == protected or host.endswith("." + protected)
