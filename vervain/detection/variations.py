"""Look-alike domain catalog generation (dnstwist-style permutations)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

logger = logging.getLogger(__name__)


class VariationKind(str, Enum):
    """Permutation technique that produced a variation."""

    ADDITION = "addition"
    TYPO = "typo"
    HOMOGRAPH = "homograph"
    HYPHENATION = "hyphenation"
    SUBDOMAIN = "subdomain"
    BITSQUATTING = "bitsquatting"
    TLD = "tld"


@dataclass(frozen=True)
class DomainVariation:
    """A single look-alike candidate for a protected domain."""

    kind: VariationKind
    domain: str

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "domain": self.domain}

    @classmethod
    def from_dict(cls, data: dict) -> "DomainVariation":
        return cls(kind=VariationKind(data["type"]), domain=str(data["domain"]))


ADDITION_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789-"

TLD_SWAPS = {
    "com": ("org", "net", "co"),
}

# QWERTY neighbours, including the row of digits above.
KEYBOARD_ADJACENCY: dict[str, tuple[str, ...]] = {
    "q": ("w", "1", "a"),
    "w": ("q", "e", "2", "s", "a"),
    "e": ("w", "r", "3", "d", "s"),
    "r": ("e", "t", "4", "f", "d"),
    "t": ("r", "y", "5", "g", "f"),
    "y": ("t", "u", "6", "h", "g"),
    "u": ("y", "i", "7", "j", "h"),
    "i": ("u", "o", "8", "k", "j"),
    "o": ("i", "p", "9", "l", "k"),
    "p": ("o", "0", ";", "l"),
    "a": ("q", "w", "s", "z"),
    "s": ("w", "e", "d", "x", "z", "a"),
    "d": ("e", "r", "f", "c", "x", "s"),
    "f": ("r", "t", "g", "v", "c", "d"),
    "g": ("t", "y", "h", "b", "v", "f"),
    "h": ("y", "u", "j", "n", "b", "g"),
    "j": ("u", "i", "k", "m", "n", "h"),
    "k": ("i", "o", "l", ",", "m", "j"),
    "l": ("o", "p", ";", ".", ",", "k"),
    "z": ("a", "s", "x"),
    "x": ("z", "s", "d", "c"),
    "c": ("x", "d", "f", "v"),
    "v": ("c", "f", "g", "b"),
    "b": ("v", "g", "h", "n"),
    "n": ("b", "h", "j", "m"),
    "m": ("n", "j", "k", ","),
    "1": ("2", "q"),
    "2": ("1", "3", "w", "q"),
    "3": ("2", "4", "e", "w"),
    "4": ("3", "5", "r", "e"),
    "5": ("4", "6", "t", "r"),
    "6": ("5", "7", "y", "t"),
    "7": ("6", "8", "u", "y"),
    "8": ("7", "9", "i", "u"),
    "9": ("8", "0", "o", "i"),
    "0": ("9", "p", "o"),
}

# Confusables: accented Latin, Greek, Cyrillic and multi-character ligatures.
HOMOGRAPHS: dict[str, tuple[str, ...]] = {
    "a": ("à", "á", "â", "ã", "ä", "å", "ɑ", "а", "ạ", "ǎ", "ă", "ȧ"),
    "b": ("d", "lb", "ʙ", "Ь", "ɓ", "Б", "ß", "β"),
    "c": ("ϲ", "с", "ƈ", "ċ", "ć", "ç"),
    "d": ("b", "cl", "ԁ", "ɗ", "đ"),
    "e": ("é", "ê", "ë", "ē", "ĕ", "ě", "ė", "е", "ё", "э", "ҽ"),
    "f": ("Ϝ", "ƒ", "Ғ"),
    "g": ("q", "ɡ", "ɢ", "ɖ", "ġ", "ğ", "ģ", "ǧ", "ǵ"),
    "h": ("ln", "һ", "ħ", "ɦ", "ḥ", "ḩ", "ⱨ"),
    "i": ("1", "l", "í", "ï", "ı", "ɩ", "ι", "і", "ї", "ł"),
    "j": ("ј", "ʝ", "ɉ"),
    "k": ("lc", "κ", "к", "ⱪ", "ĸ"),
    "l": ("1", "i", "ɫ", "ł"),
    "m": ("n", "nn", "rn", "rr", "ṃ", "ṁ", "ᴍ"),
    "n": ("m", "r", "ń", "ñ", "ņ", "ṋ", "ṅ", "ṇ", "н"),
    "o": ("0", "Ο", "ο", "О", "о", "Օ", "ȯ", "ọ", "ỏ", "ơ", "ó", "ö"),
    "p": ("ρ", "р", "ṗ", "ƿ"),
    "q": ("g", "զ", "ԛ", "ʠ"),
    "r": ("ʀ", "Г", "ᴦ", "ɼ", "ɽ"),
    "s": ("Ⴝ", "ѕ", "ʂ", "ś", "ş"),
    "t": ("τ", "т", "ţ", "ț", "ŧ"),
    "u": ("μ", "υ", "Ս", "ս", "ц", "ᴜ", "ǔ", "ŭ"),
    "v": ("ν", "υ", "ѵ"),
    "w": ("vv", "ѡ", "ԝ", "ϖ", "ŵ"),
    "x": ("х", "ҳ", "ẋ"),
    "y": ("ʏ", "γ", "у", "Ү", "ý"),
    "z": ("ʐ", "ż", "ź", "ʐ", "ᴢ"),
}

_BITSQUAT_CHAR_RE = re.compile(r"[a-zA-Z0-9-]")


def split_domain(domain: str) -> tuple[str, str]:
    """Split "name.tld" at the first dot; the tld keeps any further labels."""
    value = (domain or "").strip().lower()
    name, _, tld = value.partition(".")
    return name, tld


def _replace_at(name: str, index: int, replacement: str) -> str:
    return name[:index] + replacement + name[index + 1:]


def _additions(name: str) -> Iterable[str]:
    for i in range(len(name) + 1):
        for char in ADDITION_CHARS:
            yield name[:i] + char + name[i:]


def _typos(name: str) -> Iterable[str]:
    for i, char in enumerate(name):
        for typo in KEYBOARD_ADJACENCY.get(char, ()):
            yield _replace_at(name, i, typo)


def _homographs(name: str) -> Iterable[str]:
    for i, char in enumerate(name):
        for glyph in HOMOGRAPHS.get(char, ()):
            yield _replace_at(name, i, glyph)


def _hyphenations(name: str) -> Iterable[str]:
    for i in range(1, len(name)):
        yield name[:i] + "-" + name[i:]


def _subdomains(name: str) -> Iterable[str]:
    for i in range(1, len(name)):
        yield name[:i] + "." + name[i:]


def _bitsquats(name: str) -> Iterable[str]:
    for i, char in enumerate(name):
        code = ord(char)
        for bit in range(8):
            flipped = code ^ (1 << bit)
            if 32 <= flipped <= 126 and _BITSQUAT_CHAR_RE.fullmatch(chr(flipped)):
                yield _replace_at(name, i, chr(flipped))


_NAME_GENERATORS = (
    (VariationKind.ADDITION, _additions),
    (VariationKind.TYPO, _typos),
    (VariationKind.HOMOGRAPH, _homographs),
    (VariationKind.HYPHENATION, _hyphenations),
    (VariationKind.SUBDOMAIN, _subdomains),
    (VariationKind.BITSQUATTING, _bitsquats),
)


def generate_variations(domain: str) -> list[DomainVariation]:
    """
    Build the look-alike catalog for a protected domain.

    The result is a multiset: different techniques may produce the same
    string and every occurrence is kept. Returns [] for inputs without a
    name and a tld.
    """
    name, tld = split_domain(domain)
    if not name or not tld:
        return []

    results: list[DomainVariation] = []
    for kind, generator in _NAME_GENERATORS:
        results.extend(DomainVariation(kind, f"{variant}.{tld}") for variant in generator(name))

    for swapped in TLD_SWAPS.get(tld, ()):
        results.append(DomainVariation(VariationKind.TLD, f"{name}.{swapped}"))

    logger.debug("Generated %d variations for %s", len(results), domain)
    return results


class VariationCatalog:
    """Exact-match lookup over a precomputed variation catalog."""

    def __init__(self, primary_domain: str, variations: Iterable[DomainVariation]):
        self.primary_domain = (primary_domain or "").strip().lower()
        self._domains = frozenset(v.domain.lower() for v in variations)

    @classmethod
    def for_domain(cls, primary_domain: str) -> "VariationCatalog":
        return cls(primary_domain, generate_variations(primary_domain))

    def __len__(self) -> int:
        return len(self._domains)

    def is_known_variation(self, domain: str) -> bool:
        """True when domain is a catalogued look-alike of the primary domain."""
        value = (domain or "").strip().lower()
        if not value or not self.primary_domain:
            return False
        if value == self.primary_domain:
            return False
        return value in self._domains
