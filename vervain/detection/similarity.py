"""Domain similarity classifier.

Decides whether a candidate domain is a disguised version of a protected
domain. Rules run in a fixed order and the first decision wins:

1. identity (never suspicious)
2. legitimate subdomain in either direction (never suspicious)
3. hyphen/dot substitution (``blue-security.com`` vs ``blue.security.com``)
4. combo-domain trick (``acme.verify-account.com`` vs ``acme.com``)
5. second-level label analysis: hyphenated part, basic homograph,
   expanded homograph, then edit-distance ratio
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .canonicalize import fold_basic, fold_expanded
from .distance import similarity_ratio

logger = logging.getLogger(__name__)

FUZZY_RATIO_THRESHOLD = 0.2


class MatchRule(str, Enum):
    """Rule that flagged a domain pair as suspicious."""

    HYPHEN_TO_DOT = "hyphen_to_dot"
    DOT_TO_HYPHEN = "dot_to_hyphen"
    COMBO_DOMAIN = "combo_domain"
    HYPHENATED_PART = "hyphenated_part"
    BASIC_HOMOGRAPH = "basic_homograph"
    EXPANDED_HOMOGRAPH = "expanded_homograph"
    FUZZY = "fuzzy"
    # Exact hit in the precomputed variation catalog; never produced by is_similar.
    KNOWN_VARIATION = "known_variation"


@dataclass(frozen=True)
class DomainVerdict:
    """Outcome of comparing a candidate domain with a protected domain."""

    rule: Optional[MatchRule] = None

    @property
    def suspicious(self) -> bool:
        return self.rule is not None

    def __bool__(self) -> bool:
        return self.suspicious


NOT_SUSPICIOUS = DomainVerdict()


def _suspicious(rule: MatchRule, candidate: str, protected: str) -> DomainVerdict:
    logger.debug("%s flagged against %s (%s)", candidate, protected, rule.value)
    return DomainVerdict(rule)


def _second_level_label(labels: list[str]) -> str:
    return labels[-2] if len(labels) > 1 else ""


def _hyphenated_part_matches(label: str, other: str) -> bool:
    parts = label.split("-")
    if len(parts) < 2 or label == other:
        return False
    folded_other = fold_basic(other)
    return any(fold_basic(part) == folded_other for part in parts)


def is_similar(candidate: str, protected: str) -> DomainVerdict:
    """Classify candidate against protected; pure, never raises."""
    if not candidate or not protected:
        return NOT_SUSPICIOUS

    candidate = candidate.strip().lower()
    protected = protected.strip().lower()

    if candidate == protected:
        return NOT_SUSPICIOUS

    if candidate.endswith("." + protected) or protected.endswith("." + candidate):
        return NOT_SUSPICIOUS

    if candidate.replace("-", ".") == protected or protected.replace("-", ".") == candidate:
        return _suspicious(MatchRule.HYPHEN_TO_DOT, candidate, protected)

    if candidate.replace(".", "-") == protected or protected.replace(".", "-") == candidate:
        return _suspicious(MatchRule.DOT_TO_HYPHEN, candidate, protected)

    candidate_labels = candidate.split(".")
    protected_labels = protected.split(".")
    candidate_base = _second_level_label(candidate_labels)
    protected_base = _second_level_label(protected_labels)

    if protected_base and len(candidate_labels) > 2 and candidate_labels[0] == protected_base:
        return _suspicious(MatchRule.COMBO_DOMAIN, candidate, protected)
    if candidate_base and len(protected_labels) > 2 and protected_labels[0] == candidate_base:
        return _suspicious(MatchRule.COMBO_DOMAIN, candidate, protected)

    if not candidate_base or not protected_base:
        return NOT_SUSPICIOUS

    if _hyphenated_part_matches(candidate_base, protected_base) or _hyphenated_part_matches(
        protected_base, candidate_base
    ):
        return _suspicious(MatchRule.HYPHENATED_PART, candidate, protected)

    if candidate_base != protected_base:
        if fold_basic(candidate_base) == fold_basic(protected_base):
            return _suspicious(MatchRule.BASIC_HOMOGRAPH, candidate, protected)
        if fold_expanded(candidate_base) == fold_expanded(protected_base):
            return _suspicious(MatchRule.EXPANDED_HOMOGRAPH, candidate, protected)

    # Same label on another TLD scores 0 here as well.
    if similarity_ratio(candidate_base, protected_base) <= FUZZY_RATIO_THRESHOLD:
        return _suspicious(MatchRule.FUZZY, candidate, protected)

    return NOT_SUSPICIOUS
