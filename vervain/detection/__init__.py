"""Heuristic detection engine: domain look-alikes and contact spoofing."""

from .canonicalize import fold_basic, fold_expanded
from .contacts import TrustedContact, check as check_contact
from .distance import distance, similarity_ratio
from .similarity import DomainVerdict, MatchRule, NOT_SUSPICIOUS, is_similar
from .variations import (
    DomainVariation,
    VariationCatalog,
    VariationKind,
    generate_variations,
)

__all__ = [
    "fold_basic",
    "fold_expanded",
    "TrustedContact",
    "check_contact",
    "distance",
    "similarity_ratio",
    "DomainVerdict",
    "MatchRule",
    "NOT_SUSPICIOUS",
    "is_similar",
    "DomainVariation",
    "VariationCatalog",
    "VariationKind",
    "generate_variations",
]
