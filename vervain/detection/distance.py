"""Edit distance scoring."""

from rapidfuzz.distance import Levenshtein


def distance(a: str, b: str) -> int:
    """Minimum single-character insert/delete/substitute edits from a to b."""
    return Levenshtein.distance(a, b)


def similarity_ratio(a: str, b: str) -> float:
    """Edit distance normalized by the longer input (0.0 means identical)."""
    longest = max(len(a), len(b))
    if not longest:
        return 0.0
    return distance(a, b) / longest
