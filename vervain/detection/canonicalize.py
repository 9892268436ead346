"""Homograph folding used by the domain similarity classifier."""

BASIC_HOMOGRAPHS = str.maketrans({
    "0": "o",
    "1": "l",
    "3": "e",
    "5": "s",
})

# Digits/symbols first, then script look-alikes; ligatures are applied last so
# that "c1" folds to "cl" and then to "d".
EXPANDED_HOMOGRAPHS = str.maketrans({
    "0": "o",
    "1": "l",
    "!": "i",
    "|": "l",
    "3": "e",
    "4": "a",
    "5": "s",
    "6": "b",
    "7": "t",
    "8": "b",
    "9": "g",
    "$": "s",
    "@": "a",
    "а": "a",  # Cyrillic а
    "е": "e",  # Cyrillic е
    "о": "o",  # Cyrillic о
    "р": "p",  # Cyrillic р
    "с": "c",  # Cyrillic с
    "у": "y",  # Cyrillic у
    "х": "x",  # Cyrillic х
    "ѕ": "s",  # Cyrillic ѕ
    "і": "i",  # Cyrillic і
    "ј": "j",  # Cyrillic ј
    "ԁ": "d",  # Cyrillic ԁ
    "ɡ": "g",  # Latin script g
    "ո": "n",  # Armenian ո
    "ս": "u",  # Armenian ս
})

LIGATURES = (
    ("rn", "m"),
    ("cl", "d"),
    ("vv", "w"),
)


def fold_basic(domain: str) -> str:
    """Lowercase and fold the common digit-for-letter swaps."""
    return (domain or "").lower().translate(BASIC_HOMOGRAPHS)


def fold_expanded(domain: str) -> str:
    """Lowercase and fold digits, symbols, Cyrillic look-alikes and ligatures."""
    folded = (domain or "").lower().translate(EXPANDED_HOMOGRAPHS)
    for ligature, replacement in LIGATURES:
        folded = folded.replace(ligature, replacement)
    return folded
