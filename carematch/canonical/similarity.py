"""String similarity based on Levenshtein edit distance."""

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance where insert, delete and substitute each cost 1."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Case-insensitive similarity ratio in [0, 1].

    Defined as 1 - distance / max(len(a), len(b)); two empty strings are identical.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    distance = levenshtein_distance(a.lower(), b.lower())
    return 1 - distance / max_len
