"""
Bag-of-words similarity used for near-duplicate detection.
"""


def tokenize(text: str) -> set[str]:
    """Unique lowercase whitespace-separated tokens."""
    if not text:
        return set()
    return set(text.lower().split())


def jaccard_similarity(a: str, b: str) -> float:
    """
    Jaccard index of the token sets of a and b.

    Returns 0.0 when both sides are empty.
    """
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)

    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)
