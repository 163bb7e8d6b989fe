"""
================================================================================
AniSync v1.0 - Text Similarity
================================================================================
Lexical similarity between two titles.

Metric: Dice coefficient over character bigrams.

    similarity = 2 * |shared bigrams| / (|bigrams(a)| + |bigrams(b)|)

Bigrams are counted as multisets, so "aaaa" vs "aa" shares one "aa" pair
per occurrence, not a single one overall.
================================================================================
"""

from collections import Counter
from typing import Iterable, Optional

from .models import SimilarityScore
from .sanitizer import sanitize_title

# Single-field comparisons count as a match above this value
TITLE_MATCH_CUTOFF = 0.6


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def compare_two_strings(first: str, second: str) -> float:
    """
    Case-insensitive bigram Dice coefficient.

    Args:
        first: First string
        second: Second string

    Returns:
        Similarity in [0, 1]. Equal strings (after lowercasing and trimming)
        are 1.0; otherwise a string shorter than 2 characters has no bigrams
        and scores 0.0.

    Examples:
        compare_two_strings("Naruto", "naruto") -> 1.0
        compare_two_strings("night", "nacht") -> 0.25
    """
    first = (first or "").lower().strip()
    second = (second or "").lower().strip()

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = _bigrams(first)
    second_bigrams = _bigrams(second)

    shared = sum((first_bigrams & second_bigrams).values())
    total = sum(first_bigrams.values()) + sum(second_bigrams.values())
    return (2.0 * shared) / total


def title_similarity(
    external_title: str,
    title: str,
    alt_titles: Optional[Iterable[str]] = None
) -> SimilarityScore:
    """
    Compare a provider title with a canonical title and its alternates.

    The provider title is sanitized before the primary comparison. Each
    alternate title can only raise the score.

    Args:
        external_title: Title from the canonical entry
        title: Title from the provider
        alt_titles: Other canonical titles and synonyms

    Returns:
        SimilarityScore, matched when the value is above 0.6
    """
    title = title or ""
    value = compare_two_strings(sanitize_title(title.lower()), (external_title or "").lower())

    for alt in alt_titles or ():
        if not alt:
            continue
        alt_value = compare_two_strings(title.lower(), alt.lower())
        if alt_value > value:
            value = alt_value

    return SimilarityScore(value=value, matched=value > TITLE_MATCH_CUTOFF)
