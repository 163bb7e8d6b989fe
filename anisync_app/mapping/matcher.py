"""
================================================================================
AniSync v1.0 - Candidate Matcher
================================================================================
Decides whether a provider search result and a canonical entry denote the
same work.

Problem:
  MangaDex returns "Shingeki no Kyojin" for the query "attack on titan".
  AniList knows the same work as english="Attack on Titan",
  romaji="Shingeki no Kyojin", native="進撃の巨人".

Solution:
  Compare up to three fields (title, romaji, native) pairwise and count how
  many of the comparable ones agree. A candidate matches when the share of
  agreeing fields is above the comparison threshold.

Tie-break:
  The FIRST passing candidate in input order wins, even if a later one
  scores higher. Callers control the winner through candidate order.
================================================================================
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import CanonicalMedia, Connector, ProviderResult, SimilarityScore
from .similarity import compare_two_strings

logger = logging.getLogger(__name__)


@dataclass
class FieldSet:
    """The three comparable name slots of either side."""
    title: Optional[str] = None
    romaji: Optional[str] = None
    native: Optional[str] = None

    @classmethod
    def from_result(cls, result: ProviderResult) -> "FieldSet":
        return cls(title=result.title, romaji=result.romaji, native=result.native)

    @classmethod
    def from_media(cls, media: CanonicalMedia) -> "FieldSet":
        return cls(
            title=media.titles.english,
            romaji=media.titles.romaji,
            native=media.titles.native,
        )


@dataclass
class CandidateMatch:
    """A passing candidate together with the connector it produced."""
    media: CanonicalMedia
    connector: Connector
    ratio: float


def is_match(ratio: float, comparison_threshold: float) -> bool:
    return ratio > comparison_threshold


def match_fields(
    provider_fields: FieldSet,
    canonical_fields: FieldSet,
    threshold: float,
    comparison_threshold: float
) -> float:
    """
    Share of comparable fields that agree.

    A slot is comparable when it is non-empty on both sides. It agrees when
    the lower-cased strings are equal or their similarity is above
    `threshold`.

    Args:
        provider_fields: Names from the provider result
        canonical_fields: Names from the canonical entry
        threshold: Per-field similarity cutoff
        comparison_threshold: Ratio cutoff (see is_match)

    Returns:
        hits / tries, or 0.0 when nothing was comparable
    """
    hits = 0
    tries = 0

    for slot in ('title', 'romaji', 'native'):
        left = getattr(provider_fields, slot)
        right = getattr(canonical_fields, slot)
        if not left or not right:
            continue

        tries += 1
        left = left.lower()
        right = right.lower()
        if left == right or compare_two_strings(left, right) > threshold:
            hits += 1

    if tries == 0:
        return 0.0

    ratio = hits / tries
    logger.debug(
        f"Field match: '{provider_fields.title}' vs '{canonical_fields.title}' → "
        f"{hits}/{tries} (match={is_match(ratio, comparison_threshold)})"
    )
    return ratio


class CandidateMatcher:
    """
    Three-field matcher with configurable thresholds.

    Defaults come from the global mapping settings; callers pass
    per-provider overrides to find_match().
    """

    def __init__(self, threshold: float = 0.8, comparison_threshold: float = 0.5):
        """
        Args:
            threshold: Default per-field similarity cutoff
            comparison_threshold: Default ratio cutoff
        """
        self.threshold = threshold
        self.comparison_threshold = comparison_threshold

    def find_match(
        self,
        result: ProviderResult,
        candidates: Sequence[Optional[CanonicalMedia]],
        threshold: Optional[float] = None,
        comparison_threshold: Optional[float] = None
    ) -> Optional[CandidateMatch]:
        """
        Find the first candidate that matches a provider result.

        Args:
            result: Provider search result
            candidates: Canonical entries, in priority order (None entries skipped)
            threshold: Per-field cutoff (default: matcher default)
            comparison_threshold: Ratio cutoff (default: matcher default)

        Returns:
            CandidateMatch for the first passing candidate, or None
        """
        if threshold is None:
            threshold = self.threshold
        if comparison_threshold is None:
            comparison_threshold = self.comparison_threshold

        provider_fields = FieldSet.from_result(result)
        passing: List[CandidateMatch] = []

        for media in candidates:
            if media is None:
                continue

            ratio = match_fields(
                provider_fields,
                FieldSet.from_media(media),
                threshold,
                comparison_threshold
            )
            if is_match(ratio, comparison_threshold):
                passing.append(CandidateMatch(
                    media=media,
                    connector=Connector(
                        provider_name=result.provider_name,
                        source_id=result.source_id,
                        similarity=SimilarityScore(value=ratio, matched=True)
                    ),
                    ratio=ratio
                ))

        if not passing:
            return None

        if len(passing) > 1:
            logger.debug(
                f"{len(passing)} candidates passed for '{result.title}', "
                f"keeping first (id={passing[0].media.id})"
            )
        return passing[0]
