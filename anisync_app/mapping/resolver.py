"""
================================================================================
AniSync v1.0 - Entity Resolver
================================================================================
Turns fan-out results plus canonical candidates into (canonical_id, connector)
pairs.

Two directions:
  - Three-field (resolve / resolve_result): each provider result looks for
    the first canonical candidate that CandidateMatcher accepts.
  - Title (resolve_titles): each provider result is scored against every
    canonical candidate's titles and synonyms; the best one wins when it
    clears the fixed 0.6 cutoff.
================================================================================
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import ProviderConfig
from .fanout import FanoutOutcome
from .matcher import CandidateMatcher
from .models import (
    CanonicalMedia, Connector, MediaFormat, MediaType, ProviderResult, SimilarityScore
)
from .similarity import title_similarity

logger = logging.getLogger(__name__)

MatchedPair = Tuple[str, Connector]


class EntityResolver:
    """Runs the matchers across a fan-out result set."""

    def __init__(self, matcher: Optional[CandidateMatcher] = None):
        self.matcher = matcher or CandidateMatcher()

    def resolve_result(
        self,
        provider_name: str,
        result: ProviderResult,
        candidates: Sequence[Optional[CanonicalMedia]],
        config: Optional[ProviderConfig] = None
    ) -> Optional[MatchedPair]:
        """Match a single provider result against its own candidate list."""
        config = config or ProviderConfig()
        match = self.matcher.find_match(
            result,
            candidates,
            threshold=config.threshold,
            comparison_threshold=config.comparison_threshold,
        )
        if match is None:
            return None

        # The outcome key names the provider even if an adapter mislabels its results
        connector = Connector(provider_name, match.connector.source_id, match.connector.similarity)
        return match.media.id, connector

    def resolve(
        self,
        fanout_results: Mapping[str, FanoutOutcome],
        canonical_candidates: Sequence[Optional[CanonicalMedia]],
        config_by_provider: Optional[Dict[str, ProviderConfig]] = None
    ) -> List[MatchedPair]:
        """
        Three-field resolution of every provider result.

        Args:
            fanout_results: provider_name -> outcome, iterated in mapping order
            canonical_candidates: Candidates in priority order
            config_by_provider: Per-provider threshold overrides

        Returns:
            (canonical_id, connector) pairs in provider then result order
        """
        config_by_provider = config_by_provider or {}
        pairs: List[MatchedPair] = []

        for provider_name, outcome in fanout_results.items():
            config = config_by_provider.get(provider_name)
            for result in outcome.results:
                pair = self.resolve_result(provider_name, result, canonical_candidates, config)
                if pair:
                    pairs.append(pair)

        logger.debug(f"Three-field pass: {len(pairs)} pairs")
        return pairs

    def resolve_titles(
        self,
        fanout_results: Mapping[str, FanoutOutcome],
        canonical_candidates: Sequence[Optional[CanonicalMedia]],
        media_type: MediaType
    ) -> List[MatchedPair]:
        """
        Title-similarity resolution of every provider result.

        Novels are skipped when matching manga: they share titles with the
        manga they adapt.
        """
        pairs: List[MatchedPair] = []

        for provider_name, outcome in fanout_results.items():
            for result in outcome.results:
                best: Optional[CanonicalMedia] = None
                best_score: Optional[SimilarityScore] = None

                for media in canonical_candidates:
                    if media is None:
                        continue
                    if media_type == MediaType.MANGA and media.format == MediaFormat.NOVEL:
                        continue

                    score = title_similarity(
                        media.titles.primary(),
                        result.title,
                        media.titles.all_titles()
                    )
                    if best_score is None or score.value > best_score.value:
                        best, best_score = media, score

                if best is not None and best_score.matched:
                    pairs.append((best.id, Connector(provider_name, result.source_id, best_score)))

        logger.debug(f"Title pass: {len(pairs)} pairs")
        return pairs
