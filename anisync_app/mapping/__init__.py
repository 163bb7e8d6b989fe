"""
AniSync mapping engine: similarity, matching, fan-out, resolution and merge.
"""

from .models import (
    MediaType, MediaFormat, MediaTitles, CanonicalMedia, ProviderResult,
    SimilarityScore, Connector, CanonicalRecord
)
from .sanitizer import sanitize_title
from .similarity import compare_two_strings, title_similarity
from .matcher import CandidateMatcher, CandidateMatch, FieldSet, match_fields, is_match
from .fanout import ProviderFanout, FanoutOutcome, LookupOutcome
from .resolver import EntityResolver
from .merger import RecordMerger
from .conflicts import ConflictResolver

__all__ = [
    'MediaType', 'MediaFormat', 'MediaTitles', 'CanonicalMedia', 'ProviderResult',
    'SimilarityScore', 'Connector', 'CanonicalRecord',
    'sanitize_title', 'compare_two_strings', 'title_similarity',
    'CandidateMatcher', 'CandidateMatch', 'FieldSet', 'match_fields', 'is_match',
    'ProviderFanout', 'FanoutOutcome', 'LookupOutcome',
    'EntityResolver', 'RecordMerger', 'ConflictResolver',
]
