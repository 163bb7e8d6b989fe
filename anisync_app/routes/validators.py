"""Lightweight request validation helpers."""

import re
from typing import Any, Optional, Tuple

from ..mapping.models import MediaType

# AniList ids are positive integers
CANONICAL_ID_PATTERN = re.compile(r'^[1-9][0-9]{0,9}$')

MAX_QUERY_LENGTH = 200


def validate_query(query: Any) -> Tuple[str, Optional[str]]:
    """
    Validate a search query.

    Returns:
        Tuple of (trimmed_query, error_or_none)
    """
    if not isinstance(query, str) or not query.strip():
        return "", "Missing required parameter: q"
    query = query.strip()
    if len(query) > MAX_QUERY_LENGTH:
        return "", f"Parameter 'q' exceeds max length {MAX_QUERY_LENGTH}"
    return query, None


def validate_media_type(value: Any, default: Optional[str] = None) -> Tuple[Optional[MediaType], Optional[str]]:
    """Parse ANIME/MANGA (any case)."""
    value = value or default
    if not value:
        return None, "Missing required parameter: type"
    try:
        return MediaType.parse(value), None
    except ValueError as e:
        return None, str(e)


def validate_canonical_id(canonical_id: Optional[str]) -> Optional[str]:
    """
    Validate an AniList id.

    Returns:
        None if valid, or error message string.
    """
    if not canonical_id:
        return "Missing id"
    if not CANONICAL_ID_PATTERN.match(canonical_id):
        return "Invalid id format"
    return None
