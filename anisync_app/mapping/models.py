"""
================================================================================
AniSync v1.0 - Mapping Models
================================================================================
Data models shared by the matching, fan-out and merge layers.

  - CanonicalMedia: one AniList media entry (the source of truth)
  - ProviderResult: one search hit from a content site
  - Connector: a provider's claim to link to a canonical entry
  - CanonicalRecord: canonical media plus all of its connectors

Every model converts to/from plain dicts so records can be cached,
persisted as JSON and returned by the API unchanged.
================================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class MediaType(str, Enum):
    """Kind of media a canonical entry or a provider covers."""
    ANIME = "ANIME"
    MANGA = "MANGA"

    @classmethod
    def parse(cls, value: Any) -> "MediaType":
        """Accept 'anime', 'ANIME' or a MediaType."""
        if isinstance(value, MediaType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid type '{value}'. Valid types include ANIME and MANGA.")


class MediaFormat(str, Enum):
    """AniList media formats."""
    TV = "TV"
    TV_SHORT = "TV_SHORT"
    MOVIE = "MOVIE"
    SPECIAL = "SPECIAL"
    OVA = "OVA"
    ONA = "ONA"
    MUSIC = "MUSIC"
    MANGA = "MANGA"
    NOVEL = "NOVEL"
    ONE_SHOT = "ONE_SHOT"

    @classmethod
    def parse(cls, value: Any) -> Optional["MediaFormat"]:
        if not value:
            return None
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


# =============================================================================
# CANONICAL SIDE
# =============================================================================

@dataclass
class MediaTitles:
    """All known names of a canonical entry."""
    preferred: Optional[str] = None   # AniList userPreferred
    romaji: Optional[str] = None
    native: Optional[str] = None
    english: Optional[str] = None
    synonyms: List[str] = field(default_factory=list)

    def primary(self) -> str:
        """Best display title."""
        return self.preferred or self.romaji or self.english or self.native or ""

    def all_titles(self) -> List[str]:
        """Non-empty titles followed by synonyms, in a stable order."""
        titles = [t for t in (self.preferred, self.romaji, self.native, self.english) if t]
        titles.extend(s for s in self.synonyms if s)
        return titles

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preferred": self.preferred,
            "romaji": self.romaji,
            "native": self.native,
            "english": self.english,
            "synonyms": list(self.synonyms),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaTitles":
        data = data or {}
        return cls(
            preferred=data.get("preferred"),
            romaji=data.get("romaji"),
            native=data.get("native"),
            english=data.get("english"),
            synonyms=list(data.get("synonyms") or []),
        )


@dataclass
class CanonicalMedia:
    """
    One canonical metadata entry (AniList media).

    Sourced externally and never mutated during a resolution pass.
    """
    id: str
    type: MediaType
    titles: MediaTitles = field(default_factory=MediaTitles)
    format: Optional[MediaFormat] = None
    cover_image: Optional[str] = None
    season: Optional[str] = None
    season_year: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "titles": self.titles.to_dict(),
            "format": self.format.value if self.format else None,
            "cover_image": self.cover_image,
            "season": self.season,
            "season_year": self.season_year,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalMedia":
        return cls(
            id=str(data["id"]),
            type=MediaType.parse(data["type"]),
            titles=MediaTitles.from_dict(data.get("titles") or {}),
            format=MediaFormat.parse(data.get("format")),
            cover_image=data.get("cover_image"),
            season=data.get("season"),
            season_year=data.get("season_year"),
        )


# =============================================================================
# PROVIDER SIDE
# =============================================================================

@dataclass
class ProviderResult:
    """
    Standardized search hit from any provider.

    No matter if it came from a JSON API or a scraped HTML page, the
    resolver always receives this same structure.
    """
    provider_name: str
    source_id: str                    # Provider-local id (a URL for all shipped adapters)
    title: str
    romaji: Optional[str] = None
    native: Optional[str] = None
    cover_image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "source_id": self.source_id,
            "title": self.title,
            "romaji": self.romaji,
            "native": self.native,
            "cover_image": self.cover_image,
        }


# =============================================================================
# MATCH OUTPUT
# =============================================================================

@dataclass
class SimilarityScore:
    """Similarity value in [0, 1] plus whether it cleared its cutoff."""
    value: float
    matched: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "matched": self.matched}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimilarityScore":
        return cls(value=float(data.get("value", 0.0)), matched=bool(data.get("matched", False)))


@dataclass
class Connector:
    """One provider-to-canonical link."""
    provider_name: str
    source_id: str
    similarity: SimilarityScore

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "source_id": self.source_id,
            "similarity": self.similarity.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connector":
        return cls(
            provider_name=data["provider_name"],
            source_id=data["source_id"],
            similarity=SimilarityScore.from_dict(data.get("similarity") or {}),
        )


@dataclass
class CanonicalRecord:
    """
    Canonical media plus every connector that was matched to it.

    Connectors keep discovery order, not quality order, and are never
    de-duplicated.
    """
    id: str
    media: CanonicalMedia
    connectors: List[Connector] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "media": self.media.to_dict(),
            "connectors": [c.to_dict() for c in self.connectors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalRecord":
        return cls(
            id=str(data["id"]),
            media=CanonicalMedia.from_dict(data["media"]),
            connectors=[Connector.from_dict(c) for c in data.get("connectors") or []],
        )
