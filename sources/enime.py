"""
================================================================================
AniSync v1.0 - Enime Provider
================================================================================
Anime provider backed by the Enime JSON API.

Enime keeps its own AniList mapping, so this is the one shipped provider
that supports get_by_id (the fast path): /mapping/anilist/{id} returns the
Enime entry for an AniList id directly, no title matching needed.
================================================================================
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from anisync_app.errors import ProviderFetchError
from anisync_app.mapping.models import (
    CanonicalMedia, CanonicalRecord, Connector, MediaFormat, MediaTitles, MediaType,
    ProviderResult, SimilarityScore
)
from .base import ProviderAdapter


class EnimeProvider(ProviderAdapter):
    """Enime API provider."""

    id = "Enime"
    name = "Enime"
    media_type = MediaType.ANIME
    base_url = "https://enime.moe"
    api_url = "https://api.enime.moe"

    rate_limit = 120
    supports_get_by_id = True

    PER_PAGE = 18

    async def search(self, query: str) -> List[ProviderResult]:
        url = f"{self.api_url}/search/{quote(query, safe='')}"
        data = await self._get_json(url, params={"page": 1, "perPage": self.PER_PAGE})

        items = data.get("data") if isinstance(data, dict) else None
        if items is None:
            raise ProviderFetchError(self.id, f"unable to parse search data for '{query}'")

        results = []
        for item in items:
            result = self._parse_anime(item)
            if result:
                results.append(result)
        return results

    async def get_by_id(self, canonical_id: str) -> Optional[CanonicalRecord]:
        """Resolve an AniList id through Enime's own mapping table."""
        url = f"{self.api_url}/mapping/anilist/{canonical_id}"
        data = await self._get_json(url)
        if not isinstance(data, dict) or not data.get("id"):
            return None

        titles = data.get("title") or {}
        media = CanonicalMedia(
            id=str(canonical_id),
            type=MediaType.ANIME,
            titles=MediaTitles(
                preferred=titles.get("userPreferred") or titles.get("romaji"),
                romaji=titles.get("romaji"),
                native=titles.get("native"),
                english=titles.get("english"),
                synonyms=list(data.get("synonyms") or []),
            ),
            format=MediaFormat.parse(data.get("format")),
            cover_image=data.get("coverImage"),
            season=data.get("season"),
            season_year=data.get("year"),
        )
        connector = Connector(
            provider_name=self.id,
            source_id=self._source_url(data["id"]),
            similarity=SimilarityScore(value=1.0, matched=True),
        )
        return CanonicalRecord(id=media.id, media=media, connectors=[connector])

    def _source_url(self, enime_id: str) -> str:
        return f"{self.base_url}/anime/{enime_id}"

    def _parse_anime(self, item: Dict[str, Any]) -> Optional[ProviderResult]:
        titles = item.get("title") or {}
        title = titles.get("english") or titles.get("romaji") or titles.get("native")
        if not item.get("id") or not title:
            return None
        return self._result(
            self._source_url(item["id"]),
            title,
            romaji=titles.get("romaji"),
            native=titles.get("native"),
            cover_image=item.get("coverImage"),
        )
