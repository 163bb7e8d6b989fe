"""
================================================================================
AniSync v1.0 - MangaDex Provider
================================================================================
MangaDex API v5 search.

MANGADEX API RULES:
  - User-Agent MUST identify your app (no browser spoofing)
  - 5 requests/second at their load balancer; we stay at 2
  - Continued requests after 429 = temporary IP ban (403)
================================================================================
"""

from typing import Any, Dict, List, Optional

from anisync_app.mapping.models import MediaType, ProviderResult
from .base import ProviderAdapter


class MangaDexProvider(ProviderAdapter):
    """MangaDex API provider."""

    id = "MangaDex"
    name = "MangaDex"
    media_type = MediaType.MANGA
    base_url = "https://mangadex.org"
    api_url = "https://api.mangadex.org"

    rate_limit = 120  # 2 req/sec, well below their 5/sec
    timeout = 20.0

    CONTENT_RATINGS = ["safe", "suggestive", "erotica"]
    LIMIT = 15

    async def search(self, query: str) -> List[ProviderResult]:
        params = {
            "title": query,
            "limit": self.LIMIT,
            "includes[]": ["cover_art"],
            "contentRating[]": self.CONTENT_RATINGS,
            "order[relevance]": "desc",
        }
        data = await self._get_json(f"{self.api_url}/manga", params=params)

        results = []
        for manga in data.get("data", []) if isinstance(data, dict) else []:
            result = self._parse_manga(manga)
            if result:
                results.append(result)
        return results

    def _extract_cover(self, manga_data: Dict) -> Optional[str]:
        """Extract cover URL from manga relationships."""
        manga_id = manga_data.get("id", "")

        for rel in manga_data.get("relationships", []):
            if rel.get("type") == "cover_art":
                filename = (rel.get("attributes") or {}).get("fileName")
                if filename:
                    return f"https://uploads.mangadex.org/covers/{manga_id}/{filename}.256.jpg"
        return None

    def _parse_manga(self, data: Dict[str, Any]) -> Optional[ProviderResult]:
        attrs = data.get("attributes", {})
        titles = dict(attrs.get("title") or {})

        # Alternate titles carry the romaji/native names MangaDex leaves out of "title"
        for alt in attrs.get("altTitles") or []:
            for lang, value in alt.items():
                titles.setdefault(lang, value)

        title = (
            titles.get("en") or
            titles.get("ja-ro") or
            titles.get("ja") or
            next(iter(titles.values()), None)
        )
        if not data.get("id") or not title:
            return None

        return self._result(
            f"{self.base_url}/title/{data['id']}",
            title,
            romaji=titles.get("ja-ro"),
            native=titles.get("ja"),
            cover_image=self._extract_cover(data),
        )
