"""
================================================================================
AniSync v1.0 - ComicK Provider
================================================================================
ComicK JSON API search.

ComicK structure:
  - title: main title (usually English)
  - md_titles: alternate titles with lang codes
  - hid: short id used in public URLs
================================================================================
"""

from typing import Any, Dict, List, Optional

from anisync_app.mapping.models import MediaType, ProviderResult
from .base import ProviderAdapter


class ComickProvider(ProviderAdapter):
    """ComicK API provider."""

    id = "ComicK"
    name = "ComicK"
    media_type = MediaType.MANGA
    base_url = "https://comick.io"
    api_url = "https://api.comick.io"

    rate_limit = 60

    LIMIT = 20

    async def search(self, query: str) -> List[ProviderResult]:
        params = {"q": query, "limit": self.LIMIT, "page": 1, "t": "true"}
        data = await self._get_json(f"{self.api_url}/v1.0/search", params=params)

        results = []
        for comic in data if isinstance(data, list) else []:
            result = self._parse_comic(comic)
            if result:
                results.append(result)
        return results

    def _alt_title(self, comic: Dict, lang: str) -> Optional[str]:
        for t in comic.get("md_titles") or []:
            if isinstance(t, dict) and t.get("lang") == lang:
                return t.get("title")
        return None

    def _get_english_title(self, comic: Dict) -> Optional[str]:
        title = comic.get("title")
        if title:
            return title

        title = self._alt_title(comic, "en")
        if title:
            return title

        slug = comic.get("slug", "")
        if slug:
            return slug.replace("-", " ").title()
        return None

    def _parse_comic(self, comic: Dict[str, Any]) -> Optional[ProviderResult]:
        hid = comic.get("hid")
        title = self._get_english_title(comic)
        if not hid or not title:
            return None

        cover_image = None
        covers = comic.get("md_covers") or []
        if covers and covers[0].get("b2key"):
            cover_image = f"https://meo.comick.pictures/{covers[0]['b2key']}"

        return self._result(
            f"{self.base_url}/comic/{hid}",
            title,
            romaji=self._alt_title(comic, "ja-ro"),
            native=self._alt_title(comic, "ja"),
            cover_image=cover_image,
        )
