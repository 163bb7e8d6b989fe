"""
================================================================================
AniSync v1.0 - Mangakakalot Provider
================================================================================
HTML scraper for Mangakakalot search pages (BeautifulSoup).

The site has two templates in the wild ("panel-search-story" and the older
"panel_story_list"); the selectors accept both.
================================================================================
"""

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from anisync_app.mapping.models import MediaType, ProviderResult
from .base import ProviderAdapter


class MangakakalotProvider(ProviderAdapter):
    """Mangakakalot HTML provider."""

    id = "Mangakakalot"
    name = "Mangakakalot"
    media_type = MediaType.MANGA
    base_url = "https://mangakakalot.gg"

    rate_limit = 30

    async def search(self, query: str) -> List[ProviderResult]:
        query_formatted = query.replace(' ', '_').lower()
        html = await self._get_text(f"{self.base_url}/search/story/{query_formatted}")
        return self.parse_search(html)

    def parse_search(self, html: str) -> List[ProviderResult]:
        """Parse a search results page."""
        soup = BeautifulSoup(html, 'html.parser')

        container = soup.select_one('.panel-search-story, .panel_story_list')
        if not container:
            return []

        results = []
        for item in container.select('.search-story-item, .story_item'):
            result = self._parse_item(item)
            if result:
                results.append(result)
        return results

    def _parse_item(self, item) -> Optional[ProviderResult]:
        title_elem = item.select_one('h3 a, .item-title, .story_name a')
        if not title_elem:
            return None

        title = title_elem.get_text(strip=True)
        href = title_elem.get('href') or ''
        if not href:
            link = item.select_one('a.item-img, a')
            href = link.get('href', '') if link else ''
        if not title or not href:
            return None

        img = item.select_one('img')
        cover = img.get('src') if img else None

        return self._result(urljoin(self.base_url + '/', href), title, cover_image=cover)
