"""
================================================================================
AniSync v1.0 - AniList Client
================================================================================
GraphQL client for the canonical metadata service.

AniList Features:
  - Stable numeric ids used as canonical ids everywhere in AniSync
  - romaji / native / english titles plus synonyms (what the matcher needs)
  - 90 requests/min rate limit, no authentication required

Every failure (transport, HTTP status, GraphQL errors, unexpected shape)
raises CanonicalLookupError: callers never work with a partial candidate set.

API Docs: https://anilist.gitbook.io/anilist-apiv2-docs/
================================================================================
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import httpx

from sources.base import RateLimiter

from .cache import ResponseCache, get_response_cache
from .errors import CanonicalLookupError
from .mapping.models import CanonicalMedia, MediaFormat, MediaTitles, MediaType

logger = logging.getLogger(__name__)


MEDIA_FIELDS = """
    id
    type
    format
    season
    seasonYear
    title {
      userPreferred
      romaji
      english
      native
    }
    synonyms
    coverImage {
      extraLarge
      large
    }
"""

SEARCH_QUERY = """
query ($search: String, $type: MediaType, $page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    media(search: $search, type: $type, sort: SEARCH_MATCH) {
      %s
    }
  }
}
""" % MEDIA_FIELDS

GET_BY_ID_QUERY = """
query ($id: Int) {
  Media(id: $id) {
    %s
  }
}
""" % MEDIA_FIELDS

SEASONAL_QUERY = """
query ($type: MediaType, $page: Int, $perPage: Int, $season: MediaSeason,
       $seasonYear: Int, $nextSeason: MediaSeason, $nextYear: Int) {
  trending: Page(page: $page, perPage: $perPage) {
    media(type: $type, sort: TRENDING_DESC, isAdult: false) { %(fields)s }
  }
  season: Page(page: $page, perPage: $perPage) {
    media(type: $type, season: $season, seasonYear: $seasonYear, sort: POPULARITY_DESC, isAdult: false) { %(fields)s }
  }
  nextSeason: Page(page: $page, perPage: $perPage) {
    media(type: $type, season: $nextSeason, seasonYear: $nextYear, sort: POPULARITY_DESC, isAdult: false) { %(fields)s }
  }
  popular: Page(page: $page, perPage: $perPage) {
    media(type: $type, sort: POPULARITY_DESC, isAdult: false) { %(fields)s }
  }
  top: Page(page: $page, perPage: $perPage) {
    media(type: $type, sort: SCORE_DESC, isAdult: false) { %(fields)s }
  }
}
""" % {"fields": MEDIA_FIELDS}

IDS_QUERY = """
query ($type: MediaType, $page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    pageInfo { hasNextPage }
    media(type: $type, sort: ID) { id }
  }
}
"""

SEASONS = ("WINTER", "SPRING", "SUMMER", "FALL")


def current_season(today: Optional[date] = None) -> Tuple[str, int, str, int]:
    """(season, year, next_season, next_year) for a date."""
    today = today or date.today()
    index = (today.month % 12) // 3          # Dec-Feb winter, Mar-May spring...
    year = today.year + 1 if today.month == 12 else today.year
    next_index = (index + 1) % 4
    next_year = year + 1 if next_index == 0 else year
    return SEASONS[index], year, SEASONS[next_index], next_year


@dataclass
class SeasonalMedia:
    """The five seasonal lists AniList returns in one query."""
    trending: List[CanonicalMedia] = field(default_factory=list)
    season: List[CanonicalMedia] = field(default_factory=list)
    popular: List[CanonicalMedia] = field(default_factory=list)
    top: List[CanonicalMedia] = field(default_factory=list)
    next_season: List[CanonicalMedia] = field(default_factory=list)

    def get(self, kind: str) -> List[CanonicalMedia]:
        return getattr(self, kind)


class AniListClient:
    """
    AniList GraphQL client.

    Usage:
        client = AniListClient()
        candidates = await client.search("one piece", MediaType.MANGA)
        media = await client.get_media("30013")
    """

    base_url = "https://graphql.anilist.co"
    rate_limit = 90
    timeout = 15.0
    max_retries = 3
    retry_delay = 1.0

    SEARCH_LIMIT = 15
    CACHE_TTL = 60 * 60 * 6       # 6 hours
    SEASONAL_TTL = 60 * 60        # trending lists move faster

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.cache = cache if cache is not None else get_response_cache()
        self.rate_limiter = RateLimiter(self.rate_limit)
        self._transport = transport

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _cache_key(self, query: str, variables: Dict[str, Any]) -> str:
        payload = json.dumps({"q": query, "v": variables}, sort_keys=True)
        return "anilist:" + hashlib.sha1(payload.encode("utf-8")).hexdigest()

    async def _post(self, query: str, variables: Dict[str, Any], ttl: Optional[int] = None) -> Dict[str, Any]:
        """
        POST a GraphQL query, with cache, rate limit and retries.

        Returns:
            The "data" object of the response

        Raises:
            CanonicalLookupError: On any failure after retries
        """
        key = self._cache_key(query, variables)
        loop = asyncio.get_running_loop()
        # Redis calls block; keep them off the event loop
        cached = await loop.run_in_executor(None, self.cache.get_json, key)
        if cached is not None:
            return cached

        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
            transport=self._transport,
        ) as client:
            for attempt in range(self.max_retries):
                try:
                    await self.rate_limiter.acquire()
                    response = await client.post(self.base_url, json={"query": query, "variables": variables})

                    if response.status_code == 429 or response.status_code >= 500:
                        if attempt < self.max_retries - 1:
                            wait_time = self.retry_delay * (2 ** attempt)
                            logger.warning(f"AniList: HTTP {response.status_code}, waiting {wait_time}s")
                            await asyncio.sleep(wait_time)
                            continue
                    response.raise_for_status()
                    body = response.json()
                    break

                except httpx.HTTPStatusError as e:
                    raise CanonicalLookupError(f"AniList HTTP {e.response.status_code}") from e
                except httpx.RequestError as e:
                    if attempt < self.max_retries - 1:
                        logger.warning(f"AniList: Request error ({e}), retry {attempt + 1}/{self.max_retries}")
                        await asyncio.sleep(self.retry_delay)
                        continue
                    raise CanonicalLookupError(f"AniList unreachable: {e}") from e
                except ValueError as e:
                    raise CanonicalLookupError("AniList returned invalid JSON") from e

        if not isinstance(body, dict) or body.get("errors") or not isinstance(body.get("data"), dict):
            errors = body.get("errors") if isinstance(body, dict) else None
            raise CanonicalLookupError(f"AniList returned no data: {errors}")

        data = body["data"]
        await loop.run_in_executor(None, self.cache.set_json, key, data, ttl or self.CACHE_TTL)
        return data

    # =========================================================================
    # PARSING
    # =========================================================================

    @staticmethod
    def parse_media(media: Dict[str, Any]) -> CanonicalMedia:
        """Convert an AniList media object to CanonicalMedia."""
        try:
            title = media.get("title") or {}
            cover = media.get("coverImage") or {}
            return CanonicalMedia(
                id=str(media["id"]),
                type=MediaType.parse(media.get("type") or "ANIME"),
                titles=MediaTitles(
                    preferred=title.get("userPreferred"),
                    romaji=title.get("romaji"),
                    native=title.get("native"),
                    english=title.get("english"),
                    synonyms=[s for s in media.get("synonyms") or [] if s],
                ),
                format=MediaFormat.parse(media.get("format")),
                cover_image=cover.get("extraLarge") or cover.get("large"),
                season=media.get("season"),
                season_year=media.get("seasonYear"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CanonicalLookupError(f"Unexpected AniList media shape: {e}") from e

    def _media_list(self, page: Any) -> List[CanonicalMedia]:
        if not isinstance(page, dict) or not isinstance(page.get("media"), list):
            raise CanonicalLookupError("Unexpected AniList page shape")
        return [self.parse_media(m) for m in page["media"] if m]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def search(self, query: str, media_type: MediaType) -> List[CanonicalMedia]:
        """Search canonical entries by title, best match first."""
        data = await self._post(SEARCH_QUERY, {
            "search": query,
            "type": MediaType.parse(media_type).value,
            "page": 1,
            "perPage": self.SEARCH_LIMIT,
        })
        results = self._media_list(data.get("Page"))
        logger.debug(f"AniList search '{query}': {len(results)} results")
        return results

    async def get_media(self, canonical_id: str) -> Optional[CanonicalMedia]:
        """Fetch one entry by id; None when AniList does not know it."""
        try:
            variables = {"id": int(canonical_id)}
        except (TypeError, ValueError):
            return None

        try:
            data = await self._post(GET_BY_ID_QUERY, variables)
        except CanonicalLookupError as e:
            # AniList answers unknown ids with a 404 GraphQL error
            if "404" in str(e) or "Not Found" in str(e):
                return None
            raise

        media = data.get("Media")
        return self.parse_media(media) if media else None

    async def get_seasonal(
        self,
        media_type: MediaType,
        page: int = 1,
        per_page: int = 20,
        today: Optional[date] = None
    ) -> SeasonalMedia:
        """Trending, this season, popular, top rated and next season in one call."""
        season, year, next_season, next_year = current_season(today)
        data = await self._post(SEASONAL_QUERY, {
            "type": MediaType.parse(media_type).value,
            "page": page,
            "perPage": per_page,
            "season": season,
            "seasonYear": year,
            "nextSeason": next_season,
            "nextYear": next_year,
        }, ttl=self.SEASONAL_TTL)

        return SeasonalMedia(
            trending=self._media_list(data.get("trending")),
            season=self._media_list(data.get("season")),
            popular=self._media_list(data.get("popular")),
            top=self._media_list(data.get("top")),
            next_season=self._media_list(data.get("nextSeason")),
        )

    async def get_all_ids(self, media_type: MediaType, limit: Optional[int] = None) -> List[str]:
        """Enumerate canonical ids (ascending) for crawling."""
        ids: List[str] = []
        page = 1

        while True:
            data = await self._post(IDS_QUERY, {
                "type": MediaType.parse(media_type).value,
                "page": page,
                "perPage": 50,
            })
            page_data = data.get("Page")
            if not isinstance(page_data, dict):
                raise CanonicalLookupError("Unexpected AniList page shape")

            for media in page_data.get("media") or []:
                ids.append(str(media["id"]))
                if limit is not None and len(ids) >= limit:
                    return ids

            if not (page_data.get("pageInfo") or {}).get("hasNextPage"):
                return ids
            page += 1
