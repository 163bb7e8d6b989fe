import asyncio

import pytest

from anisync_app.anilist import SeasonalMedia
from anisync_app.config import MappingSettings, Settings
from anisync_app.database import create_db_engine, init_database, make_session_factory
from anisync_app.errors import CanonicalLookupError
from anisync_app.mapping.models import (
    CanonicalMedia, MediaFormat, MediaTitles, MediaType, ProviderResult
)
from anisync_app.store import MappingStore
from sources.base import ProviderAdapter


def make_media(media_id, english=None, romaji=None, native=None,
               media_type=MediaType.ANIME, media_format=None, synonyms=None):
    return CanonicalMedia(
        id=str(media_id),
        type=media_type,
        titles=MediaTitles(
            preferred=romaji or english,
            romaji=romaji,
            native=native,
            english=english,
            synonyms=list(synonyms or []),
        ),
        format=media_format or (MediaFormat.TV if media_type == MediaType.ANIME else MediaFormat.MANGA),
    )


def make_result(provider, source_id, title, romaji=None, native=None):
    return ProviderResult(provider_name=provider, source_id=source_id, title=title,
                          romaji=romaji, native=native)


class FakeProvider(ProviderAdapter):
    """In-memory provider: canned results per query, optional delay or failure."""

    def __init__(self, name, media_type=MediaType.ANIME, results=None, delay=0.0,
                 error=None, by_id=None, config=None):
        super().__init__(config=config)
        self.id = name
        self.name = name
        self.media_type = media_type
        self._results = results or {}
        self._delay = delay
        self._error = error
        self._by_id = by_id
        self.supports_get_by_id = by_id is not None
        self.calls = []

    async def search(self, query):
        self.calls.append(query)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        if callable(self._results):
            return self._results(query)
        return list(self._results.get(query, self._results.get("*", [])))

    async def get_by_id(self, canonical_id):
        self.calls.append(("id", canonical_id))
        if self._error:
            raise self._error
        return self._by_id.get(str(canonical_id))


class FakeAniList:
    """Canonical service double keyed by exact query / id."""

    def __init__(self, searches=None, media=None, seasonal=None, ids=None, fail=False,
                 fail_queries=(), fail_ids=()):
        self.searches = searches or {}
        self.media = media or {}
        self.seasonal = seasonal or SeasonalMedia()
        self.ids = ids or []
        self.fail = fail
        self.fail_queries = set(fail_queries)
        self.fail_ids = set(fail_ids)
        self.search_calls = []

    async def search(self, query, media_type):
        self.search_calls.append(query)
        if self.fail or query in self.fail_queries:
            raise CanonicalLookupError("AniList unreachable")
        return list(self.searches.get(query, []))

    async def get_media(self, canonical_id):
        if self.fail or str(canonical_id) in self.fail_ids:
            raise CanonicalLookupError("AniList unreachable")
        return self.media.get(str(canonical_id))

    async def get_seasonal(self, media_type, page=1, per_page=20):
        return self.seasonal

    async def get_all_ids(self, media_type, limit=None):
        return self.ids[:limit] if limit is not None else list(self.ids)


@pytest.fixture
def settings():
    return Settings(mapping=MappingSettings(wait_ms=0))


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return MappingStore(make_session_factory(engine))
