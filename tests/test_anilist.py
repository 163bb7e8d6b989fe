import asyncio
import json
import threading
from datetime import date

import httpx
import pytest

from anisync_app.anilist import AniListClient, current_season
from anisync_app.cache import ResponseCache
from anisync_app.errors import CanonicalLookupError
from anisync_app.mapping.models import MediaFormat, MediaType

MEDIA = {
    "id": 21,
    "type": "ANIME",
    "format": "TV",
    "season": "FALL",
    "seasonYear": 1999,
    "title": {"userPreferred": "ONE PIECE", "romaji": "ONE PIECE", "english": "ONE PIECE", "native": "ワンピース"},
    "synonyms": ["OP", None],
    "coverImage": {"extraLarge": "https://img/21.jpg", "large": None},
}


def make_client(handler):
    client = AniListClient(cache=ResponseCache(), transport=httpx.MockTransport(handler))
    client.retry_delay = 0
    client.rate_limiter.min_interval = 0
    return client


def test_search_parses_media():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"data": {"Page": {"media": [MEDIA]}}})

    results = asyncio.run(make_client(handler).search("one piece", MediaType.ANIME))

    assert seen["variables"]["search"] == "one piece"
    assert seen["variables"]["type"] == "ANIME"
    media = results[0]
    assert media.id == "21"
    assert media.format == MediaFormat.TV
    assert media.titles.native == "ワンピース"
    assert media.titles.synonyms == ["OP"]
    assert media.cover_image == "https://img/21.jpg"


def test_responses_are_cached():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200, json={"data": {"Media": MEDIA}})

    client = make_client(handler)
    asyncio.run(client.get_media("21"))
    asyncio.run(client.get_media("21"))
    assert len(calls) == 1


class ThreadRecordingCache(ResponseCache):
    def __init__(self):
        super().__init__()
        self.threads = []

    def get_json(self, key):
        self.threads.append(threading.get_ident())
        return super().get_json(key)

    def set_json(self, key, value, ttl=None):
        self.threads.append(threading.get_ident())
        super().set_json(key, value, ttl)


def test_cache_calls_run_off_the_event_loop():
    cache = ThreadRecordingCache()
    client = AniListClient(cache=cache, transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"data": {"Media": MEDIA}})
    ))
    client.rate_limiter.min_interval = 0

    asyncio.run(client.get_media("21"))

    assert len(cache.threads) == 2
    assert threading.get_ident() not in cache.threads


def test_unknown_id_returns_none():
    def handler(request):
        return httpx.Response(404, json={"errors": [{"message": "Not Found.", "status": 404}], "data": {"Media": None}})

    client = make_client(handler)
    assert asyncio.run(client.get_media("999999999")) is None
    assert asyncio.run(client.get_media("abc")) is None


def test_server_error_raises_after_retries():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503)

    with pytest.raises(CanonicalLookupError):
        asyncio.run(make_client(handler).search("x", MediaType.MANGA))
    assert len(calls) == 3


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CanonicalLookupError):
        asyncio.run(make_client(handler).search("x", MediaType.ANIME))


def test_graphql_errors_raise():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "bad"}], "data": None})

    with pytest.raises(CanonicalLookupError):
        asyncio.run(make_client(handler).search("x", MediaType.ANIME))


def test_seasonal_lists():
    def handler(request):
        page = {"media": [MEDIA]}
        empty = {"media": []}
        return httpx.Response(200, json={"data": {
            "trending": page, "season": page, "nextSeason": empty, "popular": page, "top": empty,
        }})

    seasonal = asyncio.run(make_client(handler).get_seasonal(MediaType.ANIME))
    assert [m.id for m in seasonal.trending] == ["21"]
    assert seasonal.next_season == []
    assert seasonal.get("popular")[0].titles.english == "ONE PIECE"


def test_get_all_ids_pages_until_limit():
    def handler(request):
        page = json.loads(request.content)["variables"]["page"]
        ids = [{"id": page * 10 + i} for i in range(3)]
        return httpx.Response(200, json={"data": {"Page": {"pageInfo": {"hasNextPage": page < 2}, "media": ids}}})

    client = make_client(handler)
    assert asyncio.run(client.get_all_ids(MediaType.MANGA)) == ["10", "11", "12", "20", "21", "22"]
    assert asyncio.run(client.get_all_ids(MediaType.MANGA, limit=4)) == ["10", "11", "12", "20"]


def test_current_season():
    assert current_season(date(2024, 1, 15)) == ("WINTER", 2024, "SPRING", 2024)
    assert current_season(date(2024, 10, 1)) == ("FALL", 2024, "WINTER", 2025)
    assert current_season(date(2024, 12, 20)) == ("WINTER", 2025, "SPRING", 2025)
