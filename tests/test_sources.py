import asyncio

import httpx
import pytest

from anisync_app.config import MappingSettings, ProviderConfig, Settings
from anisync_app.errors import ProviderFetchError
from anisync_app.mapping.models import MediaType
from sources import build_providers, providers_for
from sources.comick import ComickProvider
from sources.enime import EnimeProvider
from sources.mangadex import MangaDexProvider
from sources.mangakakalot import MangakakalotProvider


def make(cls, handler):
    provider = cls(transport=httpx.MockTransport(handler))
    provider.rate_limiter.min_interval = 0
    provider.retry_delay = 0
    return provider


def test_registry_is_immutable_tuple_with_resolved_config():
    settings = Settings(mapping=MappingSettings(
        threshold=0.8, providers={"MangaDex": ProviderConfig(threshold=0.6)}
    ))
    providers = build_providers(settings)

    assert isinstance(providers, tuple)
    assert [p.provider_name for p in providers] == ["Enime", "MangaDex", "ComicK", "Mangakakalot"]
    mangadex = providers[1]
    assert mangadex.config.threshold == 0.6
    assert providers[0].config.threshold == 0.8

    manga = providers_for(providers, MediaType.MANGA)
    assert [p.provider_name for p in manga] == ["MangaDex", "ComicK", "Mangakakalot"]


def test_enime_search():
    def handler(request):
        assert request.url.path == "/search/one piece"
        return httpx.Response(200, json={"data": [
            {"id": "abc", "title": {"english": None, "romaji": "One Piece", "native": "ワンピース"},
             "coverImage": "https://img/op.jpg"},
            {"id": "", "title": {"romaji": "Broken"}},
        ]})

    results = asyncio.run(make(EnimeProvider, handler).search("one piece"))

    assert len(results) == 1
    assert results[0].source_id == "https://enime.moe/anime/abc"
    assert results[0].title == "One Piece"
    assert results[0].native == "ワンピース"
    assert results[0].provider_name == "Enime"


def test_enime_unparseable_payload_is_provider_error():
    provider = make(EnimeProvider, lambda request: httpx.Response(200, json={"message": "oops"}))
    with pytest.raises(ProviderFetchError):
        asyncio.run(provider.search("x"))


def test_enime_get_by_id():
    def handler(request):
        assert request.url.path == "/mapping/anilist/21"
        return httpx.Response(200, json={
            "id": "enime-op", "format": "TV",
            "title": {"romaji": "One Piece", "english": "One Piece", "native": "ワンピース"},
        })

    record = asyncio.run(make(EnimeProvider, handler).get_by_id("21"))

    assert record.id == "21"
    assert record.connectors[0].source_id == "https://enime.moe/anime/enime-op"
    assert record.connectors[0].similarity.value == 1.0


def test_enime_get_by_id_missing():
    provider = make(EnimeProvider, lambda request: httpx.Response(200, json={}))
    assert asyncio.run(provider.get_by_id("1")) is None


def test_mangadex_search():
    def handler(request):
        assert request.url.params["title"] == "berserk"
        return httpx.Response(200, json={"data": [{
            "id": "801513ba",
            "attributes": {
                "title": {"en": "Berserk"},
                "altTitles": [{"ja-ro": "Beruseruku"}, {"ja": "ベルセルク"}],
            },
            "relationships": [{"type": "cover_art", "attributes": {"fileName": "c.jpg"}}],
        }]})

    result = asyncio.run(make(MangaDexProvider, handler).search("berserk"))[0]

    assert result.source_id == "https://mangadex.org/title/801513ba"
    assert result.title == "Berserk"
    assert result.romaji == "Beruseruku"
    assert result.native == "ベルセルク"
    assert result.cover_image == "https://uploads.mangadex.org/covers/801513ba/c.jpg.256.jpg"


def test_comick_search():
    def handler(request):
        return httpx.Response(200, json=[
            {"hid": "x1", "title": "", "slug": "solo-leveling",
             "md_titles": [{"lang": "ja-ro", "title": "Na Honjaman Level Up"}],
             "md_covers": [{"b2key": "k.jpg"}]},
            {"hid": None, "title": "No Id"},
        ])

    results = asyncio.run(make(ComickProvider, handler).search("solo leveling"))

    assert len(results) == 1
    assert results[0].title == "Solo Leveling"
    assert results[0].romaji == "Na Honjaman Level Up"
    assert results[0].source_id == "https://comick.io/comic/x1"
    assert results[0].cover_image == "https://meo.comick.pictures/k.jpg"


SEARCH_HTML = """
<html><body>
<div class="panel_story_list">
  <div class="story_item">
    <a href="https://mangakakalot.gg/manga/vinland-saga"><img src="https://img/vs.jpg"></a>
    <h3 class="story_name"><a href="https://mangakakalot.gg/manga/vinland-saga">Vinland Saga</a></h3>
  </div>
  <div class="story_item">
    <h3 class="story_name"><a href="/manga/planetes">Planetes</a></h3>
  </div>
</div>
</body></html>
"""


def test_mangakakalot_search():
    def handler(request):
        assert request.url.path == "/search/story/vinland_saga"
        return httpx.Response(200, text=SEARCH_HTML)

    results = asyncio.run(make(MangakakalotProvider, handler).search("Vinland Saga"))

    assert [r.title for r in results] == ["Vinland Saga", "Planetes"]
    assert results[0].cover_image == "https://img/vs.jpg"
    assert results[1].source_id == "https://mangakakalot.gg/manga/planetes"


def test_mangakakalot_no_results_container():
    provider = MangakakalotProvider()
    assert provider.parse_search("<html><body>Nothing</body></html>") == []


def test_http_error_becomes_provider_error():
    provider = make(MangaDexProvider, lambda request: httpx.Response(403))
    with pytest.raises(ProviderFetchError) as exc:
        asyncio.run(provider.search("x"))
    assert exc.value.provider_name == "MangaDex"
    assert "403" in exc.value.message
