import json

import pytest

from anisync_app import create_app
from anisync_app.anilist import SeasonalMedia
from anisync_app.mapping.models import CanonicalRecord, Connector, MediaType, SimilarityScore
from anisync_app.sync import Sync

from conftest import FakeAniList, FakeProvider, make_media, make_result

BEBOP = make_media(1, english="Cowboy Bebop", romaji="Cowboy Bebop")


def build_client(settings, store, engine, anilist):
    provider = FakeProvider("A", results={
        "*": [make_result("A", "a/bebop", "Cowboy Bebop", romaji="Cowboy Bebop")]
    })
    sync = Sync(settings, anilist=anilist, store=store, providers=[provider])
    app = create_app(settings, sync=sync, engine=engine)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def client(settings, store, engine):
    anilist = FakeAniList(
        searches={"bebop": [BEBOP], "Cowboy Bebop": [BEBOP]},
        media={"1": BEBOP},
        seasonal=SeasonalMedia(popular=[BEBOP]),
    )
    with build_client(settings, store, engine, anilist) as client:
        yield client


def test_search(client):
    resp = client.get("/api/search?q=bebop&type=anime")
    assert resp.status_code == 200
    results = resp.get_json()["results"]
    assert results[0]["id"] == "1"
    assert results[0]["connectors"][0]["source_id"] == "a/bebop"


def test_search_requires_query(client):
    assert client.get("/api/search").status_code == 400
    assert client.get("/api/search?q=x&type=novel").status_code == 400


def test_media_lookup(client):
    resp = client.get("/api/media/1")
    assert resp.status_code == 200
    assert resp.get_json()["media"]["titles"]["english"] == "Cowboy Bebop"

    assert client.get("/api/media/999").status_code == 404
    assert client.get("/api/media/abc").status_code == 400


def test_seasonal(client):
    resp = client.get("/api/seasonal/popular")
    assert resp.status_code == 200
    assert [r["id"] for r in resp.get_json()["results"]] == ["1"]

    assert client.get("/api/seasonal/yesterday").status_code == 400


def test_export(client, store):
    store.insert([CanonicalRecord("1", BEBOP, [Connector("A", "a/1", SimilarityScore(1.0, True))])],
                 MediaType.ANIME)
    resp = client.get("/api/export/anime")
    assert resp.status_code == 200
    assert resp.mimetype == "application/json"
    assert json.loads(resp.data)[0]["id"] == "1"


def test_providers(client):
    resp = client.get("/api/providers")
    assert resp.status_code == 200
    entry = resp.get_json()["providers"][0]
    assert entry["id"] == "A"
    assert entry["wait_ms"] == 0
    assert entry["circuit"] == "closed"


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"] is True


def test_unknown_route_is_json(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


def test_canonical_outage_is_bad_gateway(settings, store, engine):
    with build_client(settings, store, engine, FakeAniList(fail=True)) as client:
        resp = client.get("/api/search?q=bebop")
    assert resp.status_code == 502
    assert "error" in resp.get_json()
