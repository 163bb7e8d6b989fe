import json

import pytest

from anisync_app.config import MappingSettings, ProviderConfig, load_settings

ENV_VARS = (
    "ANISYNC_CONFIG", "ANISYNC_THRESHOLD", "ANISYNC_COMPARISON_THRESHOLD", "ANISYNC_WAIT_MS",
    "ANISYNC_CRAWL_MAX_PAGES", "ANISYNC_CRAWL_WAIT_MS", "ANISYNC_CRAWL_MAX_IDS",
    "DATABASE_URL", "REDIS_URL", "ANISYNC_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.mapping.threshold == 0.8
    assert settings.mapping.comparison_threshold == 0.5
    assert settings.mapping.wait_ms == 200
    assert settings.crawl.max_pages == 5
    assert settings.crawl.max_ids is None
    assert settings.debug is False


def test_json_file(tmp_path):
    path = tmp_path / "anisync.json"
    path.write_text(json.dumps({
        "mapping": {
            "threshold": 0.7,
            "wait_ms": 50,
            "providers": {"MangaDex": {"threshold": 0.6, "timeout": 20}},
        },
        "crawl": {"max_pages": 2, "max_ids": 10},
    }))

    settings = load_settings(str(path))

    assert settings.mapping.threshold == 0.7
    assert settings.mapping.wait_ms == 50
    assert settings.mapping.providers["MangaDex"] == ProviderConfig(threshold=0.6, timeout=20.0)
    assert settings.crawl.max_pages == 2
    assert settings.crawl.max_ids == 10


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "anisync.json"
    path.write_text(json.dumps({"mapping": {"threshold": 0.7}}))
    monkeypatch.setenv("ANISYNC_CONFIG", str(path))
    monkeypatch.setenv("ANISYNC_THRESHOLD", "0.9")
    monkeypatch.setenv("ANISYNC_CRAWL_WAIT_MS", "0")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
    monkeypatch.setenv("ANISYNC_DEBUG", "true")

    settings = load_settings()

    assert settings.mapping.threshold == 0.9
    assert settings.crawl.wait_ms == 0
    assert settings.redis_url == "redis://cache:6379/0"
    assert settings.debug is True


def test_missing_file_uses_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "missing.json"))
    assert settings.mapping.threshold == 0.8


def test_for_provider_layers():
    mapping = MappingSettings(
        threshold=0.8, wait_ms=200,
        providers={"ComicK": ProviderConfig(threshold=0.6, wait_ms=500)},
    )

    assert mapping.for_provider("Enime") == ProviderConfig(0.8, 0.5, 200, None)
    assert mapping.for_provider("ComicK") == ProviderConfig(0.6, 0.5, 500, None)

    adapter = ProviderConfig(wait_ms=10, timeout=3.0)
    assert mapping.for_provider("ComicK", adapter) == ProviderConfig(0.6, 0.5, 10, 3.0)
