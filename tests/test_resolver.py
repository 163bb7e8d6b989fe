from anisync_app.config import ProviderConfig
from anisync_app.mapping.fanout import FanoutOutcome
from anisync_app.mapping.models import MediaFormat, MediaType
from anisync_app.mapping.resolver import EntityResolver

from conftest import make_media, make_result


def _outcomes(**results):
    return {name: FanoutOutcome(name, items) for name, items in results.items()}


def test_resolve_emits_pairs_in_provider_order():
    naruto = make_media(20, english="Naruto", romaji="Naruto")
    bleach = make_media(269, english="Bleach", romaji="Bleach")
    outcomes = _outcomes(
        A=[make_result("A", "a/naruto", "Naruto", romaji="Naruto")],
        B=[make_result("B", "b/bleach", "Bleach"), make_result("B", "b/x", "Unrelated Show")],
    )

    pairs = EntityResolver().resolve(outcomes, [naruto, bleach])

    assert [(cid, c.provider_name, c.source_id) for cid, c in pairs] == [
        ("20", "A", "a/naruto"),
        ("269", "B", "b/bleach"),
    ]


def test_resolve_applies_per_provider_thresholds():
    media = make_media(1, english="Kimetsu no Yaibaa")
    outcomes = _outcomes(Strict=[make_result("Strict", "s/1", "Kimetsu no Yaiba")],
                         Loose=[make_result("Loose", "l/1", "Kimetsu no Yaiba")])

    pairs = EntityResolver().resolve(outcomes, [media], {
        "Strict": ProviderConfig(threshold=0.99),
        "Loose": ProviderConfig(threshold=0.5),
    })

    assert [c.provider_name for _, c in pairs] == ["Loose"]


def test_resolve_result_single_form():
    media = make_media(5, english="Berserk")
    pair = EntityResolver().resolve_result("P", make_result("P", "p/1", "Berserk"), [None, media])
    assert pair[0] == "5"
    assert pair[1].similarity.value == 1.0


def test_resolve_titles_best_candidate_wins():
    season1 = make_media(1, english="Attack on Titan", romaji="Shingeki no Kyojin")
    season2 = make_media(2, english="Attack on Titan Season 2", romaji="Shingeki no Kyojin 2")
    outcomes = _outcomes(P=[make_result("P", "p/aot2", "Attack on Titan Season 2")])

    pairs = EntityResolver().resolve_titles(outcomes, [season1, season2], MediaType.ANIME)

    assert len(pairs) == 1
    assert pairs[0][0] == "2"
    assert pairs[0][1].similarity.matched


def test_resolve_titles_tie_keeps_earlier_candidate():
    first = make_media(10, english="Clannad", romaji="Clannad")
    second = make_media(11, english="Clannad", romaji="Clannad")
    outcomes = _outcomes(P=[make_result("P", "p/c", "Clannad")])

    pairs = EntityResolver().resolve_titles(outcomes, [first, second], MediaType.ANIME)
    assert pairs[0][0] == "10"


def test_resolve_titles_skips_novels_for_manga():
    novel = make_media(100, romaji="Overlord", media_type=MediaType.MANGA, media_format=MediaFormat.NOVEL)
    manga = make_media(101, romaji="Overlord", media_type=MediaType.MANGA)
    outcomes = _outcomes(P=[make_result("P", "p/o", "Overlord")])

    pairs = EntityResolver().resolve_titles(outcomes, [novel, manga], MediaType.MANGA)
    assert [cid for cid, _ in pairs] == ["101"]


def test_resolve_titles_below_cutoff_dropped():
    outcomes = _outcomes(P=[make_result("P", "p/1", "Completely Different")])
    pairs = EntityResolver().resolve_titles(outcomes, [make_media(1, romaji="Naruto")], MediaType.ANIME)
    assert pairs == []
