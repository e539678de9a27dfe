from unittest.mock import MagicMock, patch

import pytest
import requests

from domain.errors import InvalidQuery, PlaceNotFound, TransportError
from domain.models import Language, PlaceQuery, SearchHit
from services import place_search
from services.place_names import PlaceNameDictionary

NAMES = PlaceNameDictionary({"大阪": "Osaka", "昭和基地": "Showa Station"})


def _search_json(*titles):
    return {"query": {"search": [{"title": t, "pageid": i} for i, t in enumerate(titles)]}}


class FakeSearch:
    """Stands in for search_title; answers from a {(term, lang): title} table."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def __call__(self, text, language, limit=None):
        self.calls.append((text, language))
        return self.answers.get((text, language))


def test_pick_best_title_prefers_exact_match():
    titles = ["Tokyo Tower", "Tokyo Station", "tokyo", "Tokyo"]
    assert place_search.pick_best_title(titles, "TOKYO") == "tokyo"


def test_pick_best_title_then_contains():
    titles = ["Kantō region", "Greater Tokyo Area", "Tokyo Tower"]
    assert place_search.pick_best_title(titles, "tokyo") == "Greater Tokyo Area"


def test_pick_best_title_falls_back_to_top_result():
    assert place_search.pick_best_title(["Edo", "Kantō"], "Tokyo") == "Edo"
    assert place_search.pick_best_title([], "Tokyo") is None


@patch("services.http_client._session.get")
def test_search_titles_sends_query(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.return_value = _search_json("Paris", "Paris Hilton")
    mock_resp.raise_for_status.return_value = None
    mock_get.return_value = mock_resp

    titles = place_search.search_titles("Paris", Language.EN, limit=5)

    assert titles == ["Paris", "Paris Hilton"]
    args, kwargs = mock_get.call_args
    assert args[0] == "https://en.wikipedia.org/w/api.php"
    assert kwargs["params"]["action"] == "query"
    assert kwargs["params"]["list"] == "search"
    assert kwargs["params"]["srsearch"] == "Paris"
    assert kwargs["params"]["format"] == "json"
    assert kwargs["params"]["srlimit"] == "5"


@patch("services.http_client._session.get")
def test_search_titles_handles_empty_results(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.return_value = {"batchcomplete": ""}
    mock_resp.raise_for_status.return_value = None
    mock_get.return_value = mock_resp

    assert place_search.search_titles("zzzz", Language.JA) == []


def test_first_stage_uses_dictionary_translation(monkeypatch):
    fake = FakeSearch({("Osaka", Language.JA): "大阪市"})
    monkeypatch.setattr(place_search, "search_title", fake)

    hit = place_search.resolve_title(PlaceQuery("大阪", Language.JA), NAMES)

    assert hit == SearchHit(title="大阪市", language=Language.JA)
    assert fake.calls == [("Osaka", Language.JA)]


def test_fallback_order_for_japanese_query(monkeypatch):
    fake = FakeSearch()
    monkeypatch.setattr(place_search, "search_title", fake)

    with pytest.raises(PlaceNotFound):
        place_search.resolve_title(PlaceQuery("昭和基地", Language.JA), NAMES)

    assert fake.calls == [
        ("Showa Station", Language.JA),
        ("昭和基地", Language.JA),
        ("Showa Station", Language.EN),
        ("昭和基地", Language.EN),
    ]


def test_unknown_query_exhausts_every_stage_before_giving_up(monkeypatch):
    fake = FakeSearch()
    monkeypatch.setattr(place_search, "search_title", fake)

    attempts = place_search.plan_search_attempts(PlaceQuery("Atlantis", Language.JA), NAMES)
    assert [a.stage for a in attempts] == [1, 2, 3, 4]

    with pytest.raises(PlaceNotFound):
        place_search.resolve_title(PlaceQuery("Atlantis", Language.JA), NAMES)
    # stages 2 and 4 repeat earlier (term, language) pairs and are not re-sent
    assert fake.calls == [("Atlantis", Language.JA), ("Atlantis", Language.EN)]


def test_english_query_falls_back_to_japanese(monkeypatch):
    fake = FakeSearch({("Showa Kichi", Language.JA): "昭和基地"})
    monkeypatch.setattr(place_search, "search_title", fake)

    attempts = place_search.plan_search_attempts(PlaceQuery("Showa Kichi", Language.EN), NAMES)
    assert [(a.stage, a.language) for a in attempts] == [
        (1, Language.EN),
        (2, Language.EN),
        (4, Language.JA),
    ]

    hit = place_search.resolve_title(PlaceQuery("Showa Kichi", Language.EN), NAMES)
    assert hit == SearchHit(title="昭和基地", language=Language.JA)
    assert fake.calls == [("Showa Kichi", Language.EN), ("Showa Kichi", Language.JA)]


def test_translated_term_is_searchable_in_english(monkeypatch):
    fake = FakeSearch({("Osaka", Language.EN): "Osaka"})
    monkeypatch.setattr(place_search, "search_title", fake)

    ja_hit = place_search.resolve_title(PlaceQuery("大阪", Language.JA), NAMES)
    en_hit = place_search.resolve_title(PlaceQuery(NAMES.lookup("大阪"), Language.EN), NAMES)

    assert ja_hit == SearchHit(title="Osaka", language=Language.EN)
    assert en_hit.title == "Osaka"


def test_blank_query_rejected(monkeypatch):
    fake = FakeSearch()
    monkeypatch.setattr(place_search, "search_title", fake)
    with pytest.raises(InvalidQuery):
        place_search.resolve_title(PlaceQuery("   ", Language.EN), NAMES)
    assert fake.calls == []


def test_unsupported_language_rejected():
    with pytest.raises(InvalidQuery):
        place_search.resolve_title(PlaceQuery("Paris", "fr"), NAMES)


@patch("services.http_client._session.get")
def test_transport_errors_propagate(mock_get):
    mock_get.side_effect = requests.Timeout("read timed out")
    with pytest.raises(TransportError):
        place_search.resolve_title(PlaceQuery("Paris", Language.EN), NAMES)
