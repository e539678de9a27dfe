"""
Free text -> canonical Wikipedia page title.

Place names typed in one script often do not match titles on a wiki indexed
in another, so resolution walks a fixed fallback chain:

1. dictionary translation of the text, in the requested language
2. the query text as typed, in the requested language
3. the translation, in the fallback language (only if that is a different language)
4. the query text as typed, in the other language

The first stage that yields a title wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from domain.errors import InvalidQuery, PlaceNotFound
from domain.models import FALLBACK_LANGUAGE, Language, PlaceQuery, SearchHit
from services import http_client
from services.place_names import PlaceNameDictionary, get_default_dictionary
from settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchAttempt:
    stage: int
    term: str
    language: Language


def wikipedia_api_url(language: Language) -> str:
    return settings.WIKIPEDIA_API_TEMPLATE.format(lang=Language.parse(language).value)


def search_titles(text: str, language: Language, limit: Optional[int] = None) -> List[str]:
    """Ranked page titles for `text` on the `language` Wikipedia."""
    params = {
        "action": "query",
        "list": "search",
        "srsearch": text,
        "format": "json",
        "srlimit": str(limit or settings.SEARCH_LIMIT),
    }
    data = http_client.get_json(wikipedia_api_url(language), params=params)
    results = ((data or {}).get("query") or {}).get("search") or []
    return [r["title"] for r in results if isinstance(r, dict) and r.get("title")]


def pick_best_title(titles: Sequence[str], text: str) -> Optional[str]:
    """
    Prefer a case-insensitive exact match, then a title containing the
    text, then the top-ranked result.
    """
    if not titles:
        return None
    needle = text.casefold()
    for title in titles:
        if title.casefold() == needle:
            return title
    for title in titles:
        if needle in title.casefold():
            return title
    return titles[0]


def search_title(text: str, language: Language, limit: Optional[int] = None) -> Optional[str]:
    titles = search_titles(text, language, limit=limit)
    best = pick_best_title(titles, text)
    logger.debug("search %r on %s: %d results, picked %r", text, language.value, len(titles), best)
    return best


def plan_search_attempts(
    query: PlaceQuery, dictionary: Optional[PlaceNameDictionary] = None
) -> List[SearchAttempt]:
    """The ordered fallback chain for `query`, before de-duplication."""
    dictionary = dictionary or get_default_dictionary()
    language = Language.parse(query.language)
    term = dictionary.search_term(query.text, language)
    attempts = [
        SearchAttempt(1, term, language),
        SearchAttempt(2, query.text, language),
    ]
    if language is not FALLBACK_LANGUAGE:
        attempts.append(SearchAttempt(3, term, FALLBACK_LANGUAGE))
    attempts.append(SearchAttempt(4, query.text, language.other))
    return attempts


def _unique(attempts: Iterable[SearchAttempt]) -> Iterable[Tuple[SearchAttempt, bool]]:
    seen: Set[Tuple[str, Language]] = set()
    for attempt in attempts:
        key = (attempt.term, attempt.language)
        yield attempt, key in seen
        seen.add(key)


def resolve_title(
    query: PlaceQuery, dictionary: Optional[PlaceNameDictionary] = None
) -> SearchHit:
    """
    Run the fallback chain and return the first title found.

    A stage that repeats an earlier (term, language) pair is not sent again.
    Raises PlaceNotFound once every stage came back empty.
    """
    text = (query.text or "").strip()
    if not text:
        raise InvalidQuery("place name is empty")
    query = PlaceQuery(text=text, language=Language.parse(query.language))

    for attempt, repeated in _unique(plan_search_attempts(query, dictionary)):
        if repeated:
            logger.debug("stage %d: %r on %s already tried", attempt.stage, attempt.term, attempt.language.value)
            continue
        title = search_title(attempt.term, attempt.language)
        logger.info(
            "stage %d: search %r on %s -> %r",
            attempt.stage, attempt.term, attempt.language.value, title,
        )
        if title:
            return SearchHit(title=title, language=attempt.language)

    raise PlaceNotFound(f"no Wikipedia page found for {text!r}")
