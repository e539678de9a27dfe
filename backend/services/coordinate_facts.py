"""
Page title -> coordinates (Wikipedia) -> descriptive facts (Wikidata).

Coordinates are required; facts are best-effort and fall back to an empty
FactSet.
"""
from __future__ import annotations

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from domain.errors import CoordinatesUnavailable, FactsUnavailable, TransportError
from domain.models import FALLBACK_LANGUAGE, FactSet, GeoPoint, Language
from services import http_client
from services.place_search import wikipedia_api_url
from settings import settings

logger = logging.getLogger(__name__)

_QID_RE = re.compile(r"^Q[1-9]\d*$")

FACTS_SPARQL_TEMPLATE = """
SELECT ?itemLabel ?countryLabel ?population ?elev WHERE {{
  VALUES ?item {{ wd:{qid} }}
  OPTIONAL {{ ?item wdt:P17 ?country. }}
  OPTIONAL {{ ?item wdt:P1082 ?population. }}
  OPTIONAL {{ ?item wdt:P2044 ?elev. }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{lang},en". }}
}} LIMIT 1"""


def fetch_coordinates(title: str, language: Language) -> Optional[GeoPoint]:
    """Coordinates and Wikidata QID of `title`, or None if the page has no coordinates."""
    params = {
        "action": "query",
        "prop": "coordinates|pageprops",
        "titles": title,
        "format": "json",
        "coprop": "type|name|dim|country|region|globe",
        "ppprop": "wikibase_item",
    }
    data = http_client.get_json(wikipedia_api_url(language), params=params)
    pages = ((data or {}).get("query") or {}).get("pages") or {}
    if not pages:
        return None
    page = next(iter(pages.values())) or {}
    coords = (page.get("coordinates") or [None])[0]
    if not coords:
        return None
    qid = (page.get("pageprops") or {}).get("wikibase_item")
    try:
        lat = float(coords["lat"])
        lon = float(coords["lon"])
    except (KeyError, TypeError, ValueError):
        logger.warning("malformed coordinates for %r on %s: %r", title, language.value, coords)
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        logger.warning("coordinates out of range for %r: %s,%s", title, lat, lon)
        return None
    return GeoPoint(lat=lat, lon=lon, external_id=qid or None)


def resolve_point(title: str, language: Language) -> GeoPoint:
    """
    Coordinates for `title`, retrying on the fallback-language wiki.

    Raises CoordinatesUnavailable when neither wiki has them.
    """
    language = Language.parse(language)
    point = fetch_coordinates(title, language)
    logger.info("coordinates for %r on %s: %s", title, language.value, point)
    if point is None and language is not FALLBACK_LANGUAGE:
        point = fetch_coordinates(title, FALLBACK_LANGUAGE)
        logger.info("coordinates for %r on %s: %s", title, FALLBACK_LANGUAGE.value, point)
    if point is None:
        raise CoordinatesUnavailable(f"no coordinates for {title!r}")
    return point


def build_facts_query(qid: str, language: Language) -> str:
    if not _QID_RE.match(qid or ""):
        raise FactsUnavailable(f"not a Wikidata item id: {qid!r}")
    return FACTS_SPARQL_TEMPLATE.format(qid=qid, lang=Language.parse(language).value)


def _binding_value(row: Dict[str, Any], key: str) -> Optional[str]:
    cell = row.get(key)
    if cell is None:
        return None
    if not isinstance(cell, dict):
        raise FactsUnavailable(f"malformed binding for {key}: {cell!r}")
    value = cell.get("value")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_population(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return int(value)


def _parse_elevation(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_facts_row(row: Optional[Dict[str, Any]]) -> FactSet:
    if not row:
        return FactSet()
    return FactSet(
        label=_binding_value(row, "itemLabel"),
        country=_binding_value(row, "countryLabel"),
        population=_parse_population(_binding_value(row, "population")),
        elevation=_parse_elevation(_binding_value(row, "elev")),
    )


def fetch_facts(qid: str, language: Language) -> FactSet:
    """
    Single-row fact projection for a Wikidata item.

    Raises FactsUnavailable when the row is missing, malformed or entirely empty.
    """
    query = build_facts_query(qid, language)
    data = http_client.get_json(
        settings.WIKIDATA_SPARQL_URL,
        params={"format": "json", "query": query},
        headers={"Accept": "application/sparql-results+json"},
    )
    results = data.get("results") if isinstance(data, dict) else None
    bindings = results.get("bindings") if isinstance(results, dict) else None
    if not isinstance(bindings, list):
        raise FactsUnavailable(f"unexpected SPARQL payload for {qid}")
    row = bindings[0] if bindings else None
    if row is not None and not isinstance(row, dict):
        raise FactsUnavailable(f"unexpected SPARQL row for {qid}")
    facts = parse_facts_row(row)
    if facts.is_empty:
        raise FactsUnavailable(f"no facts for {qid}")
    return facts


def lookup_facts(point: GeoPoint, language: Language) -> FactSet:
    """Facts for `point`, or an empty FactSet if they cannot be obtained."""
    if not point.external_id:
        return FactSet()
    try:
        return fetch_facts(point.external_id, language)
    except (FactsUnavailable, TransportError) as exc:
        logger.warning("facts unavailable for %s: %s", point.external_id, exc)
        return FactSet()


def resolve_point_and_facts(
    title: str, language: Language, label_language: Optional[Language] = None
) -> Tuple[GeoPoint, FactSet]:
    point = resolve_point(title, language)
    facts = lookup_facts(point, label_language or language)
    return point, facts
