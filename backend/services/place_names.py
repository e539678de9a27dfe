"""
Static bilingual place-name table.

The table is plain data (JSON) so it can be extended or swapped without
touching the resolver. Lookups are exact matches on the source-script term.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

from domain.models import Language
from settings import settings

logger = logging.getLogger(__name__)


class PlaceNameDictionary:
    def __init__(
        self,
        names: Mapping[str, str],
        source_language: Language = Language.JA,
        target_language: Language = Language.EN,
    ):
        self._names: Dict[str, str] = dict(names)
        self.source_language = source_language
        self.target_language = target_language

    @classmethod
    def from_file(cls, path: str | Path) -> "PlaceNameDictionary":
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        names = data.get("names") or {}
        return cls(
            names,
            source_language=Language(data.get("source_language", Language.JA.value)),
            target_language=Language(data.get("target_language", Language.EN.value)),
        )

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, term: object) -> bool:
        return term in self._names

    def lookup(self, term: str) -> Optional[str]:
        return self._names.get(term)

    def search_term(self, text: str, language: Language) -> str:
        """
        Term to search for when the user asked in `language`.

        Only queries typed in the table's source language are translated.
        """
        if language is self.source_language:
            translated = self._names.get(text)
            if translated:
                return translated
        return text


_default_dictionary: Optional[PlaceNameDictionary] = None


def get_default_dictionary() -> PlaceNameDictionary:
    global _default_dictionary
    if _default_dictionary is None:
        _default_dictionary = PlaceNameDictionary.from_file(settings.PLACE_NAMES_PATH)
        logger.debug("Loaded %d place names from %s", len(_default_dictionary), settings.PLACE_NAMES_PATH)
    return _default_dictionary
