import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BASE_DIR = Path(__file__).resolve().parent


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    return int(val)


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    return float(val)


class Settings:
    def __init__(self) -> None:
        self.USER_AGENT: str | None = os.getenv("POSTCARD_USER_AGENT")
        self.HTTP_TIMEOUT: float = _as_float(os.getenv("POSTCARD_HTTP_TIMEOUT"), 20.0)
        self.WIKIPEDIA_API_TEMPLATE: str = os.getenv(
            "WIKIPEDIA_API_TEMPLATE", "https://{lang}.wikipedia.org/w/api.php"
        )
        self.WIKIDATA_SPARQL_URL: str = os.getenv(
            "WIKIDATA_SPARQL_URL", "https://query.wikidata.org/sparql"
        )
        self.WORLDVIEW_SNAPSHOT_URL: str = os.getenv(
            "WORLDVIEW_SNAPSHOT_URL", "https://wvs.earthdata.nasa.gov/api/v1/snapshot"
        )
        self.POSTCARD_WIDTH: int = _as_int(os.getenv("POSTCARD_WIDTH"), 1600)
        self.POSTCARD_HEIGHT: int = _as_int(os.getenv("POSTCARD_HEIGHT"), 900)
        self.DEFAULT_RADIUS_KM: float = _as_float(os.getenv("POSTCARD_DEFAULT_RADIUS_KM"), 120.0)
        self.SEARCH_LIMIT: int = _as_int(os.getenv("POSTCARD_SEARCH_LIMIT"), 5)
        self.FONT_PATH: str | None = os.getenv("POSTCARD_FONT_PATH")
        self.PLACE_NAMES_PATH: str = os.getenv(
            "POSTCARD_PLACE_NAMES_PATH", str(BASE_DIR / "data" / "place_names_ja_en.json")
        )
        self.OUTPUT_DIR: str = os.getenv("POSTCARD_OUTPUT_DIR", str(BASE_DIR / "data" / "postcards"))
        self.DEBUG_ARTIFACTS: bool = _as_bool(os.getenv("POSTCARD_DEBUG_ARTIFACTS"), False)


settings = Settings()
