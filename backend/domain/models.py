"""
Core domain models for the postcard generator.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from domain.errors import InvalidQuery


class Language(str, Enum):
    """Languages a place query can be resolved in."""
    JA = "ja"
    EN = "en"

    @property
    def other(self) -> "Language":
        return Language.EN if self is Language.JA else Language.JA

    @classmethod
    def parse(cls, value: Union[str, "Language"]) -> "Language":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidQuery(f"unsupported language: {value!r}") from exc


# English Wikipedia has the broadest coordinate coverage, so it is the
# language every fallback step ends up in.
FALLBACK_LANGUAGE = Language.EN

DEFAULT_LAYERS: Tuple[str, ...] = (
    "MODIS_Terra_CorrectedReflectance_TrueColor",
    "Coastlines",
)
DEFAULT_IMAGE_FORMAT = "image/png"


@dataclass(frozen=True)
class PlaceQuery:
    """Free-text place name as typed by the user."""
    text: str
    language: Language = Language.JA


@dataclass(frozen=True)
class SearchHit:
    """A canonical page title together with the wiki it was found on."""
    title: str
    language: Language


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float
    # Wikidata QID; only used to look facts up
    external_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "external_id": self.external_id}


@dataclass(frozen=True)
class FactSet:
    """
    Optional descriptive facts for a place.

    A missing value means "unknown", never zero.
    """
    label: Optional[str] = None
    country: Optional[str] = None
    population: Optional[int] = None
    elevation: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.label
            and not self.country
            and self.population is None
            and self.elevation is None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "country": self.country,
            "population": self.population,
            "elevation": self.elevation,
        }


@dataclass(frozen=True)
class BoundingBox:
    """Geographic extent in degrees (EPSG:4326)."""
    south: float
    west: float
    north: float
    east: float

    @property
    def height_deg(self) -> float:
        return self.north - self.south

    @property
    def width_deg(self) -> float:
        return self.east - self.west

    def as_param(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"

    def to_dict(self) -> Dict[str, float]:
        return {"south": self.south, "west": self.west, "north": self.north, "east": self.east}


@dataclass(frozen=True)
class ImageryRequestSpec:
    box: BoundingBox
    date: str  # YYYY-MM-DD
    width: int
    height: int
    layers: Tuple[str, ...] = DEFAULT_LAYERS
    format: str = DEFAULT_IMAGE_FORMAT


@dataclass(frozen=True)
class Chip:
    """A rounded fact label placed on the postcard."""
    kind: str  # "population" | "elevation" | "date"
    text: str
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass
class PostcardLayout:
    """What the compositor drew, in drawing order."""
    width: int
    height: int
    title: str
    subtitle: str
    chips: List[Chip] = field(default_factory=list)
    credit: str = ""


class ResolutionStage(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESOLVING_COORDINATES = "resolving_coordinates"
    FETCHING_FACTS = "fetching_facts"
    LOADING_IMAGE = "loading_image"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ResolutionState:
    """
    Progress of one pipeline run.

    `reason` is only set for FAILED and holds the error kind
    (e.g. "place_not_found"); `status` is the user-facing text.
    """
    stage: ResolutionStage = ResolutionStage.IDLE
    generation: int = 0
    status: str = ""
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in (ResolutionStage.READY, ResolutionStage.FAILED)


@dataclass
class ResolvedPlace:
    """Everything known about a place before the image is fetched."""
    query: PlaceQuery
    hit: SearchHit
    point: GeoPoint
    facts: FactSet
    box: BoundingBox
    request: ImageryRequestSpec
    snapshot_url: str
    date: date
    radius_km: float

    @property
    def display_title(self) -> str:
        return self.facts.label or self.query.text
