"""
Place name -> postcard.

Stages run strictly one after another:
search -> coordinates -> facts -> bbox/imagery request -> image fetch -> render.

`PostcardPipeline.run` is the error boundary: every PostcardError becomes a
FAILED ResolutionState with a localized status string. Each run gets a
generation number; results from a run that has since been superseded are
returned marked `stale` and never replace the committed postcard.
"""
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, replace
from datetime import date as date_type
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from PIL import Image

from domain.errors import InvalidQuery, PostcardError, TransportError
from domain.models import (
    Language,
    PlaceQuery,
    PostcardLayout,
    ResolutionStage,
    ResolutionState,
    ResolvedPlace,
)
from services import coordinate_facts, imagery, place_search
from services.geo_box import compute_bbox
from services.place_names import PlaceNameDictionary
from services.postcard_compositor import compose_postcard
from settings import settings

logger = logging.getLogger(__name__)

STATUS_MESSAGES: Dict[Language, Dict[str, str]] = {
    Language.JA: {
        "searching": "検索中...",
        "resolving_coordinates": "座標を取得中...",
        "fetching_facts": "詳細情報を取得中...",
        "loading_image": "画像を取得中...",
        "ready": "",
        "invalid_query": "入力内容を確認してください: {detail}",
        "place_not_found": "Wikipediaで該当ページが見つかりませんでした。",
        "coordinates_unavailable": "座標が取得できませんでした。",
        "image_load_failure": "画像の取得に失敗しました（ネットワーク/CORSをご確認ください）",
        "transport_error": "検索に失敗しました: {detail}",
    },
    Language.EN: {
        "searching": "Searching...",
        "resolving_coordinates": "Fetching coordinates...",
        "fetching_facts": "Fetching details...",
        "loading_image": "Loading imagery...",
        "ready": "",
        "invalid_query": "Please check your input: {detail}",
        "place_not_found": "No matching Wikipedia page was found.",
        "coordinates_unavailable": "Could not get coordinates for this place.",
        "image_load_failure": "Failed to load the satellite image (check network/CORS).",
        "transport_error": "Search failed: {detail}",
    },
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w-]+")


def status_message(key: str, language: Language, detail: str = "") -> str:
    messages = STATUS_MESSAGES.get(language) or STATUS_MESSAGES[Language.JA]
    template = messages.get(key) or messages["transport_error"]
    return template.format(detail=detail)


def postcard_filename(title: Optional[str], day: Union[str, date_type]) -> str:
    """`<safe title>_<YYYY-MM-DD>.png`; runs of unsafe characters become `_`."""
    safe_title = _UNSAFE_FILENAME_CHARS.sub("_", title or "postcard")
    day_str = day.isoformat() if isinstance(day, date_type) else day
    return f"{safe_title}_{day_str}.png"


@dataclass
class PipelineResult:
    state: ResolutionState
    resolved: Optional[ResolvedPlace] = None
    image: Optional[Image.Image] = None
    layout: Optional[PostcardLayout] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.state.stage is ResolutionStage.READY

    @property
    def filename(self) -> Optional[str]:
        if self.resolved is None:
            return None
        return postcard_filename(self.resolved.display_title, self.resolved.date)


StateObserver = Callable[[ResolutionState], None]


class PostcardPipeline:
    def __init__(
        self,
        dictionary: Optional[PlaceNameDictionary] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        layers: Optional[Sequence[str]] = None,
        on_state: Optional[StateObserver] = None,
    ):
        self.dictionary = dictionary
        self.width = width or settings.POSTCARD_WIDTH
        self.height = height or settings.POSTCARD_HEIGHT
        self.layers = tuple(layers) if layers else None
        self.on_state = on_state
        self.state = ResolutionState()
        self.current: Optional[PipelineResult] = None
        self._generation = 0
        self._lock = threading.Lock()

    # ---- generation bookkeeping ----

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _emit(self, state: ResolutionState) -> None:
        with self._lock:
            if state.generation != self._generation:
                logger.debug("discarding %s from stale generation %d", state.stage.value, state.generation)
                return
            self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def _progress(self, stage: ResolutionStage, generation: int, language: Language) -> None:
        self._emit(ResolutionState(stage=stage, generation=generation, status=status_message(stage.value, language)))

    # ---- stages ----

    def resolve(
        self,
        query: PlaceQuery,
        day: Union[str, date_type, None] = None,
        radius_km: Optional[float] = None,
        generation: int = 0,
        today: Optional[date_type] = None,
    ) -> ResolvedPlace:
        """Search, coordinates, facts, bbox and imagery request. Raises PostcardError."""
        language = Language.parse(query.language)
        query = PlaceQuery(text=(query.text or "").strip(), language=language)
        radius = settings.DEFAULT_RADIUS_KM if radius_km is None else radius_km
        parsed_day = imagery.parse_date(day, today=today)
        if not query.text:
            raise InvalidQuery("place name is empty")
        if not radius > 0:
            raise InvalidQuery(f"radius must be positive, got {radius}")

        self._progress(ResolutionStage.SEARCHING, generation, language)
        hit = place_search.resolve_title(query, self.dictionary)

        self._progress(ResolutionStage.RESOLVING_COORDINATES, generation, language)
        point = coordinate_facts.resolve_point(hit.title, hit.language)

        self._progress(ResolutionStage.FETCHING_FACTS, generation, language)
        facts = coordinate_facts.lookup_facts(point, language)

        box = compute_bbox(point, radius)
        request = imagery.build_imagery_request(
            box, parsed_day, width=self.width, height=self.height, layers=self.layers, today=today,
        )
        resolved = ResolvedPlace(
            query=query,
            hit=hit,
            point=point,
            facts=facts,
            box=box,
            request=request,
            snapshot_url=imagery.build_snapshot_url(request),
            date=parsed_day,
            radius_km=radius,
        )
        logger.info(
            "resolved %r -> %r (%s) at %.4f, %.4f bbox=%s",
            query.text, hit.title, hit.language.value, point.lat, point.lon, box.as_param(),
        )
        return resolved

    def render(self, resolved: ResolvedPlace, generation: int = 0) -> Tuple[Image.Image, PostcardLayout]:
        """Fetch the snapshot and composite the card. Raises ImageLoadFailure."""
        self._progress(ResolutionStage.LOADING_IMAGE, generation, resolved.query.language)
        snapshot = imagery.fetch_snapshot_image(resolved.request)
        return compose_postcard(
            snapshot,
            resolved.point,
            resolved.facts,
            resolved.date,
            resolved.query.text,
            language=resolved.query.language,
            size=(resolved.request.width, resolved.request.height),
        )

    # ---- boundary ----

    def run(
        self,
        text: str,
        language: Union[str, Language] = Language.JA,
        day: Union[str, date_type, None] = None,
        radius_km: Optional[float] = None,
        render: bool = True,
        today: Optional[date_type] = None,
    ) -> PipelineResult:
        """
        Run the whole pipeline. Never raises for pipeline failures.

        With `render=False` the run stops after the imagery request is built
        (nothing is downloaded).
        """
        generation = self._next_generation()
        lang = Language.JA
        resolved: Optional[ResolvedPlace] = None
        try:
            lang = Language.parse(language)
            resolved = self.resolve(
                PlaceQuery(text=text, language=lang), day=day, radius_km=radius_km,
                generation=generation, today=today,
            )
            image = layout = None
            if render:
                image, layout = self.render(resolved, generation=generation)
        except PostcardError as exc:
            return self._fail(exc, lang, generation, resolved)
        except Exception as exc:
            logger.exception("unexpected failure while resolving %r", text)
            return self._fail(TransportError(str(exc)), lang, generation, resolved)

        state = ResolutionState(stage=ResolutionStage.READY, generation=generation, status="")
        result = PipelineResult(state=state, resolved=resolved, image=image, layout=layout)
        return self._commit(result)

    def _fail(
        self,
        exc: PostcardError,
        language: Language,
        generation: int,
        resolved: Optional[ResolvedPlace],
    ) -> PipelineResult:
        detail = str(exc)
        logger.warning("postcard generation %d failed (%s): %s", generation, exc.reason, detail)
        state = ResolutionState(
            stage=ResolutionStage.FAILED,
            generation=generation,
            status=status_message(exc.reason, language, detail),
            reason=exc.reason,
        )
        self._emit(state)
        # Keep whatever the run learned for diagnostics, but never the image.
        return PipelineResult(state=state, resolved=resolved, stale=not self.is_current(generation))

    def _commit(self, result: PipelineResult) -> PipelineResult:
        with self._lock:
            stale = result.state.generation != self._generation
            if not stale and result.image is not None:
                self.current = result
        if stale:
            logger.info("dropping result of superseded generation %d", result.state.generation)
            return replace(result, stale=True)
        self._emit(result.state)
        return result
