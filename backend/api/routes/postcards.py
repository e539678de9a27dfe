"""
Postcard API routes.

Resolves a place name and renders the satellite postcard.
"""
from datetime import date as date_type
from io import BytesIO
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from domain.models import Language, ResolutionStage
from services.postcard_pipeline import PipelineResult, PostcardPipeline

router = APIRouter()
pipeline = PostcardPipeline()

MIN_RADIUS_KM = 20
MAX_RADIUS_KM = 800

# Failure reason -> HTTP status
ERROR_STATUS_CODES = {
    "invalid_query": 422,
    "place_not_found": 404,
    "coordinates_unavailable": 404,
    "image_load_failure": 502,
    "transport_error": 502,
}


class PostcardRequest(BaseModel):
    text: str = Field(..., min_length=1)
    language: Language = Language.JA
    date: Optional[date_type] = None
    radius_km: float = Field(120.0, ge=MIN_RADIUS_KM, le=MAX_RADIUS_KM)


class PointResponse(BaseModel):
    lat: float
    lon: float
    external_id: Optional[str] = None


class FactsResponse(BaseModel):
    label: Optional[str] = None
    country: Optional[str] = None
    population: Optional[int] = None
    elevation: Optional[float] = None


class BoxResponse(BaseModel):
    south: float
    west: float
    north: float
    east: float


class ResolveResponse(BaseModel):
    title: str
    title_language: Language
    label: str
    date: str
    point: PointResponse
    facts: FactsResponse
    bbox: BoxResponse
    snapshot_url: str
    filename: str


def _raise_for_failure(result: PipelineResult) -> None:
    if result.state.stage is ResolutionStage.FAILED:
        status_code = ERROR_STATUS_CODES.get(result.state.reason or "", 502)
        raise HTTPException(status_code=status_code, detail=result.state.status)


@router.post("/resolve", response_model=ResolveResponse)
def resolve_postcard(body: PostcardRequest):
    """Resolve the place and build the imagery request without downloading it."""
    result = pipeline.run(body.text, body.language, day=body.date, radius_km=body.radius_km, render=False)
    _raise_for_failure(result)
    resolved = result.resolved
    return ResolveResponse(
        title=resolved.hit.title,
        title_language=resolved.hit.language,
        label=resolved.display_title,
        date=resolved.request.date,
        point=PointResponse(**resolved.point.to_dict()),
        facts=FactsResponse(**resolved.facts.to_dict()),
        bbox=BoxResponse(**resolved.box.to_dict()),
        snapshot_url=resolved.snapshot_url,
        filename=result.filename,
    )


@router.post("/render")
def render_postcard(body: PostcardRequest):
    """Render the postcard and return it as a PNG download."""
    result = pipeline.run(body.text, body.language, day=body.date, radius_km=body.radius_km)
    _raise_for_failure(result)
    buf = BytesIO()
    result.image.save(buf, format="PNG")
    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}"}
    return Response(content=buf.getvalue(), media_type="image/png", headers=headers)
