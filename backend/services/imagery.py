"""
NASA Worldview Snapshots requests.

`build_imagery_request` / `build_snapshot_url` are pure; `fetch_snapshot_image`
performs the single HTTP call and decodes the raster with Pillow.
"""
import logging
from datetime import date as date_type
from io import BytesIO
from typing import Dict, Optional, Sequence, Union
from urllib.parse import urlencode

from PIL import Image, UnidentifiedImageError

from domain.errors import ImageLoadFailure, InvalidQuery, TransportError
from domain.models import DEFAULT_IMAGE_FORMAT, DEFAULT_LAYERS, BoundingBox, ImageryRequestSpec
from services import http_client
from settings import settings

logger = logging.getLogger(__name__)

SNAPSHOT_CRS = "EPSG:4326"


def parse_date(value: Union[str, date_type, None], today: Optional[date_type] = None) -> date_type:
    """Parse a YYYY-MM-DD date, defaulting to today. Future dates are rejected."""
    today = today or date_type.today()
    if value is None or value == "":
        return today
    if isinstance(value, str):
        try:
            parsed = date_type.fromisoformat(value)
        except ValueError as exc:
            raise InvalidQuery(f"invalid date: {value!r}") from exc
    else:
        parsed = value
    if parsed > today:
        raise InvalidQuery(f"date {parsed.isoformat()} is in the future")
    return parsed


def build_imagery_request(
    box: BoundingBox,
    date: Union[str, date_type],
    width: Optional[int] = None,
    height: Optional[int] = None,
    layers: Optional[Sequence[str]] = None,
    format: str = DEFAULT_IMAGE_FORMAT,
    today: Optional[date_type] = None,
) -> ImageryRequestSpec:
    width = settings.POSTCARD_WIDTH if width is None else width
    height = settings.POSTCARD_HEIGHT if height is None else height
    if width <= 0 or height <= 0:
        raise InvalidQuery(f"image size must be positive, got {width}x{height}")
    layer_list = tuple(DEFAULT_LAYERS if layers is None else layers)
    if not layer_list:
        raise InvalidQuery("at least one imagery layer is required")
    day = parse_date(date, today=today)
    return ImageryRequestSpec(
        box=box,
        date=day.isoformat(),
        width=int(width),
        height=int(height),
        layers=layer_list,
        format=format,
    )


def snapshot_params(spec: ImageryRequestSpec) -> Dict[str, str]:
    return {
        "REQUEST": "GetSnapshot",
        "TIME": spec.date,
        "BBOX": spec.box.as_param(),
        "CRS": SNAPSHOT_CRS,
        "LAYERS": ",".join(spec.layers),
        "FORMAT": spec.format,
        "WIDTH": str(spec.width),
        "HEIGHT": str(spec.height),
    }


def build_snapshot_url(spec: ImageryRequestSpec, base_url: Optional[str] = None) -> str:
    base = base_url or settings.WORLDVIEW_SNAPSHOT_URL
    return f"{base}?{urlencode(snapshot_params(spec))}"


def fetch_snapshot_image(spec: ImageryRequestSpec) -> Image.Image:
    """
    Download and decode the snapshot.

    Raises ImageLoadFailure for both transport and decode problems.
    """
    url = settings.WORLDVIEW_SNAPSHOT_URL
    try:
        content = http_client.get_bytes(url, params=snapshot_params(spec))
    except TransportError as exc:
        raise ImageLoadFailure(str(exc)) from exc

    try:
        img = Image.open(BytesIO(content))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("[IMAGERY] decode failed for %s: %s", spec.box.as_param(), exc)
        raise ImageLoadFailure(f"could not decode snapshot: {exc}") from exc

    if img.size != (spec.width, spec.height):
        logger.info(
            "[IMAGERY] snapshot is %sx%s, requested %sx%s; it will be stretched",
            img.width, img.height, spec.width, spec.height,
        )
    logger.debug("[IMAGERY] loaded snapshot bbox=%s date=%s", spec.box.as_param(), spec.date)
    return img.convert("RGB")
