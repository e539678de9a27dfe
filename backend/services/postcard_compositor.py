"""
Postcard compositor using Pillow.

Layers, back to front: satellite image, bottom gradient, title, subtitle,
fact chips, attribution credit. Geometry is defined for a 1600x900 card and
scaled to the actual surface.
"""
import logging
import math
from datetime import date
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from domain.models import Chip, FactSet, GeoPoint, Language, PostcardLayout
from settings import settings

logger = logging.getLogger(__name__)

# Must stay verbatim on every card.
CREDIT_TEXT = "Imagery: NASA EOSDIS Worldview Snapshots (GIBS)  |  Data: Wikipedia/Wikidata"
SUBTITLE_SEPARATOR = "  •  "

BASE_WIDTH = 1600
BASE_HEIGHT = 900

GRADIENT_HEIGHT_RATIO = 0.35
GRADIENT_BOTTOM_ALPHA = int(255 * 0.65)

MARGIN_X = 72
TITLE_FONT_SIZE = 64
TITLE_BOTTOM = 764
SUBTITLE_FONT_SIZE = 28
SUBTITLE_BOTTOM = 816
SUBTITLE_COLOR = (255, 255, 255, 230)

CHIP_FONT_SIZE = 20
CHIP_TOP = 836
CHIP_HEIGHT = 36
CHIP_PAD_X = 14
CHIP_GAP = 10
CHIP_RADIUS = 12
CHIP_FILL = (255, 255, 255, 46)
CHIP_TEXT_COLOR = (255, 255, 255, 255)

CREDIT_FONT_SIZE = 14
CREDIT_MARGIN_RIGHT = 24
CREDIT_MARGIN_BOTTOM = 16
CREDIT_COLOR = (255, 255, 255, 191)

BOLD_FONT_CANDIDATES = (
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Bold.ttc",
    "/System/Library/Fonts/ヒラギノ角ゴシック W8.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "DejaVuSans-Bold.ttf",
)
REGULAR_FONT_CANDIDATES = (
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/System/Library/Fonts/ヒラギノ角ゴシック W4.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "DejaVuSans.ttf",
)

_MONTHS_EN = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@lru_cache(maxsize=32)
def _load_font(candidates: Tuple[str, ...], size: int):
    paths = (settings.FONT_PATH,) if settings.FONT_PATH else ()
    for path in paths + candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


# ---- formatting ----

def format_population(value: int, language: Language = Language.JA) -> str:
    grouped = f"{int(value):,}"
    if language is Language.JA:
        return f"人口 {grouped}人"
    return f"Pop. {grouped}"


def format_elevation(value: float, language: Language = Language.JA) -> str:
    # shown as stored on Wikidata; metres are assumed, not checked
    number = str(int(value)) if float(value).is_integer() else repr(float(value))
    if language is Language.JA:
        return f"標高 {number}m"
    return f"Elev. {number} m"


def format_date(day: date, language: Language = Language.JA) -> str:
    if language is Language.JA:
        return f"{day.year}/{day.month}/{day.day}"
    return f"{_MONTHS_EN[day.month - 1]} {day.day}, {day.year}"


def build_subtitle(point: Optional[GeoPoint], facts: FactSet) -> str:
    parts: List[str] = []
    if facts.country:
        parts.append(facts.country)
    if point is not None:
        parts.append(f"{point.lat:.3f}, {point.lon:.3f}")
    return SUBTITLE_SEPARATOR.join(parts)


def build_chips(facts: FactSet, day: date, language: Language = Language.JA) -> List[Chip]:
    """Population, elevation (each only if known), then the date, in that order."""
    chips: List[Chip] = []
    if facts.population is not None:
        chips.append(Chip(kind="population", text=format_population(facts.population, language)))
    if facts.elevation is not None:
        chips.append(Chip(kind="elevation", text=format_elevation(facts.elevation, language)))
    chips.append(Chip(kind="date", text=format_date(day, language)))
    return chips


# ---- drawing primitives ----

def gradient_alpha_mask(size, top_alpha, bottom_alpha, gamma=1.0):
    """
    Returns an 'L' mask with a vertical alpha gradient (top->bottom).
    """
    w, h = size
    y = np.linspace(0.0, 1.0, num=h, dtype=np.float32)
    t = np.power(y, gamma)
    alpha = top_alpha + (bottom_alpha - top_alpha) * t
    alpha = np.clip(alpha, 0, 255).astype(np.uint8)
    mask = np.tile(alpha[:, None], (1, w))
    return Image.fromarray(mask)


def draw_rounded_rect(
    surface: Image.Image,
    x: int,
    y: int,
    w: int,
    h: int,
    radius: int,
    fill: Tuple[int, int, int, int] = CHIP_FILL,
) -> None:
    """Alpha-blend a filled rounded rectangle onto an RGBA surface."""
    if w <= 0 or h <= 0:
        return
    radius = max(0, min(radius, w // 2, h // 2))
    overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).rounded_rectangle((x, y, x + w - 1, y + h - 1), radius=radius, fill=fill)
    surface.alpha_composite(overlay)


def _draw_text(
    surface: Image.Image,
    xy: Tuple[int, int],
    text: str,
    font,
    fill: Tuple[int, int, int, int],
) -> None:
    overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).text(xy, text, font=font, fill=fill)
    surface.alpha_composite(overlay)


def _draw_text_bottom_left(surface, x: int, bottom: int, text: str, font, fill) -> None:
    if not text:
        return
    bbox = font.getbbox(text)
    _draw_text(surface, (x - bbox[0], bottom - bbox[3]), text, font, fill)


def _draw_text_bottom_right(surface, right: int, bottom: int, text: str, font, fill) -> None:
    bbox = font.getbbox(text)
    _draw_text(surface, (right - bbox[2], bottom - bbox[3]), text, font, fill)


def _apply_gradient(surface: Image.Image) -> None:
    w, h = surface.size
    grad_h = max(1, int(round(h * GRADIENT_HEIGHT_RATIO)))
    layer = Image.new("RGBA", (w, grad_h), (0, 0, 0, 0))
    layer.putalpha(gradient_alpha_mask((w, grad_h), 0, GRADIENT_BOTTOM_ALPHA))
    surface.alpha_composite(layer, dest=(0, h - grad_h))


def _layout_chips(chips: Sequence[Chip], font, scale: float) -> List[Chip]:
    x = int(round(MARGIN_X * scale))
    y = int(round(CHIP_TOP * scale))
    height = int(round(CHIP_HEIGHT * scale))
    pad = int(round(CHIP_PAD_X * scale))
    gap = int(round(CHIP_GAP * scale))
    placed: List[Chip] = []
    for chip in chips:
        width = int(math.ceil(font.getlength(chip.text))) + pad * 2
        placed.append(Chip(kind=chip.kind, text=chip.text, x=x, y=y, width=width, height=height))
        x += width + gap
    return placed


def render_postcard(
    surface: Image.Image,
    image: Image.Image,
    point: Optional[GeoPoint],
    facts: FactSet,
    day: date,
    query_text: str,
    language: Language = Language.JA,
) -> PostcardLayout:
    """
    Draw the postcard onto `surface` (RGBA) and return what was drawn.

    `image` is stretched to the surface size.
    """
    if surface.mode != "RGBA":
        raise ValueError(f"surface must be RGBA, got {surface.mode}")
    w, h = surface.size
    scale = min(w / BASE_WIDTH, h / BASE_HEIGHT)

    def px(value: float) -> int:
        return max(1, int(round(value * scale)))

    base = image.convert("RGBA")
    if base.size != surface.size:
        base = base.resize(surface.size, resample=Image.LANCZOS)
    surface.paste(base, (0, 0))
    _apply_gradient(surface)

    title = facts.label or query_text
    subtitle = build_subtitle(point, facts)
    margin_x = px(MARGIN_X)

    _draw_text_bottom_left(
        surface, margin_x, px(TITLE_BOTTOM), title,
        _load_font(BOLD_FONT_CANDIDATES, px(TITLE_FONT_SIZE)), (255, 255, 255, 255),
    )
    _draw_text_bottom_left(
        surface, margin_x, px(SUBTITLE_BOTTOM), subtitle,
        _load_font(REGULAR_FONT_CANDIDATES, px(SUBTITLE_FONT_SIZE)), SUBTITLE_COLOR,
    )

    chip_font = _load_font(BOLD_FONT_CANDIDATES, px(CHIP_FONT_SIZE))
    chips = _layout_chips(build_chips(facts, day, language), chip_font, scale)
    pad = px(CHIP_PAD_X)
    for chip in chips:
        draw_rounded_rect(surface, chip.x, chip.y, chip.width, chip.height, px(CHIP_RADIUS))
        bbox = chip_font.getbbox(chip.text)
        text_y = chip.y + (chip.height - (bbox[3] - bbox[1])) // 2 - bbox[1]
        _draw_text(surface, (chip.x + pad, text_y), chip.text, chip_font, CHIP_TEXT_COLOR)

    _draw_text_bottom_right(
        surface, w - px(CREDIT_MARGIN_RIGHT), h - px(CREDIT_MARGIN_BOTTOM), CREDIT_TEXT,
        _load_font(REGULAR_FONT_CANDIDATES, px(CREDIT_FONT_SIZE)), CREDIT_COLOR,
    )
    logger.debug("rendered postcard %sx%s title=%r chips=%d", w, h, title, len(chips))
    return PostcardLayout(width=w, height=h, title=title, subtitle=subtitle, chips=chips, credit=CREDIT_TEXT)


def compose_postcard(
    image: Image.Image,
    point: Optional[GeoPoint],
    facts: FactSet,
    day: date,
    query_text: str,
    language: Language = Language.JA,
    size: Optional[Tuple[int, int]] = None,
) -> Tuple[Image.Image, PostcardLayout]:
    """Render onto a fresh surface; returns (RGB image, layout)."""
    surface = Image.new("RGBA", size or image.size, (0, 0, 0, 255))
    layout = render_postcard(surface, image, point, facts, day, query_text, language=language)
    return surface.convert("RGB"), layout
