from datetime import date

import pytest
from PIL import Image

from domain.models import FactSet, GeoPoint, Language
from services import postcard_compositor as pc

DAY = date(2024, 5, 1)
TOKYO = GeoPoint(lat=35.6895, lon=139.6917, external_id="Q1490")


def _base(size=(1600, 900), color=(0, 0, 255)):
    return Image.new("RGB", size, color)


def test_population_only_emits_population_and_date_chips():
    chips = pc.build_chips(FactSet(population=37000000, elevation=None), DAY, Language.JA)
    assert [c.kind for c in chips] == ["population", "date"]
    assert [c.text for c in chips] == ["人口 37,000,000人", "2024/5/1"]


def test_chip_order_is_fixed():
    chips = pc.build_chips(FactSet(elevation=3776.24, population=120), DAY, Language.EN)
    assert [c.kind for c in chips] == ["population", "elevation", "date"]
    assert [c.text for c in chips] == ["Pop. 120", "Elev. 3776.24 m", "May 1, 2024"]


def test_zero_population_is_still_a_fact():
    chips = pc.build_chips(FactSet(population=0), DAY, Language.JA)
    assert [c.kind for c in chips] == ["population", "date"]


def test_no_facts_leaves_only_date_chip():
    chips = pc.build_chips(FactSet(), DAY, Language.JA)
    assert [c.kind for c in chips] == ["date"]


@pytest.mark.parametrize(
    "value,expected",
    [(40.0, "標高 40m"), (3776, "標高 3776m"), (-28.5, "標高 -28.5m")],
)
def test_elevation_is_plain_number(value, expected):
    assert pc.format_elevation(value, Language.JA) == expected


def test_subtitle_joins_country_and_coordinates():
    assert pc.build_subtitle(TOKYO, FactSet(country="日本")) == "日本  •  35.690, 139.692"


def test_subtitle_without_country_has_no_separator():
    assert pc.build_subtitle(TOKYO, FactSet()) == "35.690, 139.692"


def test_compose_uses_label_as_title():
    img, layout = pc.compose_postcard(
        _base(), TOKYO, FactSet(label="東京都", population=37000000), DAY, "Tokyo", Language.EN
    )
    assert img.size == (1600, 900)
    assert layout.title == "東京都"
    assert layout.credit == pc.CREDIT_TEXT
    assert [c.kind for c in layout.chips] == ["population", "date"]


def test_compose_falls_back_to_query_text():
    _, layout = pc.compose_postcard(_base(), TOKYO, FactSet(), DAY, "Tokyo", Language.EN)
    assert layout.title == "Tokyo"


def test_chips_are_laid_out_left_to_right_with_fixed_gap():
    _, layout = pc.compose_postcard(
        _base(), TOKYO, FactSet(population=5, elevation=10.0), DAY, "x", Language.JA
    )
    chips = layout.chips
    assert chips[0].x == pc.MARGIN_X
    for prev, nxt in zip(chips, chips[1:]):
        assert nxt.x == prev.x + prev.width + pc.CHIP_GAP
        assert nxt.y == prev.y
    for chip in chips:
        assert chip.width > 2 * pc.CHIP_PAD_X
        assert chip.height == pc.CHIP_HEIGHT
        assert chip.y + chip.height <= layout.height


def test_image_is_stretched_and_gradient_darkens_bottom():
    img, _ = pc.compose_postcard(_base(size=(320, 180)), TOKYO, FactSet(), DAY, "x", size=(1600, 900))
    assert img.size == (1600, 900)
    assert img.getpixel((800, 10)) == (0, 0, 255)
    bottom = img.getpixel((800, 899))
    assert bottom[2] < 120
    # top of the gradient band is still untouched
    assert img.getpixel((800, 900 - 315)) == (0, 0, 255)


def test_composition_is_deterministic():
    facts = FactSet(label="Paris", country="France", population=2100000, elevation=35.0)
    first, layout1 = pc.compose_postcard(_base(), TOKYO, facts, DAY, "Paris", Language.EN)
    second, layout2 = pc.compose_postcard(_base(), TOKYO, facts, DAY, "Paris", Language.EN)
    assert layout1 == layout2
    assert first.tobytes() == second.tobytes()


def test_render_requires_rgba_surface():
    with pytest.raises(ValueError):
        pc.render_postcard(Image.new("RGB", (160, 90)), _base((160, 90)), TOKYO, FactSet(), DAY, "x")


def test_draw_rounded_rect_blends_and_rounds_corners():
    surface = Image.new("RGBA", (60, 40), (0, 0, 0, 255))
    pc.draw_rounded_rect(surface, 10, 10, 40, 20, 8, fill=(255, 255, 255, 128))

    center = surface.getpixel((30, 20))
    assert 120 <= center[0] <= 136
    assert center[3] == 255
    assert surface.getpixel((10, 10)) == (0, 0, 0, 255)
    assert surface.getpixel((5, 5)) == (0, 0, 0, 255)


def test_draw_rounded_rect_ignores_empty_size():
    surface = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
    pc.draw_rounded_rect(surface, 2, 2, 0, 5, 3)
    assert surface.getpixel((2, 2)) == (0, 0, 0, 255)


def test_gradient_mask_runs_top_to_bottom():
    mask = pc.gradient_alpha_mask((4, 11), 0, 200)
    assert mask.mode == "L"
    assert mask.getpixel((0, 0)) == 0
    assert mask.getpixel((3, 10)) == 200
    assert mask.getpixel((0, 5)) == 100
