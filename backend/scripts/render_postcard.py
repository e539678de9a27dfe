"""Render a satellite postcard for a place name.

Usage:
    python -m scripts.render_postcard --text Tokyo --language en [--radius-km 120] [--date 2024-05-01] [--out-dir DIR]

Run from the backend/ directory. The PNG is written as <title>_<date>.png in
the output directory (POSTCARD_OUTPUT_DIR by default). With
POSTCARD_DEBUG_ARTIFACTS=1 the raw snapshot URL is written next to it.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from domain.models import Language, ResolutionState
from services.postcard_pipeline import PostcardPipeline
from settings import settings

logger = logging.getLogger("render_postcard")


def _print_state(state: ResolutionState) -> None:
    if state.status:
        logger.info("[%s] %s", state.stage.value, state.status)


def main(argv: Optional[List[str]] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Render a satellite postcard for a place name.")
    parser.add_argument("--text", required=True, help="Place name (Japanese or English).")
    parser.add_argument("--language", choices=[lang.value for lang in Language], default=Language.JA.value)
    parser.add_argument("--radius-km", type=float, default=settings.DEFAULT_RADIUS_KM, help="Width of the view in km.")
    parser.add_argument("--date", default=None, help="Imagery date YYYY-MM-DD (defaults to today).")
    parser.add_argument("--width", type=int, default=settings.POSTCARD_WIDTH)
    parser.add_argument("--height", type=int, default=settings.POSTCARD_HEIGHT)
    parser.add_argument("--out-dir", default=settings.OUTPUT_DIR)
    args = parser.parse_args(argv)

    pipeline = PostcardPipeline(width=args.width, height=args.height, on_state=_print_state)
    result = pipeline.run(args.text, args.language, day=args.date, radius_km=args.radius_km)
    if not result.ok:
        print(result.state.status, file=sys.stderr)
        return 1

    out_dir = Path(args.out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / result.filename
    result.image.save(out_path, format="PNG")

    resolved = result.resolved
    logger.info("center: %.4f, %.4f", resolved.point.lat, resolved.point.lon)
    box = resolved.box
    logger.info("bbox: %.4f, %.4f, %.4f, %.4f", box.south, box.west, box.north, box.east)
    if settings.DEBUG_ARTIFACTS:
        url_path = out_path.with_suffix(".url.txt")
        url_path.write_text(resolved.snapshot_url + "\n", encoding="utf-8")
        logger.info("[debug-artifacts] snapshot url -> %s", url_path)
    print(out_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
