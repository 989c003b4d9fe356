"""Raster sheet export: the source with grid lines, plus a frame manifest."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from PIL import Image, ImageDraw

from . import AssetKind, ExportedAsset
from . import compositor, grid
from .groups import Group, GroupRegistry
from ..utils import file_tools, image_io

logger = logging.getLogger(__name__)

GRID_LINE_COLOR = (0, 229, 255, 255)
GRID_LINE_WIDTH = 2


def render_grid_sheet(group: Group) -> Image.Image:
    """Copy of the source with the cell boundaries drawn on top."""

    config = group.config
    sheet = group.source.copy()
    draw = ImageDraw.Draw(sheet)
    for row in range(1, config.rows):
        y = round(row * group.height / config.rows)
        draw.line([(0, y), (group.width, y)], fill=GRID_LINE_COLOR, width=GRID_LINE_WIDTH)
    for col in range(1, config.cols):
        x = round(col * group.width / config.cols)
        draw.line([(x, 0), (x, group.height)], fill=GRID_LINE_COLOR, width=GRID_LINE_WIDTH)
    return sheet


def export_sheet(registry: GroupRegistry, group_id: str) -> ExportedAsset:
    group = registry.get(group_id)
    data = image_io.encode_png(render_grid_sheet(group))
    asset = ExportedAsset(
        kind=AssetKind.RASTER_SHEET,
        data=data,
        name=file_tools.format_asset_name("grid", group.id, ".png"),
        width=group.width,
        height=group.height,
        group_id=group.id,
    )
    registry.add_asset(asset)
    logger.info("Exported grid sheet %s", asset.name)
    return asset


def build_manifest(group: Group) -> dict[str, Any]:
    """Describe where each frame is sampled from, edits included."""

    config = group.config
    frame_w, frame_h = group.frame_size
    frames_payload = {}
    for index, row, col in grid.iter_cells(config.rows, config.cols, config.direction, config.total_frames):
        offset = group.edits.offset(index)
        left, top, _, _ = compositor.sample_box(index, config, group.width, group.height, offset)
        frames_payload[f"frame_{index:04d}"] = {
            "row": row,
            "col": col,
            "x": left,
            "y": top,
            "width": frame_w,
            "height": frame_h,
            "offset": {"dx": offset.dx, "dy": offset.dy},
            "excluded": group.edits.is_excluded(index),
        }

    return {
        "frames": frames_payload,
        "meta": {
            "group": group.id,
            "rows": config.rows,
            "columns": config.cols,
            "total_frames": config.total_frames,
            "fps": config.fps,
            "direction": config.direction.value,
            "size": {"width": group.width, "height": group.height},
        },
    }


def write_manifest(group: Group, path: Path) -> Path:
    manifest_path = path.with_suffix(".json")
    file_tools.ensure_directory(manifest_path.parent)
    manifest_path.write_text(json.dumps(build_manifest(group), indent=2), encoding="utf-8")
    logger.info("Wrote manifest to %s", manifest_path)
    return manifest_path
