"""Frame compositing shared by the editor, preview and exporter."""

from __future__ import annotations

import logging
from typing import Mapping

from PIL import Image

from . import ZERO_OFFSET, FrameOffset, SpriteGridConfig, TransparencyMode
from . import chroma_key, grid
from .errors import ValidationError

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)
WHITE = (255, 255, 255, 255)


def background_fill(config: SpriteGridConfig) -> tuple[int, int, int, int]:
    """Color used for samples that land outside the source image."""

    if config.transparency is TransparencyMode.AUTO_KEY:
        # Generated sheets are painted on white, so gaps key out with them.
        return WHITE
    if config.transparency is TransparencyMode.FIXED_COLOR and config.key_color:
        return (*config.key_color, 255)
    return TRANSPARENT


def sample_box(
    frame_index: int, config: SpriteGridConfig, width: int, height: int, offset: FrameOffset = ZERO_OFFSET
) -> tuple[int, int, int, int]:
    """Source rectangle ``(left, top, right, bottom)`` for a frame, offset included.

    A positive offset moves the window up/left, which moves the picture
    down/right inside the frame. The box may extend past the image.
    """

    frame_w, frame_h = grid.cell_size(width, height, config.rows, config.cols)
    row, col = grid.index_to_cell(frame_index, config.rows, config.cols, config.direction)
    x0, y0 = grid.cell_origin(row, col, width, height, config.rows, config.cols)
    left = x0 - offset.dx
    top = y0 - offset.dy
    return left, top, left + frame_w, top + frame_h


def composite(
    source: Image.Image,
    config: SpriteGridConfig,
    offsets: Mapping[int, FrameOffset],
    frame_index: int,
) -> Image.Image:
    """Extract one frame from the sheet into a fresh ``cell_w x cell_h`` RGBA image."""

    if source.mode != "RGBA":
        source = source.convert("RGBA")
    width, height = source.size
    frame_w, frame_h = grid.cell_size(width, height, config.rows, config.cols)
    if frame_w < 1 or frame_h < 1:
        raise ValidationError(f"A {config.rows}x{config.cols} grid does not fit a {width}x{height} image")

    left, top, right, bottom = sample_box(frame_index, config, width, height, offsets.get(frame_index, ZERO_OFFSET))
    frame = Image.new("RGBA", (frame_w, frame_h), background_fill(config))
    clipped = (max(left, 0), max(top, 0), min(right, width), min(bottom, height))
    if clipped[0] < clipped[2] and clipped[1] < clipped[3]:
        frame.paste(source.crop(clipped), (clipped[0] - left, clipped[1] - top))
    return frame


def apply_transparency(frame: Image.Image, config: SpriteGridConfig) -> Image.Image:
    if config.transparency is TransparencyMode.AUTO_KEY:
        return chroma_key.apply_key(frame)
    if config.transparency is TransparencyMode.FIXED_COLOR:
        return chroma_key.apply_key(frame, reference=config.key_color)
    return frame


def scale_frame(frame: Image.Image, scale: int) -> Image.Image:
    """Nearest-neighbour upscale so pixel art stays crisp."""

    if scale == 1:
        return frame
    return frame.resize((frame.width * scale, frame.height * scale), Image.Resampling.NEAREST)


def render_frame(
    source: Image.Image,
    config: SpriteGridConfig,
    offsets: Mapping[int, FrameOffset],
    frame_index: int,
    keyed: bool = True,
    scaled: bool = False,
) -> Image.Image:
    """Composite, then optionally key and scale, in the order exports use."""

    frame = composite(source, config, offsets, frame_index)
    if keyed:
        frame = apply_transparency(frame, config)
    if scaled:
        frame = scale_frame(frame, config.export_scale)
    return frame
