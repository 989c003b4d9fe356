"""Validation helpers for user inputs."""

from __future__ import annotations

import re
from typing import Optional

from ..core import Direction, FrameOffset, TransparencyMode
from ..core.errors import ValidationError


ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
ALLOWED_EXPORT_SCALES = (1, 2, 4)
MAX_FPS = 60

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")
_OFFSET_SPEC = re.compile(r"^\s*(\d+)\s*:\s*(-?\d+)\s*,\s*(-?\d+)\s*$")
_GRID_SPEC = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


def validate_grid(rows: int, cols: int) -> None:
    """Ensure grid dimensions are positive."""

    if rows < 1:
        raise ValidationError("Rows must be greater than zero")
    if cols < 1:
        raise ValidationError("Columns must be greater than zero")


def validate_total_frames(total_frames: int, rows: int, cols: int) -> None:
    if total_frames < 0 or total_frames > rows * cols:
        raise ValidationError(f"Frame count must be between 0 and {rows * cols}")


def validate_fps(fps: int) -> None:
    if fps < 1 or fps > MAX_FPS:
        raise ValidationError(f"FPS must be between 1 and {MAX_FPS}")


def validate_export_scale(scale: int) -> None:
    if scale not in ALLOWED_EXPORT_SCALES:
        raise ValidationError("Export scale must be 1, 2 or 4")


def validate_frame_index(index: int) -> None:
    if index < 0:
        raise ValidationError("Frame index must be zero or greater")


def validate_cell_size(width: int, height: int, rows: int, cols: int) -> None:
    """Reject grids whose cells would be narrower than one source pixel."""

    if width // cols < 1 or height // rows < 1:
        raise ValidationError(f"A {rows}x{cols} grid does not fit a {width}x{height} image")


def parse_direction(value: str | Direction) -> Direction:
    if isinstance(value, Direction):
        return value
    try:
        return Direction(value.strip().lower())
    except ValueError as exc:
        raise ValidationError("Direction must be 'row' or 'column'") from exc


def parse_hex_color(value: str | None) -> Optional[tuple[int, int, int]]:
    """Parse a '#RRGGBB' string into an RGB tuple."""

    if value is None or value.strip() == "":
        return None
    match = _HEX_COLOR.match(value.strip())
    if not match:
        raise ValidationError("Color must be a hex value like #FFFFFF")
    digits = match.group(1)
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def parse_transparency(value: str | None) -> tuple[TransparencyMode, Optional[tuple[int, int, int]]]:
    """Parse 'none', 'auto' or a hex color into a mode plus optional key color."""

    if value is None or value.strip() == "":
        return TransparencyMode.NONE, None
    lowered = value.strip().lower()
    if lowered == TransparencyMode.NONE.value:
        return TransparencyMode.NONE, None
    if lowered == TransparencyMode.AUTO_KEY.value:
        return TransparencyMode.AUTO_KEY, None
    return TransparencyMode.FIXED_COLOR, parse_hex_color(value)


def parse_offset_spec(value: str) -> tuple[int, FrameOffset]:
    """Parse 'INDEX:DX,DY' into a frame index and offset."""

    match = _OFFSET_SPEC.match(value)
    if not match:
        raise ValidationError(f"Offset must look like INDEX:DX,DY (got {value!r})")
    index, dx, dy = (int(group) for group in match.groups())
    return index, FrameOffset(dx, dy)


def parse_grid_spec(value: str) -> tuple[int, int]:
    """Parse 'ROWSxCOLS' (e.g. '3x3') into a validated grid."""

    match = _GRID_SPEC.match(value or "")
    if not match:
        raise ValidationError(f"Grid must look like ROWSxCOLS (got {value!r})")
    rows, cols = int(match.group(1)), int(match.group(2))
    validate_grid(rows, cols)
    return rows, cols
