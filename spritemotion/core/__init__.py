"""Core data model shared by the editor, preview and export surfaces."""

__all__ = [
    "Direction",
    "TransparencyMode",
    "SpriteGridConfig",
    "FrameOffset",
    "ZERO_OFFSET",
    "DEFAULT_CONFIG",
    "CREATIVE_3X3_CONFIG",
    "ProcessingStatus",
    "AssetKind",
    "ExportedAsset",
]

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time
import uuid


class Direction(str, Enum):
    """Order in which linear frame indices walk the grid."""

    ROW_MAJOR = "row"
    COLUMN_MAJOR = "column"


class TransparencyMode(str, Enum):
    """How background pixels are turned into transparency on export."""

    NONE = "none"
    AUTO_KEY = "auto"
    FIXED_COLOR = "fixed"


@dataclass(frozen=True)
class SpriteGridConfig:
    """Grid geometry and playback settings for one sprite sheet.

    Instances are immutable; groups swap in a new value on every edit.
    """

    rows: int = 4
    cols: int = 4
    total_frames: int = 16
    fps: int = 12
    direction: Direction = Direction.ROW_MAJOR
    export_scale: int = 1
    transparency: TransparencyMode = TransparencyMode.AUTO_KEY
    key_color: Optional[tuple[int, int, int]] = None

    @property
    def capacity(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class FrameOffset:
    """Per-frame displacement in source pixels, applied at sampling time."""

    dx: int = 0
    dy: int = 0

    @property
    def is_zero(self) -> bool:
        return self.dx == 0 and self.dy == 0


ZERO_OFFSET = FrameOffset()

DEFAULT_CONFIG = SpriteGridConfig()

# Generated action / meme sheets are always laid out on a 3x3 grid.
CREATIVE_3X3_CONFIG = SpriteGridConfig(rows=3, cols=3, total_frames=9)


class ProcessingStatus(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    RENDERING = "rendering"
    GENERATING = "generating"
    COMPLETED = "completed"


class AssetKind(str, Enum):
    RASTER_SHEET = "sheet"
    ANIMATED_OUTPUT = "gif"


@dataclass
class ExportedAsset:
    """An exported binary plus the metadata the asset library shows."""

    kind: AssetKind
    data: bytes
    name: str
    width: int
    height: int
    group_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)

    @property
    def media_type(self) -> str:
        return "image/gif" if self.kind is AssetKind.ANIMATED_OUTPUT else "image/png"
