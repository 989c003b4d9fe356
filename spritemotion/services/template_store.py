"""Durable single-slot storage for the reference template image."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from PIL import Image

from ..core.errors import StorageFullError
from ..utils import file_tools, image_io

logger = logging.getLogger(__name__)

TEMPLATE_SLOT = "spriteMotion_template"
DEFAULT_CAPACITY_BYTES = int(os.environ.get("SM_TEMPLATE_QUOTA_KB", "5120")) * 1024


class TemplateStore:
    """Keeps one template image across sessions.

    A write that would exceed ``capacity_bytes`` raises
    :class:`StorageFullError` and leaves the stored template as it was.
    """

    def __init__(self, root: Path, capacity_bytes: int = DEFAULT_CAPACITY_BYTES) -> None:
        self.root = root
        self.capacity_bytes = capacity_bytes

    @property
    def path(self) -> Path:
        return self.root / f"{TEMPLATE_SLOT}.png"

    def save(self, image: Image.Image) -> Path:
        data = image_io.encode_png(image)
        if len(data) > self.capacity_bytes:
            raise StorageFullError(
                f"Template is {len(data) // 1024} KB; storage allows {self.capacity_bytes // 1024} KB"
            )
        file_tools.write_bytes_atomic(self.path, data)
        logger.info("Saved template (%s bytes) to %s", len(data), self.path)
        return self.path

    def load(self) -> Optional[Image.Image]:
        if not self.path.exists():
            return None
        return image_io.decode_image(self.path.read_bytes(), source=str(self.path))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Cleared saved template")
