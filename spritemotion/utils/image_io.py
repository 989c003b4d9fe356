"""Image decode/encode helpers shared by the CLI, web surface and services."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..core.errors import UnsupportedFormatError
from . import file_tools, validators

logger = logging.getLogger(__name__)


def load_image(path: Path) -> Image.Image:
    """Load an image file as RGBA."""

    if not path.exists():
        raise FileNotFoundError(path)
    if path.suffix.lower() not in validators.ALLOWED_IMAGE_EXTENSIONS:
        raise UnsupportedFormatError(str(path), reason="Unsupported extension")
    return decode_image(path.read_bytes(), source=str(path))


def decode_image(data: bytes, source: str = "<upload>") -> Image.Image:
    """Decode raw bytes into an RGBA image (first frame for animated input)."""

    if not data:
        raise UnsupportedFormatError(source, reason="Empty file")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise UnsupportedFormatError(source, reason=str(exc)) from exc


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def save_image(image: Image.Image, path: Path) -> Path:
    """Persist an image to disk."""

    file_tools.ensure_directory(path.parent)
    image.save(path)
    return path
