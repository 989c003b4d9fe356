"""Background detection and substitution with a reserved key color."""

from __future__ import annotations

from typing import Optional

import numpy as np
from PIL import Image

# Magenta is reserved; the GIF codec maps it to the transparent index.
KEY_COLOR = (255, 0, 255)
TOLERANCE = 20
ALPHA_THRESHOLD = 10


def background_mask(frame: Image.Image, reference: Optional[tuple[int, int, int]] = None) -> np.ndarray:
    """Boolean mask of pixels that count as background.

    The reference defaults to the frame's top-left pixel. A pixel matches when
    every RGB channel is within ``TOLERANCE`` of the reference, or when it is
    already (almost) fully transparent.
    """

    pixels = np.asarray(frame.convert("RGBA"))
    if reference is None:
        reference = tuple(int(c) for c in pixels[0, 0, :3])
    rgb = pixels[..., :3].astype(np.int16)
    ref = np.array(reference[:3], dtype=np.int16)
    close = (np.abs(rgb - ref) < TOLERANCE).all(axis=-1)
    return close | (pixels[..., 3] < ALPHA_THRESHOLD)


def apply_key(frame: Image.Image, reference: Optional[tuple[int, int, int]] = None) -> Image.Image:
    """Return a copy of ``frame`` with background pixels set to opaque magenta."""

    pixels = np.array(frame.convert("RGBA"), dtype=np.uint8)
    mask = background_mask(frame, reference)
    pixels[mask] = (*KEY_COLOR, 255)
    return Image.fromarray(pixels)
