"""Animation codec seam and the default Pillow GIF implementation."""

from __future__ import annotations

import io
import logging
from typing import Callable, Optional, Protocol

import numpy as np
from PIL import Image

from .errors import CodecError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

TRANSPARENT_INDEX = 255


class AnimationCodec(Protocol):
    """Accepts frames one by one and encodes them into a single binary."""

    def begin(self, width: int, height: int, transparent_color: Optional[tuple[int, int, int]]) -> None: ...

    def add_frame(self, frame: Image.Image, delay_ms: float) -> None: ...

    def finalize(self, on_progress: Optional[ProgressCallback] = None) -> bytes: ...


class PillowGifCodec:
    """Looping GIF writer built on Pillow.

    With a transparent color, every frame is quantized to at most 255 colors
    and pixels that exactly match the reserved color go to palette index 255,
    which the file marks as transparent.
    """

    def __init__(self, loop: int = 0) -> None:
        self.loop = loop
        self._size: Optional[tuple[int, int]] = None
        self._transparent: Optional[tuple[int, int, int]] = None
        self._frames: list[Image.Image] = []
        self._durations: list[int] = []

    def begin(self, width: int, height: int, transparent_color: Optional[tuple[int, int, int]]) -> None:
        if width < 1 or height < 1:
            raise CodecError(f"Invalid animation size {width}x{height}")
        self._size = (width, height)
        self._transparent = transparent_color
        self._frames = []
        self._durations = []

    def add_frame(self, frame: Image.Image, delay_ms: float) -> None:
        if self._size is None:
            raise CodecError("begin() must be called before adding frames")
        if frame.size != self._size:
            raise CodecError(f"Frame size {frame.size} does not match animation size {self._size}")
        self._frames.append(frame.convert("RGBA"))
        self._durations.append(max(1, int(round(delay_ms))))

    def finalize(self, on_progress: Optional[ProgressCallback] = None) -> bytes:
        if not self._frames:
            raise CodecError("No frames were submitted")

        total = len(self._frames)
        paletted: list[Image.Image] = []
        for position, frame in enumerate(self._frames, start=1):
            paletted.append(self._to_palette(frame))
            if on_progress:
                # Quantization dominates; the final write is reported as 100%.
                on_progress(0.95 * position / total)

        buffer = io.BytesIO()
        save_kwargs = {
            "format": "GIF",
            "save_all": True,
            "append_images": paletted[1:],
            "duration": self._durations,
            "loop": self.loop,
            "optimize": False,
            "disposal": 2,
        }
        if self._transparent is not None:
            save_kwargs["transparency"] = TRANSPARENT_INDEX
        try:
            paletted[0].save(buffer, **save_kwargs)
        except (OSError, ValueError) as exc:
            raise CodecError(f"GIF encoding failed: {exc}") from exc
        finally:
            self._frames = []

        if on_progress:
            on_progress(1.0)
        data = buffer.getvalue()
        logger.debug("Encoded %s frames into %s bytes", total, len(data))
        return data

    def _to_palette(self, frame: Image.Image) -> Image.Image:
        rgba = np.asarray(frame)
        rgb = Image.fromarray(np.ascontiguousarray(rgba[..., :3]))
        if self._transparent is None:
            return rgb.quantize(colors=256)

        key_mask = (rgba[..., :3] == np.array(self._transparent, dtype=np.uint8)).all(axis=-1)
        quantized = rgb.quantize(colors=TRANSPARENT_INDEX)
        indices = np.array(quantized, dtype=np.uint8)
        indices[key_mask] = TRANSPARENT_INDEX

        palette = list(quantized.getpalette() or [])[: TRANSPARENT_INDEX * 3]
        palette += [0] * (TRANSPARENT_INDEX * 3 - len(palette))
        palette += list(self._transparent)

        result = Image.frombytes("P", quantized.size, indices.tobytes())
        result.putpalette(palette)
        return result
