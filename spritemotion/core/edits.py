"""Per-frame edit overlays: pixel offsets and excluded frames."""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from . import ZERO_OFFSET, FrameOffset
from ..utils import validators

logger = logging.getLogger(__name__)


class FrameEditStore:
    """Sparse offset map and excluded-frame set for one group.

    Every mutation builds a new map/set and swaps it in, so readers holding
    ``offsets`` or ``excluded`` keep a consistent snapshot.
    """

    def __init__(
        self,
        offsets: Optional[Mapping[int, FrameOffset]] = None,
        excluded: Optional[frozenset[int]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._offsets: dict[int, FrameOffset] = {k: v for k, v in (offsets or {}).items() if not v.is_zero}
        self._excluded: frozenset[int] = frozenset(excluded or ())
        self._on_change = on_change
        self._lock = threading.Lock()

    @property
    def offsets(self) -> Mapping[int, FrameOffset]:
        return MappingProxyType(self._offsets)

    @property
    def excluded(self) -> frozenset[int]:
        return self._excluded

    def offset(self, index: int) -> FrameOffset:
        return self._offsets.get(index, ZERO_OFFSET)

    def is_excluded(self, index: int) -> bool:
        return index in self._excluded

    def set_offset(self, index: int, dx: int, dy: int) -> FrameOffset:
        """Nudge a frame; repeated nudges accumulate."""

        validators.validate_frame_index(index)
        with self._lock:
            current = self._offsets.get(index, ZERO_OFFSET)
            updated = FrameOffset(current.dx + int(dx), current.dy + int(dy))
            offsets = dict(self._offsets)
            if updated.is_zero:
                offsets.pop(index, None)
            else:
                offsets[index] = updated
            self._offsets = offsets
        logger.debug("Frame %s offset -> (%s, %s)", index, updated.dx, updated.dy)
        self._changed()
        return updated

    def reset_offset(self, index: int) -> None:
        with self._lock:
            if index not in self._offsets:
                return
            offsets = dict(self._offsets)
            del offsets[index]
            self._offsets = offsets
        self._changed()

    def toggle_exclusion(self, index: int) -> bool:
        """Flip exclusion for ``index``; returns True when now excluded."""

        validators.validate_frame_index(index)
        with self._lock:
            if index in self._excluded:
                self._excluded = self._excluded - {index}
                now_excluded = False
            else:
                self._excluded = self._excluded | {index}
                now_excluded = True
        self._changed()
        return now_excluded

    def prune(self, total_frames: int) -> int:
        """Drop overlay entries at or beyond ``total_frames``; returns how many."""

        with self._lock:
            offsets = {k: v for k, v in self._offsets.items() if k < total_frames}
            excluded = frozenset(i for i in self._excluded if i < total_frames)
            dropped = (len(self._offsets) - len(offsets)) + (len(self._excluded) - len(excluded))
            self._offsets = offsets
            self._excluded = excluded
        if dropped:
            self._changed()
        return dropped

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
