"""Wall-clock to frame mapping for looping previews."""

from __future__ import annotations

from typing import Optional, Sequence

from .groups import Group


def frame_interval_ms(fps: int) -> float:
    return 1000.0 / fps


def active_frame(time_ms: float, fps: int, frames: Sequence[int]) -> Optional[int]:
    """Frame shown at ``time_ms``, or None when nothing is left to play."""

    if not frames:
        return None
    step = int(max(0.0, time_ms) * fps // 1000) % len(frames)
    return frames[step]


class PlaybackClock:
    """Picks the frame to display for a group at a given time.

    Nothing is cached between ticks: the valid frame list and fps are read
    from the group each call, so exclusions and fps changes apply on the
    next tick.
    """

    def __init__(self, group: Group) -> None:
        self.group = group
        self.displayed: Optional[int] = None

    def active_frame(self, time_ms: float) -> Optional[int]:
        return active_frame(time_ms, self.group.config.fps, self.group.valid_frames())

    def tick(self, time_ms: float) -> tuple[Optional[int], bool]:
        """Return the active frame and whether it differs from the last one shown."""

        index = self.active_frame(time_ms)
        changed = index != self.displayed
        self.displayed = index
        return index, changed

    def period_ms(self) -> float:
        """Length of one full loop; zero when every frame is excluded."""

        return len(self.group.valid_frames()) * frame_interval_ms(self.group.config.fps)
