"""Processing state shown to the user while long operations run."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from . import ProcessingStatus

logger = logging.getLogger(__name__)

BUSY_STATES = {ProcessingStatus.ANALYZING, ProcessingStatus.RENDERING, ProcessingStatus.GENERATING}
COMPLETED_HOLD_SECONDS = 1.5


@dataclass
class ProcessingState:
    status: ProcessingStatus = ProcessingStatus.IDLE
    progress: float = 0.0
    error: Optional[str] = None


class ProcessingTracker:
    """Small state machine: idle -> busy -> completed -> idle, or back to idle with an error.

    ``completed`` is only shown for ``hold_seconds``; reading :attr:`state`
    after that returns a fresh idle state.
    """

    def __init__(
        self,
        hold_seconds: float = COMPLETED_HOLD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.hold_seconds = hold_seconds
        self._clock = clock
        self._state = ProcessingState()
        self._completed_at: Optional[float] = None

    @property
    def state(self) -> ProcessingState:
        if self._completed_at is not None and self._clock() - self._completed_at >= self.hold_seconds:
            self.reset()
        return self._state

    @property
    def busy(self) -> bool:
        return self.state.status in BUSY_STATES

    def reset(self) -> None:
        self._set(ProcessingState())

    def update(self, progress: float) -> None:
        self._set(ProcessingState(self._state.status, max(0.0, min(100.0, float(progress))), None))

    @contextmanager
    def run(self, status: ProcessingStatus) -> Iterator["ProcessingTracker"]:
        if status not in BUSY_STATES:
            raise ValueError(f"{status.value} is not a working state")
        self._set(ProcessingState(status, 0.0, None))
        try:
            yield self
        except Exception as exc:
            logger.warning("%s failed: %s", status.value, exc)
            self._set(ProcessingState(ProcessingStatus.IDLE, 0.0, str(exc) or exc.__class__.__name__))
            raise
        self._set(ProcessingState(ProcessingStatus.COMPLETED, 100.0, None))
        self._completed_at = self._clock()

    def _set(self, state: ProcessingState) -> None:
        self._state = state
        self._completed_at = None
