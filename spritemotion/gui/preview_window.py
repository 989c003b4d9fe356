"""Looping preview window driven by the playback clock."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QElapsedTimer, QSize, Qt, QTimer, Slot
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import QDialog, QHBoxLayout, QLabel, QPushButton, QVBoxLayout
from PIL import Image

from ..core import compositor
from ..core.groups import Group
from ..core.playback import PlaybackClock

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 16


def pixmap_from_image(image: Image.Image) -> Optional[QPixmap]:
    """Convert a PIL image to QPixmap if ImageQt is available."""

    try:
        from PIL.ImageQt import ImageQt
    except ImportError:
        return None
    return QPixmap.fromImage(ImageQt(image))


class PreviewWindow(QDialog):
    """Plays a group's valid frames at its fps, rendered with the shared compositor."""

    def __init__(self, group: Group, parent=None, keyed: bool = False):
        super().__init__(parent)
        self.setWindowTitle("Preview")
        self._base_size = QSize(480, 480)
        self.resize(self._base_size)
        self.group = group
        self.keyed = keyed
        self.clock = PlaybackClock(group)
        self._rendered_version = -1

        self.label = QLabel("Preview", self)
        self.label.setAlignment(Qt.AlignCenter)
        self.status = QLabel("", self)
        self.play_button = QPushButton("Pause", self)
        self.play_button.clicked.connect(self._toggle_playback)

        controls = QHBoxLayout()
        controls.addWidget(self.play_button)
        controls.addWidget(self.status, 1)
        layout = QVBoxLayout(self)
        layout.addWidget(self.label, 1)
        layout.addLayout(controls)

        self._elapsed = QElapsedTimer()
        self._timer = QTimer(self)
        self._timer.setInterval(TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._tick)
        self.start()

    def start(self) -> None:
        self._elapsed.start()
        self._timer.start()
        self.play_button.setText("Pause")

    def stop(self) -> None:
        self._timer.stop()
        self.play_button.setText("Play")

    @Slot()
    def _toggle_playback(self) -> None:
        if self._timer.isActive():
            self.stop()
        else:
            self.start()

    @Slot()
    def _tick(self) -> None:  # pragma: no cover - Qt timer callback
        index, changed = self.clock.tick(self._elapsed.elapsed())
        if index is None:
            if changed:
                self.label.clear()
                self.status.setText("All frames excluded")
            return
        if not changed and self._rendered_version == self.group.version:
            return
        frame = compositor.render_frame(
            self.group.source, self.group.config, self.group.edits.offsets, index, keyed=self.keyed
        )
        self._rendered_version = self.group.version
        self.update_pixmap(pixmap_from_image(frame))
        self.status.setText(f"Frame {index}")

    def update_pixmap(self, pixmap: Optional[QPixmap]) -> None:
        if pixmap is None:
            self.label.setText("Preview unavailable (ImageQt missing).")
            return
        scaled = pixmap.scaled(self._base_size, Qt.KeepAspectRatio, Qt.FastTransformation)
        self.label.setPixmap(scaled)

    def closeEvent(self, event) -> None:  # pragma: no cover - Qt lifecycle
        self._timer.stop()
        super().closeEvent(event)
