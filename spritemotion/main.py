"""Entry point for the SpriteMotion preview application."""

from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication, QFileDialog, QMessageBox

from .cli import build_group, build_parser, configure_logging
from .core.errors import UnsupportedFormatError, ValidationError
from .gui.preview_window import PreviewWindow
from .utils import validators

logger = logging.getLogger(__name__)

SHEET_FILTER = "Sprite sheets (" + " ".join(f"*{ext}" for ext in sorted(validators.ALLOWED_IMAGE_EXTENSIONS)) + ")"


def _pick_sheet() -> str | None:
    path, _ = QFileDialog.getOpenFileName(None, "Open Sprite Sheet", "", SHEET_FILTER)
    return path or None


def run(argv: list[str] | None = None) -> int:
    """Start the Qt event loop with a preview of the given (or picked) sheet."""

    argv = list(sys.argv[1:] if argv is None else argv)
    configure_logging()
    app = QApplication(sys.argv[:1])
    app.setApplicationName("SpriteMotion")

    if not argv or argv[0].startswith("-"):
        chosen = _pick_sheet()
        if chosen is None:
            return 0
        argv.insert(0, chosen)

    args = build_parser().parse_args(argv)
    try:
        group = build_group(args)
    except (ValidationError, UnsupportedFormatError, FileNotFoundError) as exc:
        QMessageBox.critical(None, "SpriteMotion", str(exc))
        return 2

    window = PreviewWindow(group, keyed=args.transparency != "none")
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(run())
