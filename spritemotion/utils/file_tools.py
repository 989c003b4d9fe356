"""Filesystem helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_directory(path: Path) -> Path:
    """Create a directory if it does not exist."""

    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)
    return path


def default_output_path(sheet_path: Path, suffix: str = ".gif") -> Path:
    """Return a default output path next to the source sheet."""

    if not suffix.startswith("."):
        suffix = "." + suffix
    return sheet_path.with_suffix(suffix)


def format_asset_name(prefix: str, group_id: str, suffix: str) -> str:
    """Short display name like ``sprite-1a2b.gif``."""

    if not suffix.startswith("."):
        suffix = "." + suffix
    return f"{prefix}-{group_id[:4]}{suffix}"


def write_bytes_atomic(path: Path, data: bytes) -> Path:
    """Write through a temp file so a failed write leaves the old file intact."""

    ensure_directory(path.parent)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()
    return path
