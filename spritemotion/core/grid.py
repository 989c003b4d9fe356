"""Grid addressing: linear frame indices to (row, column) cells and back.

Every consumer (editor, preview, exporter, sheet overlay) goes through these
functions so a frame always maps to the same pixels. Callers guarantee
``rows >= 1`` and ``cols >= 1``.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable

from . import Direction


def index_to_cell(index: int, rows: int, cols: int, direction: Direction) -> tuple[int, int]:
    """Return the ``(row, col)`` cell holding ``index``."""

    if direction is Direction.COLUMN_MAJOR:
        return index % rows, index // rows
    return index // cols, index % cols


def cell_to_index(row: int, col: int, rows: int, cols: int, direction: Direction) -> int:
    """Inverse of :func:`index_to_cell`."""

    if direction is Direction.COLUMN_MAJOR:
        return col * rows + row
    return row * cols + col


def cell_size(width: int, height: int, rows: int, cols: int) -> tuple[int, int]:
    """Integer frame size for a ``width x height`` sheet.

    Fractional cells are truncated, matching the origin rounding in
    :func:`cell_origin`.
    """

    return width // cols, height // rows


def cell_origin(row: int, col: int, width: int, height: int, rows: int, cols: int) -> tuple[int, int]:
    """Top-left source pixel of a cell, floored from the fractional boundary."""

    return (col * width) // cols, (row * height) // rows


def iter_cells(rows: int, cols: int, direction: Direction, total_frames: int | None = None) -> Iterable[tuple[int, int, int]]:
    """Yield ``(index, row, col)`` in index order."""

    count = rows * cols if total_frames is None else min(total_frames, rows * cols)
    for index in range(count):
        row, col = index_to_cell(index, rows, cols, direction)
        yield index, row, col


def valid_frames(total_frames: int, excluded: AbstractSet[int]) -> list[int]:
    """Ascending indices in ``[0, total_frames)`` that are not excluded."""

    return [index for index in range(max(0, total_frames)) if index not in excluded]
