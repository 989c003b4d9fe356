"""Groups: a source sheet, its grid config and its edit overlays."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, Optional

from PIL import Image

from . import DEFAULT_CONFIG, Direction, ExportedAsset, SpriteGridConfig, TransparencyMode
from . import grid
from .edits import FrameEditStore
from .errors import AssemblyInProgressError, ValidationError
from ..utils import validators

logger = logging.getLogger(__name__)


class Group:
    """Owned aggregate of one source sheet and everything edited on top of it.

    The source image is never modified; offsets and exclusions live in
    :attr:`edits`. ``version`` increases on every change so a renderer can
    tell whether its output is stale.
    """

    def __init__(
        self,
        source: Image.Image,
        config: SpriteGridConfig = DEFAULT_CONFIG,
        reference: Optional[Image.Image] = None,
        group_id: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> None:
        self.id = group_id or str(uuid.uuid4())
        self._source = source.convert("RGBA") if source.mode != "RGBA" else source.copy()
        self.reference = reference
        self.created_at = created_at if created_at is not None else time.time()
        self.version = 0
        self.edits = FrameEditStore(on_change=self._touch)
        _validate_config(config)
        self._config = config

    @property
    def source(self) -> Image.Image:
        return self._source

    @property
    def config(self) -> SpriteGridConfig:
        return self._config

    @property
    def width(self) -> int:
        return self._source.width

    @property
    def height(self) -> int:
        return self._source.height

    @property
    def frame_size(self) -> tuple[int, int]:
        return grid.cell_size(self.width, self.height, self._config.rows, self._config.cols)

    def valid_frames(self) -> list[int]:
        return grid.valid_frames(self._config.total_frames, self.edits.excluded)

    def set_grid(self, rows: int, cols: int) -> SpriteGridConfig:
        """Change grid dimensions; the frame count follows ``rows * cols``.

        Existing offsets and exclusions stay keyed by index. Use
        :meth:`prune_overlays` to drop the ones that fell off the grid.
        """

        validators.validate_grid(rows, cols)
        return self._replace(rows=rows, cols=cols, total_frames=rows * cols)

    def set_total_frames(self, total_frames: int) -> SpriteGridConfig:
        validators.validate_total_frames(total_frames, self._config.rows, self._config.cols)
        return self._replace(total_frames=total_frames)

    def set_fps(self, fps: int) -> SpriteGridConfig:
        validators.validate_fps(fps)
        return self._replace(fps=fps)

    def set_direction(self, direction: Direction | str) -> SpriteGridConfig:
        return self._replace(direction=validators.parse_direction(direction))

    def set_export_scale(self, scale: int) -> SpriteGridConfig:
        validators.validate_export_scale(scale)
        return self._replace(export_scale=scale)

    def set_transparency(
        self, mode: TransparencyMode, key_color: Optional[tuple[int, int, int]] = None
    ) -> SpriteGridConfig:
        if mode is TransparencyMode.FIXED_COLOR and key_color is None:
            raise ValidationError("A key color is required for fixed-color transparency")
        return self._replace(
            transparency=mode,
            key_color=key_color if mode is TransparencyMode.FIXED_COLOR else None,
        )

    def configure(self, **changes) -> SpriteGridConfig:
        """Apply several non-grid settings in one step.

        The combined result is validated before anything is swapped in, so a
        rejected update leaves the config and ``version`` untouched.
        """

        unknown = set(changes) - _CONFIGURABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "direction" in changes:
            changes["direction"] = validators.parse_direction(changes["direction"])
        candidate = replace(self._config, **changes)
        if candidate.transparency is not TransparencyMode.FIXED_COLOR:
            candidate = replace(candidate, key_color=None)
        _validate_config(candidate)
        if candidate == self._config:
            return self._config
        return self._replace(**{name: getattr(candidate, name) for name in _CONFIGURABLE_FIELDS})

    def set_offset(self, index: int, dx: int, dy: int):
        return self.edits.set_offset(index, dx, dy)

    def reset_offset(self, index: int) -> None:
        self.edits.reset_offset(index)

    def toggle_exclusion(self, index: int) -> bool:
        return self.edits.toggle_exclusion(index)

    def prune_overlays(self) -> int:
        return self.edits.prune(self._config.total_frames)

    def _replace(self, **changes) -> SpriteGridConfig:
        self._config = replace(self._config, **changes)
        self._touch()
        logger.debug("Group %s config -> %s", self.id, self._config)
        return self._config

    def _touch(self) -> None:
        self.version += 1


_CONFIGURABLE_FIELDS = frozenset({"total_frames", "fps", "direction", "export_scale", "transparency", "key_color"})


def _validate_config(config: SpriteGridConfig) -> None:
    validators.validate_grid(config.rows, config.cols)
    validators.validate_total_frames(config.total_frames, config.rows, config.cols)
    validators.validate_fps(config.fps)
    validators.validate_export_scale(config.export_scale)
    if config.transparency is TransparencyMode.FIXED_COLOR and config.key_color is None:
        raise ValidationError("A key color is required for fixed-color transparency")


class GroupRegistry:
    """Holds groups in creation order plus the assets exported from them."""

    def __init__(self) -> None:
        self._groups: dict[str, Group] = {}
        self._assets: list[ExportedAsset] = []
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def create(
        self,
        source: Image.Image,
        config: SpriteGridConfig = DEFAULT_CONFIG,
        reference: Optional[Image.Image] = None,
    ) -> Group:
        group = Group(source, config=config, reference=reference)
        with self._lock:
            self._groups[group.id] = group
        logger.info("Created group %s (%sx%s, %sx%s grid)", group.id, group.width, group.height, config.rows, config.cols)
        return group

    def get(self, group_id: str) -> Group:
        try:
            return self._groups[group_id]
        except KeyError:
            raise KeyError(f"Unknown group: {group_id}") from None

    def groups(self) -> list[Group]:
        return sorted(self._groups.values(), key=lambda g: g.created_at)

    def delete(self, group_id: str) -> None:
        """Remove a group and every asset exported from it.

        A group with an export in flight cannot be deleted.
        """

        with self._lock:
            if group_id not in self._groups:
                raise KeyError(f"Unknown group: {group_id}")
            if group_id in self._in_flight:
                raise AssemblyInProgressError(group_id)
            del self._groups[group_id]
            before = len(self._assets)
            self._assets = [asset for asset in self._assets if asset.group_id != group_id]
            evicted = before - len(self._assets)
        logger.info("Deleted group %s (evicted %s assets)", group_id, evicted)

    def add_asset(self, asset: ExportedAsset) -> ExportedAsset:
        with self._lock:
            if asset.group_id is not None and asset.group_id not in self._groups:
                raise KeyError(f"Unknown group: {asset.group_id}")
            self._assets = [asset, *self._assets]
        return asset

    def assets(self) -> list[ExportedAsset]:
        return list(self._assets)

    def get_asset(self, asset_id: str) -> ExportedAsset:
        for asset in self._assets:
            if asset.id == asset_id:
                return asset
        raise KeyError(f"Unknown asset: {asset_id}")

    def is_assembling(self, group_id: str) -> bool:
        with self._lock:
            return group_id in self._in_flight

    @contextmanager
    def assembly_guard(self, group_id: str) -> Iterator[None]:
        """Allow one export per group at a time; a second request is rejected."""

        with self._lock:
            if group_id in self._in_flight:
                raise AssemblyInProgressError(group_id)
            self._in_flight.add(group_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(group_id)
