"""Assembly: composite every valid frame and hand it to the animation codec."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from . import AssetKind, ExportedAsset, TransparencyMode
from . import compositor
from .chroma_key import KEY_COLOR
from .codec import AnimationCodec, PillowGifCodec
from .errors import NoFramesError
from .groups import Group, GroupRegistry
from .playback import frame_interval_ms
from ..utils import file_tools, validators

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[int], None]


class AssemblyPipeline:
    """Builds one animation per call, one frame in memory at a time."""

    def __init__(self, codec_factory: Callable[[], AnimationCodec] = PillowGifCodec) -> None:
        self.codec_factory = codec_factory

    def assemble(self, group: Group, on_progress: Optional[ProgressHandler] = None) -> bytes:
        """Encode the group's valid frames; returns the codec's binary output.

        Raises :class:`NoFramesError` before touching the codec when every
        frame is excluded.
        """

        config = group.config
        offsets = group.edits.offsets
        frames = group.valid_frames()
        if not frames:
            raise NoFramesError(group.id)
        validators.validate_cell_size(group.width, group.height, config.rows, config.cols)

        frame_w, frame_h = group.frame_size
        scale = config.export_scale
        keyed = config.transparency is not TransparencyMode.NONE
        delay = frame_interval_ms(config.fps)

        codec = self.codec_factory()
        codec.begin(frame_w * scale, frame_h * scale, KEY_COLOR if keyed else None)
        logger.info("Assembling %s frames for group %s at %s fps", len(frames), group.id, config.fps)
        for index in frames:
            frame = compositor.render_frame(group.source, config, offsets, index, keyed=True, scaled=True)
            codec.add_frame(frame, delay)

        def forward(fraction: float) -> None:
            if on_progress:
                on_progress(int(round(fraction * 100)))

        return codec.finalize(forward)

    def export(
        self, registry: GroupRegistry, group_id: str, on_progress: Optional[ProgressHandler] = None
    ) -> ExportedAsset:
        """Assemble under the group's in-flight guard and record the asset.

        The asset is registered before the guard is released, so the group
        cannot be deleted in between.
        """

        group = registry.get(group_id)
        with registry.assembly_guard(group_id):
            data = self.assemble(group, on_progress)
            frame_w, frame_h = group.frame_size
            scale = group.config.export_scale
            asset = ExportedAsset(
                kind=AssetKind.ANIMATED_OUTPUT,
                data=data,
                name=file_tools.format_asset_name("sprite", group.id, ".gif"),
                width=frame_w * scale,
                height=frame_h * scale,
                group_id=group.id,
            )
            registry.add_asset(asset)
        logger.info("Exported %s (%s bytes)", asset.name, len(data))
        return asset


def export_all(
    registry: GroupRegistry,
    pipeline: AssemblyPipeline,
    on_progress: Optional[ProgressHandler] = None,
) -> list[ExportedAsset]:
    """Export every group in creation order, one at a time.

    A failing group is logged and skipped; progress counts it as done.
    """

    groups = registry.groups()
    assets: list[ExportedAsset] = []
    for completed, group in enumerate(groups, start=1):
        try:
            assets.append(pipeline.export(registry, group.id))
        except Exception:
            logger.exception("Export failed for group %s", group.id)
        if on_progress:
            on_progress(int(round(completed / len(groups) * 100)))
    return assets
