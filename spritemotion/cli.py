"""Command-line entry point for sprite-sheet-to-animation workflows."""

import argparse
import logging
import sys
from pathlib import Path

from .core import SpriteGridConfig
from .core.assembly import AssemblyPipeline
from .core.errors import NoFramesError, ProcessingError, UnsupportedFormatError, ValidationError
from .core.groups import Group
from .core.sheet_export import render_grid_sheet, write_manifest
from .utils import file_tools, image_io, validators

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spritemotion",
        description="Turn a packed sprite sheet into a looping animation.",
    )
    parser.add_argument("input", type=Path, help="Path to the sprite sheet image")
    parser.add_argument("output", type=Path, nargs="?", help="Destination path (default: next to input)")
    parser.add_argument("--rows", type=int, default=4, help="Grid rows (default: 4)")
    parser.add_argument("--cols", type=int, default=4, help="Grid columns (default: 4)")
    parser.add_argument("--frames", type=int, help="Frames in use when the last row is partial")
    parser.add_argument("--fps", type=int, default=12, help="Playback frames per second (default: 12)")
    parser.add_argument(
        "--direction",
        choices=["row", "column"],
        default="row",
        help="Frame order: row-major or column-major (default: row)",
    )
    parser.add_argument("--scale", type=int, choices=[1, 2, 4], default=1, help="Export scale factor")
    parser.add_argument(
        "--transparency",
        default="auto",
        help="'none', 'auto' (key the top-left color) or a hex key color like #FFFFFF",
    )
    parser.add_argument("--exclude", type=int, nargs="*", default=[], metavar="INDEX", help="Frames to skip")
    parser.add_argument(
        "--offset",
        action="append",
        default=[],
        metavar="INDEX:DX,DY",
        help="Shift a frame's content by DX,DY pixels (repeatable)",
    )
    parser.add_argument("--sheet", action="store_true", help="Export the sheet with grid lines instead of a GIF")
    parser.add_argument("--manifest", action="store_true", help="Also write a JSON frame manifest")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load the sheet and log the export plan without writing anything",
    )
    return parser


def build_group(args: argparse.Namespace) -> Group:
    """Load the sheet and apply the grid, offsets and exclusions from ``args``."""

    source = image_io.load_image(args.input)
    mode, key_color = validators.parse_transparency(args.transparency)
    validators.validate_grid(args.rows, args.cols)
    total = args.frames if args.frames is not None else args.rows * args.cols
    config = SpriteGridConfig(
        rows=args.rows,
        cols=args.cols,
        total_frames=total,
        fps=args.fps,
        direction=validators.parse_direction(args.direction),
        export_scale=args.scale,
        transparency=mode,
        key_color=key_color,
    )
    group = Group(source, config=config)
    for index in args.exclude:
        if not group.edits.is_excluded(index):
            group.toggle_exclusion(index)
    for spec in args.offset:
        index, offset = validators.parse_offset_spec(spec)
        group.set_offset(index, offset.dx, offset.dy)
    return group


def describe_plan(group: Group, output: Path, sheet: bool = False) -> list[str]:
    """Summarize what an export of ``group`` would produce.

    Runs the same checks as a real export, so a plan is only returned for a
    group that would encode.
    """

    config = group.config
    frames = group.valid_frames()
    if not frames and not sheet:
        raise NoFramesError(group.id)
    validators.validate_cell_size(group.width, group.height, config.rows, config.cols)
    frame_w, frame_h = group.frame_size
    scale = config.export_scale
    return [
        f"Input: {group.width}x{group.height}",
        f"Grid: {config.rows}x{config.cols}, {config.total_frames} frames, {config.direction.value}-major",
        f"Valid frames: {', '.join(str(index) for index in frames) or 'none'}",
        f"Frame size: {frame_w}x{frame_h} x{scale} -> {frame_w * scale}x{frame_h * scale}",
        f"Output: {output} (dry run, nothing written)",
    ]


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    suffix = ".png" if args.sheet else ".gif"
    output = args.output or file_tools.default_output_path(args.input, suffix)

    try:
        group = build_group(args)
        if args.dry_run:
            for line in describe_plan(group, output, args.sheet):
                logger.info(line)
            return 0
        if args.sheet:
            image_io.save_image(render_grid_sheet(group), output)
        else:
            data = AssemblyPipeline().assemble(group, lambda pct: logger.debug("Encoding %s%%", pct))
            file_tools.ensure_directory(output.parent)
            output.write_bytes(data)
        if args.manifest:
            write_manifest(group, output)
    except (ValidationError, UnsupportedFormatError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except ProcessingError as exc:
        logger.error("Export failed: %s", exc)
        return 1

    logger.info("Wrote %s", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
