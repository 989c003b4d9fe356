from PIL import Image

from spritemotion.core import Direction, FrameOffset, SpriteGridConfig, TransparencyMode
from spritemotion.core import compositor
from spritemotion.core.chroma_key import KEY_COLOR
from spritemotion.core.edits import FrameEditStore


def _gradient(width, height):
    image = Image.new("RGBA", (width, height))
    for y in range(height):
        for x in range(width):
            image.putpixel((x, y), (x * 10 % 256, y * 10 % 256, 7, 255))
    return image


def _quadrants():
    image = Image.new("RGBA", (20, 20))
    colors = {(0, 0): (255, 0, 0, 255), (0, 1): (0, 255, 0, 255), (1, 0): (0, 0, 255, 255), (1, 1): (9, 9, 9, 255)}
    for (row, col), color in colors.items():
        image.paste(color, (col * 10, row * 10, col * 10 + 10, row * 10 + 10))
    return image, colors


NO_KEY = SpriteGridConfig(rows=1, cols=2, total_frames=2, transparency=TransparencyMode.NONE)


def test_frame_has_cell_size():
    frame = compositor.composite(_gradient(20, 10), NO_KEY, {}, 1)
    assert frame.size == (10, 10)
    assert frame.getpixel((0, 0)) == (100, 0, 7, 255)


def test_positive_offset_shifts_content_right():
    source = _gradient(20, 10)
    frame = compositor.composite(source, NO_KEY, {0: FrameOffset(5, 0)}, 0)
    assert compositor.sample_box(0, NO_KEY, 20, 10, FrameOffset(5, 0)) == (-5, 0, 5, 10)
    for y in range(10):
        for x in range(5):
            assert frame.getpixel((x, y)) == (0, 0, 0, 0)
        for x in range(5, 10):
            assert frame.getpixel((x, y)) == source.getpixel((x - 5, y))


def test_positive_dy_shifts_content_down():
    source = _gradient(20, 10)
    frame = compositor.composite(source, NO_KEY, {1: FrameOffset(0, 3)}, 1)
    assert frame.getpixel((0, 0)) == (0, 0, 0, 0)
    assert frame.getpixel((0, 3)) == source.getpixel((10, 0))


def test_negative_offset_samples_neighbouring_cell():
    source = _gradient(20, 10)
    frame = compositor.composite(source, NO_KEY, {0: FrameOffset(-3, 0)}, 0)
    assert frame.getpixel((0, 0)) == source.getpixel((3, 0))
    assert frame.getpixel((9, 0)) == source.getpixel((12, 0))


def test_offset_then_reset_matches_untouched_frame():
    source = _gradient(20, 10)
    baseline = compositor.composite(source, NO_KEY, {}, 1)
    store = FrameEditStore()
    store.set_offset(1, 4, -2)
    assert compositor.composite(source, NO_KEY, store.offsets, 1).tobytes() != baseline.tobytes()
    store.reset_offset(1)
    assert compositor.composite(source, NO_KEY, store.offsets, 1).tobytes() == baseline.tobytes()


def test_fully_outside_is_background_not_error():
    config = SpriteGridConfig(rows=1, cols=2, total_frames=2, transparency=TransparencyMode.AUTO_KEY)
    frame = compositor.composite(_gradient(20, 10), config, {0: FrameOffset(500, -500)}, 0)
    assert frame.getcolors() == [(100, (255, 255, 255, 255))]


def test_fixed_color_mode_fills_with_key_color():
    config = SpriteGridConfig(
        rows=1, cols=2, total_frames=2, transparency=TransparencyMode.FIXED_COLOR, key_color=(1, 2, 3)
    )
    frame = compositor.composite(_gradient(20, 10), config, {0: FrameOffset(2, 0)}, 0)
    assert frame.getpixel((0, 0)) == (1, 2, 3, 255)


def test_direction_changes_which_cell_is_sampled():
    source, colors = _quadrants()
    row_major = SpriteGridConfig(rows=2, cols=2, total_frames=4, transparency=TransparencyMode.NONE)
    column_major = SpriteGridConfig(
        rows=2, cols=2, total_frames=4, direction=Direction.COLUMN_MAJOR, transparency=TransparencyMode.NONE
    )
    assert compositor.composite(source, row_major, {}, 1).getpixel((5, 5)) == colors[(0, 1)]
    assert compositor.composite(source, column_major, {}, 1).getpixel((5, 5)) == colors[(1, 0)]


def test_fractional_cells_use_consistent_rounding():
    source = _gradient(10, 10)
    config = SpriteGridConfig(rows=1, cols=3, total_frames=3, transparency=TransparencyMode.NONE)
    frames = [compositor.composite(source, config, {}, i) for i in range(3)]
    assert {frame.size for frame in frames} == {(3, 10)}
    assert frames[1].getpixel((0, 0)) == source.getpixel((3, 0))
    assert frames[2].getpixel((0, 0)) == source.getpixel((6, 0))


def test_source_is_not_modified():
    source = _gradient(20, 10)
    before = source.tobytes()
    compositor.render_frame(source, SpriteGridConfig(rows=1, cols=2, total_frames=2), {0: FrameOffset(3, 3)}, 0)
    assert source.tobytes() == before


def test_render_frame_keys_then_scales():
    source = Image.new("RGBA", (8, 4), (255, 255, 255, 255))
    source.putpixel((1, 1), (200, 0, 0, 255))
    config = SpriteGridConfig(rows=1, cols=2, total_frames=2, export_scale=2)
    frame = compositor.render_frame(source, config, {}, 0, keyed=True, scaled=True)
    assert frame.size == (8, 8)
    assert frame.getpixel((0, 0)) == (*KEY_COLOR, 255)
    assert frame.getpixel((2, 2)) == (200, 0, 0, 255)
    assert frame.getpixel((3, 3)) == (200, 0, 0, 255)
