import pytest

from spritemotion.core import Direction, FrameOffset, TransparencyMode
from spritemotion.core.errors import ValidationError
from spritemotion.utils import validators


def test_parse_grid_spec():
    assert validators.parse_grid_spec("3x3") == (3, 3)
    assert validators.parse_grid_spec(" 2 X 5 ") == (2, 5)
    with pytest.raises(ValidationError):
        validators.parse_grid_spec("3by3")
    with pytest.raises(ValidationError):
        validators.parse_grid_spec("0x4")


def test_total_frames_bounded_by_capacity():
    validators.validate_total_frames(0, 2, 2)
    validators.validate_total_frames(4, 2, 2)
    with pytest.raises(ValidationError):
        validators.validate_total_frames(5, 2, 2)


@pytest.mark.parametrize("fps", [0, 61])
def test_fps_out_of_range(fps):
    with pytest.raises(ValidationError):
        validators.validate_fps(fps)


def test_cell_size_must_be_at_least_one_pixel():
    validators.validate_cell_size(4, 4, 4, 4)
    with pytest.raises(ValidationError):
        validators.validate_cell_size(3, 10, 1, 4)


def test_parse_direction():
    assert validators.parse_direction(" Column ") is Direction.COLUMN_MAJOR
    assert validators.parse_direction(Direction.ROW_MAJOR) is Direction.ROW_MAJOR
    with pytest.raises(ValidationError):
        validators.parse_direction("spiral")


def test_parse_hex_color():
    assert validators.parse_hex_color("#00FF7f") == (0, 255, 127)
    assert validators.parse_hex_color("ffffff") == (255, 255, 255)
    assert validators.parse_hex_color("  ") is None
    with pytest.raises(ValidationError):
        validators.parse_hex_color("#fff")


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, (TransparencyMode.NONE, None)),
        ("none", (TransparencyMode.NONE, None)),
        ("AUTO", (TransparencyMode.AUTO_KEY, None)),
        ("#102030", (TransparencyMode.FIXED_COLOR, (16, 32, 48))),
    ],
)
def test_parse_transparency(value, expected):
    assert validators.parse_transparency(value) == expected


def test_parse_offset_spec():
    assert validators.parse_offset_spec("3:-2,5") == (3, FrameOffset(-2, 5))
    with pytest.raises(ValidationError):
        validators.parse_offset_spec("3:2")
