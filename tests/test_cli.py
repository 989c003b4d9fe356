import json
import logging

from PIL import Image

from spritemotion import cli


def _sheet(path):
    image = Image.new("RGBA", (40, 40), (255, 255, 255, 255))
    for index in range(4):
        row, col = divmod(index, 2)
        image.paste((60 * index, 0, 200, 255), (col * 20 + 5, row * 20 + 5, col * 20 + 15, row * 20 + 15))
    image.save(path)
    return path


def test_build_parser_creates_arguments():
    parser = cli.build_parser()
    args = parser.parse_args(
        ["sheet.png", "out.gif", "--fps", "8", "--direction", "column", "--offset", "1:2,-3", "--exclude", "0", "3"]
    )
    assert args.input.name == "sheet.png"
    assert args.output.name == "out.gif"
    assert args.fps == 8
    assert args.direction == "column"
    assert args.offset == ["1:2,-3"]
    assert args.exclude == [0, 3]
    assert args.transparency == "auto"


def test_dry_run_logs_plan_without_writing(tmp_path, caplog):
    caplog.set_level(logging.INFO, logger="spritemotion.cli")
    sheet = _sheet(tmp_path / "walk.png")

    code = cli.main([str(sheet), "--rows", "2", "--cols", "2", "--exclude", "1", "--scale", "2", "--dry-run"])

    assert code == 0
    assert "Valid frames: 0, 2, 3" in caplog.text
    assert "Frame size: 20x20 x2 -> 40x40" in caplog.text
    assert str(tmp_path / "walk.gif") in caplog.text
    assert list(tmp_path.iterdir()) == [sheet]


def test_dry_run_still_validates(tmp_path, capsys):
    assert cli.main([str(tmp_path / "missing.png"), "--dry-run"]) == 2
    sheet = _sheet(tmp_path / "walk.png")
    assert cli.main([str(sheet), "--rows", "1", "--cols", "1", "--exclude", "0", "--dry-run"]) == 2
    assert "No valid frames" in capsys.readouterr().err


def test_build_group_applies_edits(tmp_path):
    sheet = _sheet(tmp_path / "sheet.png")
    args = cli.build_parser().parse_args(
        [str(sheet), "--rows", "2", "--cols", "2", "--transparency", "#FFFFFF", "--offset", "1:2,-3", "--exclude", "0"]
    )
    group = cli.build_group(args)
    assert group.valid_frames() == [1, 2, 3]
    assert group.edits.offset(1).dx == 2
    assert group.config.key_color == (255, 255, 255)


def test_main_writes_gif_next_to_input(tmp_path):
    sheet = _sheet(tmp_path / "walk.png")
    assert cli.main([str(sheet), "--rows", "2", "--cols", "2", "--manifest"]) == 0

    with Image.open(tmp_path / "walk.gif") as gif:
        assert gif.n_frames == 4
        assert gif.size == (20, 20)
    manifest = json.loads((tmp_path / "walk.json").read_text())
    assert manifest["meta"]["total_frames"] == 4


def test_main_writes_grid_sheet(tmp_path):
    sheet = _sheet(tmp_path / "walk.png")
    output = tmp_path / "out" / "grid.png"
    assert cli.main([str(sheet), str(output), "--rows", "2", "--cols", "2", "--sheet"]) == 0
    with Image.open(output) as image:
        assert image.size == (40, 40)


def test_all_frames_excluded_is_a_usage_error(tmp_path, capsys):
    sheet = _sheet(tmp_path / "walk.png")
    code = cli.main([str(sheet), "--rows", "1", "--cols", "2", "--exclude", "0", "1"])
    assert code == 2
    assert "No valid frames" in capsys.readouterr().err
    assert not (tmp_path / "walk.gif").exists()


def test_missing_input_returns_usage_error(tmp_path):
    assert cli.main([str(tmp_path / "missing.png")]) == 2


def test_unsupported_extension_returns_usage_error(tmp_path):
    bogus = tmp_path / "notes.txt"
    bogus.write_text("hello")
    assert cli.main([str(bogus)]) == 2
