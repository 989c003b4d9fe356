import pytest
from PIL import Image

from spritemotion.core import SpriteGridConfig
from spritemotion.core.groups import Group
from spritemotion.core.playback import PlaybackClock, active_frame, frame_interval_ms


def _group(total=4, fps=12):
    config = SpriteGridConfig(rows=2, cols=2, total_frames=total, fps=fps)
    return Group(Image.new("RGBA", (20, 20)), config=config)


def test_twelve_fps_with_one_excluded_frame():
    group = _group()
    group.toggle_exclusion(1)
    clock = PlaybackClock(group)
    assert clock.active_frame(0) == 0
    assert clock.active_frame(84) == 2
    assert clock.active_frame(167) == 3
    assert clock.active_frame(1000) == 0


def test_no_valid_frames_means_no_active_frame():
    group = _group()
    for index in range(4):
        group.toggle_exclusion(index)
    clock = PlaybackClock(group)
    assert clock.active_frame(500) is None
    assert clock.period_ms() == 0


@pytest.mark.parametrize("fps", [1, 7, 12, 24, 60])
def test_cycle_is_periodic(fps):
    frames = [0, 2, 5, 6]
    # fps full loops always fit in len(frames) seconds
    shift_ms = len(frames) * 1000
    for t in range(0, 3000, 37):
        assert active_frame(t, fps, frames) == active_frame(t + shift_ms, fps, frames)


def test_period_matches_frame_count_over_fps():
    frames = [1, 3, 4]
    assert frame_interval_ms(10) == 100
    for t in range(0, 1200, 25):
        assert active_frame(t, 10, frames) == active_frame(t + 300, 10, frames)


def test_excluded_frames_never_returned():
    group = _group(total=4, fps=30)
    group.toggle_exclusion(0)
    group.toggle_exclusion(3)
    clock = PlaybackClock(group)
    shown = {clock.active_frame(t) for t in range(0, 2000, 5)}
    assert shown == {1, 2}


def test_exclusion_takes_effect_on_next_tick():
    group = _group()
    clock = PlaybackClock(group)
    assert clock.active_frame(90) == 1
    group.toggle_exclusion(1)
    assert clock.active_frame(90) == 2


def test_frames_follow_ascending_index_order():
    group = _group(total=4, fps=10)
    group.set_direction("column")
    clock = PlaybackClock(group)
    assert [clock.active_frame(t) for t in (0, 100, 200, 300)] == [0, 1, 2, 3]


def test_tick_reports_changes_only():
    clock = PlaybackClock(_group(fps=10))
    assert clock.tick(0) == (0, True)
    assert clock.tick(50) == (0, False)
    assert clock.tick(100) == (1, True)
