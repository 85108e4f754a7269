import pytest

from v4l2latency.timer import DEFAULT_FPS, MAX_FPS, MIN_FPS, FrameClock


def test_default_clock():
    clock = FrameClock()
    assert clock.fps == DEFAULT_FPS
    assert clock.current_frame == 0
    assert clock.interval() == 33


@pytest.mark.parametrize("fps", [MIN_FPS, 45, 60, 120, MAX_FPS])
def test_interval_is_floor_of_frame_period(fps):
    clock = FrameClock(fps=fps)
    interval = clock.interval()
    assert interval * fps <= 1000 < (interval + 1) * fps


@pytest.mark.parametrize("fps", [MIN_FPS, 60, MAX_FPS])
def test_advance_counts_from_one_to_fps(fps):
    clock = FrameClock(fps=fps)
    frames = [clock.advance() for _ in range(fps)]
    assert frames == list(range(1, fps + 1))


def test_advance_wraps_to_one():
    clock = FrameClock(fps=MIN_FPS)
    for _ in range(MIN_FPS):
        clock.advance()
    assert clock.advance() == 1
    assert clock.current_frame == 1


def test_change_framerate_keeps_frames_in_range():
    clock = FrameClock(fps=60)
    for _ in range(50):
        clock.advance()
    clock.change_framerate(MIN_FPS)
    assert clock.fps == MIN_FPS
    frames = [clock.advance() for _ in range(3 * MIN_FPS)]
    assert all(1 <= frame <= MIN_FPS for frame in frames)


def test_change_framerate_updates_interval():
    clock = FrameClock()
    before = clock.interval()
    clock.change_framerate(MAX_FPS)
    assert clock.interval() < before


@pytest.mark.parametrize("fps", [0, -5])
def test_non_positive_framerate_rejected(fps):
    clock = FrameClock()
    with pytest.raises(ValueError):
        clock.change_framerate(fps)
    assert clock.fps == DEFAULT_FPS


def test_non_positive_initial_framerate_rejected():
    with pytest.raises(ValueError):
        FrameClock(fps=0)