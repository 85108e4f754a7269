import errno
import math
import subprocess
from unittest.mock import patch

import pytest

from v4l2latency.capture_cli import (
    CaptureOptions,
    camera_card_type,
    main,
    measure_delays,
    parse_args,
    summarize_delays,
    write_report,
)
from v4l2latency.device import V4l2Error
from v4l2latency.videodev import IoType, fourcc_from_str


class FakeCapture:
    def __init__(self, readiness, failures=()):
        self.buffer_size = 16
        self._readiness = iter(readiness)
        self._failures = list(failures)
        self.read_sizes = []

    def is_readable(self, timeout):
        ready = next(self._readiness, True)
        if isinstance(ready, Exception):
            raise ready
        return ready

    def read(self, size):
        self.read_sizes.append(size)
        if self._failures:
            raise self._failures.pop(0)
        return b"\0" * size


def _completed(stdout):
    return subprocess.CompletedProcess(args="cmd", returncode=0, stdout=stdout, stderr="")


def test_defaults():
    options = parse_args([])
    assert options == CaptureOptions()
    assert options.device == "/dev/video0"
    assert options.io_type is IoType.MMAP


def test_geometry_and_flags():
    options = parse_args(["-G", "640x480x25", "-r", "-x", "7", "/dev/video2"])
    assert (options.width, options.height, options.fps) == (640, 480, 25)
    assert options.io_type is IoType.READWRITE
    assert options.frame_count == 7
    assert options.device == "/dev/video2"


def test_partial_geometry_keeps_remaining_defaults():
    options = parse_args(["-G640"])
    assert (options.width, options.height, options.fps) == (640, 0, 0)


def test_format_option():
    assert parse_args(["-f", "MJPG"]).format == fourcc_from_str("MJPG")


@pytest.mark.parametrize(
    ("argv", "expected"),
    [(["-vv"], 2), (["-v", "v"], 2), (["-v", "x"], 1), ([], 0)],
)
def test_verbosity(argv, expected):
    assert parse_args(argv).verbose == expected


def test_verbose_consumes_next_argument():
    options = parse_args(["-v", "/dev/video3"])
    assert options.verbose == 1
    assert options.device == "/dev/video0"


def test_unknown_option_is_reported_and_ignored(capsys):
    options = parse_args(["-z", "-x", "3"])
    assert options.frame_count == 3
    assert "'z'" in capsys.readouterr().err


def test_missing_argument_is_reported(capsys):
    options = parse_args(["-x"])
    assert options.frame_count == 0
    assert "'x'" in capsys.readouterr().err


def test_help_exits_with_usage(capsys):
    with pytest.raises(SystemExit) as info:
        parse_args(["-h"])
    assert info.value.code == 0
    assert "-G <width>x<height>x<fps>" in capsys.readouterr().out


def test_summary_of_constant_delays():
    mean, stdev = summarize_delays([5, 5, 5])
    assert mean == 5
    assert stdev == 0.0


def test_summary_mean_lies_between_extremes():
    delays = [3, 9, 14, 40]
    mean, stdev = summarize_delays(delays)
    assert min(delays) <= mean <= max(delays)
    assert stdev > 0


def test_summary_single_delay_has_nan_deviation():
    mean, stdev = summarize_delays([12])
    assert mean == 12
    assert math.isnan(stdev)


def test_summary_empty_is_error():
    with pytest.raises(ValueError):
        summarize_delays([])


def test_write_report(tmp_path):
    path = tmp_path / "report.txt"
    write_report(path, "Cam\n", [5, 5])
    assert path.read_text() == "Cam\n5\n5\nAverage Delay:5ms\nStandard Deviation: 0ms\n"


def test_write_report_without_delays_raises_after_card_type(tmp_path):
    path = tmp_path / "report.txt"
    with pytest.raises(ValueError):
        write_report(path, "Cam\n", [])
    assert path.read_text() == "Cam\n"


def test_camera_card_type_runs_pipeline():
    with patch("v4l2latency.capture_cli.subprocess.run", return_value=_completed("Webcam\n")) as run:
        assert camera_card_type() == "Webcam\n"
    assert "v4l2-ctl" in run.call_args.args[0]


def test_measure_reads_one_more_than_frame_count():
    capture = FakeCapture([False, True, True, True, True])
    delays = measure_delays(capture, 2)
    assert len(delays) == 2 + 1
    assert all(delay >= 0 for delay in delays)
    assert capture.read_sizes == [capture.buffer_size] * len(delays)


def test_measure_stops_on_read_error():
    capture = FakeCapture([True], failures=[V4l2Error(errno.EIO, "failed")])
    delays = measure_delays(capture, 10)
    assert len(delays) == 1


def test_measure_stops_on_wait_error():
    capture = FakeCapture([OSError(errno.EBADF, "bad")])
    assert measure_delays(capture, 10) == []


def test_main_without_camera_reports_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    device = tmp_path / "not-a-camera"
    with patch("v4l2latency.capture_cli.subprocess.run", return_value=_completed("Cam\n")):
        assert main([str(device)]) == 1
    assert (tmp_path / "camera-delays.txt").read_text() == "Cam\n"


def test_main_read_interface_on_plain_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    device = tmp_path / "plain-file"
    with patch("v4l2latency.capture_cli.subprocess.run", return_value=_completed("Cam\n")):
        assert main(["-r", str(device)]) == 0
    lines = (tmp_path / "camera-delays.txt").read_text().splitlines()
    assert lines[0] == "Cam"
    assert lines[-2].startswith("Average Delay:")
    assert lines[-1] == "Standard Deviation: nanms"