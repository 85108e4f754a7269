"""Command that measures how long a V4L2 camera takes to deliver each frame."""

from __future__ import annotations

import math
import os
import re
import statistics
import subprocess
import sys
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .capture import V4l2Capture
from .device import V4l2Error
from .logger import Priority, init_logger, log
from .videodev import DeviceParameters, IoType, fourcc_from_str

DEFAULT_DEVICE = "/dev/video0"
REPORT_PATH = "camera-delays.txt"
CARD_TYPE_COMMAND = "v4l2-ctl --info | grep 'Card type' | tr -d ' ' | awk -F ':' '{print $2}'"
READ_TIMEOUT = 1.0

_OPTIONS_WITH_ARGUMENT = frozenset("xvGf")
_FLAG_OPTIONS = frozenset("hr")
_INTEGER = re.compile(r"\s*([+-]?\d+)")


class _Readable(Protocol):
    buffer_size: int

    def is_readable(self, timeout: float | None) -> bool: ...

    def read(self, size: int) -> bytes: ...


@dataclass
class CaptureOptions:
    """Settings taken from the command line."""

    verbose: int = 0
    device: str = DEFAULT_DEVICE
    io_type: IoType = IoType.MMAP
    format: int = 0
    width: int = 0
    height: int = 0
    fps: int = 0
    frame_count: int = 0

    def to_parameters(self) -> DeviceParameters:
        """Build the device parameters these options describe."""
        return DeviceParameters(
            self.device,
            self.format,
            self.width,
            self.height,
            self.fps,
            self.io_type,
        )


def _scan_ints(text: str, count: int) -> list[int]:
    """Read up to ``count`` integers separated by 'x', stopping at the first mismatch."""
    values: list[int] = []
    pos = 0
    for number in range(count):
        match = _INTEGER.match(text, pos)
        if match is None:
            break
        values.append(int(match.group(1)))
        pos = match.end()
        if number < count - 1:
            if not text.startswith("x", pos):
                break
            pos += 1
    return values


def _usage(program: str) -> str:
    return "\n".join(
        [
            f"{program} [-v[v]] [-G <width>x<height>x<fps>] [-f format] [device] [-r]",
            "\t -G <width>x<height>x<fps> : set capture resolution",
            "\t -v            : verbose ",
            "\t -vv           : very verbose ",
            "\t -r            : V4L2 capture using read interface "
            "(default use memory mapped buffers)",
            "\t -x <count>    : read <count> frames and save them in current dir.",
            f"\t device        : V4L2 capture device (default {DEFAULT_DEVICE})",
        ]
    )


def _apply_option(options: CaptureOptions, name: str, value: str | None) -> None:
    if name == "v":
        options.verbose = 2 if value and value.startswith("v") else 1
    elif name == "r":
        options.io_type = IoType.READWRITE
    elif name == "G":
        for attr, number in zip(("width", "height", "fps"), _scan_ints(value or "", 3)):
            setattr(options, attr, number)
    elif name == "f":
        options.format = fourcc_from_str(value)
    elif name == "x":
        scanned = _scan_ints(value or "", 1)
        if scanned:
            options.frame_count = scanned[0]
    elif name == "h":
        print(_usage(os.path.basename(sys.argv[0]) or "v4l2latency"))
        raise SystemExit(0)


def parse_args(argv: Sequence[str] | None = None) -> CaptureOptions:
    """Parse command-line arguments; ``-h`` prints usage and exits.

    Unknown options and options missing their argument are reported on
    standard error and otherwise ignored.
    """
    options = CaptureOptions()
    args = iter(sys.argv[1:] if argv is None else argv)
    positional: list[str] = []
    for arg in args:
        if arg == "--":
            positional.extend(args)
            break
        if not arg.startswith("-") or arg == "-":
            positional.append(arg)
            continue
        letters = arg[1:]
        for offset, name in enumerate(letters):
            if name in _OPTIONS_WITH_ARGUMENT:
                value = letters[offset + 1 :] or next(args, None)
                if value is None:
                    print(f"option requires an argument -- '{name}'", file=sys.stderr)
                else:
                    _apply_option(options, name, value)
                break
            if name in _FLAG_OPTIONS:
                _apply_option(options, name, None)
            else:
                print(f"invalid option -- '{name}'", file=sys.stderr)
    if positional:
        options.device = positional[0]
    return options


def summarize_delays(delays: Sequence[int]) -> tuple[float, float]:
    """Return the mean and the sample standard deviation of ``delays``.

    The deviation is NaN for a single delay; no delays at all is an error.
    """
    if not delays:
        raise ValueError("no delays were recorded")
    mean = statistics.fmean(delays)
    if len(delays) == 1:
        return mean, math.nan
    return mean, statistics.stdev(delays)


def camera_card_type() -> str:
    """Return the card type reported by ``v4l2-ctl``, as printed by the shell pipeline."""
    result = subprocess.run(
        CARD_TYPE_COMMAND, shell=True, capture_output=True, text=True, check=False
    )
    return result.stdout


def write_report(path: str | os.PathLike[str], card_type: str, delays: Iterable[int]) -> None:
    """Write the card type, every delay and their summary to ``path``.

    Raises :class:`ValueError` after writing the delays if there are none to summarise.
    """
    recorded = list(delays)
    with Path(path).open("w", encoding="utf-8") as report:
        report.write(card_type)
        report.writelines(f"{delay}\n" for delay in recorded)
        mean, stdev = summarize_delays(recorded)
        report.write(f"Average Delay:{mean:g}ms\n")
        report.write(f"Standard Deviation: {stdev:g}ms\n")


def measure_delays(capture: _Readable, frame_count: int) -> list[int]:
    """Read frames and return the milliseconds each one took to arrive.

    Stops after more than ``frame_count`` frames, on a read or wait error,
    or when interrupted.
    """
    delays: list[int] = []
    buffers_read = 0
    try:
        while True:
            start = time.perf_counter_ns()
            try:
                ready = capture.is_readable(READ_TIMEOUT)
            except OSError as exc:
                log(Priority.NOTICE, f"stop {exc.strerror or exc}")
                break
            if not ready:
                continue
            error: OSError | None = None
            try:
                capture.read(capture.buffer_size)
            except OSError as exc:
                error = exc
            end = time.perf_counter_ns()
            buffers_read += 1
            delay = (end - start) // 1_000_000
            log(Priority.NOTICE, f"Buffer: {buffers_read}delay: {delay} ms\n")
            delays.append(delay)
            if error is not None:
                log(Priority.NOTICE, f"stop {error.strerror or error}")
                break
            if buffers_read > frame_count:
                break
    except KeyboardInterrupt:
        print("SIGINT")
    return delays


def main(argv: Sequence[str] | None = None) -> int:
    """Open the camera, time frame delivery and write the report."""
    options = parse_args(argv)
    init_logger(options.verbose)

    start = time.perf_counter_ns()
    capture: V4l2Capture | None
    try:
        capture = V4l2Capture.create(options.to_parameters())
    except V4l2Error:
        capture = None
    startup_ms = (time.perf_counter_ns() - start) // 1_000_000
    print(f"Camera opened in: {startup_ms}ms.")

    delays: list[int] = []
    if capture is None:
        log(
            Priority.WARN,
            f"Cannot reading from V4L2 capture interface for device:{options.device}",
        )
    else:
        log(Priority.NOTICE, f"Start reading from {options.device}")
        with capture:
            delays = measure_delays(capture, options.frame_count)

    print("Writing data to file: ")
    try:
        write_report(REPORT_PATH, camera_card_type(), delays)
    except ValueError as exc:
        print(f"Cannot summarise delays: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())