# v4l2latency

Tools for measuring how long a Video4Linux2 camera takes to deliver frames.

The package has two parts:

- a small V4L2 access layer: `V4l2Capture` and `V4l2Output` front ends over
  memory-mapped (`MmapDevice`) and read/write (`ReadWriteDevice`) devices,
  which open a device, check its capabilities, negotiate pixel format, size
  and frame rate, and read or write frames;
- two commands: one that times every frame read from a camera and writes a
  report, and a timer window that shows a frame counter and the current time
  in milliseconds since the epoch, to be filmed by the camera under test.

It runs on Linux, where V4L2 devices live under `/dev/video*`. It has no
dependencies beyond the standard library; the timer window needs Tk
(`tkinter`).

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Measuring capture delays

```
v4l2latency-capture [-v<level>] [-G <width>x<height>x<fps>] [-f format] [-r] [-x <count>] [device]
```

- `-G <width>x<height>x<fps>`: capture size and frame rate; values missing
  from the end are left at 0, which keeps the device's current setting
- `-f format`: pixel format as a four-character code, e.g. `MJPG` or `YUYV`
- `-v`: takes a value; `-vv` is very verbose, any other value (`-v1`) is
  verbose. A bare `-v` uses the next argument as its value.
- `-r`: capture with the read interface instead of memory-mapped buffers
- `-x <count>`: reading stops once more than `<count>` frames have been read
  (default 0, so one frame)
- `device`: the capture device, `/dev/video0` by default
- `-h`: show usage and exit

The command prints how long the camera took to open, then waits up to one
second at a time for each frame and times how long it took to arrive. It
stops when the count is passed, on a read error or on Ctrl-C. It then writes
`camera-delays.txt` in the current directory: the card type, as printed by
`v4l2-ctl --info | grep 'Card type' | ...` (so `v4l2-ctl` should be
installed), one delay per line in whole milliseconds, then the average
delay and the sample standard deviation. If the camera could not be opened
or no frame was read, the report holds only the card type, an error is
printed and the command exits with status 1.

## Frame timer

```
v4l2latency-timer
```

Opens a window with a frame-rate selector (30 to 240 in steps of 5), Start,
Stop and Reset buttons, a button that hides or shows the frame counter, a
frame counter running from 1 to the chosen frame rate, and the current time
in milliseconds since the epoch. The counter advances every `1000 // fps`
milliseconds. Changing the frame rate stops the timer; press Start or Reset
to run it again. Point the camera at it to compare what the camera saw with
when it saw it.

The counting itself lives in `FrameClock` (`interval()`, `advance()`,
`change_framerate()`), which can be used without a window.

## Library use

```python
from v4l2latency.capture import V4l2Capture
from v4l2latency.device import V4l2Error
from v4l2latency.videodev import DeviceParameters, IoType, fourcc_from_str

params = DeviceParameters("/dev/video0", fourcc_from_str("MJPG"), 1280, 720, 30, IoType.MMAP)
try:
    capture = V4l2Capture.create(params)
except V4l2Error as exc:
    print("cannot open camera:", exc)
else:
    with capture:
        if capture.is_readable(1.0):
            frame = capture.read(capture.buffer_size)
```

`V4l2Capture.create` and `V4l2Output.create` raise `V4l2Error` when the
device cannot be opened, lacks a required capability, accepts none of the
requested formats or cannot start streaming. Both front ends expose
`buffer_size`, `format`, `width`, `height`, `set_format()`, `set_fps()`,
`start()`, `stop()` and `close()`, and work as context managers.

`V4l2Output` writes whole frames with `write()`, or a frame in pieces with
`start_partial_write()`, `write_partial()` and `end_partial_write()` (with
memory-mapped buffers only). When the path given to `V4l2Output.create` is
not a character device, it is created or truncated as an ordinary file;
write frames to it with the read/write method (`IoType.READWRITE`).

`fourcc_to_str` and `fourcc_from_str` in `v4l2latency.videodev` convert
between pixel-format codes and their four-character names.

## Logging

`v4l2latency.logger` prints levelled messages to standard output. `-v`
settings map to `Priority.INFO` and `Priority.DEBUG`; the default threshold
is `Priority.NOTICE`. Use `set_log_level()` or `init_logger()` to change it
when using the library.