"""V4L2 constants, structure layouts, device parameters and FOURCC helpers."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from enum import Enum

V4L2_CAP_VIDEO_CAPTURE = 0x00000001
V4L2_CAP_VIDEO_OUTPUT = 0x00000002
V4L2_CAP_TIMEPERFRAME = 0x00001000
V4L2_CAP_READWRITE = 0x01000000
V4L2_CAP_STREAMING = 0x04000000

V4L2_BUF_TYPE_VIDEO_CAPTURE = 1
V4L2_BUF_TYPE_VIDEO_OUTPUT = 2

V4L2_MEMORY_MMAP = 1

# struct v4l2_capability: driver, card, bus_info, version, capabilities, device_caps, reserved[3]
CAPABILITY_STRUCT = struct.Struct("@16s32s32sIII3I")
# struct v4l2_format: type, then the pix member of the aligned union (12 fields), rest of union
FORMAT_STRUCT = struct.Struct("@I0L12I152x")
# struct v4l2_streamparm: type, capability, capturemode, numerator, denominator,
# extendedmode, readbuffers, reserved[4], rest of union
STREAMPARM_STRUCT = struct.Struct("@I6I4I160x")
# struct v4l2_requestbuffers: count, type, memory, capabilities, flags/reserved
REQUESTBUFFERS_STRUCT = struct.Struct("@IIII4x")
# struct v4l2_buffer: index, type, bytesused, flags, field, timestamp(2), timecode(type, flags,
# frames, seconds, minutes, hours, userbits), sequence, memory, m, length, reserved2, request_fd
BUFFER_STRUCT = struct.Struct("@5I2l2I4B4sIILIII0L")
STREAM_TYPE_STRUCT = struct.Struct("@i")

_IOC_WRITE = 1
_IOC_READ = 2


def _ioc(direction: int, number: int, size: int) -> int:
    return (direction << 30) | (size << 16) | (ord("V") << 8) | number


VIDIOC_QUERYCAP = _ioc(_IOC_READ, 0, CAPABILITY_STRUCT.size)
VIDIOC_G_FMT = _ioc(_IOC_READ | _IOC_WRITE, 4, FORMAT_STRUCT.size)
VIDIOC_S_FMT = _ioc(_IOC_READ | _IOC_WRITE, 5, FORMAT_STRUCT.size)
VIDIOC_REQBUFS = _ioc(_IOC_READ | _IOC_WRITE, 8, REQUESTBUFFERS_STRUCT.size)
VIDIOC_QUERYBUF = _ioc(_IOC_READ | _IOC_WRITE, 9, BUFFER_STRUCT.size)
VIDIOC_QBUF = _ioc(_IOC_READ | _IOC_WRITE, 15, BUFFER_STRUCT.size)
VIDIOC_DQBUF = _ioc(_IOC_READ | _IOC_WRITE, 17, BUFFER_STRUCT.size)
VIDIOC_STREAMON = _ioc(_IOC_WRITE, 18, STREAM_TYPE_STRUCT.size)
VIDIOC_STREAMOFF = _ioc(_IOC_WRITE, 19, STREAM_TYPE_STRUCT.size)
VIDIOC_S_PARM = _ioc(_IOC_READ | _IOC_WRITE, 22, STREAMPARM_STRUCT.size)


class IoType(Enum):
    """How frames move between the program and the device."""

    READWRITE = 0
    MMAP = 1


@dataclass
class DeviceParameters:
    """What to open and how to configure it.

    ``formats`` may be a single FOURCC code (0 meaning "keep the current one")
    or an ordered list of codes to try.
    """

    dev_name: str
    formats: list[int] | int = field(default_factory=list)
    width: int = 0
    height: int = 0
    fps: int = 0
    io_type: IoType = IoType.MMAP
    open_flags: int = os.O_RDWR | os.O_NONBLOCK
    verbose: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.formats, int):
            self.formats = [self.formats] if self.formats else []
        else:
            self.formats = list(self.formats)


def fourcc_to_str(format: int) -> str:
    """Render a FOURCC code as text, stopping at the first zero byte."""
    raw = (format & 0xFFFFFFFF).to_bytes(4, "little")
    return raw.split(b"\0", 1)[0].decode("latin-1")


def fourcc_from_str(text: str | None) -> int:
    """Build a FOURCC code from at most the first four characters of ``text``."""
    if not text:
        return 0
    raw = text.encode("latin-1")[:4].split(b"\0", 1)[0]
    return int.from_bytes(raw.ljust(4, b"\0"), "little")